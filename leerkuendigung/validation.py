"""Shape and content checks on the raw dataset.

:func:`validate_dataset` runs the checks in a fixed order and raises on the
first failure.  Once it returns, downstream code relies on:

* the four source columns being present, with numeric year and count;
* non-negative counts and years within ``[min_year, max_year]``;
* enough distinct age groups, residence categories and years;
* at least ``min_rows`` rows, no repeated (year, age, residence) key;
* a strictly positive total count.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import List

import pandas as pd

from .config import DEFAULT_CONFIG, AnalysisConfig
from .errors import ValidationCheck, require

logger = logging.getLogger(__name__)


def _is_numeric(series: pd.Series) -> bool:
    return pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(
        series
    )


def _source_name(config: AnalysisConfig, conceptual: str) -> str:
    return next(src for src, dst in config.field_mappings.items() if dst == conceptual)


def validate_dataset(
    df: pd.DataFrame, config: AnalysisConfig = DEFAULT_CONFIG
) -> pd.DataFrame:
    """Validate the raw table and return it unchanged.

    Parameters
    ----------
    df : pd.DataFrame
        Raw table with source column names.
    config : AnalysisConfig, optional
        Supplies the column mapping and the validation floors.

    Returns
    -------
    pd.DataFrame
        ``df`` itself, so the call can be chained.

    Raises
    ------
    ValidationError
        With ``check`` set to the first failing :class:`ValidationCheck`.
    """
    year_col = _source_name(config, "year")
    age_col = _source_name(config, "age_group")
    residence_col = _source_name(config, "new_residence")
    count_col = _source_name(config, "count")

    # 1. Required columns
    missing: List[str] = [c for c in config.required_columns if c not in df.columns]
    require(not missing, ValidationCheck.REQUIRED_COLUMNS, f"{missing}")
    logger.debug("Required columns present: %s", list(config.required_columns))

    # 2. Types
    require(
        _is_numeric(df[year_col]),
        ValidationCheck.YEAR_NUMERIC,
        f"{year_col} has dtype {df[year_col].dtype}",
    )
    require(
        _is_numeric(df[count_col]),
        ValidationCheck.COUNT_NUMERIC,
        f"{count_col} has dtype {df[count_col].dtype}",
    )

    # 3. Non-negative counts (missing values are not compared)
    n_negative = int((df[count_col] < 0).sum())
    require(
        n_negative == 0,
        ValidationCheck.NON_NEGATIVE,
        f"{n_negative} rows with a negative {count_col}",
    )

    # 4. Year range
    max_year = config.max_year if config.max_year is not None else dt.date.today().year
    years = df[year_col].dropna()
    out_of_range = years[(years < config.min_year) | (years > max_year)]
    require(
        out_of_range.empty,
        ValidationCheck.YEAR_RANGE,
        f"expected {config.min_year}-{max_year}, found {sorted(out_of_range.unique())}",
    )

    # 5. Cardinality
    n_ages = df[age_col].nunique()
    require(
        n_ages >= config.min_age_groups,
        ValidationCheck.AGE_GROUPS,
        f"{n_ages} < {config.min_age_groups}",
    )
    n_residences = df[residence_col].nunique()
    require(
        n_residences >= config.min_residence_categories,
        ValidationCheck.RESIDENCE_CATEGORIES,
        f"{n_residences} < {config.min_residence_categories}",
    )
    n_years = df[year_col].nunique()
    require(
        n_years >= config.min_years,
        ValidationCheck.YEARS,
        f"{n_years} < {config.min_years}",
    )

    # 6. Row-count floor
    require(
        len(df) >= config.min_rows,
        ValidationCheck.ROW_COUNT,
        f"{len(df)} rows < {config.min_rows}",
    )

    # 7. Duplicate keys
    key = [year_col, age_col, residence_col]
    duplicated = df.duplicated(subset=key, keep=False)
    require(
        not duplicated.any(),
        ValidationCheck.DUPLICATES,
        f"{int(duplicated.sum())} rows share a ({', '.join(key)}) key",
    )

    # 8. Non-zero total
    total = df[count_col].sum()
    require(total > 0, ValidationCheck.ZERO_TOTAL, f"sum of {count_col} is {total}")

    logger.info(
        "Validation passed: %d rows, %d years, %d age groups, %d residence "
        "categories, total count %s",
        len(df),
        n_years,
        n_ages,
        n_residences,
        total,
    )
    return df
