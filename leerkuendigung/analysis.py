"""Aggregations answering the five report questions.

Every function here is a pure read of the mapped table (see
:func:`leerkuendigung.mapping.map_fields`); none of them modify their input,
so they can run in any order.

* Q1 :func:`analyze_time_dynamics` -- yearly totals, peak years, pattern.
* Q2 :func:`analyze_composition_shift` -- yearly residence shares vs. baseline.
* Q3 :func:`analyze_age_gradient` -- within-city share per age group.
* Q4 :func:`analyze_same_quarter` -- same-quarter share per age group.
* Q5 :func:`analyze_unknown_concentration` -- unknown share per age group.
* :func:`analyze_residuals` -- age x residence residuals and relative risk.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from .config import DEFAULT_CONFIG, AnalysisConfig
from .mapping import ResidenceCategory, categorize_residence, category_order

logger = logging.getLogger(__name__)

WAVE_LIKE: str = "wave-like"
STABLE: str = "stable"

CATEGORY_ABSENT: str = "category absent"


# ---------------------------------------------------------------------------
# Result records
# ---------------------------------------------------------------------------


@dataclass
class TemporalSummary:
    table: pd.DataFrame
    peak_years: List[int]
    peak_count: float
    pattern: str
    variability_ratio: float


@dataclass
class CompositionShift:
    summary: pd.DataFrame
    baseline: pd.DataFrame
    deviations: pd.DataFrame
    year_deviations: pd.DataFrame
    deviant_years: List[int]
    most_deviant_year: Optional[int] = None
    deviant_details: Optional[pd.DataFrame] = None


@dataclass
class ShareContrast:
    """Share of one outcome per age group and the spread between groups.

    ``applicable`` is False when the outcome category does not occur in the
    data at all; the numeric fields are then unset.  A category that occurs
    with zero persons is applicable and reports shares of 0.
    """

    applicable: bool
    share_col: str = "share"
    summary: pd.DataFrame = field(default_factory=pd.DataFrame)
    contrast: float = float("nan")
    max_group: Optional[str] = None
    max_share: float = float("nan")
    min_group: Optional[str] = None
    min_share: float = float("nan")
    reason: Optional[str] = None

    @classmethod
    def inapplicable(cls, reason: str, share_col: str = "share") -> "ShareContrast":
        return cls(applicable=False, share_col=share_col, reason=reason)


@dataclass
class ResidualAnalysis:
    """Age x residence contingency table with residuals and relative risk.

    ``residuals``, ``relative_risk`` and ``log2_rr`` use the nullable
    ``Float64`` dtype: a cell is ``<NA>`` where the value is undefined
    (zero expected count, zero margin or zero observed count for the log).
    """

    observed: pd.DataFrame
    expected: pd.DataFrame
    residuals: pd.DataFrame
    relative_risk: pd.DataFrame
    log2_rr: pd.DataFrame
    row_totals: pd.Series
    col_totals: pd.Series
    grand_total: float

    def to_long(self, which: str = "residuals") -> pd.DataFrame:
        """Long format (age_group, new_residence, value) for heatmaps."""
        wide: pd.DataFrame = getattr(self, which)
        return (
            wide.rename_axis(index="age_group", columns=None)
            .reset_index()
            .melt(id_vars="age_group", var_name="new_residence", value_name="value")
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _age_order(df: pd.DataFrame) -> List[str]:
    return category_order(df, "age_group", "age_group_sort")


def _residence_order(df: pd.DataFrame) -> List[str]:
    return category_order(df, "new_residence", "residence_sort")


def _contrast(summary: pd.DataFrame, share_col: str) -> Dict[str, object]:
    """Max-minus-min share; extremes are the first matching rows on ties."""
    shares = summary[["age_group", share_col]].dropna(subset=[share_col])
    if len(shares) < 2:
        return {}
    max_share = float(shares[share_col].max())
    min_share = float(shares[share_col].min())
    return {
        "contrast": max_share - min_share,
        "max_group": shares.loc[shares[share_col] == max_share, "age_group"].iloc[0],
        "max_share": max_share,
        "min_group": shares.loc[shares[share_col] == min_share, "age_group"].iloc[0],
        "min_share": min_share,
    }


def _age_totals(df: pd.DataFrame) -> pd.Series:
    totals = df.groupby("age_group", sort=False)["count"].sum()
    return totals.reindex(_age_order(df)).rename("total")


# ---------------------------------------------------------------------------
# Q1: time dynamics
# ---------------------------------------------------------------------------


def analyze_time_dynamics(
    df: pd.DataFrame, config: AnalysisConfig = DEFAULT_CONFIG
) -> TemporalSummary:
    """Yearly totals, peak year(s) and a wave-like/stable classification.

    The pattern is a coefficient-of-variation heuristic on year-over-year
    changes: ``sd(delta) / mean(|delta|)`` above
    ``config.wave_ratio_threshold`` reads as wave-like.  It is a documented
    cut-off, not a statistical test.  When the total never changes the ratio
    is undefined and the series is reported as stable.
    """
    table = (
        df.groupby("year", as_index=False)["count"]
        .sum()
        .rename(columns={"count": "total_affected"})
        .sort_values("year", ignore_index=True)
    )

    peak_count = table["total_affected"].max()
    peak_years = [int(y) for y in table.loc[table["total_affected"] == peak_count, "year"]]

    previous = table["total_affected"].shift(1)
    table["yoy_change"] = table["total_affected"] - previous
    table["yoy_pct_change"] = table["yoy_change"] / previous.replace(0, np.nan)

    deltas = table["yoy_change"].dropna()
    mean_abs = deltas.abs().mean()
    sd = deltas.std(ddof=1)
    if pd.notna(sd) and mean_abs > 0:
        ratio = float(sd / mean_abs)
    else:
        ratio = float("nan")
    pattern = WAVE_LIKE if ratio > config.wave_ratio_threshold else STABLE

    logger.info(
        "Time dynamics: peak %s (%s persons), pattern %s (ratio %.3f)",
        peak_years,
        peak_count,
        pattern,
        ratio,
    )
    return TemporalSummary(
        table=table,
        peak_years=peak_years,
        peak_count=float(peak_count),
        pattern=pattern,
        variability_ratio=ratio,
    )


# ---------------------------------------------------------------------------
# Q2: composition shift
# ---------------------------------------------------------------------------


def analyze_composition_shift(
    df: pd.DataFrame, config: AnalysisConfig = DEFAULT_CONFIG
) -> CompositionShift:
    """Compare each year's residence composition with the all-year baseline.

    The baseline share of a category is the unweighted mean of its yearly
    shares, so every year counts equally regardless of its size.  A year is
    deviant when any category differs from its baseline by more than
    ``config.deviation_threshold``.
    """
    rank = {label: i for i, label in enumerate(_residence_order(df))}

    summary = df.groupby(["year", "new_residence"], as_index=False)["count"].sum()
    summary["total_year"] = summary.groupby("year")["count"].transform("sum")
    summary["share"] = summary["count"] / summary["total_year"].replace(0, np.nan)
    summary = (
        summary.assign(_rank=summary["new_residence"].map(rank))
        .sort_values(["year", "_rank"], kind="mergesort", ignore_index=True)
        .drop(columns="_rank")
    )

    baseline = (
        summary.groupby("new_residence", sort=False, as_index=False)["share"]
        .mean()
        .rename(columns={"share": "baseline_share"})
    )
    baseline = (
        baseline.assign(_rank=baseline["new_residence"].map(rank))
        .sort_values("_rank", kind="mergesort", ignore_index=True)
        .drop(columns="_rank")
    )

    deviations = summary.merge(baseline, on="new_residence", how="left")
    deviations["deviation"] = (deviations["share"] - deviations["baseline_share"]).abs()

    year_deviations = (
        deviations.groupby("year", as_index=False)
        .agg(
            max_deviation=("deviation", "max"),
            total_deviation=("deviation", "sum"),
        )
        .sort_values("max_deviation", ascending=False, kind="mergesort", ignore_index=True)
    )

    flagged = year_deviations["max_deviation"] > config.deviation_threshold
    deviant_years = [int(y) for y in year_deviations.loc[flagged, "year"]]

    most_deviant_year: Optional[int] = None
    deviant_details: Optional[pd.DataFrame] = None
    if deviant_years:
        most_deviant_year = deviant_years[0]
        deviant_details = (
            deviations.loc[
                deviations["year"] == most_deviant_year,
                ["year", "new_residence", "share", "baseline_share", "deviation"],
            ]
            .sort_values("deviation", ascending=False, kind="mergesort")
            .reset_index(drop=True)
        )

    logger.info("Composition shift: deviant years %s", deviant_years)
    return CompositionShift(
        summary=summary,
        baseline=baseline,
        deviations=deviations,
        year_deviations=year_deviations,
        deviant_years=deviant_years,
        most_deviant_year=most_deviant_year,
        deviant_details=deviant_details,
    )


# ---------------------------------------------------------------------------
# Q3: within-city share by age group
# ---------------------------------------------------------------------------


def analyze_age_gradient(
    df: pd.DataFrame, config: AnalysisConfig = DEFAULT_CONFIG
) -> ShareContrast:
    """Within-city share per age group.

    Rows with an unknown destination (``within_city`` is ``<NA>``) are left
    out of both numerator and denominator.
    """
    binary = df.loc[df["within_city"].notna()]
    counts = (
        binary.assign(within=binary["within_city"].astype(bool))
        .groupby(["age_group", "within"])["count"]
        .sum()
        .unstack(fill_value=0)
        .reindex(columns=[False, True], fill_value=0)
    )
    order = [g for g in _age_order(df) if g in counts.index]
    counts = counts.reindex(order)

    summary = pd.DataFrame(
        {
            "age_group": counts.index,
            "within_city_count": counts[True].to_numpy(),
            "total_count": counts.sum(axis=1).to_numpy(),
        }
    )
    summary = summary.loc[summary["total_count"] > 0].reset_index(drop=True)
    summary["within_city_share"] = summary["within_city_count"] / summary["total_count"]

    result = ShareContrast(
        applicable=True,
        share_col="within_city_share",
        summary=summary,
        **_contrast(summary, "within_city_share"),
    )
    logger.info(
        "Age gradient: contrast %.3f (max %s, min %s)",
        result.contrast,
        result.max_group,
        result.min_group,
    )
    return result


# ---------------------------------------------------------------------------
# Q4 / Q5: single-outcome share by age group
# ---------------------------------------------------------------------------


def _outcome_share(
    df: pd.DataFrame,
    category: ResidenceCategory,
    *,
    prefix: str,
    all_age_groups: bool,
    config: AnalysisConfig,
) -> ShareContrast:
    share_col = f"{prefix}_share"
    count_col = f"{prefix}_count"

    categories = categorize_residence(df["new_residence"], config.labels)
    mask = categories == category.value
    if not mask.any():
        logger.info("No '%s' residence label in data; analysis not applicable", prefix)
        return ShareContrast.inapplicable(CATEGORY_ABSENT, share_col=share_col)

    totals = _age_totals(df)
    outcome = df.loc[mask].groupby("age_group", sort=False)["count"].sum().rename(count_col)
    if all_age_groups:
        summary = totals.to_frame().join(outcome, how="left")
        summary[count_col] = summary[count_col].fillna(0)
    else:
        summary = outcome.to_frame().join(totals, how="left")
        summary = summary.reindex([g for g in totals.index if g in summary.index])

    summary = summary.rename_axis("age_group").reset_index()[["age_group", count_col, "total"]]
    summary[share_col] = summary[count_col] / summary["total"].replace(0, np.nan)
    summary = summary.sort_values(
        share_col, ascending=False, kind="mergesort", ignore_index=True
    )

    return ShareContrast(
        applicable=True,
        share_col=share_col,
        summary=summary,
        **_contrast(summary, share_col),
    )


def analyze_same_quarter(
    df: pd.DataFrame, config: AnalysisConfig = DEFAULT_CONFIG
) -> ShareContrast:
    """Same-quarter share of each age group's total (all destinations).

    Only age groups with at least one same-quarter row appear.  Not
    applicable when no same-quarter label exists in the data.
    """
    result = _outcome_share(
        df,
        ResidenceCategory.SAME_QUARTER,
        prefix="same_quarter",
        all_age_groups=False,
        config=config,
    )
    if result.applicable:
        logger.info("Same quarter: contrast %.3f", result.contrast)
    return result


def analyze_unknown_concentration(
    df: pd.DataFrame, config: AnalysisConfig = DEFAULT_CONFIG
) -> ShareContrast:
    """Unknown-destination share of each age group's total.

    Every age group is reported; groups without unknown rows get a share of
    0.  When the unknown label is missing from the data altogether the
    result is not applicable, which is distinct from a label that is
    present with zero persons.
    """
    result = _outcome_share(
        df,
        ResidenceCategory.UNKNOWN,
        prefix="unknown",
        all_age_groups=True,
        config=config,
    )
    if result.applicable:
        logger.info("Unknown concentration: contrast %.3f", result.contrast)
    return result


# ---------------------------------------------------------------------------
# Age x residence residuals
# ---------------------------------------------------------------------------


def observed_table(df: pd.DataFrame) -> pd.DataFrame:
    """Summed counts, age groups as rows and residences as columns."""
    return (
        df.groupby(["age_group", "new_residence"])["count"]
        .sum()
        .unstack(fill_value=0)
        .reindex(index=_age_order(df), columns=_residence_order(df), fill_value=0)
        .rename_axis(index="age_group", columns="new_residence")
    )


def analyze_residuals(
    df: pd.DataFrame, config: AnalysisConfig = DEFAULT_CONFIG
) -> ResidualAnalysis:
    """Standardized residuals and log2 relative risk per age x residence cell.

    ``E = row * col / N``, ``R = (O - E) / sqrt(E)``,
    ``RR = (O / row) / (col / N)``.  Undefined cells are ``<NA>``; nothing
    is clipped here (display clipping lives in the plotting module).
    """
    observed = observed_table(df)
    obs = observed.to_numpy(dtype=float)
    row_totals = obs.sum(axis=1)
    col_totals = obs.sum(axis=0)
    grand_total = obs.sum()

    expected = np.outer(row_totals, col_totals) / grand_total
    with np.errstate(divide="ignore", invalid="ignore"):
        residuals = np.where(expected > 0, (obs - expected) / np.sqrt(expected), np.nan)
        margins_ok = (row_totals[:, None] > 0) & (col_totals[None, :] > 0)
        relative_risk = np.where(
            margins_ok,
            (obs / row_totals[:, None]) / (col_totals[None, :] / grand_total),
            np.nan,
        )
        log2_rr = np.where(margins_ok & (obs > 0), np.log2(relative_risk), np.nan)

    def _frame(values: np.ndarray, dtype: str = "Float64") -> pd.DataFrame:
        return pd.DataFrame(values, index=observed.index, columns=observed.columns).astype(
            dtype
        )

    n_undefined = int(np.isnan(log2_rr).sum())
    if n_undefined:
        logger.info("log2(RR) undefined for %d empty cells", n_undefined)

    return ResidualAnalysis(
        observed=observed,
        expected=_frame(expected, "float64"),
        residuals=_frame(residuals),
        relative_risk=_frame(relative_risk),
        log2_rr=_frame(log2_rr),
        row_totals=pd.Series(row_totals, index=observed.index, name="row_total"),
        col_totals=pd.Series(col_totals, index=observed.columns, name="col_total"),
        grand_total=float(grand_total),
    )
