"""Field mapping and residence categorization.

Source columns are renamed to conceptual names using the explicit mapping in
:mod:`leerkuendigung.config`.  Residence labels are classified by a single
function, :func:`categorize_residence`, which every analysis goes through
instead of matching label text on its own.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

import pandas as pd

from .config import DEFAULT_CONFIG, AnalysisConfig, ResidenceLabels

logger = logging.getLogger(__name__)


class ResidenceCategory(str, Enum):
    SAME_QUARTER = "same_quarter"
    OTHER_QUARTER = "other_quarter"
    OUTSIDE_CITY = "outside_city"
    UNKNOWN = "unknown"
    UNRECOGNIZED = "unrecognized"


WITHIN_CITY: frozenset = frozenset(
    {ResidenceCategory.SAME_QUARTER.value, ResidenceCategory.OTHER_QUARTER.value}
)
OUTSIDE_CITY: frozenset = frozenset(
    {ResidenceCategory.OUTSIDE_CITY.value, ResidenceCategory.UNRECOGNIZED.value}
)


def _contains_any(text: str, tokens) -> bool:
    return any(token.casefold() in text for token in tokens)


def categorize_label(label: object, labels: ResidenceLabels) -> ResidenceCategory:
    """Classify one residence label.

    Exact (case-insensitive) matches against the known labels win; after
    that, unknown and same-quarter tokens are matched as substrings.
    Anything else falls into ``UNRECOGNIZED``.
    """
    if label is None or pd.isna(label):
        return ResidenceCategory.UNRECOGNIZED
    text = str(label).strip().casefold()

    if text == labels.same_quarter.casefold():
        return ResidenceCategory.SAME_QUARTER
    if text == labels.other_quarter.casefold():
        return ResidenceCategory.OTHER_QUARTER
    if text in {o.casefold() for o in labels.outside_city}:
        return ResidenceCategory.OUTSIDE_CITY
    if _contains_any(text, labels.unknown_tokens):
        return ResidenceCategory.UNKNOWN
    if _contains_any(text, labels.same_quarter_tokens):
        return ResidenceCategory.SAME_QUARTER
    return ResidenceCategory.UNRECOGNIZED


def categorize_residence(
    residence: pd.Series, labels: Optional[ResidenceLabels] = None
) -> pd.Series:
    """Map a Series of residence labels to :class:`ResidenceCategory` values.

    The result holds the plain string values (``"unknown"``, ...), so compare
    it against ``ResidenceCategory.X.value``.
    """
    labels = labels or DEFAULT_CONFIG.labels
    return residence.map(lambda value: categorize_label(value, labels).value)


def has_unknown_category(
    df: pd.DataFrame, labels: Optional[ResidenceLabels] = None
) -> bool:
    """Return True if any residence label is an unknown-destination label."""
    categories = categorize_residence(df["new_residence"], labels)
    return bool((categories == ResidenceCategory.UNKNOWN.value).any())


def filter_unknown(
    df: pd.DataFrame, labels: Optional[ResidenceLabels] = None
) -> pd.DataFrame:
    """Drop rows whose residence is the unknown-destination label."""
    categories = categorize_residence(df["new_residence"], labels)
    return df.loc[categories != ResidenceCategory.UNKNOWN.value].copy()


def category_order(
    df: pd.DataFrame, label_col: str, sort_col: Optional[str] = None
) -> List[str]:
    """Display order for a categorical column.

    Uses the dataset's numeric sort key when it is present and complete,
    otherwise the order of first appearance.  Never alphabetical.
    """
    labels = df[label_col].dropna()
    if sort_col and sort_col in df.columns and df.loc[labels.index, sort_col].notna().all():
        keys = df.loc[labels.index].groupby(label_col, sort=False)[sort_col].min()
        return keys.sort_values(kind="mergesort").index.tolist()
    return labels.drop_duplicates().tolist()


def map_fields(df: pd.DataFrame, config: AnalysisConfig = DEFAULT_CONFIG) -> pd.DataFrame:
    """Rename source columns and derive the ``within_city`` flag.

    Parameters
    ----------
    df : pd.DataFrame
        A table that passed :func:`leerkuendigung.validation.validate_dataset`.
    config : AnalysisConfig, optional
        Provides the field mappings and residence labels.

    Returns
    -------
    pd.DataFrame
        Columns ``year``, ``age_group``, ``new_residence``, ``count``, the
        optional sort keys when the source has them, and ``within_city``
        (nullable boolean: ``<NA>`` for the unknown destination, which sits
        outside the within/outside split).  Rows and the count total are
        unchanged.
    """
    rename = dict(config.field_mappings)
    rename.update(
        {src: dst for src, dst in config.sort_field_mappings.items() if src in df.columns}
    )
    mapped = df[list(rename)].rename(columns=rename).copy()

    categories = categorize_residence(mapped["new_residence"], config.labels)
    within = pd.Series(pd.NA, index=mapped.index, dtype="boolean")
    within[categories.isin(list(WITHIN_CITY))] = True
    within[categories.isin(list(OUTSIDE_CITY))] = False
    mapped["within_city"] = within

    unrecognized = mapped.loc[
        categories == ResidenceCategory.UNRECOGNIZED.value, "new_residence"
    ].unique()
    if len(unrecognized):
        logger.warning(
            "Unrecognized residence labels counted as outside the city: %s",
            list(unrecognized),
        )

    logger.info(
        "Mapped %d rows; within-city rows=%d, unknown rows=%d",
        len(mapped),
        int(within.fillna(False).sum()),
        int(within.isna().sum()),
    )
    return mapped
