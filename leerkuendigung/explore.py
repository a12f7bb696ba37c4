"""Exploration summary and anomaly checks on the mapped table.

Anomalies are reported for the reader; none of them are corrected.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import pandas as pd

from .config import DEFAULT_CONFIG, AnalysisConfig, ResidenceLabels
from .mapping import ResidenceCategory, categorize_residence, category_order

logger = logging.getLogger(__name__)


def get_time_range(df: pd.DataFrame) -> Dict[str, int]:
    earliest = int(df["year"].min())
    latest = int(df["year"].max())
    return {"earliest": earliest, "latest": latest, "span": latest - earliest + 1}


def get_total_count(df: pd.DataFrame) -> float:
    return float(df["count"].sum())


def get_age_groups(df: pd.DataFrame) -> List[str]:
    return category_order(df, "age_group", "age_group_sort")


def get_residence_categories(df: pd.DataFrame) -> List[str]:
    return category_order(df, "new_residence", "residence_sort")


def check_unknown_category(
    df: pd.DataFrame, labels: ResidenceLabels = DEFAULT_CONFIG.labels
) -> Dict[str, Any]:
    """Whether an unknown-destination label exists, and its count and share."""
    mask = categorize_residence(df["new_residence"], labels) == ResidenceCategory.UNKNOWN.value
    if not mask.any():
        return {"exists": False, "count": 0.0, "share": 0.0}
    unknown_count = float(df.loc[mask, "count"].sum())
    return {
        "exists": True,
        "count": unknown_count,
        "share": unknown_count / get_total_count(df),
    }


def detect_anomalies(
    df: pd.DataFrame, config: AnalysisConfig = DEFAULT_CONFIG
) -> Dict[str, Any]:
    """Collect data-quality findings; keys are present only when found.

    * ``missing_years`` -- gaps between the first and last year.
    * ``zero_count_rows`` -- number of rows with a count of 0.
    * ``low_count_years`` -- years whose total is below
      ``config.low_count_fraction`` of the median yearly total.
    * ``incomplete_age_groups`` -- age groups absent in some year of the span.
    """
    anomalies: Dict[str, Any] = {}
    time_range = get_time_range(df)

    present = set(int(y) for y in df["year"].dropna().unique())
    span = range(time_range["earliest"], time_range["latest"] + 1)
    missing_years = [y for y in span if y not in present]
    if missing_years:
        anomalies["missing_years"] = missing_years

    zero_count_rows = int((df["count"] == 0).sum())
    if zero_count_rows:
        anomalies["zero_count_rows"] = zero_count_rows

    yearly = df.groupby("year")["count"].sum()
    threshold = yearly.median() * config.low_count_fraction
    low_count_years = [int(y) for y in yearly.index[yearly < threshold]]
    if low_count_years:
        anomalies["low_count_years"] = low_count_years

    coverage = df.groupby("age_group", sort=False)["year"].nunique()
    incomplete = [g for g in get_age_groups(df) if coverage.get(g, 0) < time_range["span"]]
    if incomplete:
        anomalies["incomplete_age_groups"] = incomplete

    if anomalies:
        logger.warning("Data anomalies detected: %s", sorted(anomalies))
    return anomalies


def explore_dataset(
    df: pd.DataFrame, config: AnalysisConfig = DEFAULT_CONFIG
) -> Dict[str, Any]:
    """Bundle the exploration results used at the top of the report."""
    return {
        "time_range": get_time_range(df),
        "total_count": get_total_count(df),
        "age_groups": get_age_groups(df),
        "residence_categories": get_residence_categories(df),
        "unknown_info": check_unknown_category(df, config.labels),
        "anomalies": detect_anomalies(df, config),
    }
