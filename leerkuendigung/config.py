"""
Configuration constants for the Zurich Leerkündigung analysis pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

# ======================================================
#  DATA SOURCES / CONSTANTS
# ======================================================
# Persons affected by eviction notices due to refurbishment, City of Zurich OGD.
DATASET_URL: str = (
    "https://data.stadt-zuerich.ch/dataset/"
    "bau_umbau_leerkuendigung_wohnortsgebiete_ag_personen_od5052/"
    "download/BAU505OD5052.csv"
)

DEFAULT_SEP: str = ","
REQUEST_TIMEOUT: int = 30

# Source column -> conceptual column. The only place source names appear.
FIELD_MAPPINGS: Mapping[str, str] = MappingProxyType(
    {
        "StichtagDatJahr": "year",
        "AlterV20Lang": "age_group",
        "WohnortLeerkuendigungLang_noDM": "new_residence",
        "AnzBestWir": "count",
    }
)

# Optional display-order keys; carried through only when present.
SORT_FIELD_MAPPINGS: Mapping[str, str] = MappingProxyType(
    {
        "AlterV20Sort": "age_group_sort",
        "WohnortLeerkuendigungSort_noDM": "residence_sort",
    }
)

# ======================================================
#  RESIDENCE LABELS
# ======================================================
SAME_QUARTER_LABEL: str = "gleiches Stadtquartier"
OTHER_QUARTER_LABEL: str = "anderes Stadtquartier"
WITHIN_CITY_CATEGORIES: Tuple[str, str] = (SAME_QUARTER_LABEL, OTHER_QUARTER_LABEL)

OUTSIDE_CITY_CATEGORIES: Tuple[str, ...] = (
    "übriger Kanton Zürich",
    "übrige Schweiz",
    "Ausland",
)

UNKNOWN_TOKENS: Tuple[str, ...] = ("Unbekannt", "Unknown")
SAME_QUARTER_TOKENS: Tuple[str, ...] = (
    SAME_QUARTER_LABEL,
    "same quarter",
    "same city quarter",
)

# ======================================================
#  THRESHOLDS
# ======================================================
# Heuristic cut-offs, documented but without statistical grounding.
WAVE_RATIO_THRESHOLD: float = 0.5
DEVIATION_THRESHOLD: float = 0.10
LOW_COUNT_FRACTION: float = 0.25
LOG2RR_DISPLAY_CAP: float = 2.5

MIN_YEAR: int = 2000


@dataclass(frozen=True)
class ResidenceLabels:
    """Closed set of residence labels known to the pipeline."""

    same_quarter: str = SAME_QUARTER_LABEL
    other_quarter: str = OTHER_QUARTER_LABEL
    outside_city: Tuple[str, ...] = OUTSIDE_CITY_CATEGORIES
    unknown_tokens: Tuple[str, ...] = UNKNOWN_TOKENS
    same_quarter_tokens: Tuple[str, ...] = SAME_QUARTER_TOKENS

    @property
    def within_city(self) -> Tuple[str, str]:
        return (self.same_quarter, self.other_quarter)


@dataclass(frozen=True)
class AnalysisConfig:
    """Immutable settings passed explicitly through every pipeline stage.

    Parameters
    ----------
    source : str
        Default location of the dataset (URL or local path).
    field_mappings, sort_field_mappings : Mapping[str, str]
        Source column name -> conceptual column name.
    labels : ResidenceLabels
        Known residence categories and matching tokens.
    max_year : Optional[int]
        Upper bound for the year-range check; ``None`` means the current
        calendar year at validation time.
    """

    source: str = DATASET_URL
    sep: str = DEFAULT_SEP
    timeout: int = REQUEST_TIMEOUT
    field_mappings: Mapping[str, str] = field(default_factory=lambda: FIELD_MAPPINGS)
    sort_field_mappings: Mapping[str, str] = field(
        default_factory=lambda: SORT_FIELD_MAPPINGS
    )
    labels: ResidenceLabels = field(default_factory=ResidenceLabels)

    # Validator floors
    min_year: int = MIN_YEAR
    max_year: Optional[int] = None
    min_age_groups: int = 3
    min_residence_categories: int = 2
    min_years: int = 3
    min_rows: int = 10

    # Analysis heuristics
    wave_ratio_threshold: float = WAVE_RATIO_THRESHOLD
    deviation_threshold: float = DEVIATION_THRESHOLD
    low_count_fraction: float = LOW_COUNT_FRACTION
    log2rr_display_cap: float = LOG2RR_DISPLAY_CAP

    @property
    def required_columns(self) -> Tuple[str, ...]:
        return tuple(self.field_mappings.keys())


DEFAULT_CONFIG: AnalysisConfig = AnalysisConfig()
