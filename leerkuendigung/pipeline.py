"""Core pipeline logic: from the raw OGD table to the report payload.

The stages run in a fixed order, each one consuming the previous stage's
output:

* load the CSV (:mod:`leerkuendigung.ogd_fetch`), unless a raw frame is given;
* validate it (:mod:`leerkuendigung.validation`);
* rename fields and derive ``within_city`` (:mod:`leerkuendigung.mapping`);
* explore and run the analyses (:mod:`leerkuendigung.explore`,
  :mod:`leerkuendigung.analysis`);
* test the age x within-city association (:mod:`leerkuendigung.association`).

The primary entry point is :func:`run_pipeline`.  It is deterministic: the
same input table always yields the same payload.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import logging
import pandas as pd

from .analysis import (
    analyze_age_gradient,
    analyze_composition_shift,
    analyze_residuals,
    analyze_same_quarter,
    analyze_time_dynamics,
    analyze_unknown_concentration,
)
from .association import test_association
from .config import DEFAULT_CONFIG, AnalysisConfig
from .explore import explore_dataset
from .mapping import map_fields
from .ogd_fetch import load_dataset
from .validation import validate_dataset

# Module‑level logger
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


def run_pipeline(
    *,
    source: Optional[str | Path] = None,
    config: AnalysisConfig = DEFAULT_CONFIG,
    raw: Optional[pd.DataFrame] = None,
) -> Dict[str, object]:
    """Run all stages and return their results keyed by stage.

    Parameters
    ----------
    source : str or Path, optional
        URL or local path of the CSV; defaults to ``config.source``.  Ignored
        when ``raw`` is given.
    config : AnalysisConfig, optional
        Field mappings, residence labels and thresholds.
    raw : pd.DataFrame, optional
        An already loaded source table (offline runs and tests).

    Returns
    -------
    dict
        ``raw``, ``data`` (mapped table), ``exploration``, ``temporal``,
        ``composition``, ``age_gradient``, ``same_quarter``, ``unknown``,
        ``residuals`` and ``association``.

    Raises
    ------
    DatasetLoadError
        The dataset could not be fetched or parsed.
    ValidationError
        The table failed one of the validation checks.
    """
    if raw is None:
        raw = load_dataset(
            source if source is not None else config.source,
            sep=config.sep,
            timeout=config.timeout,
        )

    # 1. Validate and map
    validate_dataset(raw, config)
    data = map_fields(raw, config)

    # 2. Explore
    exploration = explore_dataset(data, config)

    # 3. Analyses
    temporal = analyze_time_dynamics(data, config)
    composition = analyze_composition_shift(data, config)
    age_gradient = analyze_age_gradient(data, config)
    same_quarter = analyze_same_quarter(data, config)
    unknown = analyze_unknown_concentration(data, config)
    residuals = analyze_residuals(data, config)

    # 4. Statistical test
    association = test_association(data)

    logger.info(
        "Pipeline complete: %d rows, years %s-%s",
        len(data),
        exploration["time_range"]["earliest"],
        exploration["time_range"]["latest"],
    )
    return {
        "raw": raw,
        "data": data,
        "exploration": exploration,
        "temporal": temporal,
        "composition": composition,
        "age_gradient": age_gradient,
        "same_quarter": same_quarter,
        "unknown": unknown,
        "residuals": residuals,
        "association": association,
    }
