"""Chi-square test of independence between age group and within-city outcome.

The effect size is Cramér's V.  Its raw value is reported as computed: for
small or sparse tables it is not guaranteed to stay within [0, 1], so a value
above 1 is flagged in the caveats rather than clipped.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.stats import chi2_contingency

from .mapping import category_order

logger = logging.getLogger(__name__)

# Upper bounds (exclusive) of the Cramér's V interpretation bands.
EFFECT_SIZE_BANDS: List[Tuple[float, str]] = [
    (0.1, "negligible"),
    (0.3, "small"),
    (0.5, "medium"),
]
LARGE_EFFECT: str = "large"

SIGNIFICANCE_LEVEL: float = 0.05
MIN_EXPECTED_COUNT: float = 5.0


@dataclass
class AssociationResult:
    statistic: float
    degrees_of_freedom: int
    p_value: float
    effect_size: float
    interpretation: str
    n: float
    table: pd.DataFrame
    expected: Optional[pd.DataFrame] = None
    caveats: List[str] = field(default_factory=list)

    @property
    def computed(self) -> bool:
        return not math.isnan(self.statistic)

    def describe(self) -> str:
        """Advisory one-paragraph reading of the result."""
        if not self.computed:
            return "The chi-square test could not be computed for this table."
        stats = (
            f"chi-square = {self.statistic:.2f}, df = {self.degrees_of_freedom}, "
            f"p = {self.p_value:.3g}, Cramér's V = {self.effect_size:.3f}"
        )
        if self.p_value < SIGNIFICANCE_LEVEL:
            finding = (
                "suggests a systematic difference in the within-city share "
                "between age groups"
            )
        else:
            finding = (
                "does not indicate a systematic difference in the within-city "
                f"share between age groups at the {SIGNIFICANCE_LEVEL:.0%} level"
            )
        return (
            f"The test ({stats}) {finding}; the effect size is "
            f"{self.interpretation}.  This describes an association in aggregate "
            "counts and says nothing about causes."
        )


def interpret_effect_size(v: float) -> str:
    """Map Cramér's V onto the negligible/small/medium/large bands."""
    if v is None or math.isnan(v):
        return "undefined"
    for upper, label in EFFECT_SIZE_BANDS:
        if v < upper:
            return label
    return LARGE_EFFECT


def cramers_v(statistic: float, n: float, shape: Tuple[int, int]) -> float:
    """Cramér's V = sqrt(chi2 / (n * min(r - 1, c - 1))), unclamped."""
    k = min(shape[0] - 1, shape[1] - 1)
    if n <= 0 or k <= 0 or math.isnan(statistic):
        return float("nan")
    return math.sqrt(statistic / (n * k))


def contingency_table(
    df: pd.DataFrame, row: str = "age_group", col: str = "within_city"
) -> pd.DataFrame:
    """Summed counts per (row, col); rows with a missing ``col`` are left out."""
    data = df.loc[df[col].notna()]
    table = data.groupby([row, col])["count"].sum().unstack(fill_value=0)
    if row == "age_group":
        order = [g for g in category_order(df, row, "age_group_sort") if g in table.index]
        table = table.reindex(order)
    return table


def chi_square_test(table: pd.DataFrame) -> AssociationResult:
    """Pearson chi-square test (no continuity correction) on a count table.

    Rows or columns without any observations give zero expected cells, for
    which the chi-square approximation does not hold.  They are reported in
    the caveats and left out of the test.
    """
    caveats: List[str] = []
    obs = table.to_numpy(dtype=float)
    n = float(obs.sum())

    row_ok = obs.sum(axis=1) > 0
    col_ok = obs.sum(axis=0) > 0
    if not (row_ok.all() and col_ok.all()):
        empty = [str(r) for r in table.index[~row_ok]] + [
            str(c) for c in table.columns[~col_ok]
        ]
        caveats.append(
            "Zero expected cells: no observations for "
            f"{', '.join(empty)}; these were excluded from the test."
        )
        logger.warning("Contingency table has empty rows/columns: %s", empty)

    reduced = table.loc[row_ok, col_ok]
    if reduced.shape[0] < 2 or reduced.shape[1] < 2:
        caveats.append("Fewer than two non-empty rows or columns; no test computed.")
        return AssociationResult(
            statistic=float("nan"),
            degrees_of_freedom=0,
            p_value=float("nan"),
            effect_size=float("nan"),
            interpretation=interpret_effect_size(float("nan")),
            n=n,
            table=table,
            caveats=caveats,
        )

    statistic, p_value, dof, expected = chi2_contingency(
        reduced.to_numpy(dtype=float), correction=False
    )
    expected = np.asarray(expected, dtype=float)

    n_small = int((expected < MIN_EXPECTED_COUNT).sum())
    if n_small:
        caveats.append(
            f"{n_small} of {expected.size} expected cells are below "
            f"{MIN_EXPECTED_COUNT:g}; the chi-square approximation may be unreliable."
        )

    v = cramers_v(float(statistic), n, reduced.shape)
    if v > 1:
        caveats.append(
            f"Cramér's V of {v:.3f} exceeds 1, which can happen for small or "
            "sparse tables; the raw value is reported."
        )
        logger.warning("Cramér's V above 1: %.3f", v)

    return AssociationResult(
        statistic=float(statistic),
        degrees_of_freedom=int(dof),
        p_value=float(p_value),
        effect_size=v,
        interpretation=interpret_effect_size(v),
        n=n,
        table=table,
        expected=pd.DataFrame(expected, index=reduced.index, columns=reduced.columns),
        caveats=caveats,
    )


def test_association(
    df: pd.DataFrame,
    *,
    row: str = "age_group",
    col: str = "within_city",
) -> AssociationResult:
    """Test whether the within-city outcome is independent of age group.

    Parameters
    ----------
    df : pd.DataFrame
        Mapped table with ``age_group``, ``within_city`` and ``count``.
        Unknown destinations (``within_city`` is ``<NA>``) do not take part.
    row, col : str, optional
        Columns forming the rows and columns of the contingency table.

    Returns
    -------
    AssociationResult
        Statistic, degrees of freedom, p-value, Cramér's V, its
        interpretation and any caveats.
    """
    table = contingency_table(df, row=row, col=col)
    result = chi_square_test(table)
    logger.info(
        "Association %s x %s: chi2=%.3f df=%d p=%.4g V=%.3f (%s)",
        row,
        col,
        result.statistic,
        result.degrees_of_freedom,
        result.p_value,
        result.effect_size,
        result.interpretation,
    )
    return result
