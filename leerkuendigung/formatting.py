"""Number formatting for report prose."""

from __future__ import annotations

import math
from typing import Optional

MISSING: str = "n/a"


def format_pct(value: Optional[float], digits: int = 1) -> str:
    """Share as a percentage string, ``0.1234 -> "12.3%"``."""
    if value is None or math.isnan(value):
        return MISSING
    return f"{round(value * 100, digits):.{digits}f}%"


def format_pp(value: Optional[float], digits: int = 1) -> str:
    """Share difference as percentage points, e.g. ``0.2 -> "20.0 pp"``."""
    if value is None or math.isnan(value):
        return MISSING
    return f"{value * 100:.{digits}f} pp"


def format_number(value: Optional[float]) -> str:
    """Thousands separator, no scientific notation: ``1234567 -> "1,234,567"``."""
    if value is None or math.isnan(value):
        return MISSING
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def format_years(years) -> str:
    """``[2019, 2021] -> "2019, 2021"``; empty -> ``"none"``."""
    years = list(years)
    if not years:
        return "none"
    return ", ".join(str(int(y)) for y in years)
