"""Fatal error types for the pipeline.

Two classes of failure stop a run: the dataset cannot be fetched or parsed
(:class:`DatasetLoadError`), or it violates one of the validation checks
(:class:`ValidationError`).  Optional analyses that do not apply to the data
return an inapplicable result instead of raising.
"""

from __future__ import annotations

from enum import Enum


class ValidationCheck(str, Enum):
    """Named validation conditions, in the order they are checked."""

    REQUIRED_COLUMNS = "required columns missing"
    YEAR_NUMERIC = "year column must be numeric"
    COUNT_NUMERIC = "count column must be numeric"
    NON_NEGATIVE = "counts must be non-negative"
    YEAR_RANGE = "years out of range"
    AGE_GROUPS = "insufficient age groups"
    RESIDENCE_CATEGORIES = "insufficient residence categories"
    YEARS = "insufficient years"
    ROW_COUNT = "dataset too small"
    DUPLICATES = "duplicate rows detected"
    ZERO_TOTAL = "total count is zero"


class DatasetLoadError(RuntimeError):
    """Raised when the dataset cannot be retrieved or parsed."""

    def __init__(self, source: str, cause: str) -> None:
        super().__init__(f"Failed to load dataset from {source}: {cause}")
        self.source = source
        self.cause = cause


class ValidationError(ValueError):
    """Raised when the raw table violates a validation check.

    The message always starts with the check's name, e.g.
    ``"duplicate rows detected: 2 rows share ..."``.
    """

    def __init__(self, check: ValidationCheck, detail: str = "") -> None:
        message = check.value if not detail else f"{check.value}: {detail}"
        super().__init__(message)
        self.check = check
        self.detail = detail


def require(condition: bool, check: ValidationCheck, detail: str = "") -> None:
    """Enforce a validation check; fail fast with the named condition."""
    if not condition:
        raise ValidationError(check, detail)
