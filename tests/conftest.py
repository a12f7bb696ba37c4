from __future__ import annotations

import itertools
from pathlib import Path

import pandas as pd
import pytest

from leerkuendigung.mapping import map_fields

RAW_COLUMNS = [
    "StichtagDatJahr",
    "AlterV20Lang",
    "WohnortLeerkuendigungLang_noDM",
    "AnzBestWir",
]

YEARS = [2019, 2020, 2021]
AGE_GROUPS = ["0-19 Jahre", "20-39 Jahre", "40-59 Jahre"]
RESIDENCES = [
    "gleiches Stadtquartier",
    "anderes Stadtquartier",
    "übrige Schweiz",
    "Unbekannt",
]


@pytest.fixture
def raw_factory():
    """Build a source-schema frame from (year, age, residence, count) rows."""

    def _make(rows) -> pd.DataFrame:
        return pd.DataFrame(list(rows), columns=RAW_COLUMNS)

    return _make


@pytest.fixture
def mapped_factory(raw_factory):
    """Same rows, already renamed and flagged (validation skipped)."""

    def _make(rows, config=None) -> pd.DataFrame:
        raw = raw_factory(rows)
        return map_fields(raw) if config is None else map_fields(raw, config)

    return _make


@pytest.fixture
def raw_frame(raw_factory) -> pd.DataFrame:
    """Full 3 years x 3 age groups x 4 residences grid, all counts positive."""
    rows = [
        (year, age, residence, 10 + 5 * y + 3 * a + r)
        for (y, year), (a, age), (r, residence) in itertools.product(
            enumerate(YEARS), enumerate(AGE_GROUPS), enumerate(RESIDENCES)
        )
    ]
    return raw_factory(rows)


@pytest.fixture
def mapped_frame(raw_frame) -> pd.DataFrame:
    return map_fields(raw_frame)


@pytest.fixture
def csv_path(tmp_path, raw_frame) -> Path:
    path = tmp_path / "BAU505OD5052.csv"
    raw_frame.to_csv(path, index=False)
    return path
