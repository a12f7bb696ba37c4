from __future__ import annotations

import logging
from dataclasses import replace

import numpy as np
import pandas as pd
import pytest

from leerkuendigung.config import DEFAULT_CONFIG, AnalysisConfig, ResidenceLabels
from leerkuendigung.mapping import (
    ResidenceCategory,
    categorize_label,
    categorize_residence,
    category_order,
    filter_unknown,
    has_unknown_category,
    map_fields,
)

LABELS = DEFAULT_CONFIG.labels


def test_columns_rows_and_total_preserved(raw_frame):
    mapped = map_fields(raw_frame)
    assert list(mapped.columns) == [
        "year",
        "age_group",
        "new_residence",
        "count",
        "within_city",
    ]
    assert len(mapped) == len(raw_frame)
    assert mapped["count"].sum() == raw_frame["AnzBestWir"].sum()


def test_input_is_not_modified(raw_frame):
    snapshot = raw_frame.copy()
    map_fields(raw_frame)
    pd.testing.assert_frame_equal(raw_frame, snapshot)


def test_within_city_flag(mapped_frame):
    assert str(mapped_frame["within_city"].dtype) == "boolean"

    def flags(label):
        return mapped_frame.loc[mapped_frame["new_residence"] == label, "within_city"]

    assert flags("gleiches Stadtquartier").eq(True).all()
    assert flags("anderes Stadtquartier").eq(True).all()
    assert flags("übrige Schweiz").eq(False).all()
    assert flags("Unbekannt").isna().all()


def test_sort_keys_are_carried_when_present(raw_frame):
    raw = raw_frame.assign(AlterV20Sort=raw_frame["AlterV20Lang"].map(
        {"0-19 Jahre": 3, "20-39 Jahre": 2, "40-59 Jahre": 1}
    ))
    mapped = map_fields(raw)
    assert "age_group_sort" in mapped.columns
    assert "residence_sort" not in mapped.columns
    assert category_order(mapped, "age_group", "age_group_sort") == [
        "40-59 Jahre",
        "20-39 Jahre",
        "0-19 Jahre",
    ]


def test_category_order_falls_back_to_first_appearance(mapped_frame):
    assert category_order(mapped_frame, "new_residence", "residence_sort") == [
        "gleiches Stadtquartier",
        "anderes Stadtquartier",
        "übrige Schweiz",
        "Unbekannt",
    ]


@pytest.mark.parametrize(
    "label, expected",
    [
        ("gleiches Stadtquartier", ResidenceCategory.SAME_QUARTER),
        ("Gleiches Stadtquartier ", ResidenceCategory.SAME_QUARTER),
        ("anderes Stadtquartier", ResidenceCategory.OTHER_QUARTER),
        ("Ausland", ResidenceCategory.OUTSIDE_CITY),
        ("übriger Kanton Zürich", ResidenceCategory.OUTSIDE_CITY),
        ("Unbekannt", ResidenceCategory.UNKNOWN),
        ("Wohnort unbekannt", ResidenceCategory.UNKNOWN),
        ("same city quarter (Kreis 4)", ResidenceCategory.SAME_QUARTER),
        ("Mars", ResidenceCategory.UNRECOGNIZED),
        (np.nan, ResidenceCategory.UNRECOGNIZED),
    ],
)
def test_categorize_label(label, expected):
    assert categorize_label(label, LABELS) is expected


def test_categorize_residence_keeps_index():
    series = pd.Series(["Ausland", "Unbekannt"], index=[10, 20])
    result = categorize_residence(series)
    assert list(result.index) == [10, 20]
    assert list(result) == [
        ResidenceCategory.OUTSIDE_CITY.value,
        ResidenceCategory.UNKNOWN.value,
    ]


def test_categorize_residence_on_string_dtype():
    series = pd.Series(["Unbekannt", "gleiches Stadtquartier", "Mars"], dtype="string")
    result = categorize_residence(series)
    assert (result == ResidenceCategory.UNKNOWN.value).tolist() == [True, False, False]
    assert (result == ResidenceCategory.SAME_QUARTER.value).tolist() == [False, True, False]


def test_alternate_label_set(mapped_factory):
    labels = ResidenceLabels(
        same_quarter="same quarter",
        other_quarter="other quarter",
        outside_city=("elsewhere",),
        unknown_tokens=("n/a",),
        same_quarter_tokens=("same quarter",),
    )
    config = replace(DEFAULT_CONFIG, labels=labels)
    mapped = mapped_factory(
        [
            (2020, "A", "same quarter", 1),
            (2020, "A", "other quarter", 2),
            (2020, "A", "elsewhere", 3),
            (2020, "A", "n/a", 4),
        ],
        config,
    )
    assert mapped["within_city"].tolist()[:3] == [True, True, False]
    assert pd.isna(mapped["within_city"].iloc[3])


def test_unrecognized_labels_count_as_outside_with_warning(mapped_factory, caplog):
    with caplog.at_level(logging.WARNING, logger="leerkuendigung.mapping"):
        mapped = mapped_factory([(2020, "A", "Mond", 3), (2020, "A", "Ausland", 1)])
    assert mapped["within_city"].tolist() == [False, False]
    assert "Mond" in caplog.text


def test_unknown_helpers(mapped_frame):
    assert has_unknown_category(mapped_frame)
    filtered = filter_unknown(mapped_frame)
    assert not has_unknown_category(filtered)
    assert len(filtered) == len(mapped_frame) - 9


def test_unknown_helpers_on_string_dtype(mapped_frame):
    df = mapped_frame.astype({"new_residence": "string"})
    assert has_unknown_category(df)
    assert len(filter_unknown(df)) == len(df) - 9


def test_within_city_flag_on_string_dtype(raw_frame):
    raw = raw_frame.astype({"WohnortLeerkuendigungLang_noDM": "string"})
    mapped = map_fields(raw)
    unknown = mapped["new_residence"] == "Unbekannt"
    assert mapped.loc[unknown, "within_city"].isna().all()
    assert mapped.loc[~unknown, "within_city"].notna().all()


def test_config_builds_with_default_mappings():
    config = AnalysisConfig()
    assert config.field_mappings["AnzBestWir"] == "count"
    assert config.labels == DEFAULT_CONFIG.labels
    tuned = replace(config, deviation_threshold=0.2)
    assert tuned.field_mappings == config.field_mappings
    assert tuned.deviation_threshold == 0.2
