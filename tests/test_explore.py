from __future__ import annotations

import pytest

from leerkuendigung.explore import (
    check_unknown_category,
    detect_anomalies,
    explore_dataset,
    get_age_groups,
    get_residence_categories,
    get_time_range,
    get_total_count,
)

OTHER = "anderes Stadtquartier"


def test_summary_of_full_grid(mapped_frame, raw_frame):
    assert get_time_range(mapped_frame) == {"earliest": 2019, "latest": 2021, "span": 3}
    assert get_total_count(mapped_frame) == raw_frame["AnzBestWir"].sum()
    assert get_age_groups(mapped_frame) == ["0-19 Jahre", "20-39 Jahre", "40-59 Jahre"]
    assert get_residence_categories(mapped_frame)[-1] == "Unbekannt"


def test_unknown_info(mapped_frame):
    info = check_unknown_category(mapped_frame)
    assert info["exists"]
    unknown = mapped_frame.loc[mapped_frame["new_residence"] == "Unbekannt", "count"].sum()
    assert info["count"] == unknown
    assert info["share"] == pytest.approx(unknown / mapped_frame["count"].sum())


def test_unknown_info_when_absent(mapped_factory):
    df = mapped_factory([(2020, "A", OTHER, 5)])
    assert check_unknown_category(df) == {"exists": False, "count": 0.0, "share": 0.0}


def test_clean_data_has_no_anomalies(mapped_frame):
    assert detect_anomalies(mapped_frame) == {}


def test_anomalies_are_reported(mapped_factory):
    df = mapped_factory(
        [
            (2018, "A", OTHER, 100),
            (2018, "B", OTHER, 100),
            (2019, "A", OTHER, 100),
            (2019, "B", OTHER, 0),
            (2021, "A", OTHER, 10),
        ]
    )
    anomalies = detect_anomalies(df)
    assert anomalies["missing_years"] == [2020]
    assert anomalies["zero_count_rows"] == 1
    assert anomalies["low_count_years"] == [2021]
    assert anomalies["incomplete_age_groups"] == ["A", "B"]


def test_explore_dataset_keys(mapped_frame):
    assert set(explore_dataset(mapped_frame)) == {
        "time_range",
        "total_count",
        "age_groups",
        "residence_categories",
        "unknown_info",
        "anomalies",
    }


def test_unknown_info_on_string_labels(mapped_frame):
    info = check_unknown_category(mapped_frame.astype({"new_residence": "string"}))
    assert info["exists"]
    assert info["count"] > 0
