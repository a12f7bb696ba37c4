from __future__ import annotations

import pandas as pd
import pytest

from leerkuendigung.errors import ValidationCheck, ValidationError
from leerkuendigung.main import main
from leerkuendigung.pipeline import run_pipeline
from leerkuendigung.report import render_report, write_report

PAYLOAD_KEYS = {
    "raw",
    "data",
    "exploration",
    "temporal",
    "composition",
    "age_gradient",
    "same_quarter",
    "unknown",
    "residuals",
    "association",
}


def test_payload_keys(raw_frame):
    assert set(run_pipeline(raw=raw_frame)) == PAYLOAD_KEYS


def test_pipeline_is_deterministic(raw_frame):
    first = run_pipeline(raw=raw_frame.copy())
    second = run_pipeline(raw=raw_frame.copy())

    pd.testing.assert_frame_equal(first["data"], second["data"])
    pd.testing.assert_frame_equal(first["temporal"].table, second["temporal"].table)
    pd.testing.assert_frame_equal(
        first["composition"].summary, second["composition"].summary
    )
    pd.testing.assert_frame_equal(
        first["residuals"].log2_rr, second["residuals"].log2_rr
    )
    assert first["association"].statistic == second["association"].statistic


def test_pipeline_from_local_file(csv_path, raw_frame):
    payload = run_pipeline(source=csv_path)
    pd.testing.assert_frame_equal(payload["raw"], raw_frame)
    assert payload["data"]["count"].sum() == raw_frame["AnzBestWir"].sum()


def test_invalid_table_stops_the_pipeline(raw_frame):
    raw = pd.concat([raw_frame, raw_frame.iloc[[0]]], ignore_index=True)
    with pytest.raises(ValidationError) as excinfo:
        run_pipeline(raw=raw)
    assert excinfo.value.check is ValidationCheck.DUPLICATES


def test_report_contains_every_section(raw_frame):
    document = render_report(run_pipeline(raw=raw_frame), source="test.csv")
    assert document.startswith("<!DOCTYPE html>")
    for heading in ("Data exploration", "Q1:", "Q2:", "Q3:", "Q4:", "Q5:", "Limitations"):
        assert heading in document
    assert "Not applicable" not in document
    assert document.count("cdn.plot.ly") == 1


def test_report_notes_inapplicable_sections(raw_frame):
    raw = raw_frame[raw_frame["WohnortLeerkuendigungLang_noDM"] != "Unbekannt"]
    document = render_report(run_pipeline(raw=raw))
    assert "Q5:" in document
    assert "Not applicable: category absent" in document


def test_report_escapes_data_values(raw_frame):
    raw = raw_frame.replace({"AlterV20Lang": {"40-59 Jahre": "40-59 <script>x</script>"}})
    document = render_report(run_pipeline(raw=raw), source="<i>upload</i>")
    assert "<li>40-59 &lt;script&gt;x&lt;/script&gt;</li>" in document
    assert "Source: &lt;i&gt;upload&lt;/i&gt;" in document
    assert "<i>upload</i>" not in document


def test_write_report(tmp_path, raw_frame):
    path = write_report(run_pipeline(raw=raw_frame), tmp_path / "out" / "report.html")
    assert path.exists()
    assert "Q1:" in path.read_text(encoding="utf-8")
    assert not list(path.parent.glob("*.tmp"))


def test_cli_writes_report(tmp_path, csv_path):
    output = tmp_path / "report.html"
    assert main(["--source", str(csv_path), "--output", str(output)]) == 0
    assert output.exists()


def test_cli_reads_source_from_environment(tmp_path, csv_path, monkeypatch):
    monkeypatch.setenv("LEERKUENDIGUNG_SOURCE", str(csv_path))
    output = tmp_path / "report.html"
    assert main(["--output", str(output)]) == 0
    assert output.exists()


def test_cli_fails_without_partial_report(tmp_path, caplog):
    output = tmp_path / "report.html"
    code = main(["--source", str(tmp_path / "missing.csv"), "--output", str(output)])
    assert code == 1
    assert not output.exists()
    assert "Failed to load dataset" in caplog.text


def test_cli_fails_on_invalid_data(tmp_path, raw_frame):
    path = tmp_path / "bad.csv"
    raw_frame.assign(AnzBestWir=0).to_csv(path, index=False)
    output = tmp_path / "report.html"
    assert main(["--source", str(path), "--output", str(output)]) == 1
    assert not output.exists()
