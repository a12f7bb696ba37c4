"""HTML report assembly.

Turns the pipeline payload into a single self-contained HTML page:
exploration summary, the five answers, charts and the statistics section.
Sections whose analysis is not applicable are omitted with a short note.
The page layout lives in ``templates/report.html``; all data values are
autoescaped, only the plotly figure snippets are inserted verbatim.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

import plotly.graph_objects as go
from jinja2 import Environment, FileSystemLoader, select_autoescape

from .analysis import ShareContrast
from .config import DEFAULT_CONFIG, AnalysisConfig
from .formatting import format_number, format_pct, format_pp, format_years
from .plotting import (
    CB_PALETTE,
    plot_composition_shift,
    plot_log2_relative_risk,
    plot_persons_per_time,
    plot_share_by_age,
    plot_standardized_residuals,
)

logger = logging.getLogger(__name__)

TITLE = "Eviction notices in Zurich: where do affected persons move?"

LIMITATIONS: List[str] = [
    "Counts are aggregates per year, age band and destination; no person-level "
    "information is available.",
    "The analysis is descriptive; associations do not establish causes.",
    "Persons with an unknown destination are excluded from the within/outside "
    "city comparison and the chi-square test.",
    "The wave-like/stable label and the 10 percentage point deviation cut-off "
    "are heuristic thresholds.",
]

# (payload key, heading, what, chart title, colour)
_AGE_SECTIONS = [
    (
        "age_gradient",
        "Q3: Do age groups differ in staying within the city?",
        "within-city",
        "Within-city share by age group",
        CB_PALETTE[2],
    ),
    (
        "same_quarter",
        "Q4: Does staying in the same quarter depend on age?",
        "same-quarter",
        "Same-quarter share by age group",
        CB_PALETTE[0],
    ),
    (
        "unknown",
        "Q5: Is the unknown destination concentrated in some age groups?",
        "unknown-destination",
        "Unknown destination by age group",
        CB_PALETTE[7],
    ),
]


def _template_env() -> Environment:
    templates_path = Path(__file__).resolve().parent / "templates"
    env = Environment(
        loader=FileSystemLoader(str(templates_path)),
        autoescape=select_autoescape(enabled_extensions=("html", "xml")),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters.update(
        number=format_number,
        pct=format_pct,
        pp=format_pp,
        years=format_years,
    )
    return env


class _Figures:
    """Embeds figures, loading plotly.js only once per page."""

    def __init__(self) -> None:
        self._first = True

    def __call__(self, fig: go.Figure) -> str:
        include = "cdn" if self._first else False
        self._first = False
        return fig.to_html(full_html=False, include_plotlyjs=include)


def _age_section(
    heading: str, what: str, chart_title: str, color: str,
    result: ShareContrast, figure: _Figures,
) -> Dict[str, Any]:
    section = {"heading": heading, "what": what, "result": result, "figure": ""}
    if result.applicable:
        section["figure"] = figure(
            plot_share_by_age(
                result,
                title=chart_title,
                subtitle=f"Share of affected persons per age group: {what}",
                x_axis_label=f"{what.capitalize()} share",
                color=color,
            )
        )
    return section


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def render_report(
    payload: Dict[str, Any],
    *,
    source: str = "",
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> str:
    """Render the pipeline payload (see ``pipeline.run_pipeline``) to HTML."""
    figure = _Figures()
    composition = payload["composition"]

    # Figures are built in page order so plotly.js is loaded by the first one.
    figures = {
        "temporal": figure(plot_persons_per_time(payload["temporal"])),
        "composition": figure(plot_composition_shift(composition)),
    }
    age_sections = [
        _age_section(heading, what, chart_title, color, payload[key], figure)
        for key, heading, what, chart_title, color in _AGE_SECTIONS
    ]
    figures["residuals"] = figure(plot_standardized_residuals(payload["residuals"]))
    figures["log2_rr"] = figure(
        plot_log2_relative_risk(payload["residuals"], cap=config.log2rr_display_cap)
    )

    deviant_rows: List[Dict[str, Any]] = []
    if composition.deviant_details is not None:
        deviant_rows = composition.deviant_details.to_dict("records")

    template = _template_env().get_template("report.html")
    return template.render(
        title=TITLE,
        source=source,
        exploration=payload["exploration"],
        temporal=payload["temporal"],
        composition=composition,
        deviant_rows=deviant_rows,
        age_sections=age_sections,
        association=payload["association"],
        figures=figures,
        limitations=LIMITATIONS,
    )


def write_report(
    payload: Dict[str, Any],
    path: Path,
    *,
    source: str = "",
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> Path:
    """Render and write the report; the file is only created on success."""
    document = render_report(payload, source=source, config=config)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(document, encoding="utf-8")
    tmp_path.replace(path)
    logger.info("Report written to %s", path)
    return path
