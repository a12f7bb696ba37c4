from __future__ import annotations

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from .analysis import CompositionShift, ResidualAnalysis, ShareContrast, TemporalSummary
from .config import LOG2RR_DISPLAY_CAP

# ============================================================
# Configuration / constants
# ============================================================

# Color-blind friendly (Okabe-Ito)
CB_PALETTE: list[str] = [
    "#E69F00",
    "#56B4E9",
    "#009E73",
    "#F0E442",
    "#0072B2",
    "#D55E00",
    "#CC79A7",
    "#999999",
]

HOVER_TEMPLATE_TOTAL = "Year: %{x}<br>Affected persons: %{y:,}<extra></extra>"

HOVER_TEMPLATE_SHARE = (
    "Year: %{x}<br>Destination: %{fullData.name}<br>Share: %{y:.1%}<extra></extra>"
)

HOVER_TEMPLATE_AGE_SHARE = "Age group: %{y}<br>Share: %{x:.1%}<extra></extra>"

HOVER_TEMPLATE_CELL = (
    "Age group: %{y}<br>Destination: %{x}<br>Value: %{z:.2f}<extra></extra>"
)

BASE_LAYOUT: dict = dict(
    width=1000,
    height=550,
    margin=dict(t=90, l=60, r=40, b=60),
    plot_bgcolor="#f5f7fb",
)


# ============================================================
# Helper functions
# ============================================================


def _title(title: str, subtitle: str) -> dict:
    return dict(
        text=f"<b>{title}</b><br><span style='font-size:12px;color:gray'>{subtitle}</span>"
    )


def _color(i: int) -> str:
    return CB_PALETTE[i % len(CB_PALETTE)]


def _matrix(frame: pd.DataFrame) -> np.ndarray:
    """Nullable frame -> float array with NaN for undefined cells (drawn blank)."""
    return frame.to_numpy(dtype=float, na_value=np.nan)


# ============================================================
# Plotting functions
# ============================================================


def plot_persons_per_time(temporal: TemporalSummary) -> go.Figure:
    """Line chart of affected persons per year, peak year(s) marked."""
    table = temporal.table
    fig = go.Figure(
        go.Scatter(
            x=table["year"],
            y=table["total_affected"],
            mode="lines+markers",
            line=dict(width=3, color=CB_PALETTE[4]),
            marker=dict(size=9, color=CB_PALETTE[4]),
            name="Affected persons",
            hovertemplate=HOVER_TEMPLATE_TOTAL,
        )
    )
    peaks = table[table["year"].isin(temporal.peak_years)]
    fig.add_trace(
        go.Scatter(
            x=peaks["year"],
            y=peaks["total_affected"],
            mode="markers",
            marker=dict(size=14, color=CB_PALETTE[5], symbol="diamond"),
            name="Peak",
            hovertemplate=HOVER_TEMPLATE_TOTAL,
        )
    )
    fig.update_xaxes(title_text="Year", tickmode="linear", dtick=1)
    fig.update_yaxes(title_text="Affected persons", tickformat=",", rangemode="tozero")
    fig.update_layout(
        title=_title("Affected persons over time", "Eviction notices due to refurbishment"),
        **BASE_LAYOUT,
    )
    return fig


def plot_composition_shift(composition: CompositionShift) -> go.Figure:
    """Stacked area of destination shares per year."""
    summary = composition.summary
    fig = go.Figure()
    residences = summary["new_residence"].drop_duplicates().tolist()
    for i, residence in enumerate(residences):
        sub = summary[summary["new_residence"] == residence]
        fig.add_trace(
            go.Scatter(
                x=sub["year"],
                y=sub["share"],
                mode="lines",
                stackgroup="one",
                line=dict(width=0.5, color=_color(i)),
                name=str(residence),
                hovertemplate=HOVER_TEMPLATE_SHARE,
            )
        )
    fig.update_xaxes(title_text="Year", tickmode="linear", dtick=1)
    fig.update_yaxes(title_text="Share of affected persons", tickformat=".0%", range=[0, 1])
    fig.update_layout(
        title=_title(
            "Destination composition over time",
            "Distribution of new residence after the eviction notice",
        ),
        legend=dict(orientation="h", x=0.5, y=-0.2, xanchor="center", yanchor="top"),
        **BASE_LAYOUT,
    )
    return fig


def plot_share_by_age(
    result: ShareContrast,
    *,
    title: str,
    subtitle: str,
    x_axis_label: str,
    color: str = CB_PALETTE[2],
) -> go.Figure:
    """Horizontal bars of one share per age group, largest on top.

    Shared by the within-city, same-quarter and unknown questions.  An
    inapplicable result gives an empty figure.
    """
    if not result.applicable or result.summary.empty:
        return go.Figure()

    data = result.summary.dropna(subset=[result.share_col]).sort_values(
        result.share_col, kind="mergesort"
    )
    shares = data[result.share_col]
    fig = go.Figure(
        go.Bar(
            x=shares,
            y=data["age_group"].astype(str),
            orientation="h",
            marker=dict(color=color, opacity=0.8),
            text=[f"{s:.1%}" for s in shares],
            textposition="outside",
            hovertemplate=HOVER_TEMPLATE_AGE_SHARE,
        )
    )
    upper = float(shares.max()) * 1.15 if len(shares) and shares.max() > 0 else 1.0
    fig.update_xaxes(title_text=x_axis_label, tickformat=".0%", range=[0, upper])
    fig.update_yaxes(title_text="Age group")
    fig.update_layout(title=_title(title, subtitle), **BASE_LAYOUT)
    return fig


def plot_standardized_residuals(residuals: ResidualAnalysis) -> go.Figure:
    """Heatmap of (O - E) / sqrt(E); undefined cells stay blank."""
    frame = residuals.residuals
    fig = go.Figure(
        go.Heatmap(
            z=_matrix(frame),
            x=[str(c) for c in frame.columns],
            y=[str(i) for i in frame.index],
            colorscale="RdBu",
            reversescale=True,
            zmid=0,
            colorbar=dict(title="Residual"),
            hovertemplate=HOVER_TEMPLATE_CELL,
        )
    )
    fig.update_xaxes(title_text="New residence", tickangle=45)
    fig.update_yaxes(title_text="Age group", autorange="reversed")
    fig.update_layout(
        title=_title(
            "Standardized residuals: age x destination",
            "R = (O - E) / sqrt(E); >0 over-, <0 under-represented",
        ),
        **BASE_LAYOUT,
    )
    return fig


def plot_log2_relative_risk(
    residuals: ResidualAnalysis, cap: float = LOG2RR_DISPLAY_CAP
) -> go.Figure:
    """Heatmap of log2(RR), colors clipped to ``[-cap, cap]`` for display only.

    Hover text shows the unclipped value; undefined cells stay blank.
    """
    raw = _matrix(residuals.log2_rr)
    fig = go.Figure(
        go.Heatmap(
            z=np.clip(raw, -cap, cap),
            customdata=raw,
            x=[str(c) for c in residuals.log2_rr.columns],
            y=[str(i) for i in residuals.log2_rr.index],
            colorscale="Inferno",
            zmin=-cap,
            zmax=cap,
            colorbar=dict(title="log2(RR)"),
            hovertemplate=(
                "Age group: %{y}<br>Destination: %{x}<br>"
                "log2(RR): %{customdata:.2f}<extra></extra>"
            ),
        )
    )
    fig.update_xaxes(title_text="New residence", tickangle=45)
    fig.update_yaxes(title_text="Age group", autorange="reversed")
    fig.update_layout(
        title=_title(
            "log2(relative risk): age x destination",
            f"0 = average; +1 = 2x; -1 = 0.5x (color scale capped at ±{cap:g})",
        ),
        **BASE_LAYOUT,
    )
    return fig
