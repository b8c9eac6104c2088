"""Plotly visualisation helpers for the budget planner.

Each function takes the projection produced by :mod:`projection` and returns
a ``plotly.graph_objects.Figure`` that Streamlit renders via
``st.plotly_chart`` and the PDF report rasterizes.
"""

from __future__ import annotations

from typing import Optional, Sequence

import plotly.graph_objects as go

from .models import SERIES_NAMES, ProjectedPoint
from .settings import get_setting

_LABELS = get_setting('ui', 'series_labels', default={}) or {}
_COLORS = get_setting('ui', 'series_colors', default={}) or {}


def series_label(name: str) -> str:
    return _LABELS.get(name, name)


def series_color(name: str) -> Optional[str]:
    return _COLORS.get(name)


def _empty_figure() -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title="No data to display")
    return fig


def _hex_to_rgba(color: str, alpha: float) -> str:
    color = color.lstrip('#')
    r, g, b = (int(color[i:i + 2], 16) for i in (0, 2, 4))
    return f"rgba({r}, {g}, {b}, {alpha})"


def create_cumulative_chart(
    points: Sequence[ProjectedPoint],
    visible_series: Optional[Sequence[str]] = None,
    currency: str = '$',
    budget_size: Optional[float] = None,
    title: str | None = None,
) -> go.Figure:
    """Area chart of standard versus actual cumulative cost.

    Parameters
    ----------
    points : sequence of ProjectedPoint
        Output of :func:`projection.project`, including the start point.
    visible_series : sequence of str, optional
        Series names to draw; defaults to all of them.
    currency : str
        Symbol used on the y axis and hover labels.
    budget_size : float, optional
        When given, a dashed horizontal line marks the total budget.
    """
    if len(points) <= 1:
        return _empty_figure()

    visible = list(visible_series) if visible_series is not None else list(SERIES_NAMES)
    labels = [p.label for p in points]
    values = {
        'cumulativeStandard': [p.cumulative_standard for p in points],
        'cumulativeActual': [p.cumulative_actual for p in points],
        'iterationCost': [p.iteration_cost for p in points],
    }

    fig = go.Figure()
    for name in ('cumulativeStandard', 'cumulativeActual'):
        if name not in visible:
            continue
        color = series_color(name) or '#636efa'
        fig.add_trace(go.Scatter(
            x=labels,
            y=values[name],
            name=series_label(name),
            mode='lines',
            line=dict(color=color, width=2),
            fill='tozeroy',
            fillcolor=_hex_to_rgba(color, 0.1),
            hovertemplate=f"%{{x}}<br>{currency}%{{y:,.0f}}<extra></extra>",
        ))
    if 'iterationCost' in visible:
        fig.add_trace(go.Bar(
            x=labels,
            y=values['iterationCost'],
            name=series_label('iterationCost'),
            marker_color=series_color('iterationCost'),
            opacity=0.5,
            hovertemplate=f"%{{x}}<br>{currency}%{{y:,.0f}}<extra></extra>",
        ))
    if budget_size:
        fig.add_hline(
            y=budget_size,
            line_dash='dash',
            line_color='#ef4444',
            annotation_text=f"Budget {currency}{budget_size:,.0f}",
            annotation_position='top left',
        )
    fig.update_layout(
        title=title or "Budget consumption",
        xaxis_title="Iteration",
        yaxis_title=f"Cost ({currency})",
        legend=dict(orientation='h', yanchor='bottom', y=1.02, xanchor='right', x=1),
        margin=dict(t=60, r=30, l=10, b=10),
    )
    return fig


def create_iteration_cost_chart(
    points: Sequence[ProjectedPoint],
    currency: str = '$',
    title: str | None = None,
) -> go.Figure:
    """Bar chart of each iteration's own cost (start point excluded)."""
    iterations = [p for p in points if p.label != points[0].label] if points else []
    if not iterations:
        return _empty_figure()
    fig = go.Figure(go.Bar(
        x=[p.label for p in iterations],
        y=[p.iteration_cost for p in iterations],
        name=series_label('iterationCost'),
        marker_color=series_color('iterationCost'),
    ))
    fig.update_layout(
        title=title or "Cost per iteration",
        xaxis_title="Iteration",
        yaxis_title=f"Cost ({currency})",
        showlegend=True,
    )
    return fig
