# =============================================================================
# charts.py - Weight and body-fat line charts
# =============================================================================
"""
Plotly figures for the profile page.

Both charts take the date-sorted frames built by ProfileDataState and an
optional range key ("lastWeek", "lastMonth", ..., "all").
"""

from __future__ import annotations
import math
from typing import Optional

import pandas as pd
import plotly.graph_objects as go

from .theme import PRIMARY_COLOR, SECONDARY_COLOR, add_grid

RANGE_OFFSETS = {
    "lastWeek": pd.DateOffset(days=7),
    "lastMonth": pd.DateOffset(months=1),
    "last3Months": pd.DateOffset(months=3),
    "last6Months": pd.DateOffset(months=6),
    "lastYear": pd.DateOffset(years=1),
    "all": None,
}

RANGE_LABELS = {
    "lastWeek": "Last week",
    "lastMonth": "Last month",
    "last3Months": "Last 3 months",
    "last6Months": "Last 6 months",
    "lastYear": "Last year",
    "all": "All",
}


def filter_range(df: pd.DataFrame, range_key: str = "all", today: Optional[pd.Timestamp] = None) -> pd.DataFrame:
    """Rows dated within the range ending today."""
    offset = RANGE_OFFSETS.get(range_key)
    if offset is None or df.empty:
        return df
    today = (today or pd.Timestamp.now()).normalize()
    return df[df["date"] >= today - offset].reset_index(drop=True)


def axis_ticks(values: pd.Series, step: int = 5) -> list:
    """Ticks every `step` units, from the rounded-down min to the rounded-up max."""
    values = values.dropna()
    if values.empty:
        return []
    low = math.floor(values.min() / step) * step
    high = math.ceil(values.max() / step) * step
    return list(range(int(low), int(high) + 1, step))


def _line_chart(df: pd.DataFrame, column: str, title: str, y_title: str, color: str) -> go.Figure:
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=df["date"],
        y=df[column],
        mode="lines+markers",
        name=y_title,
        line=dict(color=color, width=2),
        marker=dict(size=6),
    ))
    ticks = axis_ticks(df[column]) if column in df else []
    fig.update_layout(
        title=title,
        xaxis_title="Date",
        yaxis_title=y_title,
        hovermode="x unified",
        showlegend=False,
        margin=dict(l=40, r=20, t=50, b=40),
    )
    if ticks:
        fig.update_yaxes(tickmode="array", tickvals=ticks)
    return add_grid(fig)


def weight_chart(df: pd.DataFrame, range_key: str = "all") -> go.Figure:
    return _line_chart(filter_range(df, range_key), "weight", "Weight", "Weight (kg)", PRIMARY_COLOR)


def bodyfat_chart(df: pd.DataFrame, range_key: str = "all") -> go.Figure:
    return _line_chart(filter_range(df, range_key), "body_fat", "Body Fat", "Body fat (%)", SECONDARY_COLOR)
