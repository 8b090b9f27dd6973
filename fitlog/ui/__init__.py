"""
FitLog UI components
"""
from .charts import bodyfat_chart, filter_range, weight_chart
from .offline_indicator import offline_status_message, render_offline_indicator

__all__ = [
    "bodyfat_chart",
    "filter_range",
    "weight_chart",
    "offline_status_message",
    "render_offline_indicator",
]
