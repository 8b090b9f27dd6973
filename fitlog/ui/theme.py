# === COLOR PALETTE ===
PRIMARY_COLOR    = "#667eea"
SECONDARY_COLOR  = "#764ba2"
SUCCESS_COLOR    = "#10b981"
WARNING_COLOR    = "#f59e0b"
DANGER_COLOR     = "#ef4444"
TEXT_COLOR       = "#2c3e50"
SUBTLE_TEXT      = "#495057"
GRID_COLOR       = "#e5e7eb"
CARD_BG_LIGHT    = "#ffffff"


def add_grid(fig):
    """Shared axis and background styling for the profile charts."""
    fig.update_xaxes(showgrid=True, gridcolor=GRID_COLOR, zeroline=False,
                     showline=True, linecolor=GRID_COLOR,
                     tickfont=dict(color=SUBTLE_TEXT), title_font=dict(color=TEXT_COLOR))
    fig.update_yaxes(showgrid=True, gridcolor=GRID_COLOR, zeroline=False,
                     showline=True, linecolor=GRID_COLOR,
                     tickfont=dict(color=SUBTLE_TEXT), title_font=dict(color=TEXT_COLOR))
    fig.update_layout(plot_bgcolor=CARD_BG_LIGHT, paper_bgcolor=CARD_BG_LIGHT,
                      font=dict(family="Segoe UI, sans-serif", size=12, color=TEXT_COLOR),
                      title_font=dict(color=TEXT_COLOR))
    return fig
