# ============================================================================
# plots.py - Figure Builders
# ============================================================================
"""
This module handles:
- The copper/gold ratio with its trailing moving average
- Impulse Response Functions (grid of impulse -> response panels)

Figures are returned, not shown; the CLI writes them as HTML.
"""

import numpy as np
import plotly.graph_objects as go
from plotly.subplots import make_subplots


def plot_ratio(ratio, ratio_ma, spread=None):
    """Ratio, its moving average and optionally the spread on a second axis"""
    fig = make_subplots(specs=[[{"secondary_y": spread is not None}]])

    fig.add_trace(go.Scatter(x=ratio.index, y=ratio.values, mode='lines',
                             name='Copper/Gold ratio', line=dict(color='darkorange', width=1.5)))
    fig.add_trace(go.Scatter(x=ratio_ma.index, y=ratio_ma.values, mode='lines',
                             name=ratio_ma.name, line=dict(color='saddlebrown', width=2, dash='dash')))

    if spread is not None:
        fig.add_trace(go.Scatter(x=spread.index, y=spread.values, mode='lines',
                                 name='10Y-2Y spread', line=dict(color='darkblue', width=1.5)),
                      secondary_y=True)
        fig.update_yaxes(title_text="Spread (pp)", secondary_y=True)

    fig.update_layout(title_text="Copper/Gold Ratio vs. Treasury Spread",
                      hovermode='x unified', height=450)
    fig.update_yaxes(title_text="Ratio", secondary_y=False)
    return fig


def plot_irf_with_ci(irf):
    """Grid of orthogonalized impulse responses, with bands when available"""
    variables = list(irf.variables)
    n_vars = len(variables)
    periods = list(range(irf.horizon + 1))

    fig = make_subplots(
        rows=n_vars, cols=n_vars,
        subplot_titles=[f"{variables[j]} → {variables[i]}"
                        for i in range(n_vars) for j in range(n_vars)],
        vertical_spacing=0.12,
        horizontal_spacing=0.08
    )

    for i in range(n_vars):
        for j in range(n_vars):
            row, col = i + 1, j + 1

            if irf.has_bands:
                fig.add_trace(go.Scatter(
                    x=periods + periods[::-1],
                    y=np.concatenate([irf.upper[:, i, j], irf.lower[:, i, j][::-1]]),
                    fill='toself',
                    fillcolor='rgba(0,100,200,0.15)',
                    line=dict(color='rgba(255,255,255,0)'),
                    showlegend=False,
                    hoverinfo='skip'
                ), row=row, col=col)

            fig.add_trace(go.Scatter(
                x=periods,
                y=irf.responses[:, i, j],
                mode='lines',
                line=dict(color='darkblue', width=1.5),
                showlegend=False,
                name=f"{variables[j]} → {variables[i]}"
            ), row=row, col=col)

            fig.add_hline(y=0, line_dash="dash", line_color="red",
                          opacity=0.3, row=row, col=col)

    title = "Orthogonalized Impulse Responses"
    if irf.has_bands:
        title += f" with {int((1 - irf.alpha) * 100)}% bootstrap bands"
    fig.update_layout(title_text=title, height=300 * n_vars, showlegend=False)
    fig.update_xaxes(title_text="Periods")
    fig.update_yaxes(title_text="Response")
    return fig
