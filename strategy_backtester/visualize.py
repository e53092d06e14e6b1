"""Visualization utilities for backtest results and payoff profiles."""
from __future__ import annotations

import plotly.graph_objects as go

from .backtest import BacktestResult
from .payoff import PayoffDiagram


class VisualizationEngine:
    def plot_equity(self, result: BacktestResult) -> go.Figure:
        equity = result.equity_curve
        fig = go.Figure()
        fig.add_trace(go.Scatter(x=equity.index, y=equity.values, mode="lines", name="Equity"))
        fig.update_layout(title=f"Equity Curve: {result.config.name}", xaxis_title="Date", yaxis_title="Equity")
        return fig

    def plot_drawdown(self, result: BacktestResult) -> go.Figure:
        equity = result.equity_curve
        peak = equity.cummax().clip(lower=result.config.initial_capital)
        drawdown = (equity - peak) / peak * 100
        fig = go.Figure()
        fig.add_trace(go.Scatter(x=drawdown.index, y=drawdown.values, mode="lines", fill="tozeroy", name="Drawdown"))
        fig.update_layout(title="Drawdown", yaxis_title="Drawdown (%)")
        return fig

    def plot_monthly_returns(self, result: BacktestResult) -> go.Figure:
        months = list(result.monthly_returns)
        values = [result.monthly_returns[m] for m in months]
        colors = ["green" if v >= 0 else "red" for v in values]
        fig = go.Figure()
        fig.add_trace(go.Bar(x=months, y=values, marker_color=colors, name="Monthly P&L"))
        fig.update_layout(title="Monthly P&L", xaxis_title="Month", yaxis_title="P&L")
        return fig

    def plot_payoff(self, diagram: PayoffDiagram) -> go.Figure:
        points = diagram.points
        fig = go.Figure()
        fig.add_trace(go.Scatter(x=points.index, y=points.values, mode="lines", name="P&L at expiry"))
        if diagram.breakevens:
            fig.add_trace(
                go.Scatter(
                    x=diagram.breakevens,
                    y=[0.0] * len(diagram.breakevens),
                    mode="markers",
                    name="Breakeven",
                )
            )
        fig.add_vline(x=diagram.current_price, line_dash="dash")
        fig.add_hline(y=0.0, line_width=1)
        fig.update_layout(title="Payoff", xaxis_title="Underlying", yaxis_title="P&L")
        return fig


__all__ = ["VisualizationEngine"]
