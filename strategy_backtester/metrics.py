"""Performance metrics over a trade ledger and equity curve."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd

from .instruments import Trade

RISK_FREE_PCT = 6.0
PERIODS_PER_YEAR = 252


@dataclass
class PerformanceMetrics:
    returns: pd.Series

    def sharpe_ratio(self, risk_free: float = 0.0, periods_per_year: int = PERIODS_PER_YEAR) -> float:
        if self.returns.empty:
            return 0.0
        excess = self.returns - risk_free / periods_per_year
        vol = excess.std(ddof=0)
        return float(excess.mean() / vol * np.sqrt(periods_per_year)) if vol != 0 else 0.0


def max_drawdown(equity: pd.Series, initial_capital: float) -> Tuple[float, float]:
    """Largest peak-to-trough decline and its size as a percent of that peak.

    The running peak starts at ``initial_capital``.
    """
    if equity.empty:
        return 0.0, 0.0
    peak = equity.cummax().clip(lower=initial_capital)
    drawdown = (peak - equity).to_numpy()
    worst = int(drawdown.argmax())
    if drawdown[worst] <= 0:
        return 0.0, 0.0
    return float(drawdown[worst]), float(drawdown[worst] / peak.iloc[worst] * 100.0)


class TradeLedgerMetrics:
    """Statistics over closed trades; empty sets resolve to zero."""

    def __init__(self, trades: Sequence[Trade], equity_curve: pd.Series, initial_capital: float):
        self.trades = list(trades)
        self.equity_curve = equity_curve
        self.initial_capital = initial_capital
        self.pnl = pd.Series([t.pnl for t in self.trades], dtype=float)
        self.winners = self.pnl[self.pnl > 0]
        self.losers = self.pnl[self.pnl < 0]

    @property
    def total_trades(self) -> int:
        return len(self.trades)

    def win_rate(self) -> float:
        return len(self.winners) / self.total_trades * 100.0 if self.total_trades else 0.0

    def avg_win(self) -> float:
        return float(self.winners.mean()) if not self.winners.empty else 0.0

    def avg_loss(self) -> float:
        return float(self.losers.mean()) if not self.losers.empty else 0.0

    def largest_win(self) -> float:
        return float(self.winners.max()) if not self.winners.empty else 0.0

    def largest_loss(self) -> float:
        return float(self.losers.min()) if not self.losers.empty else 0.0

    def profit_factor(self) -> float:
        gross_loss = abs(float(self.losers.sum()))
        return float(self.winners.sum()) / gross_loss if gross_loss > 0 else 0.0

    def sharpe_ratio(self) -> float:
        returns = pd.Series([t.pnl_pct for t in self.trades], dtype=float)
        return PerformanceMetrics(returns).sharpe_ratio(risk_free=RISK_FREE_PCT)

    def max_drawdown(self) -> Tuple[float, float]:
        return max_drawdown(self.equity_curve, self.initial_capital)

    def avg_trade_duration(self) -> float:
        return float(np.mean([t.duration_days for t in self.trades])) if self.trades else 0.0

    def total_commissions(self) -> float:
        return float(sum(t.commissions for t in self.trades))

    def monthly_returns(self) -> Dict[str, float]:
        if not self.trades:
            return {}
        months = [t.exit_date.strftime("%Y-%m") for t in self.trades]
        grouped = self.pnl.groupby(months).sum().sort_index()
        return {month: float(value) for month, value in grouped.items()}


__all__ = ["PerformanceMetrics", "TradeLedgerMetrics", "max_drawdown", "RISK_FREE_PCT", "PERIODS_PER_YEAR"]
