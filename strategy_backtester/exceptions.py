"""Exceptions raised by the backtest engine."""
from __future__ import annotations


class BacktestError(RuntimeError):
    """A backtest run was aborted."""


class MarketDataError(BacktestError):
    """The spot-price provider failed to deliver a price."""


class BacktestCancelled(BacktestError):
    """The caller cancelled the run between simulated days."""


__all__ = ["BacktestError", "MarketDataError", "BacktestCancelled"]
