"""Backtest engine orchestrating the day-stepping simulation and analytics."""
from __future__ import annotations

import dataclasses
import logging
import math
import threading
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from .config import InstrumentType, LegTemplate, StrategyConfig, StrikeSelection
from .data import SpotPriceProvider
from .exceptions import BacktestCancelled, BacktestError, MarketDataError
from .instruments import Leg, Trade
from .metrics import TradeLedgerMetrics
from .models import BlackScholesModel, PricingModel
from .utils import days_between, next_weekday, round_value

logger = logging.getLogger(__name__)

# entries are skipped once capital falls below this share of the initial capital
ENTRY_CAPITAL_FLOOR = 0.2


class PositionState(Enum):
    FLAT = "flat"
    OPEN = "open"


@dataclass(frozen=True)
class OpenPosition:
    entry_date: pd.Timestamp
    expiry_date: pd.Timestamp
    legs: Tuple[Leg, ...]
    net_debit: float
    entry_cost: float
    days_at_entry: int
    peak_pnl_pct: float = -math.inf


@dataclass(frozen=True, eq=False)
class BacktestResult:
    config: StrategyConfig
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    total_pnl: float
    avg_win: float
    avg_loss: float
    largest_win: float
    largest_loss: float
    max_drawdown: float
    max_drawdown_pct: float
    profit_factor: float
    sharpe_ratio: float
    avg_trade_duration: float
    total_commissions: float
    final_capital: float
    return_pct: float
    equity_curve: pd.Series
    trades: Tuple[Trade, ...]
    monthly_returns: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    open_position: Optional[OpenPosition] = None

    def summary(self, places: int = 2) -> pd.Series:
        """Headline figures rounded for reporting."""
        counts = {
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
        }
        figures = {
            name: round_value(getattr(self, name), places)
            for name in (
                "win_rate",
                "total_pnl",
                "avg_win",
                "avg_loss",
                "largest_win",
                "largest_loss",
                "max_drawdown",
                "max_drawdown_pct",
                "profit_factor",
                "sharpe_ratio",
                "avg_trade_duration",
                "total_commissions",
                "final_capital",
                "return_pct",
            )
        }
        return pd.Series({**counts, **figures}, name=self.config.name, dtype=object)


class _Simulation:
    """Mutable state of exactly one run."""

    def __init__(self, config: StrategyConfig, spot_provider: SpotPriceProvider, model: PricingModel):
        self.config = config
        self.spot_provider = spot_provider
        self.model = model
        self.capital = config.initial_capital
        self.state = PositionState.FLAT
        self.position: Optional[OpenPosition] = None
        self.trades: List[Trade] = []
        self.equity: List[Tuple[pd.Timestamp, float]] = []
        self._spot_date: Optional[pd.Timestamp] = None
        self._spot_price = 0.0

    # -- market data ---------------------------------------------------

    def spot(self, date: pd.Timestamp) -> float:
        if self._spot_date != date:
            try:
                price = float(self.spot_provider.get_spot(date))
            except Exception as exc:
                raise MarketDataError(f"spot price lookup failed for {date.date()}") from exc
            if not np.isfinite(price) or price <= 0:
                raise MarketDataError(f"invalid spot price {price!r} for {date.date()}")
            self._spot_date, self._spot_price = date, price
        return self._spot_price

    # -- day loop ------------------------------------------------------

    def run(self, cancel_event: Optional[threading.Event]) -> None:
        for date in self.config.trading_days():
            if cancel_event is not None and cancel_event.is_set():
                raise BacktestCancelled(f"backtest {self.config.name!r} cancelled before {date.date()}")
            self.process_day(date)
        if self.state is PositionState.OPEN and self.config.liquidate_at_end and self.equity:
            last_date = self.equity[-1][0]
            self.exit(last_date, self.liquidation_value(last_date), "end of backtest")
            self.equity[-1] = (last_date, self.capital)

    def process_day(self, date: pd.Timestamp) -> None:
        if self.state is PositionState.FLAT and self.capital >= self.config.initial_capital * ENTRY_CAPITAL_FLOOR:
            self.try_enter(date)
        if self.state is PositionState.OPEN:
            self.check_exit(date)
        self.equity.append((date, self.equity_value(date)))

    def equity_value(self, date: pd.Timestamp) -> float:
        if self.config.mark_to_market and self.state is PositionState.OPEN:
            return self.capital + self.liquidation_value(date) - self.config.commission_per_side
        return self.capital

    # -- entry ---------------------------------------------------------

    def select_strike(self, spot: float, template: LegTemplate) -> float:
        interval = self.config.strike_interval
        atm = math.floor(spot / interval + 0.5) * interval
        direction = 1 if template.instrument_type is InstrumentType.CALL else -1
        shift = {
            StrikeSelection.ATM: 0,
            StrikeSelection.OTM: direction,
            StrikeSelection.ITM: -direction,
        }[self.config.entry_rules.strike_selection]
        return atm + (shift + template.strike_offset) * interval

    def price_leg(self, template: LegTemplate, number: int, spot: float, expiry: pd.Timestamp, days: int) -> Leg:
        cfg = self.config
        slippage = 1 + template.action.sign * cfg.slippage_pct / 100.0
        if template.instrument_type is InstrumentType.STOCK:
            return Leg(template.instrument_type, template.action, template.quantity, number, entry_price=spot * slippage)

        strike = self.select_strike(spot, template)
        T = days / 365.0
        fair = self.model.price(spot, strike, T, cfg.risk_free_rate, cfg.volatility, template.instrument_type)
        leg = Leg(
            template.instrument_type,
            template.action,
            template.quantity,
            number,
            strike_price=strike,
            expiry_date=expiry,
            entry_price=fair * slippage,
        )
        extrinsic = max(0.0, fair - leg.intrinsic(spot))
        leg = leg.with_greeks(self.model, spot, T, cfg.risk_free_rate, cfg.volatility)
        return dataclasses.replace(leg, entry_extrinsic=extrinsic)

    def try_enter(self, date: pd.Timestamp) -> None:
        cfg = self.config
        rules = cfg.entry_rules
        if rules.entry_weekdays is not None and date.weekday() not in rules.entry_weekdays:
            return

        expiry = next_weekday(date + pd.Timedelta(days=rules.days_to_expiry))
        spot = self.spot(date)
        days = days_between(date, expiry)
        legs = tuple(self.price_leg(t, i + 1, spot, expiry, days) for i, t in enumerate(cfg.legs))
        net_debit = sum(leg.sign * leg.entry_price * leg.quantity for leg in legs)

        premium = abs(net_debit)
        if rules.min_premium is not None and premium < rules.min_premium:
            logger.debug("%s: premium %.2f below entry window", date.date(), premium)
            return
        if rules.max_premium is not None and premium > rules.max_premium:
            logger.debug("%s: premium %.2f above entry window", date.date(), premium)
            return
        if premium + cfg.commission_per_side > self.capital:
            logger.debug("%s: cannot afford %.2f with capital %.2f", date.date(), premium, self.capital)
            return

        self.enter(
            OpenPosition(
                entry_date=date,
                expiry_date=expiry,
                legs=legs,
                net_debit=net_debit,
                entry_cost=net_debit + cfg.commission_per_side,
                days_at_entry=days,
            )
        )

    def enter(self, position: OpenPosition) -> None:
        if self.state is not PositionState.FLAT:
            raise BacktestError("cannot enter while a position is open")
        self.capital -= position.entry_cost
        self.position = position
        self.state = PositionState.OPEN
        logger.debug(
            "Entered on %s, expiry %s, cost %.2f",
            position.entry_date.date(),
            position.expiry_date.date(),
            position.entry_cost,
        )

    # -- exit ----------------------------------------------------------

    def liquidation_value(self, date: pd.Timestamp) -> float:
        """Signed value of closing the open position: intrinsic plus linear time decay."""
        position = self.position
        spot = self.spot(date)
        days_remaining = max(0, days_between(date, position.expiry_date))
        slip = self.config.slippage_pct / 100.0
        value = 0.0
        for leg in position.legs:
            unit = leg.mark(spot, days_remaining, position.days_at_entry) * (1 - leg.sign * slip)
            value += unit * leg.quantity * leg.sign
        return value

    def pnl(self, value: float) -> Tuple[float, float]:
        pnl = value - self.config.commission_per_side - self.position.entry_cost
        basis = abs(self.position.entry_cost)
        return pnl, (pnl / basis * 100.0 if basis else 0.0)

    def check_exit(self, date: pd.Timestamp) -> None:
        rules = self.config.exit_rules
        value = self.liquidation_value(date)
        _, pnl_pct = self.pnl(value)
        position = dataclasses.replace(self.position, peak_pnl_pct=max(self.position.peak_pnl_pct, pnl_pct))
        self.position = position
        days_remaining = days_between(date, position.expiry_date)

        if rules.target_profit_pct is not None and pnl_pct >= rules.target_profit_pct:
            reason = "target profit"
        elif rules.stop_loss_pct is not None and pnl_pct <= -rules.stop_loss_pct:
            reason = "stop loss"
        elif (
            rules.trailing_stop_pct is not None
            and position.peak_pnl_pct > 0
            and position.peak_pnl_pct - pnl_pct >= rules.trailing_stop_pct
        ):
            reason = "trailing stop"
        elif rules.days_to_expiry is not None and days_remaining <= rules.days_to_expiry:
            reason = "days to expiry threshold"
        elif date >= position.expiry_date:
            reason = "expiry reached"
        else:
            return
        self.exit(date, value, reason)

    def exit(self, date: pd.Timestamp, value: float, reason: str) -> None:
        if self.state is not PositionState.OPEN:
            raise BacktestError("no open position to exit")
        position = self.position
        commission = self.config.commission_per_side
        pnl, pnl_pct = self.pnl(value)
        trade = Trade(
            entry_date=position.entry_date,
            exit_date=date,
            entry_price=position.entry_cost,
            exit_price=value,
            pnl=pnl,
            pnl_pct=pnl_pct,
            duration_days=days_between(position.entry_date, date),
            legs=position.legs,
            gross_pnl=value - position.net_debit,
            commissions=2 * commission,
            exit_reason=reason,
        )
        self.trades.append(trade)
        self.capital += value - commission
        self.position = None
        self.state = PositionState.FLAT
        logger.debug("Exited on %s (%s), pnl %.2f", date.date(), reason, pnl)

    # -- results -------------------------------------------------------

    def result(self) -> BacktestResult:
        cfg = self.config
        equity_curve = pd.Series(
            [equity for _, equity in self.equity],
            index=pd.DatetimeIndex([date for date, _ in self.equity], name="date"),
            name="equity",
            dtype=float,
        )
        ledger = TradeLedgerMetrics(self.trades, equity_curve, cfg.initial_capital)
        drawdown, drawdown_pct = ledger.max_drawdown()
        return BacktestResult(
            config=cfg,
            total_trades=ledger.total_trades,
            winning_trades=len(ledger.winners),
            losing_trades=len(ledger.losers),
            win_rate=ledger.win_rate(),
            total_pnl=float(ledger.pnl.sum()),
            avg_win=ledger.avg_win(),
            avg_loss=ledger.avg_loss(),
            largest_win=ledger.largest_win(),
            largest_loss=ledger.largest_loss(),
            max_drawdown=drawdown,
            max_drawdown_pct=drawdown_pct,
            profit_factor=ledger.profit_factor(),
            sharpe_ratio=ledger.sharpe_ratio(),
            avg_trade_duration=ledger.avg_trade_duration(),
            total_commissions=ledger.total_commissions(),
            final_capital=self.capital,
            return_pct=(self.capital - cfg.initial_capital) / cfg.initial_capital * 100.0,
            equity_curve=equity_curve,
            trades=tuple(self.trades),
            monthly_returns=MappingProxyType(ledger.monthly_returns()),
            open_position=self.position,
        )


class BacktestEngine:
    """Simulates one single-underlying, single-position strategy.

    The engine keeps no state between runs; every call to :meth:`run`
    simulates in a fresh arena, so one engine may serve concurrent runs.
    """

    def __init__(
        self,
        config: StrategyConfig,
        spot_provider: SpotPriceProvider,
        model: Optional[PricingModel] = None,
    ):
        self.config = config
        self.spot_provider = spot_provider
        self.model = model or BlackScholesModel()

    def run(self, cancel_event: Optional[threading.Event] = None) -> BacktestResult:
        cfg = self.config
        logger.info("Starting backtest %r: %s to %s", cfg.name, cfg.start_date.date(), cfg.end_date.date())
        simulation = _Simulation(cfg, self.spot_provider, self.model)
        try:
            simulation.run(cancel_event)
        except BacktestCancelled:
            logger.warning("Backtest %r cancelled", cfg.name)
            raise
        except Exception:
            logger.exception("Backtest %r aborted", cfg.name)
            raise
        result = simulation.result()
        if result.open_position is not None:
            logger.info(
                "Backtest %r ended with a position open until %s; it is excluded from the statistics",
                cfg.name,
                result.open_position.expiry_date.date(),
            )
        logger.info(
            "Finished backtest %r: %d trades, final capital %.2f",
            cfg.name,
            result.total_trades,
            result.final_capital,
        )
        return result


__all__ = ["BacktestEngine", "BacktestResult", "OpenPosition", "PositionState", "ENTRY_CAPITAL_FLOOR"]
