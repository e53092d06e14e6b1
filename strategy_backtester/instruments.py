"""Option legs, trades and leg-template builders for common structures."""
from __future__ import annotations

import dataclasses
from typing import Optional, Tuple

import pandas as pd

from .config import Action, InstrumentType, LegTemplate
from .models import Greeks, PricingModel


@dataclasses.dataclass(frozen=True)
class Leg:
    """A priced leg of a position.

    ``entry_extrinsic`` is the time value paid (or received) at entry and
    decays linearly to zero at expiry when the leg is marked.
    """

    instrument_type: InstrumentType
    action: Action
    quantity: float
    leg_number: int = 1
    strike_price: Optional[float] = None
    expiry_date: Optional[pd.Timestamp] = None
    entry_price: float = 0.0
    entry_extrinsic: float = 0.0
    greeks: Optional[Greeks] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "instrument_type", InstrumentType(self.instrument_type))
        object.__setattr__(self, "action", Action(self.action))
        if self.instrument_type is not InstrumentType.STOCK and self.strike_price is None:
            raise ValueError(f"option leg {self.leg_number} needs a strike")

    @property
    def premium(self) -> float:
        return self.entry_price

    @property
    def sign(self) -> int:
        return self.action.sign

    @property
    def is_option(self) -> bool:
        return self.instrument_type is not InstrumentType.STOCK

    def intrinsic(self, underlying: float) -> float:
        if self.instrument_type is InstrumentType.CALL:
            return max(0.0, underlying - self.strike_price)
        if self.instrument_type is InstrumentType.PUT:
            return max(0.0, self.strike_price - underlying)
        return underlying

    def mark(self, underlying: float, days_remaining: int, days_at_entry: int) -> float:
        """Unsigned per-unit value: intrinsic plus linearly decayed entry time value."""
        if not self.is_option or days_remaining <= 0 or days_at_entry <= 0:
            return self.intrinsic(underlying)
        decay = min(1.0, days_remaining / days_at_entry)
        return self.intrinsic(underlying) + self.entry_extrinsic * decay

    def payoff(self, underlying: float) -> float:
        """Expiry P&L of the leg at ``underlying``."""
        return (self.intrinsic(underlying) - self.entry_price) * self.quantity * self.sign

    def with_greeks(self, model: PricingModel, spot: float, T: float, r: float, sigma: float) -> "Leg":
        if not self.is_option:
            return self
        return dataclasses.replace(
            self, greeks=model.greeks(spot, self.strike_price, T, r, sigma, self.instrument_type)
        )


@dataclasses.dataclass(frozen=True)
class Trade:
    """A closed position.

    ``entry_price`` is the signed entry cost including entry commission
    (negative for a net credit). ``pnl`` is net of both commissions and
    ``gross_pnl`` excludes them.
    """

    entry_date: pd.Timestamp
    exit_date: pd.Timestamp
    entry_price: float
    exit_price: float
    pnl: float  # exit value less entry cost and exit commission
    pnl_pct: float
    duration_days: int
    legs: Tuple[Leg, ...]
    gross_pnl: float = 0.0
    commissions: float = 0.0
    exit_reason: str = ""
    quantity: float = 1.0

    @property
    def is_winner(self) -> bool:
        return self.pnl > 0

    @property
    def is_loser(self) -> bool:
        return self.pnl < 0

    def overlaps(self, other: "Trade") -> bool:
        return self.entry_date <= other.exit_date and other.entry_date <= self.exit_date


def _template(instrument_type, action, quantity=1.0, offset=0) -> LegTemplate:
    return LegTemplate(InstrumentType(instrument_type), Action(action), quantity, offset)


def long_call(quantity: float = 1.0) -> Tuple[LegTemplate, ...]:
    return (_template("call", "buy", quantity),)


def long_put(quantity: float = 1.0) -> Tuple[LegTemplate, ...]:
    return (_template("put", "buy", quantity),)


def straddle(action: str = "buy", quantity: float = 1.0) -> Tuple[LegTemplate, ...]:
    return (_template("call", action, quantity), _template("put", action, quantity))


def strangle(action: str = "buy", width: int = 1, quantity: float = 1.0) -> Tuple[LegTemplate, ...]:
    return (_template("call", action, quantity, width), _template("put", action, quantity, -width))


def vertical_spread(option_type: str = "call", bullish: bool = True, width: int = 1, quantity: float = 1.0) -> Tuple[LegTemplate, ...]:
    """Bull or bear spread; the lower strike is bought for a bullish spread."""
    lower, upper = ("buy", "sell") if bullish else ("sell", "buy")
    return (_template(option_type, lower, quantity, 0), _template(option_type, upper, quantity, width))


def ratio_spread(ratio: float = 2.0, width: int = 1) -> Tuple[LegTemplate, ...]:
    return (_template("call", "buy", 1.0, 0), _template("call", "sell", ratio, width))


def butterfly(width: int = 1, quantity: float = 1.0) -> Tuple[LegTemplate, ...]:
    return (
        _template("call", "buy", quantity, -width),
        _template("call", "sell", 2 * quantity, 0),
        _template("call", "buy", quantity, width),
    )


def iron_condor(body: int = 1, wing: int = 1, quantity: float = 1.0) -> Tuple[LegTemplate, ...]:
    return (
        _template("put", "buy", quantity, -(body + wing)),
        _template("put", "sell", quantity, -body),
        _template("call", "sell", quantity, body),
        _template("call", "buy", quantity, body + wing),
    )


__all__ = [
    "Leg",
    "Trade",
    "long_call",
    "long_put",
    "straddle",
    "strangle",
    "vertical_spread",
    "ratio_spread",
    "butterfly",
    "iron_condor",
]
