"""Strategy configuration supplied once per backtest run."""
from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

import pandas as pd

from .utils import DateLike, to_timestamp


class InstrumentType(str, Enum):
    CALL = "call"
    PUT = "put"
    STOCK = "stock"


class Action(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @property
    def sign(self) -> int:
        return 1 if self is Action.BUY else -1


class StrikeSelection(str, Enum):
    ATM = "ATM"
    OTM = "OTM"
    ITM = "ITM"


@dataclasses.dataclass(frozen=True)
class LegTemplate:
    instrument_type: InstrumentType
    action: Action
    quantity: float = 1.0
    strike_offset: int = 0  # whole strike intervals added to the selected strike

    def __post_init__(self) -> None:
        object.__setattr__(self, "instrument_type", InstrumentType(self.instrument_type))
        object.__setattr__(self, "action", Action(self.action))
        if self.quantity <= 0:
            raise ValueError(f"leg quantity must be positive, got {self.quantity}")


@dataclasses.dataclass(frozen=True)
class EntryRules:
    days_to_expiry: int
    strike_selection: StrikeSelection = StrikeSelection.ATM
    min_premium: Optional[float] = None
    max_premium: Optional[float] = None
    entry_weekdays: Optional[Tuple[int, ...]] = None  # Monday == 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "strike_selection", StrikeSelection(self.strike_selection))
        if self.days_to_expiry < 0:
            raise ValueError("entry days_to_expiry must be non-negative")
        if self.min_premium is not None and self.max_premium is not None and self.min_premium > self.max_premium:
            raise ValueError("min_premium exceeds max_premium")
        if self.entry_weekdays is not None:
            weekdays = tuple(int(d) for d in self.entry_weekdays)
            if any(d < 0 or d > 4 for d in weekdays):
                raise ValueError("entry_weekdays must be trading weekdays (0-4)")
            object.__setattr__(self, "entry_weekdays", weekdays)


@dataclasses.dataclass(frozen=True)
class ExitRules:
    target_profit_pct: Optional[float] = None
    stop_loss_pct: Optional[float] = None
    days_to_expiry: Optional[int] = None
    trailing_stop_pct: Optional[float] = None

    def __post_init__(self) -> None:
        for name in ("target_profit_pct", "stop_loss_pct", "trailing_stop_pct"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive when set")
        if self.days_to_expiry is not None and self.days_to_expiry < 0:
            raise ValueError("exit days_to_expiry must be non-negative")


@dataclasses.dataclass(frozen=True)
class StrategyConfig:
    """Immutable description of one backtest run.

    Parameters
    ----------
    legs:
        Ordered leg templates; strikes and premiums are assigned at entry.
    strike_interval:
        Spacing of listed strikes, used for ATM/OTM/ITM selection.
    volatility, risk_free_rate:
        Flat inputs to the Black-Scholes entry pricing.
    mark_to_market:
        Record equity including the liquidation value of an open position
        instead of realized capital only.
    liquidate_at_end:
        Force-close a position still open on the last simulated day.
    """

    name: str
    initial_capital: float
    start_date: DateLike
    end_date: DateLike
    entry_rules: EntryRules
    legs: Tuple[LegTemplate, ...]
    exit_rules: ExitRules = dataclasses.field(default_factory=ExitRules)
    commission_per_leg: float = 0.0
    symbol: str = "NIFTY"
    strike_interval: float = 100.0
    volatility: float = 0.20
    risk_free_rate: float = 0.06
    slippage_pct: float = 0.0
    mark_to_market: bool = False
    liquidate_at_end: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_date", to_timestamp(self.start_date))
        object.__setattr__(self, "end_date", to_timestamp(self.end_date))
        object.__setattr__(self, "legs", tuple(self.legs))
        if self.initial_capital <= 0:
            raise ValueError("initial_capital must be positive")
        if self.end_date < self.start_date:
            raise ValueError("end_date precedes start_date")
        if not self.legs:
            raise ValueError("a strategy needs at least one leg")
        if self.strike_interval <= 0:
            raise ValueError("strike_interval must be positive")
        if self.volatility <= 0:
            raise ValueError("volatility must be positive")
        if self.commission_per_leg < 0 or self.slippage_pct < 0:
            raise ValueError("commission_per_leg and slippage_pct must be non-negative")

    @property
    def leg_count(self) -> int:
        return len(self.legs)

    @property
    def commission_per_side(self) -> float:
        return self.commission_per_leg * self.leg_count

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StrategyConfig":
        """Build a config from a plain mapping such as a stored form payload."""
        data = dict(data)
        try:
            entry = data.pop("entry_rules")
            legs = data.pop("legs")
        except KeyError as exc:
            raise ValueError(f"missing config section {exc.args[0]!r}") from exc
        exit_rules = data.pop("exit_rules", None) or {}
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"unknown config keys: {sorted(unknown)}")
        return cls(
            entry_rules=_section(EntryRules, entry),
            exit_rules=_section(ExitRules, exit_rules),
            legs=tuple(_leg_from_dict(leg) for leg in legs),
            **data,
        )

    def trading_days(self) -> pd.DatetimeIndex:
        """Weekdays in [start_date, end_date]; no holiday calendar."""
        return pd.bdate_range(self.start_date, self.end_date)


def _section(kind, value: Any):
    if isinstance(value, kind):
        return value
    return kind(**value)


def _leg_from_dict(leg: Any) -> LegTemplate:
    if isinstance(leg, LegTemplate):
        return leg
    return LegTemplate(**leg)


__all__ = [
    "InstrumentType",
    "Action",
    "StrikeSelection",
    "LegTemplate",
    "EntryRules",
    "ExitRules",
    "StrategyConfig",
]
