"""Recognise common option structures from a leg set."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .config import Action, InstrumentType
from .instruments import Leg

PATTERN_CONFIDENCE = 95
CUSTOM_CONFIDENCE = 60


@dataclass(frozen=True)
class StrategyClassification:
    strategy_type: str  # "options" or "custom"
    strategy_name: str
    category: str  # bullish, bearish, neutral or volatile
    risk_profile: str  # defined or undefined
    confidence: int


def _find(legs: Sequence[Leg], kind: InstrumentType, action: Action) -> Optional[Leg]:
    return next((leg for leg in legs if leg.instrument_type is kind and leg.action is action), None)


def _of_type(legs: Sequence[Leg], kind: InstrumentType) -> List[Leg]:
    return [leg for leg in legs if leg.instrument_type is kind]


def _single(kind: InstrumentType, action: Action) -> Callable[[Sequence[Leg]], bool]:
    def matcher(legs):
        return len(legs) == 1 and legs[0].instrument_type is kind and legs[0].action is action

    return matcher


def _vertical(kind: InstrumentType, long_below_short: bool) -> Callable[[Sequence[Leg]], bool]:
    def matcher(legs):
        if len(legs) != 2 or len(_of_type(legs, kind)) != 2:
            return False
        long, short = _find(legs, kind, Action.BUY), _find(legs, kind, Action.SELL)
        if long is None or short is None or long.strike_price == short.strike_price:
            return False
        return (long.strike_price < short.strike_price) == long_below_short

    return matcher


def _pair(action: Action, same_strike: bool) -> Callable[[Sequence[Leg]], bool]:
    def matcher(legs):
        if len(legs) != 2:
            return False
        call, put = _find(legs, InstrumentType.CALL, action), _find(legs, InstrumentType.PUT, action)
        if call is None or put is None:
            return False
        return (call.strike_price == put.strike_price) == same_strike

    return matcher


def _four_leg(legs: Sequence[Leg]):
    if len(legs) != 4:
        return None
    if len(_of_type(legs, InstrumentType.CALL)) != 2 or len(_of_type(legs, InstrumentType.PUT)) != 2:
        return None
    found = (
        _find(legs, InstrumentType.CALL, Action.BUY),
        _find(legs, InstrumentType.CALL, Action.SELL),
        _find(legs, InstrumentType.PUT, Action.BUY),
        _find(legs, InstrumentType.PUT, Action.SELL),
    )
    return None if any(leg is None for leg in found) else found


def _iron_condor(legs):
    found = _four_leg(legs)
    if found is None:
        return False
    long_call, short_call, long_put, short_put = found
    return (
        long_call.strike_price > short_call.strike_price
        and long_put.strike_price < short_put.strike_price
        and short_put.strike_price < short_call.strike_price
    )


def _iron_butterfly(legs):
    found = _four_leg(legs)
    return found is not None and found[1].strike_price == found[3].strike_price


_CALL, _PUT = InstrumentType.CALL, InstrumentType.PUT

PATTERNS = [
    ("Long Call", "bullish", "defined", _single(_CALL, Action.BUY)),
    ("Short Call", "bearish", "undefined", _single(_CALL, Action.SELL)),
    ("Long Put", "bearish", "defined", _single(_PUT, Action.BUY)),
    ("Short Put", "bullish", "undefined", _single(_PUT, Action.SELL)),
    ("Bull Call Spread", "bullish", "defined", _vertical(_CALL, True)),
    ("Bear Call Spread", "bearish", "defined", _vertical(_CALL, False)),
    ("Bull Put Spread", "bullish", "defined", _vertical(_PUT, True)),
    ("Bear Put Spread", "bearish", "defined", _vertical(_PUT, False)),
    ("Long Straddle", "volatile", "defined", _pair(Action.BUY, True)),
    ("Short Straddle", "neutral", "undefined", _pair(Action.SELL, True)),
    ("Long Strangle", "volatile", "defined", _pair(Action.BUY, False)),
    ("Short Strangle", "neutral", "undefined", _pair(Action.SELL, False)),
    ("Iron Butterfly", "neutral", "defined", _iron_butterfly),
    ("Iron Condor", "neutral", "defined", _iron_condor),
]


def _custom_category(legs: Sequence[Leg]) -> str:
    net_calls = sum(leg.sign * leg.quantity for leg in legs if leg.instrument_type is _CALL)
    net_puts = sum(leg.sign * leg.quantity for leg in legs if leg.instrument_type is _PUT)
    if net_calls > 0:
        return "bullish"
    if net_puts > 0:
        return "bearish"
    if abs(net_calls) + abs(net_puts) > 0:
        return "volatile"
    return "neutral"


def _custom_risk(legs: Sequence[Leg]) -> str:
    options = [leg for leg in legs if leg.is_option]
    # any long option caps the loss; naked shorts do not
    return "defined" if any(leg.action is Action.BUY for leg in options) else "undefined"


def classify_strategy(legs: Sequence[Leg]) -> StrategyClassification:
    legs = list(legs)
    for name, category, risk, matcher in PATTERNS:
        if matcher(legs):
            return StrategyClassification("options", name, category, risk, PATTERN_CONFIDENCE)
    return StrategyClassification("custom", "Custom Strategy", _custom_category(legs), _custom_risk(legs), CUSTOM_CONFIDENCE)


__all__ = ["StrategyClassification", "classify_strategy", "PATTERNS"]
