"""Expiry payoff curves, breakevens and probability of profit."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Sequence

import numpy as np
import pandas as pd

from .instruments import Leg
from .models import normal_cdf
from .utils import round_value


class PriceRange(NamedTuple):
    min: float
    max: float
    step: float


@dataclass(frozen=True, eq=False)
class PayoffDiagram:
    """P&L at expiry sampled over a price grid.

    ``max_profit`` and ``max_loss`` are bounded by the sampled range, so an
    unlimited payoff reports its value at the range edge.
    """

    points: pd.Series
    max_profit: float
    max_loss: float
    breakevens: List[float]
    current_price: float
    current_pnl: float
    risk_reward_ratio: float

    def summary(self, places: int = 2) -> Dict[str, object]:
        return {
            "max_profit": round_value(self.max_profit, places),
            "max_loss": round_value(self.max_loss, places),
            "breakevens": [round_value(b, places) for b in self.breakevens],
            "current_price": round_value(self.current_price, places),
            "current_pnl": round_value(self.current_pnl, places),
            "risk_reward_ratio": round_value(self.risk_reward_ratio, places),
        }


def leg_payoff(leg: Leg, underlying: float) -> float:
    return leg.payoff(underlying)


def find_breakevens(prices: np.ndarray, pnl: np.ndarray) -> List[float]:
    """Linearly interpolate every zero crossing between adjacent samples."""
    left, right = pnl[:-1], pnl[1:]
    crossings = np.where(((left <= 0) & (right >= 0)) | ((left >= 0) & (right <= 0)))[0]
    breakevens: List[float] = []
    for i in crossings:
        slope = (pnl[i + 1] - pnl[i]) / (prices[i + 1] - prices[i])
        if slope == 0:
            continue
        breakeven = float(prices[i] - pnl[i] / slope)
        # a sample sitting exactly on zero is reported by both neighbouring pairs
        if breakevens and math.isclose(breakeven, breakevens[-1], abs_tol=1e-9):
            continue
        breakevens.append(breakeven)
    return breakevens


class PayoffCalculator:
    def __init__(self, padding: float = 0.2, samples: int = 100, fallback_pct: float = 0.3):
        self.padding = padding
        self.samples = samples
        self.fallback_pct = fallback_pct

    def price_range(self, legs: Sequence[Leg], current_price: float) -> PriceRange:
        strikes = [leg.strike_price for leg in legs if leg.strike_price is not None]
        low = min(strikes + [current_price])
        high = max(strikes + [current_price])
        spread = high - low
        if spread == 0:
            pad = current_price * self.fallback_pct
            spread = 2 * pad
        else:
            pad = spread * self.padding
        return PriceRange(
            min=max(0.0, float(math.floor(low - pad))),
            max=float(math.ceil(high + pad)),
            step=float(max(1, math.ceil(spread / self.samples))),
        )

    def payoff(self, legs: Sequence[Leg], current_price: float, price_range: Optional[PriceRange] = None) -> PayoffDiagram:
        if not legs:
            raise ValueError("payoff needs at least one leg")
        price_range = PriceRange(*price_range) if price_range is not None else self.price_range(legs, current_price)
        if price_range.step <= 0 or price_range.max < price_range.min:
            raise ValueError(f"invalid price range {price_range}")

        count = int(math.floor((price_range.max - price_range.min) / price_range.step + 1e-9)) + 1
        prices = float(price_range.min) + float(price_range.step) * np.arange(count, dtype=float)
        pnl = np.array([sum(leg.payoff(p) for leg in legs) for p in prices])

        max_profit = float(pnl.max())
        max_loss = float(pnl.min())
        current_pnl = float(pnl[np.abs(prices - current_price).argmin()])
        risk_reward = abs(max_profit) / abs(max_loss) if max_loss != 0 else 0.0

        return PayoffDiagram(
            points=pd.Series(pnl, index=pd.Index(prices, name="underlying_price"), name="pnl"),
            max_profit=max_profit,
            max_loss=max_loss,
            breakevens=find_breakevens(prices, pnl),
            current_price=float(current_price),
            current_pnl=current_pnl,
            risk_reward_ratio=risk_reward,
        )

    def probability_of_profit(
        self, diagram: PayoffDiagram, current_price: float, implied_vol: float, days_to_expiry: float
    ) -> float:
        """Percent chance the underlying finishes between two breakevens.

        Lognormal effects are ignored; anything other than exactly two
        breakevens returns 0.
        """
        if len(diagram.breakevens) != 2:
            return 0.0
        std = current_price * implied_vol * math.sqrt(max(days_to_expiry, 0) / 365.0)
        if std <= 0:
            return 0.0
        lower, upper = sorted(diagram.breakevens)
        z_lower = (lower - current_price) / std
        z_upper = (upper - current_price) / std
        return (normal_cdf(z_upper) - normal_cdf(z_lower)) * 100.0


_default_calculator = PayoffCalculator()


def payoff(legs: Sequence[Leg], current_price: float, price_range: Optional[PriceRange] = None) -> PayoffDiagram:
    return _default_calculator.payoff(legs, current_price, price_range)


def probability_of_profit(diagram: PayoffDiagram, current_price: float, implied_vol: float, days_to_expiry: float) -> float:
    return _default_calculator.probability_of_profit(diagram, current_price, implied_vol, days_to_expiry)


__all__ = [
    "PriceRange",
    "PayoffDiagram",
    "PayoffCalculator",
    "leg_payoff",
    "find_breakevens",
    "payoff",
    "probability_of_profit",
]
