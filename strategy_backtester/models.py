"""Pricing model abstractions and implementations."""
from __future__ import annotations

import abc
import logging
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Iterable, Tuple

import numpy as np
from scipy.stats import norm

from .config import Action, InstrumentType
from .utils import round_value

logger = logging.getLogger(__name__)

IV_INITIAL_GUESS = 0.20
IV_MAX_ITERATIONS = 100
IV_TOLERANCE = 1e-4
IV_FLOOR = 0.01
GREEKS_PLACES = 4


def normal_cdf(x: float) -> float:
    """Rational polynomial approximation of the standard normal CDF.

    Accurate to roughly 1e-7, symmetric so that ``N(x) + N(-x) == 1``.
    """
    t = 1.0 / (1.0 + 0.2316419 * abs(x))
    d = 0.3989423 * np.exp(-x * x / 2.0)
    prob = d * t * (0.3193815 + t * (-0.3565638 + t * (1.781478 + t * (-1.821256 + t * 1.330274))))
    return float(1.0 - prob) if x > 0 else float(prob)


def normal_pdf(x: float) -> float:
    return float(norm.pdf(x))


@dataclass(frozen=True)
class Greeks:
    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0
    vega: float = 0.0
    rho: float = 0.0

    def rounded(self, places: int = GREEKS_PLACES) -> "Greeks":
        return Greeks(**{k: round_value(v, places) for k, v in asdict(self).items()})

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class PortfolioGreeks:
    total_delta: float
    total_gamma: float
    total_theta: float
    total_vega: float
    net_exposure: float


def _is_call(option_type) -> bool:
    kind = InstrumentType(option_type)
    if kind is InstrumentType.STOCK:
        raise ValueError("Black-Scholes prices options only, got a stock leg")
    return kind is InstrumentType.CALL


class PricingModel(abc.ABC):
    @abc.abstractmethod
    def price(self, spot: float, strike: float, T: float, r: float, sigma: float, option_type) -> float:
        ...

    @abc.abstractmethod
    def greeks(self, spot: float, strike: float, T: float, r: float, sigma: float, option_type) -> Greeks:
        ...


@dataclass(frozen=True)
class BlackScholesModel(PricingModel):
    """European Black-Scholes without dividends.

    ``cdf`` defaults to the polynomial approximation; pass
    ``scipy.stats.norm.cdf`` for the exact distribution.
    """

    cdf: Callable[[float], float] = normal_cdf

    def _d1_d2(self, spot: float, strike: float, T: float, r: float, sigma: float) -> Tuple[float, float]:
        d1 = (np.log(spot / strike) + (r + 0.5 * sigma ** 2) * T) / (sigma * np.sqrt(T))
        d2 = d1 - sigma * np.sqrt(T)
        return d1, d2

    def price(self, spot: float, strike: float, T: float, r: float, sigma: float, option_type) -> float:
        call = _is_call(option_type)
        if T <= 0:
            return max(0.0, spot - strike) if call else max(0.0, strike - spot)
        if sigma <= 0:
            forward_intrinsic = spot - strike * np.exp(-r * T)
            return float(max(0.0, forward_intrinsic if call else -forward_intrinsic))
        d1, d2 = self._d1_d2(spot, strike, T, r, sigma)
        if call:
            return float(spot * self.cdf(d1) - strike * np.exp(-r * T) * self.cdf(d2))
        return float(strike * np.exp(-r * T) * self.cdf(-d2) - spot * self.cdf(-d1))

    def raw_greeks(self, spot: float, strike: float, T: float, r: float, sigma: float, option_type) -> Greeks:
        """Unrounded Greeks; vega and rho per one percentage point."""
        call = _is_call(option_type)
        if T <= 0 or sigma <= 0:
            if call:
                delta = 1.0 if spot > strike else 0.0
            else:
                delta = -1.0 if spot < strike else 0.0
            return Greeks(delta=delta)
        d1, d2 = self._d1_d2(spot, strike, T, r, sigma)
        pdf = normal_pdf(d1)
        discount = strike * np.exp(-r * T)

        gamma = pdf / (spot * sigma * np.sqrt(T))
        vega = spot * pdf * np.sqrt(T) / 100.0
        decay = -spot * pdf * sigma / (2 * np.sqrt(T))
        if call:
            delta = self.cdf(d1)
            theta = (decay - r * discount * self.cdf(d2)) / 365.0
            rho = T * discount * self.cdf(d2) / 100.0
        else:
            delta = self.cdf(d1) - 1.0
            theta = (decay + r * discount * self.cdf(-d2)) / 365.0
            rho = -T * discount * self.cdf(-d2) / 100.0
        return Greeks(float(delta), float(gamma), float(theta), float(vega), float(rho))

    def greeks(self, spot: float, strike: float, T: float, r: float, sigma: float, option_type) -> Greeks:
        return self.raw_greeks(spot, strike, T, r, sigma, option_type).rounded()

    def implied_volatility(
        self,
        market_price: float,
        spot: float,
        strike: float,
        T: float,
        r: float,
        option_type,
        max_iterations: int = IV_MAX_ITERATIONS,
        tolerance: float = IV_TOLERANCE,
    ) -> float:
        """Newton-Raphson on vega. Returns the last estimate if it does not converge."""
        sigma = IV_INITIAL_GUESS
        for _ in range(max_iterations):
            diff = self.price(spot, strike, T, r, sigma, option_type) - market_price
            if abs(diff) < tolerance:
                return sigma
            vega = self.raw_greeks(spot, strike, T, r, sigma, option_type).vega * 100.0
            if vega == 0:
                break
            sigma -= diff / vega
            if sigma <= 0:
                sigma = IV_FLOOR
        logger.debug("Implied volatility did not converge for strike %s, returning %.6f", strike, sigma)
        return sigma


def portfolio_greeks(legs: Iterable) -> PortfolioGreeks:
    """Aggregate leg Greeks signed by action and scaled by quantity.

    Each leg needs ``greeks``, ``quantity`` and ``action``. A stock leg
    without Greeks contributes a delta of one per unit.
    """
    totals = {"delta": 0.0, "gamma": 0.0, "theta": 0.0, "vega": 0.0}
    for leg in legs:
        leg_greeks = leg.greeks
        if leg_greeks is None:
            if InstrumentType(leg.instrument_type) is not InstrumentType.STOCK:
                raise ValueError(f"leg {getattr(leg, 'leg_number', '?')} has no Greeks")
            leg_greeks = Greeks(delta=1.0)
        weight = Action(leg.action).sign * leg.quantity
        for name in totals:
            totals[name] += getattr(leg_greeks, name) * weight
    return PortfolioGreeks(
        total_delta=totals["delta"],
        total_gamma=totals["gamma"],
        total_theta=totals["theta"],
        total_vega=totals["vega"],
        net_exposure=abs(totals["delta"]),
    )


_default_model = BlackScholesModel()


def price(spot: float, strike: float, T: float, r: float, sigma: float, option_type) -> float:
    return _default_model.price(spot, strike, T, r, sigma, option_type)


def greeks(spot: float, strike: float, T: float, r: float, sigma: float, option_type) -> Greeks:
    return _default_model.greeks(spot, strike, T, r, sigma, option_type)


def implied_volatility(market_price: float, spot: float, strike: float, T: float, r: float, option_type) -> float:
    return _default_model.implied_volatility(market_price, spot, strike, T, r, option_type)


__all__ = [
    "PricingModel",
    "BlackScholesModel",
    "Greeks",
    "PortfolioGreeks",
    "normal_cdf",
    "normal_pdf",
    "price",
    "greeks",
    "implied_volatility",
    "portfolio_greeks",
]
