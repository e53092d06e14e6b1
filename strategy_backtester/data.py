"""Spot-price providers injected into the backtest engine."""
from __future__ import annotations

import abc
from datetime import datetime
from typing import Optional

import numpy as np
import pandas as pd

from .utils import DateLike, to_timestamp


class SpotPriceProvider(abc.ABC):
    """Capability to look up the underlying's spot price for one date."""

    @abc.abstractmethod
    def get_spot(self, date: datetime) -> float:
        ...


class SeriesSpotProvider(SpotPriceProvider):
    """Spot prices from a date-indexed series, e.g. historical daily closes."""

    def __init__(self, spot_prices: pd.Series) -> None:
        if spot_prices.empty:
            raise ValueError("spot price series is empty")
        index = pd.DatetimeIndex(spot_prices.index).normalize()
        self.spot_prices = pd.Series(spot_prices.to_numpy(dtype=float), index=index).sort_index()

    @property
    def time_index(self) -> pd.DatetimeIndex:
        return self.spot_prices.index

    def get_spot(self, date: datetime) -> float:
        key = to_timestamp(date)
        if key not in self.spot_prices.index:
            raise KeyError(f"No spot price for {key.date()}")
        return float(self.spot_prices.loc[key])


class FlatSpotProvider(SpotPriceProvider):
    def __init__(self, price: float) -> None:
        if price <= 0:
            raise ValueError("spot price must be positive")
        self.price = float(price)

    def get_spot(self, date: datetime) -> float:
        return self.price


class RandomWalkSpotProvider(SeriesSpotProvider):
    """Placeholder geometric random walk standing in for real market data."""

    def __init__(
        self,
        start: DateLike,
        end: DateLike,
        base_price: float = 21000.0,
        daily_vol: float = 0.01,
        seed: Optional[int] = None,
    ) -> None:
        dates = pd.bdate_range(to_timestamp(start), to_timestamp(end))
        if len(dates) == 0:
            raise ValueError("random walk needs at least one weekday")
        rng = np.random.default_rng(seed)
        shocks = rng.normal(0.0, daily_vol, size=len(dates))
        shocks[0] = 0.0
        path = base_price * np.exp(np.cumsum(shocks))
        super().__init__(pd.Series(path, index=dates, name="spot"))


__all__ = ["SpotPriceProvider", "SeriesSpotProvider", "FlatSpotProvider", "RandomWalkSpotProvider"]
