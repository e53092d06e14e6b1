import pandas as pd
import pytest

from strategy_backtester.data import FlatSpotProvider, RandomWalkSpotProvider, SeriesSpotProvider


def test_series_provider_lookup_normalizes_dates():
    dates = pd.date_range("2024-01-01", periods=3, freq="D")
    provider = SeriesSpotProvider(pd.Series([100, 101, 102], index=dates))
    assert provider.get_spot(pd.Timestamp("2024-01-02 15:30")) == 101.0
    assert provider.get_spot("2024-01-03") == 102.0


def test_series_provider_missing_date_raises_key_error():
    dates = pd.date_range("2024-01-01", periods=3, freq="D")
    provider = SeriesSpotProvider(pd.Series([100, 101, 102], index=dates))
    with pytest.raises(KeyError):
        provider.get_spot("2024-02-01")


def test_series_provider_rejects_empty_series():
    with pytest.raises(ValueError):
        SeriesSpotProvider(pd.Series([], dtype=float, index=pd.DatetimeIndex([])))


def test_flat_provider():
    assert FlatSpotProvider(21000).get_spot("2030-01-01") == 21000.0
    with pytest.raises(ValueError):
        FlatSpotProvider(0)


def test_random_walk_is_reproducible_and_positive():
    first = RandomWalkSpotProvider("2024-01-01", "2024-03-29", seed=11)
    second = RandomWalkSpotProvider("2024-01-01", "2024-03-29", seed=11)
    assert first.spot_prices.equals(second.spot_prices)
    assert (first.spot_prices > 0).all()
    assert first.get_spot("2024-01-01") == pytest.approx(21000.0)
    assert first.time_index.equals(pd.bdate_range("2024-01-01", "2024-03-29"))
