import numpy as np
import pytest
from scipy.stats import norm

from strategy_backtester.instruments import Leg
from strategy_backtester.models import (
    BlackScholesModel,
    Greeks,
    greeks,
    implied_volatility,
    normal_cdf,
    portfolio_greeks,
    price,
)


def _sample_inputs():
    return dict(spot=100.0, strike=100.0, T=30 / 365, r=0.06, sigma=0.2)


def test_black_scholes_price_positive():
    assert price(**_sample_inputs(), option_type="call") > 0
    assert price(**_sample_inputs(), option_type="put") > 0


def test_black_scholes_put_call_parity():
    for spot, strike, T in [(100, 100, 0.25), (21000, 21200, 10 / 365), (50, 40, 1.0)]:
        call = price(spot, strike, T, 0.06, 0.25, "call")
        put = price(spot, strike, T, 0.06, 0.25, "put")
        assert abs((call - put) - (spot - strike * np.exp(-0.06 * T))) < 1e-2


def test_price_at_expiry_is_intrinsic():
    assert price(110, 100, 0, 0.06, 0.2, "call") == 10
    assert price(110, 100, 0, 0.06, 0.2, "put") == 0


def test_normal_cdf_approximation_close_to_exact():
    for x in np.linspace(-4, 4, 41):
        assert abs(normal_cdf(x) - norm.cdf(x)) < 1e-6
        assert normal_cdf(x) + normal_cdf(-x) == pytest.approx(1.0)


def test_exact_cdf_model_agrees_with_approximation():
    exact = BlackScholesModel(cdf=norm.cdf)
    approx = BlackScholesModel()
    args = (100.0, 95.0, 0.5, 0.06, 0.3, "put")
    assert exact.price(*args) == pytest.approx(approx.price(*args), abs=1e-4)


def test_greeks_rounded_to_four_places():
    result = greeks(**_sample_inputs(), option_type="call")
    for value in result.as_dict().values():
        assert value == round(value, 4)


def test_gamma_and_vega_shared_between_calls_and_puts():
    call = greeks(**_sample_inputs(), option_type="call")
    put = greeks(**_sample_inputs(), option_type="put")
    assert call.gamma == put.gamma
    assert call.vega == put.vega
    assert call.delta - put.delta == pytest.approx(1.0, abs=2e-4)
    assert call.rho > 0 > put.rho


def test_vega_is_per_percentage_point():
    model = BlackScholesModel()
    base = model.price(100, 100, 0.5, 0.06, 0.20, "call")
    bumped = model.price(100, 100, 0.5, 0.06, 0.21, "call")
    vega = model.raw_greeks(100, 100, 0.5, 0.06, 0.20, "call").vega
    assert vega == pytest.approx(bumped - base, rel=0.02)


@pytest.mark.parametrize("option_type", ["call", "put"])
def test_theta_and_rho_match_closed_form(option_type):
    spot, strike, T, r, sigma = 21000.0, 21200.0, 20 / 365, 0.06, 0.18
    d1 = (np.log(spot / strike) + (r + 0.5 * sigma ** 2) * T) / (sigma * np.sqrt(T))
    d2 = d1 - sigma * np.sqrt(T)
    discount = strike * np.exp(-r * T)
    decay = -spot * norm.pdf(d1) * sigma / (2 * np.sqrt(T))
    if option_type == "call":
        theta = (decay - r * discount * norm.cdf(d2)) / 365
        rho = T * discount * norm.cdf(d2) / 100
    else:
        theta = (decay + r * discount * norm.cdf(-d2)) / 365
        rho = -T * discount * norm.cdf(-d2) / 100

    result = BlackScholesModel(cdf=norm.cdf).raw_greeks(spot, strike, T, r, sigma, option_type)
    assert result.theta == pytest.approx(theta, rel=1e-9)
    assert result.rho == pytest.approx(rho, rel=1e-9)


def test_theta_is_per_day_and_rho_per_percentage_point():
    model = BlackScholesModel()
    base = model.price(100, 100, 0.5, 0.06, 0.20, "call")
    one_day_later = model.price(100, 100, 0.5 - 1 / 365, 0.06, 0.20, "call")
    rate_bumped = model.price(100, 100, 0.5, 0.07, 0.20, "call")
    result = model.raw_greeks(100, 100, 0.5, 0.06, 0.20, "call")
    assert result.theta == pytest.approx(one_day_later - base, rel=0.02)
    assert result.rho == pytest.approx(rate_bumped - base, rel=0.05)


def test_greeks_at_expiry_are_terminal_step():
    assert greeks(120, 100, 0, 0.06, 0.2, "call") == Greeks(delta=1.0)
    assert greeks(80, 100, 0, 0.06, 0.2, "call") == Greeks(delta=0.0)
    assert greeks(80, 100, -1, 0.06, 0.2, "put") == Greeks(delta=-1.0)
    assert greeks(120, 100, 0, 0.06, 0.2, "put") == Greeks(delta=0.0)


def test_deep_itm_call_delta_converges_to_one():
    deltas = [greeks(120, 100, T, 0.06, 0.2, "call").delta for T in (0.1, 0.01, 0.001, 1e-5)]
    assert deltas == sorted(deltas)
    assert abs(deltas[-1] - 1.0) <= 0.01


def test_implied_volatility_recovers_input():
    market = price(100, 105, 0.5, 0.06, 0.25, "call")
    assert implied_volatility(market, 100, 105, 0.5, 0.06, "call") == pytest.approx(0.25, abs=1e-3)

    market = price(21000, 20800, 14 / 365, 0.06, 0.25, "put")
    assert implied_volatility(market, 21000, 20800, 14 / 365, 0.06, "put") == pytest.approx(0.25, abs=1e-3)


def test_implied_volatility_never_raises_without_convergence():
    # below intrinsic value: no volatility reproduces this price
    iv = implied_volatility(5.0, 100, 80, 0.25, 0.06, "call")
    assert isinstance(iv, float)
    assert iv > 0


def test_stock_leg_rejected_by_pricing():
    with pytest.raises(ValueError):
        price(100, 100, 0.1, 0.06, 0.2, "stock")


def test_portfolio_greeks_signed_by_action():
    leg_greeks = greeks(**_sample_inputs(), option_type="call")
    long_leg = Leg("call", "buy", 2, strike_price=100, greeks=leg_greeks)
    short_leg = Leg("call", "sell", 1, leg_number=2, strike_price=100, greeks=leg_greeks)
    totals = portfolio_greeks([long_leg, short_leg])
    assert totals.total_delta == pytest.approx(leg_greeks.delta)
    assert totals.total_vega == pytest.approx(leg_greeks.vega)
    assert totals.net_exposure == pytest.approx(abs(leg_greeks.delta))


def test_portfolio_greeks_short_put_has_positive_delta():
    leg_greeks = greeks(**_sample_inputs(), option_type="put")
    totals = portfolio_greeks([Leg("put", "sell", 1, strike_price=100, greeks=leg_greeks)])
    assert totals.total_delta > 0
    assert totals.total_theta > 0


def test_portfolio_greeks_stock_leg_counts_as_unit_delta():
    totals = portfolio_greeks([Leg("stock", "buy", 3, entry_price=100)])
    assert totals.total_delta == 3
    assert totals.total_gamma == 0


def test_portfolio_greeks_requires_option_greeks():
    with pytest.raises(ValueError):
        portfolio_greeks([Leg("call", "buy", 1, strike_price=100)])
