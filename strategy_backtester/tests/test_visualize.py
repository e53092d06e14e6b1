from strategy_backtester.backtest import BacktestEngine
from strategy_backtester.config import EntryRules, ExitRules, StrategyConfig
from strategy_backtester.data import FlatSpotProvider
from strategy_backtester.instruments import Leg, straddle
from strategy_backtester.payoff import payoff
from strategy_backtester.visualize import VisualizationEngine


def _result():
    cfg = StrategyConfig(
        name="straddle",
        initial_capital=100_000.0,
        start_date="2024-01-01",
        end_date="2024-02-29",
        entry_rules=EntryRules(days_to_expiry=7),
        exit_rules=ExitRules(days_to_expiry=1),
        legs=straddle(),
    )
    return BacktestEngine(cfg, FlatSpotProvider(21000)).run()


def test_result_figures():
    result = _result()
    viz = VisualizationEngine()
    equity = viz.plot_equity(result)
    assert len(equity.data) == 1
    assert len(equity.data[0].y) == len(result.equity_curve)
    assert len(viz.plot_drawdown(result).data) == 1
    monthly = viz.plot_monthly_returns(result)
    assert list(monthly.data[0].x) == list(result.monthly_returns)


def test_payoff_figure_marks_breakevens():
    legs = [
        Leg("call", "buy", 1, strike_price=100, entry_price=5),
        Leg("put", "buy", 1, leg_number=2, strike_price=100, entry_price=5),
    ]
    fig = VisualizationEngine().plot_payoff(payoff(legs, 100))
    assert len(fig.data) == 2
    assert list(fig.data[1].x) == [90.0, 110.0]
