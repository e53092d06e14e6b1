import pandas as pd
import pytest

from strategy_backtester.config import (
    Action,
    EntryRules,
    ExitRules,
    InstrumentType,
    LegTemplate,
    StrategyConfig,
    StrikeSelection,
)
from strategy_backtester.instruments import iron_condor, long_call


def _payload():
    return {
        "name": "short straddle",
        "initial_capital": 200000,
        "start_date": "2024-01-01",
        "end_date": "2024-03-28",
        "entry_rules": {"days_to_expiry": 7, "strike_selection": "OTM"},
        "exit_rules": {"target_profit_pct": 40, "stop_loss_pct": 80},
        "legs": [
            {"instrument_type": "call", "action": "sell", "quantity": 1},
            {"instrument_type": "put", "action": "sell", "quantity": 1},
        ],
        "commission_per_leg": 20,
    }


def test_from_dict_builds_typed_config():
    cfg = StrategyConfig.from_dict(_payload())
    assert cfg.start_date == pd.Timestamp("2024-01-01")
    assert cfg.entry_rules.strike_selection is StrikeSelection.OTM
    assert cfg.exit_rules.target_profit_pct == 40
    assert cfg.legs[0].instrument_type is InstrumentType.CALL
    assert cfg.legs[1].action is Action.SELL
    assert cfg.leg_count == 2
    assert cfg.commission_per_side == 40


def test_from_dict_rejects_unknown_and_missing_keys():
    payload = _payload()
    payload["leverage"] = 3
    with pytest.raises(ValueError, match="leverage"):
        StrategyConfig.from_dict(payload)

    payload = _payload()
    del payload["legs"]
    with pytest.raises(ValueError, match="legs"):
        StrategyConfig.from_dict(payload)


def test_from_dict_accepts_rule_instances():
    payload = _payload()
    payload["entry_rules"] = EntryRules(days_to_expiry=7)
    payload["exit_rules"] = ExitRules(stop_loss_pct=50)
    payload["legs"] = [LegTemplate("call", "buy"), {"instrument_type": "put", "action": "buy"}]
    cfg = StrategyConfig.from_dict(payload)
    assert cfg.entry_rules == EntryRules(days_to_expiry=7)
    assert cfg.exit_rules.stop_loss_pct == 50
    assert [leg.instrument_type for leg in cfg.legs] == [InstrumentType.CALL, InstrumentType.PUT]


def test_config_is_immutable():
    cfg = StrategyConfig.from_dict(_payload())
    with pytest.raises(AttributeError):
        cfg.initial_capital = 1


def test_exit_rules_default_to_none():
    cfg = StrategyConfig("c", 1000, "2024-01-01", "2024-01-31", EntryRules(7), long_call())
    assert cfg.exit_rules == ExitRules()
    assert cfg.commission_per_leg == 0.0


def test_trading_days_skip_weekends():
    cfg = StrategyConfig("c", 1000, "2024-01-05", "2024-01-09", EntryRules(7), long_call())
    assert list(cfg.trading_days()) == list(pd.to_datetime(["2024-01-05", "2024-01-08", "2024-01-09"]))


@pytest.mark.parametrize(
    "overrides",
    [
        {"initial_capital": 0},
        {"end_date": "2023-12-31"},
        {"legs": ()},
        {"strike_interval": 0},
        {"volatility": -0.1},
        {"commission_per_leg": -1},
    ],
)
def test_invalid_config_rejected(overrides):
    params = dict(
        name="c",
        initial_capital=1000,
        start_date="2024-01-01",
        end_date="2024-01-31",
        entry_rules=EntryRules(7),
        legs=long_call(),
    )
    params.update(overrides)
    with pytest.raises(ValueError):
        StrategyConfig(**params)


def test_invalid_rules_rejected():
    with pytest.raises(ValueError):
        EntryRules(-1)
    with pytest.raises(ValueError):
        EntryRules(7, min_premium=10, max_premium=5)
    with pytest.raises(ValueError):
        EntryRules(7, entry_weekdays=(5,))
    with pytest.raises(ValueError):
        ExitRules(stop_loss_pct=0)
    with pytest.raises(ValueError):
        LegTemplate("call", "buy", 0)
    with pytest.raises(ValueError):
        LegTemplate("future", "buy", 1)


def test_leg_builders_offsets():
    offsets = [(t.instrument_type.value, t.action.value, t.strike_offset) for t in iron_condor(body=1, wing=2)]
    assert offsets == [("put", "buy", -3), ("put", "sell", -1), ("call", "sell", 1), ("call", "buy", 3)]
