"""Options strategy backtester package."""

from .backtest import BacktestEngine, BacktestResult, OpenPosition, PositionState
from .classifier import StrategyClassification, classify_strategy
from .config import Action, EntryRules, ExitRules, InstrumentType, LegTemplate, StrategyConfig, StrikeSelection
from .data import FlatSpotProvider, RandomWalkSpotProvider, SeriesSpotProvider, SpotPriceProvider
from .exceptions import BacktestCancelled, BacktestError, MarketDataError
from .instruments import (
    Leg,
    Trade,
    butterfly,
    iron_condor,
    long_call,
    long_put,
    ratio_spread,
    straddle,
    strangle,
    vertical_spread,
)
from .metrics import PerformanceMetrics, TradeLedgerMetrics
from .models import BlackScholesModel, Greeks, PortfolioGreeks, PricingModel, greeks, implied_volatility, portfolio_greeks, price
from .payoff import PayoffCalculator, PayoffDiagram, PriceRange, payoff, probability_of_profit
from .visualize import VisualizationEngine

__all__ = [
    "BacktestEngine",
    "BacktestResult",
    "OpenPosition",
    "PositionState",
    "StrategyClassification",
    "classify_strategy",
    "Action",
    "EntryRules",
    "ExitRules",
    "InstrumentType",
    "LegTemplate",
    "StrategyConfig",
    "StrikeSelection",
    "SpotPriceProvider",
    "SeriesSpotProvider",
    "FlatSpotProvider",
    "RandomWalkSpotProvider",
    "BacktestError",
    "BacktestCancelled",
    "MarketDataError",
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
    "PerformanceMetrics",
    "TradeLedgerMetrics",
    "PricingModel",
    "BlackScholesModel",
    "Greeks",
    "PortfolioGreeks",
    "price",
    "greeks",
    "implied_volatility",
    "portfolio_greeks",
    "PayoffCalculator",
    "PayoffDiagram",
    "PriceRange",
    "payoff",
    "probability_of_profit",
    "VisualizationEngine",
]
