"""signal_backtest package.

Expose commonly used functions for convenience."""

from .analytics import summarize_portfolio
from .indicators import ewa, rsi, volatility
from .liquidity import filter_liquid_symbols
from .portfolio import Portfolio, Trade
from .signals import Signal, SignalKind, generate_signals
from .strategy import StrategySettings, run_strategy
from .utils import PreconditionError, UndefinedMetricError, to_decimal

__all__ = [
    "ewa",
    "rsi",
    "volatility",
    "filter_liquid_symbols",
    "generate_signals",
    "Signal",
    "SignalKind",
    "Portfolio",
    "Trade",
    "run_strategy",
    "StrategySettings",
    "summarize_portfolio",
    "PreconditionError",
    "UndefinedMetricError",
    "to_decimal",
]
