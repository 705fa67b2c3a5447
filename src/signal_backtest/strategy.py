"""Run the EWA crossover strategy across a universe of symbols."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Mapping

import pandas

from . import config
from .liquidity import filter_liquid_symbols
from .portfolio import Portfolio
from .signals import generate_signals
from .utils import PreconditionError, validate_series

LOGGER = logging.getLogger(__name__)


class SymbolStatus(Enum):
    """Outcome of processing one symbol."""

    NO_DATA = "no data"
    ILLIQUID = "illiquid"
    INSUFFICIENT_DATA = "insufficient data"
    SIMULATED = "simulated"
    FAILED = "failed"


@dataclass
class StrategySettings:
    """Tunable parameters of a strategy run."""

    short_window: int = config.SHORT_TERM_WINDOW
    long_window: int = config.LONG_TERM_WINDOW
    rsi_period: int = config.RSI_PERIOD
    oversold_level: Decimal = config.RSI_OVERSOLD
    overbought_level: Decimal = config.RSI_OVERBOUGHT
    base_threshold: Decimal = config.BASE_SIGNAL_THRESHOLD
    threshold_lower_bound: Decimal = config.SIGNAL_THRESHOLD_LOWER_BOUND
    threshold_upper_bound: Decimal = config.SIGNAL_THRESHOLD_UPPER_BOUND
    volatility_lookback: int = config.VOLATILITY_LOOKBACK
    minimum_average_volume: float = config.MINIMUM_AVERAGE_VOLUME

    def __post_init__(self) -> None:
        if self.short_window < 1 or self.long_window < 1:
            raise ValueError("EWA windows must be at least 1")
        if self.short_window >= self.long_window:
            raise ValueError("short_window must be smaller than long_window")


@dataclass
class StrategyRun:
    """Portfolio produced by a run and the outcome for every symbol."""

    portfolio: Portfolio
    symbol_statuses: Dict[str, SymbolStatus] = field(default_factory=dict)

    def symbols_with_status(self, status: SymbolStatus) -> List[str]:
        return sorted(
            symbol
            for symbol, symbol_status in self.symbol_statuses.items()
            if symbol_status is status
        )


def run_strategy(
    price_data_by_symbol: Mapping[str, pandas.DataFrame],
    market_returns: Mapping[object, object] | None = None,
    settings: StrategySettings | None = None,
    portfolio: Portfolio | None = None,
) -> StrategyRun:
    """Simulate the strategy for every symbol and collect the results.

    Symbols are processed one at a time in sorted order because they share
    the portfolio's capital and ledger. A symbol whose price data violates the
    simulation preconditions is marked ``FAILED``; its partial trades are
    discarded and the remaining symbols still run.

    Parameters
    ----------
    price_data_by_symbol:
        Price data per symbol, indexed by ascending date with ``adj_close``
        and ``volume`` columns.
    market_returns:
        Optional daily benchmark returns keyed by date, used for regression.
    settings:
        Strategy parameters. Defaults come from :mod:`signal_backtest.config`.
    portfolio:
        Portfolio to accumulate into. A new one is created when omitted.
    """
    settings = settings or StrategySettings()
    portfolio = portfolio if portfolio is not None else Portfolio()
    strategy_run = StrategyRun(portfolio=portfolio)

    liquid_symbols = filter_liquid_symbols(
        price_data_by_symbol, settings.minimum_average_volume
    )
    for symbol in sorted(price_data_by_symbol):
        price_data_frame = price_data_by_symbol[symbol]
        if price_data_frame is None or price_data_frame.empty:
            LOGGER.info("Skipping %s: no price data", symbol)
            strategy_run.symbol_statuses[symbol] = SymbolStatus.NO_DATA
            continue
        if symbol not in liquid_symbols:
            LOGGER.info("Skipping %s: average volume below threshold", symbol)
            strategy_run.symbol_statuses[symbol] = SymbolStatus.ILLIQUID
            continue
        if len(price_data_frame) < settings.long_window:
            LOGGER.info(
                "Skipping %s: %d bars is fewer than the %d-bar long window",
                symbol,
                len(price_data_frame),
                settings.long_window,
            )
            strategy_run.symbol_statuses[symbol] = SymbolStatus.INSUFFICIENT_DATA
            continue
        try:
            validate_series(price_data_frame["adj_close"])
            signal_generator = generate_signals(
                price_data_frame,
                short_window=settings.short_window,
                long_window=settings.long_window,
                rsi_period=settings.rsi_period,
                volatility_lookback=settings.volatility_lookback,
                base_threshold=settings.base_threshold,
                threshold_lower_bound=settings.threshold_lower_bound,
                threshold_upper_bound=settings.threshold_upper_bound,
                oversold_level=settings.oversold_level,
                overbought_level=settings.overbought_level,
            )
            symbol_trades = portfolio.execute_signals(
                symbol, signal_generator, price_data_frame
            )
        except PreconditionError as precondition_error:
            LOGGER.warning("Simulation failed for %s: %s", symbol, precondition_error)
            strategy_run.symbol_statuses[symbol] = SymbolStatus.FAILED
            continue
        LOGGER.info("Simulated %s: %d trades", symbol, len(symbol_trades))
        strategy_run.symbol_statuses[symbol] = SymbolStatus.SIMULATED

    if market_returns:
        portfolio.add_market_returns(market_returns)
    return strategy_run
