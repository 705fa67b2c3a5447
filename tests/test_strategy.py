"""Tests for running the strategy across several symbols."""

import os
import sys
from decimal import Decimal
from typing import List

import pandas
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

import signal_backtest.strategy as strategy_module
from signal_backtest.portfolio import Portfolio, Trade
from signal_backtest.signals import Signal, SignalKind, generate_signals
from signal_backtest.strategy import (
    StrategySettings,
    SymbolStatus,
    run_strategy,
)


def create_price_data_frame(
    price_values: List[float], volume: int = 500_000
) -> pandas.DataFrame:
    date_index = pandas.date_range("2020-01-01", periods=len(price_values), freq="D")
    return pandas.DataFrame(
        {"adj_close": price_values, "volume": [volume] * len(price_values)},
        index=date_index.strftime("%Y-%m-%d"),
    )


def test_series_shorter_than_long_window_is_skipped() -> None:
    """A ten-bar series cannot feed a longer long-term window."""
    price_data_frame = create_price_data_frame(
        [100.0, 101.0, 99.0, 95.0, 90.0, 92.0, 97.0, 103.0, 108.0, 112.0]
    )
    settings = StrategySettings(short_window=5, long_window=20)

    strategy_run = run_strategy({"AAA": price_data_frame}, settings=settings)

    assert strategy_run.symbol_statuses == {"AAA": SymbolStatus.INSUFFICIENT_DATA}
    assert strategy_run.portfolio.trades == []
    assert strategy_run.portfolio.returns_by_date == {}


def test_symbols_receive_distinct_statuses() -> None:
    settings = StrategySettings(short_window=3, long_window=5)
    price_data_by_symbol = {
        "EMPTY": pandas.DataFrame(columns=["adj_close", "volume"]),
        "THIN": create_price_data_frame([10.0] * 10, volume=1_000),
        "SHORT": create_price_data_frame([10.0] * 3),
        "FLAT": create_price_data_frame([10.0] * 10),
    }

    strategy_run = run_strategy(price_data_by_symbol, settings=settings)

    assert strategy_run.symbol_statuses == {
        "EMPTY": SymbolStatus.NO_DATA,
        "FLAT": SymbolStatus.SIMULATED,
        "SHORT": SymbolStatus.INSUFFICIENT_DATA,
        "THIN": SymbolStatus.ILLIQUID,
    }
    assert strategy_run.symbols_with_status(SymbolStatus.SIMULATED) == ["FLAT"]
    assert strategy_run.portfolio.trades == []


def test_invalid_symbol_fails_without_stopping_run(
    caplog: pytest.LogCaptureFixture,
) -> None:
    settings = StrategySettings(short_window=3, long_window=5)
    bad_price_values = [10.0] * 10
    bad_price_values[4] = 0.0
    price_data_by_symbol = {
        "BAD": create_price_data_frame(bad_price_values),
        "GOOD": create_price_data_frame([10.0] * 10),
    }

    strategy_run = run_strategy(price_data_by_symbol, settings=settings)

    assert strategy_run.symbol_statuses["BAD"] is SymbolStatus.FAILED
    assert strategy_run.symbol_statuses["GOOD"] is SymbolStatus.SIMULATED
    assert "Simulation failed for BAD" in caplog.text


def test_generated_signals_are_executed_into_shared_portfolio(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Every simulated symbol trades into the same portfolio."""
    requested_windows = []

    def fake_generate_signals(
        price_data_frame: pandas.DataFrame, **options: object
    ) -> List[Signal]:
        requested_windows.append((options["short_window"], options["long_window"]))
        return [Signal(price_data_frame.index[0], SignalKind.BUY)]

    monkeypatch.setattr(strategy_module, "generate_signals", fake_generate_signals)
    settings = StrategySettings(short_window=2, long_window=4)
    price_data_by_symbol = {
        "AAA": create_price_data_frame([100.0, 101.0, 102.0, 103.0, 104.0]),
        "BBB": create_price_data_frame([50.0, 50.0, 51.0, 52.0, 52.0]),
    }

    strategy_run = run_strategy(
        price_data_by_symbol,
        market_returns={"2020-01-05": Decimal("0.01")},
        settings=settings,
    )

    portfolio = strategy_run.portfolio
    assert requested_windows == [(2, 4), (2, 4)]
    assert [trade.symbol for trade in portfolio.trades] == ["AAA", "BBB"]
    assert portfolio.trades[0].pnl == Decimal("400.00")
    assert portfolio.current_capital == portfolio.starting_capital + sum(
        trade.pnl for trade in portfolio.trades
    )
    assert portfolio.market_returns == {"2020-01-05": Decimal("0.01")}


def test_run_strategy_accumulates_into_supplied_portfolio() -> None:
    portfolio = Portfolio(starting_capital=Decimal("5000.00"))
    strategy_run = run_strategy(
        {"FLAT": create_price_data_frame([10.0] * 30)},
        settings=StrategySettings(short_window=3, long_window=5),
        portfolio=portfolio,
    )
    assert strategy_run.portfolio is portfolio
    assert portfolio.current_capital == Decimal("5000.00")


def test_settings_reject_inverted_windows() -> None:
    with pytest.raises(ValueError, match="smaller than long_window"):
        StrategySettings(short_window=30, long_window=10)


def test_oversold_rebound_is_bought_and_closed_at_end_of_data() -> None:
    """A sharp rebound after a steady decline triggers a real BUY."""
    price_values = [float(price) for price in range(100, 79, -1)]
    price_values += [84.0, 85.0, 86.0, 87.0, 88.0]
    price_data_frame = create_price_data_frame(price_values)
    settings = StrategySettings(short_window=2, long_window=4)

    signal_list = generate_signals(
        price_data_frame, short_window=2, long_window=4
    ).to_list()
    strategy_run = run_strategy({"DROP": price_data_frame}, settings=settings)

    assert signal_list == [Signal("2020-01-22", SignalKind.BUY)]
    portfolio = strategy_run.portfolio
    assert strategy_run.symbol_statuses == {"DROP": SymbolStatus.SIMULATED}
    assert portfolio.trades == [
        Trade("DROP", "2020-01-26", Decimal("476.19"), "end_of_data")
    ]
    assert portfolio.current_capital == Decimal("100476.19")
    assert portfolio.returns_by_date == {}


def test_overbought_pullback_reverses_long_into_short() -> None:
    """An early crossover opens a long that a later SELL reverses."""
    price_values = [float(price) for price in range(100, 121)]
    price_values += [116.0, 115.0, 114.0, 113.0, 112.0]
    price_data_frame = create_price_data_frame(price_values)
    settings = StrategySettings(short_window=2, long_window=4)

    signal_list = generate_signals(
        price_data_frame, short_window=2, long_window=4
    ).to_list()
    strategy_run = run_strategy({"RISE": price_data_frame}, settings=settings)

    assert signal_list == [
        Signal("2020-01-02", SignalKind.BUY),
        Signal("2020-01-22", SignalKind.SELL),
    ]
    portfolio = strategy_run.portfolio
    assert portfolio.trades == [
        Trade("RISE", "2020-01-22", Decimal("1485.15"), "signal"),
        Trade("RISE", "2020-01-26", Decimal("349.95"), "end_of_data"),
    ]
    assert portfolio.current_capital == Decimal("101835.10")
    assert list(portfolio.returns_by_date) == ["2020-01-22"]
