"""Tests for the average volume liquidity filter."""

from __future__ import annotations

import os
import sys

import pandas
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from signal_backtest.liquidity import filter_liquid_symbols


def create_price_data_frame(volume_values: list[int]) -> pandas.DataFrame:
    date_index = pandas.date_range("2020-01-01", periods=len(volume_values), freq="D")
    return pandas.DataFrame(
        {"adj_close": [10.0] * len(volume_values), "volume": volume_values},
        index=date_index.strftime("%Y-%m-%d"),
    )


def test_filter_liquid_symbols_keeps_symbols_above_threshold() -> None:
    """Only symbols whose mean volume strictly exceeds the threshold remain."""
    price_data_by_symbol = {
        "HIGH": create_price_data_frame([500_000] * 10),
        "LOW": create_price_data_frame([50_000] * 10),
        "EDGE": create_price_data_frame([100_000] * 10),
        "MIXED": create_price_data_frame([0, 300_000]),
    }

    result = filter_liquid_symbols(price_data_by_symbol, 100_000)

    assert result == {"HIGH", "MIXED"}


def test_filter_liquid_symbols_excludes_empty_series() -> None:
    price_data_by_symbol = {
        "EMPTY": pandas.DataFrame(columns=["adj_close", "volume"]),
        "HIGH": create_price_data_frame([500_000] * 3),
    }

    assert filter_liquid_symbols(price_data_by_symbol, 0) == {"HIGH"}


def test_filter_liquid_symbols_requires_volume_column() -> None:
    """The filter should raise when the volume column is missing."""
    price_data_frame = pandas.DataFrame({"adj_close": [10.0, 11.0]})

    with pytest.raises(ValueError, match="Volume column is required"):
        filter_liquid_symbols({"AAA": price_data_frame}, 1)
