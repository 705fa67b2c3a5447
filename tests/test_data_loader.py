"""Tests for loading price data from CSV files."""

import logging
import os
import sys
from decimal import Decimal
from pathlib import Path

import pandas
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from signal_backtest.data_loader import (
    calculate_market_returns,
    load_price_data,
    load_price_directory,
)


def test_load_price_data_normalizes_sorts_and_deduplicates(tmp_path: Path) -> None:
    csv_file_path = tmp_path / "aaa.csv"
    pandas.DataFrame(
        {
            "Date": ["2020-01-03", "2020-01-01", "2020-01-02", "2020-01-01"],
            "Adj Close": [12.0, 10.0, 11.0, 99.0],
            "Volume": [300, 100, 200, 999],
        }
    ).to_csv(csv_file_path, index=False)

    price_data_frame = load_price_data(csv_file_path)

    assert list(price_data_frame.index) == ["2020-01-01", "2020-01-02", "2020-01-03"]
    assert price_data_frame["adj_close"].tolist() == [10.0, 11.0, 12.0]
    assert price_data_frame["volume"].tolist() == [100, 200, 300]


def test_load_price_data_accepts_camel_case_columns(tmp_path: Path) -> None:
    csv_file_path = tmp_path / "bbb.csv"
    pandas.DataFrame(
        {
            "date": ["2020-01-01T00:00:00.000Z", "2020-01-02T00:00:00.000Z"],
            "adjClose": [5.0, 6.0],
            "volume": [1, 2],
        }
    ).to_csv(csv_file_path, index=False)

    price_data_frame = load_price_data(csv_file_path)

    assert list(price_data_frame.index) == ["2020-01-01", "2020-01-02"]
    assert price_data_frame["adj_close"].tolist() == [5.0, 6.0]


def test_load_price_data_falls_back_to_close(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    csv_file_path = tmp_path / "ccc.csv"
    pandas.DataFrame(
        {"Date": ["2020-01-01"], "Close": [7.0], "Volume": [10]}
    ).to_csv(csv_file_path, index=False)

    with caplog.at_level(logging.WARNING):
        price_data_frame = load_price_data(csv_file_path)

    assert price_data_frame["adj_close"].tolist() == [7.0]
    assert "using close prices" in caplog.text


def test_load_price_data_returns_empty_frame_for_empty_file(tmp_path: Path) -> None:
    csv_file_path = tmp_path / "empty.csv"
    csv_file_path.write_text("")
    assert load_price_data(csv_file_path).empty


def test_load_price_data_requires_date_column(tmp_path: Path) -> None:
    csv_file_path = tmp_path / "nodate.csv"
    pandas.DataFrame({"Close": [1.0]}).to_csv(csv_file_path, index=False)
    with pytest.raises(ValueError, match="date"):
        load_price_data(csv_file_path)


def test_load_price_directory_uses_upper_case_stems(tmp_path: Path) -> None:
    for symbol_name in ("aaa", "bbb"):
        pandas.DataFrame(
            {"Date": ["2020-01-01"], "Adj Close": [1.0], "Volume": [1]}
        ).to_csv(tmp_path / f"{symbol_name}.csv", index=False)

    price_data_by_symbol = load_price_directory(tmp_path)

    assert sorted(price_data_by_symbol) == ["AAA", "BBB"]


def test_calculate_market_returns_uses_previous_close() -> None:
    price_data_frame = pandas.DataFrame(
        {"adj_close": [100.0, 110.0, 99.0]},
        index=["2020-01-01", "2020-01-02", "2020-01-03"],
    )

    market_returns = calculate_market_returns(price_data_frame)

    assert market_returns == {
        "2020-01-02": Decimal("0.1000"),
        "2020-01-03": Decimal("-0.1000"),
    }


def test_calculate_market_returns_needs_two_bars() -> None:
    price_data_frame = pandas.DataFrame({"adj_close": [100.0]}, index=["2020-01-01"])
    assert calculate_market_returns(price_data_frame) == {}


def test_load_price_data_orders_us_style_dates_chronologically(tmp_path: Path) -> None:
    csv_file_path = tmp_path / "us.csv"
    pandas.DataFrame(
        {
            "Date": ["1/2/2020", "1/3/2020", "1/10/2020"],
            "Adj Close": [1.0, 2.0, 3.0],
            "Volume": [10, 20, 30],
        }
    ).to_csv(csv_file_path, index=False)

    price_data_frame = load_price_data(csv_file_path)

    assert list(price_data_frame.index) == ["2020-01-02", "2020-01-03", "2020-01-10"]
    assert price_data_frame["adj_close"].tolist() == [1.0, 2.0, 3.0]
