"""Load daily price series from local CSV files.

Files are expected to contain a ``Date`` column and either an adjusted close
(``Adj Close``, ``adjClose`` or ``adj_close``) or a plain ``Close`` column,
plus ``Volume``. Column names are normalized to ``snake_case`` so that the
engine always sees ``adj_close`` and ``volume``.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from pathlib import Path
from typing import Dict

import pandas

from .utils import date_key, divide_ratio, to_decimal

LOGGER = logging.getLogger(__name__)


def _normalize_column_name(column_name: object) -> str:
    text = re.sub(r"([a-z])([A-Z])", r"\1_\2", str(column_name).strip())
    return re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")


def load_price_data(csv_file_path: Path) -> pandas.DataFrame:
    """Load price data from ``csv_file_path`` and normalize column names.

    Dates are parsed with :func:`pandas.to_datetime`, so US-style values such
    as ``1/10/2020`` sort chronologically. Duplicate dates are removed,
    keeping the first row in file order, so that the frame has unique,
    chronologically ordered entries labelled by ``YYYY-MM-DD`` strings. When no adjusted close is present
    the ``close`` column is used instead. When the CSV file is empty, an
    empty data frame is returned so the caller can skip the symbol.

    Raises
    ------
    ValueError
        If the file has no ``Date`` column, a date cannot be parsed or the
        file lacks a price column.
    """
    try:
        price_data_frame = pandas.read_csv(csv_file_path)
    except pandas.errors.EmptyDataError:
        return pandas.DataFrame()
    if price_data_frame.empty:
        return pandas.DataFrame()

    price_data_frame.columns = [
        _normalize_column_name(column_name) for column_name in price_data_frame.columns
    ]
    if "date" not in price_data_frame.columns:
        raise ValueError(f"Missing required column: date in file {csv_file_path.name}")
    if "adj_close" not in price_data_frame.columns:
        if "close" not in price_data_frame.columns:
            raise ValueError(
                f"Missing required columns: adj_close or close in file {csv_file_path.name}"
            )
        LOGGER.warning(
            "No adjusted close in %s; using close prices", csv_file_path.name
        )
        price_data_frame["adj_close"] = price_data_frame["close"]

    price_data_frame["date"] = pandas.to_datetime(price_data_frame["date"])
    price_data_frame = price_data_frame.sort_values("date", kind="stable")
    price_data_frame["date"] = price_data_frame["date"].dt.strftime("%Y-%m-%d")
    price_data_frame = price_data_frame.drop_duplicates(subset="date", keep="first")
    price_data_frame = price_data_frame.set_index("date")
    if "volume" in price_data_frame.columns:
        price_data_frame["volume"] = price_data_frame["volume"].fillna(0).astype("int64")
    return price_data_frame


def load_price_directory(data_directory: Path) -> Dict[str, pandas.DataFrame]:
    """Return price data for every ``*.csv`` file in ``data_directory``.

    The symbol is the upper-cased file stem, so ``aapl.csv`` becomes
    ``AAPL``.
    """
    price_data_by_symbol: Dict[str, pandas.DataFrame] = {}
    for csv_file_path in sorted(data_directory.glob("*.csv")):
        symbol = csv_file_path.stem.upper()
        price_data_by_symbol[symbol] = load_price_data(csv_file_path)
    LOGGER.info(
        "Loaded price data for %d symbols from %s",
        len(price_data_by_symbol),
        data_directory,
    )
    return price_data_by_symbol


def calculate_market_returns(price_data_frame: pandas.DataFrame) -> Dict[str, Decimal]:
    """Return daily simple returns of a benchmark keyed by date.

    Each return is ``(price_t - price_{t-1}) / price_{t-1}`` rounded to four
    decimal places and keyed by the later date. A series with fewer than two
    bars yields an empty mapping.
    """
    if price_data_frame.empty or len(price_data_frame) < 2:
        LOGGER.warning("Insufficient benchmark data to calculate market returns")
        return {}
    price_series = price_data_frame["adj_close"]
    market_returns: Dict[str, Decimal] = {}
    previous_price = to_decimal(price_series.iloc[0])
    for label, raw_price in price_series.iloc[1:].items():
        current_price = to_decimal(raw_price)
        market_returns[date_key(label)] = divide_ratio(
            current_price - previous_price, previous_price
        )
        previous_price = current_price
    return market_returns
