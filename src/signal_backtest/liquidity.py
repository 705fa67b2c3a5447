"""Filter symbols by average traded volume before simulation."""

from __future__ import annotations

import logging
from typing import Mapping, Set

import pandas

LOGGER = logging.getLogger(__name__)


def filter_liquid_symbols(
    price_data_by_symbol: Mapping[str, pandas.DataFrame],
    minimum_average_volume: float,
) -> Set[str]:
    """Return the symbols whose average daily volume exceeds a threshold.

    Parameters
    ----------
    price_data_by_symbol : Mapping[str, pandas.DataFrame]
        Price data for each symbol. Each frame must provide a ``volume``
        column.
    minimum_average_volume : float
        Mean volume, in shares, that a symbol must strictly exceed across its
        whole series to be retained.

    Returns
    -------
    Set[str]
        Symbols considered liquid. Symbols with empty price data are never
        included.

    Raises
    ------
    ValueError
        If a non-empty frame lacks the ``volume`` column.
    """
    liquid_symbols: Set[str] = set()
    for symbol, price_data_frame in price_data_by_symbol.items():
        if price_data_frame is None or price_data_frame.empty:
            continue
        if "volume" not in price_data_frame.columns:
            raise ValueError(
                f"Volume column is required to compute liquidity filter for {symbol}"
            )
        average_volume = price_data_frame["volume"].astype(float).mean()
        if pandas.isna(average_volume):
            continue
        if average_volume > minimum_average_volume:
            liquid_symbols.add(symbol)
        else:
            LOGGER.debug(
                "Excluding %s: average volume %.0f does not exceed %s",
                symbol,
                average_volume,
                minimum_average_volume,
            )
    return liquid_symbols
