"""Technical indicators used to generate crossover signals.

Adjusted closing prices are recommended for all calculations to account for
corporate actions such as dividends and stock splits. The relative strength
index and volatility are computed with :class:`decimal.Decimal` arithmetic and
four-place half-up rounding so that results are reproducible.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List

import pandas

from .config import VOLATILITY_LOOKBACK
from .utils import divide_ratio, quantize_ratio, to_decimal

HUNDRED = Decimal(100)


def ewa(price_series: pandas.Series, window_size: int) -> pandas.Series:
    """Calculate the exponentially weighted average (EWA).

    The first value seeds the average and each later value is blended in with
    smoothing factor ``2 / (window_size + 1)``. Windows longer than the series
    are allowed and simply produce a heavily smoothed result.

    Parameters
    ----------
    price_series: pandas.Series
        Series of prices, preferably adjusted close values.
    window_size: int
        Number of periods for exponential weighting.

    Returns
    -------
    pandas.Series
        Exponentially weighted average with the same index as the input.

    Raises
    ------
    ValueError
        If ``window_size`` is smaller than one.
    """
    if window_size < 1:
        raise ValueError("window_size must be at least 1")
    return price_series.astype(float).ewm(span=window_size, adjust=False).mean()


def rsi(price_series: pandas.Series, period: int = 14) -> pandas.Series:
    """Calculate the Relative Strength Index (RSI) with Wilder smoothing.

    The seed average gain and loss are plain means over the first ``period``
    price changes. Values before index ``period`` are zero, and a series no
    longer than ``period`` yields zeros throughout. When the average loss is
    exactly zero the index is 100.

    Parameters
    ----------
    price_series: pandas.Series
        Series of prices, preferably adjusted close values.
    period: int, default 14
        Number of periods to use for the calculation.

    Returns
    -------
    pandas.Series
        Relative Strength Index values as ``Decimal`` objects in ``[0, 100]``.
    """
    price_values = [to_decimal(price_value) for price_value in price_series]
    rsi_values: List[Decimal] = [Decimal(0)] * len(price_values)
    if len(price_values) <= period:
        return pandas.Series(rsi_values, index=price_series.index, dtype=object)

    period_decimal = Decimal(period)
    total_gain = Decimal(0)
    total_loss = Decimal(0)
    for price_index in range(1, period + 1):
        change = price_values[price_index] - price_values[price_index - 1]
        if change > 0:
            total_gain += change
        else:
            total_loss -= change
    average_gain = divide_ratio(total_gain, period_decimal)
    average_loss = divide_ratio(total_loss, period_decimal)
    rsi_values[period] = _relative_strength_index(average_gain, average_loss)

    for price_index in range(period + 1, len(price_values)):
        change = price_values[price_index] - price_values[price_index - 1]
        gain = max(change, Decimal(0))
        loss = max(-change, Decimal(0))
        average_gain = divide_ratio(
            average_gain * (period_decimal - 1) + gain, period_decimal
        )
        average_loss = divide_ratio(
            average_loss * (period_decimal - 1) + loss, period_decimal
        )
        rsi_values[price_index] = _relative_strength_index(average_gain, average_loss)

    return pandas.Series(rsi_values, index=price_series.index, dtype=object)


def _relative_strength_index(average_gain: Decimal, average_loss: Decimal) -> Decimal:
    if average_loss == 0:
        return HUNDRED
    relative_strength = divide_ratio(average_gain, average_loss)
    return HUNDRED - divide_ratio(HUNDRED, 1 + relative_strength)


def volatility(
    price_series: pandas.Series, index: int, lookback: int = VOLATILITY_LOOKBACK
) -> Decimal:
    """Return the trailing volatility of simple daily returns at ``index``.

    The result is the population standard deviation (dividing by ``lookback``)
    of the ``lookback`` returns ending at ``index``. Each return and the
    result are rounded to four decimal places.

    Parameters
    ----------
    price_series: pandas.Series
        Series of prices, preferably adjusted close values.
    index: int
        Position in the series at which to evaluate the volatility.
    lookback: int, default 20
        Number of daily returns included in the calculation.

    Returns
    -------
    Decimal
        ``Decimal(1)`` when fewer than ``lookback`` returns are available,
        otherwise the rounded standard deviation.
    """
    if index < lookback:
        return Decimal(1)
    window_prices = [
        to_decimal(price_value)
        for price_value in price_series.iloc[index - lookback : index + 1]
    ]
    daily_returns = [
        divide_ratio(current_price - previous_price, previous_price)
        for previous_price, current_price in zip(window_prices, window_prices[1:])
    ]
    lookback_decimal = Decimal(lookback)
    mean_return = sum(daily_returns, Decimal(0)) / lookback_decimal
    variance = (
        sum(((daily_return - mean_return) ** 2 for daily_return in daily_returns), Decimal(0))
        / lookback_decimal
    )
    return quantize_ratio(variance.sqrt())


def volatility_series(
    price_series: pandas.Series, lookback: int = VOLATILITY_LOOKBACK
) -> pandas.Series:
    """Evaluate :func:`volatility` at every position of ``price_series``."""
    return pandas.Series(
        [
            volatility(price_series, price_index, lookback)
            for price_index in range(len(price_series))
        ],
        index=price_series.index,
        dtype=object,
    )
