"""Utility helpers for the signal_backtest package."""

from __future__ import annotations

import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

import pandas

from .config import CURRENCY_PRECISION, RATIO_PRECISION


class PreconditionError(ValueError):
    """Raised when a price series violates the simulation preconditions."""


class UndefinedMetricError(ValueError):
    """Raised when a metric has no defined value for the supplied input."""


def to_decimal(value: Any) -> Decimal:
    """Convert value to Decimal for high-precision calculations.

    Floats and numpy scalars are converted through their string form so that
    ``101.1`` becomes ``Decimal("101.1")`` rather than its binary expansion.

    Args:
        value: The input value to convert.

    Returns:
        The converted Decimal value.

    Raises:
        ValueError: If the value cannot be represented as a number.
    """
    if isinstance(value, Decimal):
        return value
    if not isinstance(value, (int, str)):
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as conversion_error:
        raise ValueError(f"Cannot convert {value!r} to Decimal") from conversion_error


def quantize_ratio(value: Decimal) -> Decimal:
    """Round ``value`` half-up to four decimal places."""
    return value.quantize(RATIO_PRECISION, rounding=ROUND_HALF_UP)


def quantize_currency(value: Decimal) -> Decimal:
    """Round ``value`` half-up to two decimal places."""
    return value.quantize(CURRENCY_PRECISION, rounding=ROUND_HALF_UP)


def divide_ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Divide two decimals and round the quotient to four places."""
    return quantize_ratio(numerator / denominator)


def date_key(value: Any) -> str:
    """Return the ``YYYY-MM-DD`` key used for date-keyed mappings.

    Timestamps, ``datetime`` objects and ISO strings with a time component all
    normalize to the calendar day so that returns recorded from different
    sources line up.
    """
    if isinstance(value, (pandas.Timestamp, datetime.datetime)):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, datetime.date):
        return value.isoformat()
    text = str(value).strip()
    if len(text) > 10 and text[4:5] == "-" and text[10:11] in ("T", " "):
        return text[:10]
    return text


def validate_series(price_series: pandas.Series, min_length: int = 1) -> None:
    """Validate that a price series can be simulated.

    Args:
        price_series: Prices indexed by date.
        min_length: Minimum required length for the series.

    Raises:
        PreconditionError: If the series is too short, contains a price that
            is missing or not strictly positive, or its dates are not strictly
            ascending.
    """
    if len(price_series) < min_length:
        raise PreconditionError(
            f"Series has {len(price_series)} values; at least {min_length} required"
        )
    previous_key: str | None = None
    for label, price_value in price_series.items():
        current_key = date_key(label)
        if previous_key is not None and current_key <= previous_key:
            raise PreconditionError(
                f"Dates must be strictly ascending; {current_key} follows {previous_key}"
            )
        previous_key = current_key
        if price_value is None or pandas.isna(price_value):
            raise PreconditionError(f"Missing price on {current_key}")
        if to_decimal(price_value) <= 0:
            raise PreconditionError(
                f"Price must be strictly positive; got {price_value} on {current_key}"
            )
