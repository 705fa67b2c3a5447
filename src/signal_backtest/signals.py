"""Generate BUY and SELL signals from EWA crossovers confirmed by RSI."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterator, List, Sequence

import pandas

from . import config
from .indicators import ewa, rsi, volatility_series
from .utils import date_key, quantize_ratio


class SignalKind(Enum):
    """Direction of a trading signal."""

    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class Signal:
    """A dated instruction to go long or short."""

    date: str
    kind: SignalKind


def dynamic_threshold(
    volatility_value: Decimal,
    base_threshold: Decimal = config.BASE_SIGNAL_THRESHOLD,
    lower_bound: Decimal = config.SIGNAL_THRESHOLD_LOWER_BOUND,
    upper_bound: Decimal = config.SIGNAL_THRESHOLD_UPPER_BOUND,
) -> Decimal:
    """Scale ``base_threshold`` by volatility and clamp it to the bounds."""
    scaled_threshold = quantize_ratio(base_threshold * volatility_value)
    return min(max(scaled_threshold, lower_bound), upper_bound)


class SignalGenerator:
    """Lazily scan indicator arrays for threshold crossings.

    Iterating the generator yields :class:`Signal` objects in date order.
    Every call to :func:`iter` restarts the scan from the beginning, so the
    same generator can be consumed more than once.

    A BUY is emitted when the short/long EWA spread crosses above the dynamic
    threshold while RSI is below ``oversold_level`` and the short average is
    above the long average. A SELL is the mirror image: the spread crosses
    below the negative threshold while RSI is above ``overbought_level`` and
    the short average is below the long average. At most one signal is
    emitted per date.
    """

    def __init__(
        self,
        dates: Sequence[str],
        short_term_values: Sequence[float],
        long_term_values: Sequence[float],
        rsi_values: Sequence[Decimal],
        volatility_values: Sequence[Decimal],
        base_threshold: Decimal = config.BASE_SIGNAL_THRESHOLD,
        threshold_lower_bound: Decimal = config.SIGNAL_THRESHOLD_LOWER_BOUND,
        threshold_upper_bound: Decimal = config.SIGNAL_THRESHOLD_UPPER_BOUND,
        oversold_level: Decimal = config.RSI_OVERSOLD,
        overbought_level: Decimal = config.RSI_OVERBOUGHT,
    ) -> None:
        array_lengths = {
            len(dates),
            len(short_term_values),
            len(long_term_values),
            len(rsi_values),
            len(volatility_values),
        }
        if len(array_lengths) != 1:
            raise ValueError("Indicator arrays must all have the same length")
        self.dates = list(dates)
        self.short_term_values = list(short_term_values)
        self.long_term_values = list(long_term_values)
        self.rsi_values = list(rsi_values)
        self.volatility_values = list(volatility_values)
        self.base_threshold = base_threshold
        self.threshold_lower_bound = threshold_lower_bound
        self.threshold_upper_bound = threshold_upper_bound
        self.oversold_level = oversold_level
        self.overbought_level = overbought_level

    def __iter__(self) -> Iterator[Signal]:
        for bar_index in range(1, len(self.dates)):
            signal_kind = self._signal_kind_at(bar_index)
            if signal_kind is not None:
                yield Signal(date=self.dates[bar_index], kind=signal_kind)

    def _signal_kind_at(self, bar_index: int) -> SignalKind | None:
        short_value = self.short_term_values[bar_index]
        long_value = self.long_term_values[bar_index]
        current_difference = short_value - long_value
        previous_difference = (
            self.short_term_values[bar_index - 1] - self.long_term_values[bar_index - 1]
        )
        threshold = dynamic_threshold(
            self.volatility_values[bar_index],
            self.base_threshold,
            self.threshold_lower_bound,
            self.threshold_upper_bound,
        )
        rsi_value = self.rsi_values[bar_index]
        if (
            current_difference > threshold
            and previous_difference <= threshold
            and rsi_value < self.oversold_level
            and short_value > long_value
        ):
            return SignalKind.BUY
        if (
            current_difference < -threshold
            and previous_difference >= -threshold
            and rsi_value > self.overbought_level
            and short_value < long_value
        ):
            return SignalKind.SELL
        return None

    def to_list(self) -> List[Signal]:
        """Materialize every signal into a list."""
        return list(self)


def generate_signals(
    price_data_frame: pandas.DataFrame,
    short_window: int = config.SHORT_TERM_WINDOW,
    long_window: int = config.LONG_TERM_WINDOW,
    rsi_period: int = config.RSI_PERIOD,
    volatility_lookback: int = config.VOLATILITY_LOOKBACK,
    **threshold_options: Decimal,
) -> SignalGenerator:
    """Compute indicators from ``adj_close`` and return a signal generator.

    Parameters
    ----------
    price_data_frame:
        Price data indexed by date with an ``adj_close`` column. The caller
        is expected to skip series shorter than ``long_window``.
    short_window, long_window:
        EWA windows for the fast and slow averages.
    rsi_period:
        Period of the RSI confirmation filter.
    volatility_lookback:
        Number of daily returns used to scale the crossover threshold.
    **threshold_options:
        Forwarded to :class:`SignalGenerator` (``base_threshold``,
        ``threshold_lower_bound``, ``threshold_upper_bound``,
        ``oversold_level``, ``overbought_level``).
    """
    price_series = price_data_frame["adj_close"]
    return SignalGenerator(
        dates=[date_key(label) for label in price_series.index],
        short_term_values=ewa(price_series, short_window).tolist(),
        long_term_values=ewa(price_series, long_window).tolist(),
        rsi_values=rsi(price_series, rsi_period).tolist(),
        volatility_values=volatility_series(price_series, volatility_lookback).tolist(),
        **threshold_options,
    )
