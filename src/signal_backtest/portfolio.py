"""Position state machine and run-wide trade ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Tuple

import pandas

from . import config
from .signals import Signal, SignalKind
from .utils import (
    date_key,
    divide_ratio,
    quantize_currency,
    to_decimal,
    validate_series,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Trade:
    """Record a realized profit or loss for one closed position."""

    symbol: str
    date: str
    pnl: Decimal
    exit_reason: str = "signal"


class PositionDirection(Enum):
    """Exposure of the position held for a symbol."""

    FLAT = "FLAT"
    LONG = "LONG"
    SHORT = "SHORT"


@dataclass(frozen=True)
class Position:
    """Open exposure for the symbol currently being simulated."""

    direction: PositionDirection = PositionDirection.FLAT
    size: Decimal = Decimal(0)
    entry_price: Decimal = Decimal(0)

    def profit_at(self, exit_price: Decimal) -> Decimal:
        """Return the unrounded profit from closing at ``exit_price``."""
        if self.direction is PositionDirection.LONG:
            return (exit_price - self.entry_price) * self.size
        if self.direction is PositionDirection.SHORT:
            return (self.entry_price - exit_price) * abs(self.size)
        return Decimal(0)

    def loss_fraction_at(self, price: Decimal) -> Decimal:
        """Return the adverse move from entry as a fraction of the entry price."""
        if self.direction is PositionDirection.LONG:
            return divide_ratio(self.entry_price - price, self.entry_price)
        if self.direction is PositionDirection.SHORT:
            return divide_ratio(price - self.entry_price, self.entry_price)
        return Decimal(0)


FLAT_POSITION = Position()


@dataclass
class _LedgerSnapshot:
    trade_count: int
    contribution_count: int
    returns_by_date: Dict[str, Decimal]
    current_capital: Decimal


@dataclass
class Portfolio:
    """Accumulate trades, capital and returns across every simulated symbol.

    One portfolio is shared by all symbols of a run and is passed explicitly
    to each :meth:`execute_signals` call. Capital changes only when a trade is
    realized, so ``current_capital`` always equals ``starting_capital`` plus
    the sum of trade profits.

    ``returns_by_date`` merges return contributions recorded on the same date
    by adding them. ``return_contributions`` keeps every contribution in the
    order it was recorded together with the trade that produced it.
    """

    starting_capital: Decimal = config.STARTING_CAPITAL
    volatility_estimate: Decimal = config.VOLATILITY_ESTIMATE
    maximum_volatility: Decimal = config.MAXIMUM_VOLATILITY
    maximum_position_fraction: Decimal = config.MAXIMUM_POSITION_FRACTION
    stop_loss_threshold: Decimal = config.STOP_LOSS_THRESHOLD
    record_final_close_return: bool = False
    trades: List[Trade] = field(default_factory=list)
    returns_by_date: Dict[str, Decimal] = field(default_factory=dict)
    return_contributions: List[Tuple[Trade, Decimal]] = field(default_factory=list)
    market_returns: Dict[str, Decimal] = field(default_factory=dict)
    current_capital: Decimal = field(init=False)

    def __post_init__(self) -> None:
        self.current_capital = self.starting_capital

    @property
    def daily_returns(self) -> List[Decimal]:
        """Return contributions in the order they were recorded."""
        return [return_value for _, return_value in self.return_contributions]

    def calculate_position_size(self, price: Decimal) -> Decimal:
        """Return the share count for a new position at ``price``.

        The size is the smaller of a volatility-scaled risk budget and an
        absolute ceiling of ``maximum_position_fraction`` of current capital.
        ``price`` must be strictly positive.
        """
        effective_volatility = min(self.volatility_estimate, self.maximum_volatility)
        position_multiplier = min(
            Decimal(1), divide_ratio(Decimal(1), effective_volatility * 100)
        )
        risk_scaled_size = divide_ratio(self.current_capital * position_multiplier, price)
        maximum_size = divide_ratio(
            self.current_capital * self.maximum_position_fraction, price
        )
        return min(risk_scaled_size, maximum_size)

    def add_market_returns(self, market_returns: Mapping[object, object]) -> None:
        """Merge benchmark returns keyed by date, replacing existing dates."""
        for date_value, return_value in market_returns.items():
            self.market_returns[date_key(date_value)] = to_decimal(return_value)

    def aligned_returns(self) -> List[Tuple[Decimal, Decimal]]:
        """Return ``(market, portfolio)`` return pairs for shared dates in date order."""
        common_dates = sorted(set(self.returns_by_date) & set(self.market_returns))
        return [
            (self.market_returns[common_date], self.returns_by_date[common_date])
            for common_date in common_dates
        ]

    def execute_signals(
        self,
        symbol: str,
        signals: Iterable[Signal],
        price_data_frame: pandas.DataFrame,
    ) -> List[Trade]:
        """Simulate trading ``symbol`` and record realized trades.

        Each bar first applies any signal for its date: a BUY while flat or
        short closes the short and opens a long, and a SELL while flat or long
        closes the long and opens a short. The stop-loss is then checked for
        whatever position is open. A position still open after the last bar is
        closed at the last price.

        Parameters
        ----------
        symbol:
            Symbol recorded on each trade.
        signals:
            Signals for this symbol. When several share a date the first one
            is used.
        price_data_frame:
            Price data indexed by date with an ``adj_close`` column.

        Returns
        -------
        List[Trade]
            Trades realized for this symbol.

        Raises
        ------
        PreconditionError
            If prices are not strictly positive or dates are not strictly
            ascending. Any error leaves the portfolio as it was before the
            call.
        """
        signal_by_date: Dict[str, SignalKind] = {}
        for signal in signals:
            signal_by_date.setdefault(date_key(signal.date), signal.kind)
        if not signal_by_date:
            return []

        snapshot = self._snapshot()
        try:
            return self._simulate(symbol, signal_by_date, price_data_frame)
        except Exception:
            self._restore(snapshot)
            LOGGER.debug("Discarded partial trades for %s", symbol)
            raise

    def _simulate(
        self,
        symbol: str,
        signal_by_date: Mapping[str, SignalKind],
        price_data_frame: pandas.DataFrame,
    ) -> List[Trade]:
        price_series = price_data_frame["adj_close"]
        validate_series(price_series)
        first_trade_index = len(self.trades)
        position = FLAT_POSITION
        for label, raw_price in price_series.items():
            bar_date = date_key(label)
            price = to_decimal(raw_price)
            signal_kind = signal_by_date.get(bar_date)
            if signal_kind is SignalKind.BUY and position.direction is not PositionDirection.LONG:
                if position.direction is PositionDirection.SHORT:
                    self._close(symbol, bar_date, position, price, "signal")
                position = Position(
                    PositionDirection.LONG, self.calculate_position_size(price), price
                )
            elif signal_kind is SignalKind.SELL and position.direction is not PositionDirection.SHORT:
                if position.direction is PositionDirection.LONG:
                    self._close(symbol, bar_date, position, price, "signal")
                position = Position(
                    PositionDirection.SHORT, self.calculate_position_size(price), price
                )

            if (
                position.direction is not PositionDirection.FLAT
                and position.loss_fraction_at(price) >= self.stop_loss_threshold
            ):
                self._close(symbol, bar_date, position, price, "stop_loss")
                position = FLAT_POSITION

        if position.direction is not PositionDirection.FLAT:
            last_date = date_key(price_series.index[-1])
            last_price = to_decimal(price_series.iloc[-1])
            self._close(
                symbol,
                last_date,
                position,
                last_price,
                "end_of_data",
                record_return=self.record_final_close_return,
            )
        return self.trades[first_trade_index:]

    def _close(
        self,
        symbol: str,
        trade_date: str,
        position: Position,
        exit_price: Decimal,
        exit_reason: str,
        record_return: bool = True,
    ) -> Trade:
        pnl = quantize_currency(position.profit_at(exit_price))
        self.current_capital += pnl
        trade = Trade(symbol=symbol, date=trade_date, pnl=pnl, exit_reason=exit_reason)
        self.trades.append(trade)
        if record_return:
            return_value = divide_ratio(pnl, self.current_capital)
            self.returns_by_date[trade_date] = (
                self.returns_by_date.get(trade_date, Decimal(0)) + return_value
            )
            self.return_contributions.append((trade, return_value))
        LOGGER.debug(
            "Closed %s %s on %s at %s (%s): pnl %s",
            position.direction.value,
            symbol,
            trade_date,
            exit_price,
            exit_reason,
            pnl,
        )
        return trade

    def _snapshot(self) -> _LedgerSnapshot:
        return _LedgerSnapshot(
            trade_count=len(self.trades),
            contribution_count=len(self.return_contributions),
            returns_by_date=dict(self.returns_by_date),
            current_capital=self.current_capital,
        )

    def _restore(self, snapshot: _LedgerSnapshot) -> None:
        del self.trades[snapshot.trade_count :]
        del self.return_contributions[snapshot.contribution_count :]
        self.returns_by_date = snapshot.returns_by_date
        self.current_capital = snapshot.current_capital
