"""Command line interface for running the signal backtest.

Price data is read from a directory of per-symbol CSV files. An optional
benchmark CSV supplies the market returns used for regression analysis.
"""

from __future__ import annotations

import argparse
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional

import pandas

from . import analytics, config, data_loader, strategy

LOGGER = logging.getLogger(__name__)


def configure_logging(log_path: Path | None = None, level: int = logging.INFO) -> None:
    """Configure logging to emit to stdout and, optionally, a log file."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.handlers.clear()
    root_logger.addHandler(stream_handler)
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def _parse_decimal(text: str) -> Decimal:
    """Convert a command line value to :class:`~decimal.Decimal`."""
    try:
        return Decimal(text)
    except InvalidOperation as conversion_error:
        raise argparse.ArgumentTypeError(
            f"invalid decimal value: {text!r}"
        ) from conversion_error


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the command line interface."""
    parser = argparse.ArgumentParser(
        description="Backtest the EWA crossover strategy on local price data."
    )
    parser.add_argument(
        "--data-directory",
        required=True,
        type=Path,
        help="Directory containing one CSV file of daily prices per symbol.",
    )
    parser.add_argument(
        "--benchmark",
        type=Path,
        help="Optional CSV file of benchmark prices used for regression analysis.",
    )
    parser.add_argument(
        "--short-window",
        type=int,
        default=config.SHORT_TERM_WINDOW,
        help="Window of the fast exponentially weighted average.",
    )
    parser.add_argument(
        "--long-window",
        type=int,
        default=config.LONG_TERM_WINDOW,
        help="Window of the slow exponentially weighted average.",
    )
    parser.add_argument(
        "--minimum-volume",
        type=float,
        default=config.MINIMUM_AVERAGE_VOLUME,
        help="Average daily volume a symbol must exceed to be simulated.",
    )
    parser.add_argument(
        "--risk-free-rate",
        type=_parse_decimal,
        default=config.RISK_FREE_RATE,
        help="Annual risk-free rate subtracted when computing the Sharpe ratio.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional path to a CSV file for writing the trade ledger.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Optional path of a log file that receives a copy of the output.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log individual trades.",
    )
    return parser


def run_cli(argument_list: Optional[List[str]] = None) -> analytics.PerformanceReport:
    """Parse command line arguments, run the backtest and log the report."""
    parser = create_parser()
    parsed_arguments = parser.parse_args(argument_list)
    configure_logging(
        parsed_arguments.log_file,
        logging.DEBUG if parsed_arguments.verbose else logging.INFO,
    )

    try:
        settings = strategy.StrategySettings(
            short_window=parsed_arguments.short_window,
            long_window=parsed_arguments.long_window,
            minimum_average_volume=parsed_arguments.minimum_volume,
        )
    except ValueError as settings_error:
        parser.error(str(settings_error))

    price_data_by_symbol = data_loader.load_price_directory(
        parsed_arguments.data_directory
    )
    if not price_data_by_symbol:
        LOGGER.error("No price data found in %s", parsed_arguments.data_directory)

    market_returns = None
    if parsed_arguments.benchmark is not None:
        market_returns = data_loader.calculate_market_returns(
            data_loader.load_price_data(parsed_arguments.benchmark)
        )
    if not market_returns:
        LOGGER.warning("Market returns data is unavailable for regression analysis")

    strategy_run = strategy.run_strategy(
        price_data_by_symbol, market_returns=market_returns, settings=settings
    )
    for status in strategy.SymbolStatus:
        status_symbols = strategy_run.symbols_with_status(status)
        if status_symbols:
            LOGGER.info("%s: %d symbols", status.value, len(status_symbols))

    report = analytics.summarize_portfolio(
        strategy_run.portfolio, risk_free_rate=parsed_arguments.risk_free_rate
    )
    LOGGER.info("\n%s", analytics.format_performance_report(report))

    if parsed_arguments.output:
        trade_record_list = [
            {
                "symbol": trade.symbol,
                "date": trade.date,
                "pnl": str(trade.pnl),
                "exit_reason": trade.exit_reason,
            }
            for trade in strategy_run.portfolio.trades
        ]
        result_data_frame = pandas.DataFrame(
            trade_record_list, columns=["symbol", "date", "pnl", "exit_reason"]
        )
        result_data_frame.to_csv(parsed_arguments.output, index=False)
        LOGGER.info("Results written to %s", parsed_arguments.output)
    return report


def main() -> None:
    run_cli()


if __name__ == "__main__":
    main()
