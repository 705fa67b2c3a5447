"""Performance analytics for a completed portfolio run.

Metrics whose denominator is empty, such as a Sharpe ratio with zero
volatility or signal accuracy without trades, raise
:class:`~signal_backtest.utils.UndefinedMetricError`. The
:func:`summarize_portfolio` helper records those reasons instead of
substituting zero.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Sequence, Tuple

import numpy
from scipy import stats

from . import config
from .portfolio import Portfolio, Trade
from .utils import UndefinedMetricError, divide_ratio, quantize_ratio

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegressionResult:
    """Ordinary least squares fit of portfolio returns on market returns."""

    alpha: float
    beta: float
    r_squared: float
    sample_count: int


@dataclass(frozen=True)
class PeriodAnalysis:
    """Extremes of the cumulative return series and when they occurred."""

    peak_return: Decimal
    peak_date: str
    trough_return: Decimal
    trough_date: str


@dataclass
class PerformanceReport:
    """Aggregate metrics describing strategy performance.

    Any metric that could not be computed is ``None`` and the reason is
    stored in ``undefined_metrics`` under the metric's field name.
    """

    total_trades: int
    profitable_trades: int
    starting_capital: Decimal
    final_capital: Decimal
    average_return: Decimal | None = None
    adjusted_return: Decimal | None = None
    volatility: Decimal | None = None
    sharpe_ratio: Decimal | None = None
    maximum_drawdown: Decimal | None = None
    signal_accuracy: Decimal | None = None
    regression: RegressionResult | None = None
    period_analysis: PeriodAnalysis | None = None
    undefined_metrics: Dict[str, str] = field(default_factory=dict)

    @property
    def loss_making_trades(self) -> int:
        return self.total_trades - self.profitable_trades


def _require_returns(daily_returns: Sequence[Decimal]) -> None:
    if not daily_returns:
        raise UndefinedMetricError("no return contributions were recorded")


def average_return(daily_returns: Sequence[Decimal]) -> Decimal:
    """Return the mean of the recorded return contributions."""
    _require_returns(daily_returns)
    return divide_ratio(sum(daily_returns, Decimal(0)), Decimal(len(daily_returns)))


def adjusted_return(
    daily_returns: Sequence[Decimal],
    risk_free_rate: Decimal = config.RISK_FREE_RATE,
) -> Decimal:
    """Return the mean return less the daily equivalent of ``risk_free_rate``."""
    daily_risk_free_rate = divide_ratio(
        risk_free_rate, Decimal(config.TRADING_DAYS_PER_YEAR)
    )
    return average_return(daily_returns) - daily_risk_free_rate


def _population_standard_deviation(daily_returns: Sequence[Decimal]) -> Decimal:
    _require_returns(daily_returns)
    count = Decimal(len(daily_returns))
    mean_return = sum(daily_returns, Decimal(0)) / count
    variance = (
        sum(((daily_return - mean_return) ** 2 for daily_return in daily_returns), Decimal(0))
        / count
    )
    return variance.sqrt()


def return_volatility(daily_returns: Sequence[Decimal]) -> Decimal:
    """Return the population standard deviation of the return contributions."""
    return quantize_ratio(_population_standard_deviation(daily_returns))


def sharpe_ratio(
    daily_returns: Sequence[Decimal],
    risk_free_rate: Decimal = config.RISK_FREE_RATE,
) -> Decimal:
    """Return the adjusted mean return divided by return volatility.

    Raises
    ------
    UndefinedMetricError
        If there are no returns or their volatility is zero.

    The zero test and the division use the unrounded standard deviation, so
    a small but non-zero spread still yields a ratio.
    """
    volatility_value = _population_standard_deviation(daily_returns)
    if volatility_value == 0:
        raise UndefinedMetricError("return volatility is zero")
    return divide_ratio(adjusted_return(daily_returns, risk_free_rate), volatility_value)


def cumulative_capital(
    daily_returns: Sequence[Decimal],
    starting_capital: Decimal = config.STARTING_CAPITAL,
) -> List[Decimal]:
    """Compound ``starting_capital`` through each return in turn."""
    capital_curve: List[Decimal] = []
    running_capital = starting_capital
    for daily_return in daily_returns:
        running_capital = running_capital * (1 + daily_return)
        capital_curve.append(running_capital)
    return capital_curve


def maximum_drawdown(
    daily_returns: Sequence[Decimal],
    starting_capital: Decimal = config.STARTING_CAPITAL,
) -> Decimal:
    """Return the largest peak-to-trough decline as a fraction of the peak.

    The running peak starts at ``starting_capital``, so a first return that
    loses money already counts as a drawdown. A series without losses has a
    drawdown of zero.
    """
    _require_returns(daily_returns)
    peak_capital = starting_capital
    largest_drawdown = Decimal(0)
    for capital in cumulative_capital(daily_returns, starting_capital):
        if capital > peak_capital:
            peak_capital = capital
        drawdown = divide_ratio(peak_capital - capital, peak_capital)
        if drawdown > largest_drawdown:
            largest_drawdown = drawdown
    return largest_drawdown


def count_profitable_trades(trades: Sequence[Trade]) -> int:
    return sum(1 for trade in trades if trade.pnl > 0)


def signal_accuracy(trades: Sequence[Trade]) -> Decimal:
    """Return the percentage of trades that realized a positive profit.

    The win fraction is rounded to two places before scaling to a percentage.

    Raises
    ------
    UndefinedMetricError
        If no trades were made.
    """
    if not trades:
        raise UndefinedMetricError("no trades were made")
    win_fraction = (Decimal(count_profitable_trades(trades)) / Decimal(len(trades))).quantize(
        config.CURRENCY_PRECISION, rounding=ROUND_HALF_UP
    )
    return win_fraction * 100


def analyze_periods(
    return_contributions: Sequence[Tuple[Trade, Decimal]],
) -> PeriodAnalysis:
    """Find the highest and lowest cumulative return and the trade dates.

    Returns are summed without compounding. When the same extreme occurs more
    than once the earliest occurrence is reported.
    """
    if not return_contributions:
        raise UndefinedMetricError("no return contributions were recorded")
    running_total = Decimal(0)
    peak_return = trough_return = None
    peak_date = trough_date = ""
    for trade, return_value in return_contributions:
        running_total += return_value
        if peak_return is None or running_total > peak_return:
            peak_return, peak_date = running_total, trade.date
        if trough_return is None or running_total < trough_return:
            trough_return, trough_date = running_total, trade.date
    return PeriodAnalysis(
        peak_return=peak_return,
        peak_date=peak_date,
        trough_return=trough_return,
        trough_date=trough_date,
    )


def regression_analysis(
    paired_returns: Sequence[Tuple[Decimal, Decimal]],
) -> RegressionResult:
    """Regress portfolio returns on market returns with ordinary least squares.

    Parameters
    ----------
    paired_returns:
        ``(market_return, portfolio_return)`` pairs, typically from
        :meth:`Portfolio.aligned_returns`.

    Raises
    ------
    UndefinedMetricError
        If fewer than two pairs are supplied or every market return is equal.
    """
    if len(paired_returns) < 2:
        raise UndefinedMetricError(
            f"regression needs at least 2 paired samples, got {len(paired_returns)}"
        )
    market_values = numpy.array([float(market) for market, _ in paired_returns])
    portfolio_values = numpy.array([float(portfolio) for _, portfolio in paired_returns])
    if numpy.ptp(market_values) == 0:
        raise UndefinedMetricError("market returns have no variance")
    fit = stats.linregress(market_values, portfolio_values)
    return RegressionResult(
        alpha=float(fit.intercept),
        beta=float(fit.slope),
        r_squared=float(fit.rvalue) ** 2,
        sample_count=len(paired_returns),
    )


def summarize_portfolio(
    portfolio: Portfolio,
    risk_free_rate: Decimal = config.RISK_FREE_RATE,
) -> PerformanceReport:
    """Compute every metric for ``portfolio`` into a :class:`PerformanceReport`."""
    daily_returns = portfolio.daily_returns
    report = PerformanceReport(
        total_trades=len(portfolio.trades),
        profitable_trades=count_profitable_trades(portfolio.trades),
        starting_capital=portfolio.starting_capital,
        final_capital=portfolio.current_capital,
    )
    metric_calculations = {
        "average_return": lambda: average_return(daily_returns),
        "adjusted_return": lambda: adjusted_return(daily_returns, risk_free_rate),
        "volatility": lambda: return_volatility(daily_returns),
        "sharpe_ratio": lambda: sharpe_ratio(daily_returns, risk_free_rate),
        "maximum_drawdown": lambda: maximum_drawdown(
            daily_returns, portfolio.starting_capital
        ),
        "signal_accuracy": lambda: signal_accuracy(portfolio.trades),
        "period_analysis": lambda: analyze_periods(portfolio.return_contributions),
        "regression": lambda: regression_analysis(portfolio.aligned_returns()),
    }
    for metric_name, calculate in metric_calculations.items():
        try:
            setattr(report, metric_name, calculate())
        except UndefinedMetricError as undefined_error:
            LOGGER.info("%s is undefined: %s", metric_name, undefined_error)
            report.undefined_metrics[metric_name] = str(undefined_error)
    return report


def _format_percentage(value: Decimal | None) -> str:
    if value is None:
        return "undefined"
    return f"{value * 100}%"


def format_performance_report(report: PerformanceReport) -> str:
    """Render ``report`` as plain text."""
    lines = [
        "Portfolio Performance:",
        f"Starting Capital: {report.starting_capital}",
        f"Final Capital: {report.final_capital}",
        f"Average Return: {_format_percentage(report.average_return)}",
        f"Adjusted Return: {_format_percentage(report.adjusted_return)}",
        f"Volatility: {_format_percentage(report.volatility)}",
        "Sharpe Ratio: "
        + ("undefined" if report.sharpe_ratio is None else str(report.sharpe_ratio)),
        f"Maximum Drawdown: {_format_percentage(report.maximum_drawdown)}",
        "",
        "Trading Signal Accuracy:",
        f"Total Trades: {report.total_trades}",
        f"Profitable Trades: {report.profitable_trades}",
        f"Loss-Making Trades: {report.loss_making_trades}",
        "Signal Accuracy: "
        + (
            "undefined"
            if report.signal_accuracy is None
            else f"{report.signal_accuracy}%"
        ),
        "",
        "Regression Analysis:",
    ]
    if report.regression is None:
        lines.append("Alpha/Beta/R-Squared: undefined")
    else:
        lines.extend(
            [
                f"Alpha: {report.regression.alpha:.6f}",
                f"Beta: {report.regression.beta:.6f}",
                f"R-Squared: {report.regression.r_squared:.6f}",
                f"Samples: {report.regression.sample_count}",
            ]
        )
    lines.extend(["", "Period Analysis:"])
    if report.period_analysis is None:
        lines.append("Cumulative Return Extremes: undefined")
    else:
        lines.extend(
            [
                f"Highest Cumulative Return: {report.period_analysis.peak_return}"
                f" (on {report.period_analysis.peak_date})",
                f"Lowest Cumulative Return: {report.period_analysis.trough_return}"
                f" (on {report.period_analysis.trough_date})",
            ]
        )
    if report.undefined_metrics:
        lines.extend(["", "Undefined Metrics:"])
        lines.extend(
            f"{metric_name}: {reason}"
            for metric_name, reason in report.undefined_metrics.items()
        )
    return "\n".join(lines)
