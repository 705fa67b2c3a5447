"""Configuration constants for the signal backtest.

Windows and thresholds control the EWA crossover and RSI filters used to
generate signals. Portfolio constants govern position sizing, stop-loss
handling and the starting capital of a run. Runtime overrides are passed
through :class:`signal_backtest.strategy.StrategySettings` or the command
line; these values are the defaults.

Ratios are expressed as fractions, so ``0.02`` denotes two percent.
"""

from decimal import Decimal

# Exponentially weighted average windows, in trading days.
SHORT_TERM_WINDOW = 12
LONG_TERM_WINDOW = 26

RSI_PERIOD = 14
RSI_OVERBOUGHT = Decimal("70")
RSI_OVERSOLD = Decimal("30")

# The crossover band is the base threshold scaled by recent volatility and
# clamped to [lower, upper].
BASE_SIGNAL_THRESHOLD = Decimal("0.05")
SIGNAL_THRESHOLD_LOWER_BOUND = Decimal("0.01")
SIGNAL_THRESHOLD_UPPER_BOUND = Decimal("0.05")
VOLATILITY_LOOKBACK = 20

# Average daily share volume a symbol must exceed to be simulated.
MINIMUM_AVERAGE_VOLUME = 100_000

STARTING_CAPITAL = Decimal("100000.00")
RISK_FREE_RATE = Decimal("0.02")
TRADING_DAYS_PER_YEAR = 252

VOLATILITY_ESTIMATE = Decimal("0.01")
MAXIMUM_VOLATILITY = Decimal("0.05")
MAXIMUM_POSITION_FRACTION = Decimal("0.10")
STOP_LOSS_THRESHOLD = Decimal("0.02")

RATIO_PRECISION = Decimal("0.0001")
CURRENCY_PRECISION = Decimal("0.01")
