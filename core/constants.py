"""
Pair Reversion Engine - Configuration Constants

Default thresholds and parameters for the analysis, classification and
simulation pipeline. Config dataclasses in core.models read their defaults
from here.
"""

# ═══════════════════════════════════════════════════════════════════════════
# NUMERICS
# ═══════════════════════════════════════════════════════════════════════════

EPSILON = 1e-12                 # Variance / denominator floor
MIN_ANALYSIS_BARS = 30          # Below this a pair is reported as neutral
ZSCORE_WINDOW = 100             # Trailing bars used for the spread z-score

# ═══════════════════════════════════════════════════════════════════════════
# STATIONARITY
# ═══════════════════════════════════════════════════════════════════════════

ROLLING_BETA_WINDOW = 120       # Trailing bars for the hedge ratio regression
ROLLING_BETA_MIN_WINDOW = 40    # Fallback window when history is short
BETA_CLAMP = 5.0                # |beta| is capped here
BETA_MIN_MAGNITUDE = 0.05       # ...and kept at least this far from zero
ADF_CRITICAL_VALUE = -2.86      # ~5% level, constant + no trend
ADF_MIN_OBSERVATIONS = 20
MIN_HALF_LIFE_BARS = 2.0
MAX_HALF_LIFE_BARS = 120.0

# ═══════════════════════════════════════════════════════════════════════════
# VOLATILITY / SIGNAL QUALITY
# ═══════════════════════════════════════════════════════════════════════════

VOLATILITY_LOOKBACK = 20        # Returns used per leg
VOLATILITY_SCALE = 10.0         # Adjustment factor = 1 / (1 + vol * scale)
MIN_VOLATILITY_PRICES = 3

EXTREME_Z_THRESHOLD = 2.0
STRONG_Z_THRESHOLD = 1.5
HIGH_Z_THRESHOLD = 1.0

PREMIUM_MAX_VOLATILITY = 0.02
STRONG_MAX_VOLATILITY = 0.04
NOISY_MIN_VOLATILITY = 0.05

# ═══════════════════════════════════════════════════════════════════════════
# CORRELATION
# ═══════════════════════════════════════════════════════════════════════════

CORRELATION_WINDOW = 50
CORRELATION_VELOCITY_LOOKBACK = 10
CORRELATION_VELOCITY_THRESHOLD = 0.01   # |delta corr| per bar
STRONG_CORRELATION = 0.7
MODERATE_CORRELATION = 0.4

# ═══════════════════════════════════════════════════════════════════════════
# CONFLUENCE
# ═══════════════════════════════════════════════════════════════════════════

CONFLUENCE_MIN_RATING = 2
DEFAULT_INTERVALS = ("5m", "15m", "1h")
IDENTICAL_SCORE_PENALTY = 20
IDENTICAL_SCORE_MIN_AVERAGE = 80

# Relative reliability of each chart interval when weighting by interval.
TIMEFRAME_WEIGHTS = {
    "1m": 0.50, "2m": 0.52, "3m": 0.60, "4m": 0.63, "5m": 0.70,
    "6m": 0.72, "7m": 0.73, "8m": 0.74, "9m": 0.75, "10m": 0.76,
    "12m": 0.78, "15m": 0.85, "20m": 0.87, "30m": 0.90,
    "1h": 1.00, "2h": 0.95, "4h": 0.92, "1d": 0.85,
}

# ═══════════════════════════════════════════════════════════════════════════
# REVERSION PROBABILITY
# ═══════════════════════════════════════════════════════════════════════════

REVERSION_LOOKAHEAD_BARS = 12
REVERSION_ENTRY_Z = 1.5
REVERSION_EXIT_Z = 0.6
REVERSION_MIN_SAMPLE = 8
REVERSION_HALF_ENTRY_RATIO = 0.5    # |z| at or below half the entry counts as reverted

# ═══════════════════════════════════════════════════════════════════════════
# BACKTEST
# ═══════════════════════════════════════════════════════════════════════════

ROLLING_WINDOW = 100            # NO LOOK-AHEAD: z at bar i uses bars i-99..i
MIN_BACKTEST_BARS = 110
ENTRY_SPREAD_THRESHOLD = 3.0
MIN_CORRELATION = 0.7
TAKE_PROFIT_PERCENT = 0.5
STOP_LOSS_PERCENT = 0.5

# ═══════════════════════════════════════════════════════════════════════════
# WALK-FORWARD
# ═══════════════════════════════════════════════════════════════════════════

MIN_WINDOW_BARS = 120
TRAIN_WINDOW = 500
TEST_WINDOW = 100
FALLBACK_TRAIN_WINDOW = 500
FALLBACK_TEST_WINDOW = 120
NO_TRADE_SCORE = -300.0
RECENCY_WEIGHT_STEP = 0.1

ENTRY_GRID = (1.5, 2.0, 2.5, 3.0, 3.5)
CORRELATION_GRID = (0.55, 0.65, 0.75, 0.85)
TAKE_PROFIT_GRID = (0.3, 0.5, 0.8, 1.2)
STOP_LOSS_GRID = (0.3, 0.5, 0.8, 1.2)

# ═══════════════════════════════════════════════════════════════════════════
# EXIT REASONS / DIRECTIONS
# ═══════════════════════════════════════════════════════════════════════════

EXIT_TAKE_PROFIT = "take_profit"
EXIT_STOP_LOSS = "stop_loss"
EXIT_END_OF_DATA = "end_of_data"

DIRECTION_LONG_PRIMARY = "long_primary"
DIRECTION_SHORT_PRIMARY = "short_primary"
