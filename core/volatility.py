"""
Pair Reversion Engine - Volatility-Adjusted Spread Classifier

Grades a spread signal by combining its z-score with the realized volatility
of both legs. Calm legs amplify the z-score, noisy legs suppress it.

Quality tiers (first match wins, on |raw z|):
- premium:  |z| > 2.0 and combined vol < 0.02
- strong:   |z| > 1.5 and combined vol < 0.04
- moderate: |z| > 1.0
- noisy:    combined vol > 0.05
- weak:     everything else
"""

import math

import numpy as np

from .constants import EPSILON, MIN_VOLATILITY_PRICES
from .models import SignalQuality, VolatilityAdjustedSpreadResult, VolatilityConfig
from .statistics import ArrayLike, calculate_returns, clamp, is_finite, standard_deviation


def calculate_leg_volatility(closes: ArrayLike, lookback: int) -> float:
    """Population std of the last `lookback` log returns."""
    returns = calculate_returns(closes)
    if returns.size == 0:
        return 0.0
    return standard_deviation(returns[-lookback:])


def classify_signal_quality(z_score: float, combined_volatility: float,
                            config: VolatilityConfig = VolatilityConfig()) -> SignalQuality:
    abs_z = abs(z_score)
    if abs_z > config.extreme_z and combined_volatility < config.premium_max_volatility:
        return SignalQuality.PREMIUM
    if abs_z > config.strong_z and combined_volatility < config.strong_max_volatility:
        return SignalQuality.STRONG
    if abs_z > config.high_z:
        return SignalQuality.MODERATE
    if combined_volatility > config.noisy_min_volatility:
        return SignalQuality.NOISY
    return SignalQuality.WEAK


def calculate_volatility_adjusted_spread(
    primary: ArrayLike,
    secondary: ArrayLike,
    z_score: float,
    config: VolatilityConfig = VolatilityConfig(),
) -> VolatilityAdjustedSpreadResult:
    """
    Volatility-adjust a raw spread z-score and grade the signal.

    Args:
        primary: Primary leg closes (aligned with secondary)
        secondary: Secondary leg closes
        z_score: Raw spread z-score
        config: Lookback and tier thresholds

    Returns:
        VolatilityAdjustedSpreadResult; INSUFFICIENT_DATA when either leg has
        fewer than 3 prices
    """
    raw_z = z_score if is_finite(z_score) else 0.0
    if min(len(primary), len(secondary)) < MIN_VOLATILITY_PRICES:
        return VolatilityAdjustedSpreadResult(raw_z_score=raw_z, adjusted_z_score=raw_z)

    primary_vol = calculate_leg_volatility(primary, config.lookback_period)
    secondary_vol = calculate_leg_volatility(secondary, config.lookback_period)
    combined = math.sqrt((primary_vol ** 2 + secondary_vol ** 2) / 2.0)
    if not is_finite(combined):
        combined = 0.0

    if combined > EPSILON:
        adjustment = 1.0 / (1.0 + combined * config.volatility_scale)
    else:
        adjustment = 1.0
    adjusted = raw_z * (1.0 + adjustment)

    strength = (1.0 - 1.0 / (1.0 + abs(adjusted) * 0.5)) * 100.0
    strength = clamp(strength if is_finite(strength) else 0.0, 0.0, 100.0)

    return VolatilityAdjustedSpreadResult(
        primary_volatility=primary_vol,
        secondary_volatility=secondary_vol,
        combined_volatility=combined,
        raw_z_score=raw_z,
        adjusted_z_score=adjusted,
        volatility_adjustment=adjustment,
        signal_strength=float(np.round(strength, 2)),
        quality=classify_signal_quality(raw_z, combined, config),
    )
