"""
Pair Reversion Engine - Correlation Velocity Detector

Tracks how fast the rolling return correlation of a pair is changing and
classifies the trend into a regime. Regimes are judged on correlation
strength (|rho|) so strongly anti-correlated pairs behave like correlated ones.
"""

import logging

import numpy as np

from .models import CorrelationRegime, CorrelationVelocityConfig, CorrelationVelocityResult
from .statistics import ArrayLike, is_finite, pearson_correlation

logger = logging.getLogger(__name__)


def _window_correlation(a: np.ndarray, b: np.ndarray, end: int, window: int) -> float:
    start = max(0, end - window)
    return pearson_correlation(a[start:end], b[start:end])


def determine_correlation_regime(
    current: float,
    velocity: float,
    previous: float,
    config: CorrelationVelocityConfig = CorrelationVelocityConfig(),
) -> CorrelationRegime:
    """
    Classify the correlation trend.

    Rising strength beyond the velocity threshold: strengthening when already
    strong, else recovering. Falling strength: breaking_down below the
    moderate level, else weakening. Otherwise stable_strong / stable_weak /
    stable by level.
    """
    strength = abs(current)
    strength_change = strength - abs(previous)
    moving = abs(velocity) > config.velocity_threshold

    if moving and strength_change > 0:
        if strength >= config.strong_correlation:
            return CorrelationRegime.STRENGTHENING
        return CorrelationRegime.RECOVERING
    if moving and strength_change < 0:
        if strength < config.moderate_correlation:
            return CorrelationRegime.BREAKING_DOWN
        return CorrelationRegime.WEAKENING
    if strength >= config.strong_correlation:
        return CorrelationRegime.STABLE_STRONG
    if strength < config.moderate_correlation:
        return CorrelationRegime.STABLE_WEAK
    return CorrelationRegime.STABLE


def calculate_correlation_velocity(
    returns_primary: ArrayLike,
    returns_secondary: ArrayLike,
    config: CorrelationVelocityConfig = CorrelationVelocityConfig(),
) -> CorrelationVelocityResult:
    """
    Rolling-correlation velocity and acceleration.

    current:  correlation of the last `window_size` returns
    previous: the same window shifted back `velocity_lookback` bars
    velocity: (current - previous) / velocity_lookback, per bar
    acceleration: velocity minus the velocity one lookback earlier (0 when
        there is not enough history for it)

    With fewer than window_size + velocity_lookback returns, current and
    previous are the full-sample correlation and the regime is stable.
    """
    a = np.asarray(returns_primary, dtype=np.float64)
    b = np.asarray(returns_secondary, dtype=np.float64)
    n = min(a.size, b.size)
    a = a[:n]
    b = b[:n]
    window = max(2, config.window_size)
    lookback = max(1, config.velocity_lookback)

    if n < window + lookback:
        full = pearson_correlation(a, b)
        logger.debug("Correlation velocity: %d returns < %d, using full sample", n, window + lookback)
        return CorrelationVelocityResult(
            current_correlation=full,
            previous_correlation=full,
            velocity=0.0,
            acceleration=0.0,
            regime=CorrelationRegime.STABLE,
        )

    current = _window_correlation(a, b, n, window)
    previous = _window_correlation(a, b, n - lookback, window)
    velocity = (current - previous) / lookback

    acceleration = 0.0
    if n >= window + 2 * lookback:
        earlier = _window_correlation(a, b, n - 2 * lookback, window)
        acceleration = velocity - (previous - earlier) / lookback

    if not is_finite(velocity):
        velocity = 0.0
    if not is_finite(acceleration):
        acceleration = 0.0

    return CorrelationVelocityResult(
        current_correlation=current,
        previous_correlation=previous,
        velocity=velocity,
        acceleration=acceleration,
        regime=determine_correlation_regime(current, velocity, previous, config),
    )
