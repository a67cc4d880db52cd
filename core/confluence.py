"""
Pair Reversion Engine - Confluence Filter

Counts how many independent indicators agree on a signal (0-3):
1. |z| beyond the extreme threshold
2. correlation regime strengthening or stable_strong
3. signal quality premium or strong
"""

from .constants import CONFLUENCE_MIN_RATING, EXTREME_Z_THRESHOLD
from .models import (
    ConfluenceAnalysis,
    CorrelationRegime,
    SignalQuality,
    SpreadDirection,
)

FAVORABLE_REGIMES = frozenset({CorrelationRegime.STRENGTHENING, CorrelationRegime.STABLE_STRONG})
HIGH_QUALITY = frozenset({SignalQuality.PREMIUM, SignalQuality.STRONG})

RATING_LABELS = {
    0: "No Confluence",
    1: "Weak Confluence",
    2: "Moderate Confluence",
    3: "Strong Confluence",
}


def spread_direction(z_score: float) -> SpreadDirection:
    """Negative z: spread is cheap, buy it. Positive z: sell it."""
    if z_score < 0:
        return SpreadDirection.LONG_SPREAD
    if z_score > 0:
        return SpreadDirection.SHORT_SPREAD
    return SpreadDirection.NEUTRAL


def calculate_confluence(
    z_score: float,
    regime: CorrelationRegime,
    quality: SignalQuality,
    extreme_z: float = EXTREME_Z_THRESHOLD,
    min_rating: int = CONFLUENCE_MIN_RATING,
) -> ConfluenceAnalysis:
    z_extreme = abs(z_score) > extreme_z
    correlation_ok = regime in FAVORABLE_REGIMES
    quality_ok = quality in HIGH_QUALITY
    rating = int(z_extreme) + int(correlation_ok) + int(quality_ok)

    return ConfluenceAnalysis(
        z_score_extreme=z_extreme,
        correlation_favorable=correlation_ok,
        quality_high=quality_ok,
        rating=rating,
        rating_label=RATING_LABELS[rating],
        meets_threshold=rating >= min_rating,
        direction=spread_direction(z_score),
    )
