"""
Pair Reversion Engine - Diagnostic Notes

Builds the structured notes attached to a PairAnalysisResult. Each note is a
(kind, params) pair; rendering to text lives in Note.message.
"""

import math
from typing import List

from .models import (
    CorrelationRegime,
    CorrelationVelocityResult,
    Note,
    NoteKind,
    SignalQuality,
    StationarityAnalysis,
    VolatilityAdjustedSpreadResult,
    VolatilityConfig,
)

VOLATILITY_IMBALANCE_RATIO = 1.5
ACCELERATION_NOTE_MIN = 0.005


def _correlation_strength(correlation: float) -> str:
    value = abs(correlation)
    if value >= 0.8:
        return "Very strong"
    if value >= 0.6:
        return "Strong"
    if value >= 0.4:
        return "Moderate"
    return "Weak"


def _format_half_life(half_life: float) -> str:
    if not math.isfinite(half_life):
        return "n/a"
    return f"{half_life:.1f} bars"


def build_notes(
    z_score: float,
    correlation: float,
    volatility: VolatilityAdjustedSpreadResult,
    velocity: CorrelationVelocityResult,
    stationarity: StationarityAnalysis,
    config: VolatilityConfig = VolatilityConfig(),
) -> List[Note]:
    notes = []

    if abs(z_score) > config.high_z:
        direction = "above mean" if z_score > 0 else "below mean"
        notes.append(Note(NoteKind.SPREAD_DIVERGENCE, {"direction": direction, "z_score": abs(z_score)}))
    if abs(z_score) > config.extreme_z:
        notes.append(Note(NoteKind.EXTREME_SPREAD, {"z_score": z_score}))

    notes.append(Note(NoteKind.CORRELATION_LEVEL, {
        "strength": _correlation_strength(correlation),
        "correlation": correlation,
    }))

    if velocity.regime != CorrelationRegime.STABLE or velocity.velocity != 0.0:
        notes.append(Note(NoteKind.CORRELATION_REGIME, {
            "regime": velocity.regime.value,
            "velocity": velocity.velocity,
        }))
    if abs(velocity.acceleration) >= ACCELERATION_NOTE_MIN:
        trend = "accelerating" if velocity.acceleration > 0 else "decelerating"
        notes.append(Note(NoteKind.CORRELATION_ACCELERATION, {
            "trend": trend,
            "acceleration": velocity.acceleration,
        }))

    if volatility.quality != SignalQuality.INSUFFICIENT_DATA:
        notes.append(Note(NoteKind.SIGNAL_QUALITY, {
            "quality": volatility.quality.value,
            "strength": volatility.signal_strength,
        }))

    low = min(volatility.primary_volatility, volatility.secondary_volatility)
    high = max(volatility.primary_volatility, volatility.secondary_volatility)
    if low > 0 and high / low >= VOLATILITY_IMBALANCE_RATIO:
        leg = "primary" if volatility.primary_volatility > volatility.secondary_volatility else "secondary"
        notes.append(Note(NoteKind.VOLATILITY_IMBALANCE, {"leg": leg, "ratio": high / low}))

    notes.append(Note(NoteKind.STATIONARITY, {
        "verdict": "passed" if stationarity.is_tradable else "failed",
        "adf_t_stat": stationarity.adf_t_stat if math.isfinite(stationarity.adf_t_stat) else 0.0,
        "half_life": _format_half_life(stationarity.half_life_bars),
        "checks_passed": stationarity.checks_passed,
    }))

    return notes
