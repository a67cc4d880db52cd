"""
Pair Reversion Engine - Multi-Timeframe Confluence

Runs the single-pair analysis on several intervals of the same pair and
scores how well the timeframes agree.

Score = weighted average opportunity x (0.5 + 0.75 x mean agreement), where
agreement averages the z-score sign, correlation-strength and quality
agreement ratios. A 20 point penalty applies when every timeframe reports the
same (high) score, which usually means the intervals were fed identical data.
"""

import logging
import math
from collections import Counter
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from .constants import (
    DEFAULT_INTERVALS,
    IDENTICAL_SCORE_MIN_AVERAGE,
    IDENTICAL_SCORE_PENALTY,
    TIMEFRAME_WEIGHTS,
)
from .models import (
    ConfidenceLevel,
    ConfluenceConfig,
    ConfluenceResult,
    Note,
    NoteKind,
    PairAnalysisResult,
    SignalQuality,
    SpreadDirection,
)
from .pair_analyzer import QUALITY_SCORES, analyze_pair
from .statistics import clamp

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE_ALIGNMENT = 0.8
MEDIUM_CONFIDENCE_ALIGNMENT = 0.5
HIGH_CONFIDENCE_QUALITY = QUALITY_SCORES[SignalQuality.STRONG]
MIXED_SPLIT_RATIO = 0.5
BEST_TIMEFRAME_NOTE_MIN = 60

SUGGESTED_TIMEFRAMES = {
    "ultra-scalp": ("1m", "2m", "3m", "4m", "5m"),
    "scalping": ("1m", "3m", "5m", "7m", "10m", "15m"),
    "intraday": ("5m", "15m", "1h"),
    "swing": ("1h", "4h", "1d"),
}

_MINUTES_PER_UNIT = {"m": 1, "h": 60, "d": 1440, "w": 10080}


class TimeframeSeries(NamedTuple):
    primary: Sequence[float]
    secondary: Sequence[float]


# ═══════════════════════════════════════════════════════════════════════════
# WEIGHTS
# ═══════════════════════════════════════════════════════════════════════════

def interval_weight(interval: str) -> float:
    """
    Reliability weight of a chart interval (0.5-1.0).

    Known intervals come from TIMEFRAME_WEIGHTS; others are interpolated on a
    log scale between 1 minute (0.5) and 1 hour (1.0).
    """
    if interval in TIMEFRAME_WEIGHTS:
        return TIMEFRAME_WEIGHTS[interval]

    unit = interval[-1:].lower()
    try:
        value = int(interval[:-1])
    except ValueError:
        value = 1
    minutes = max(value, 1) * _MINUTES_PER_UNIT.get(unit, 1)
    current = math.log(max(1, min(minutes, 60)))
    weight = 0.5 + 0.5 * current / math.log(60)
    return clamp(weight, 0.5, 1.0)


def resolve_weights(intervals: Sequence[str], config: ConfluenceConfig) -> Dict[str, float]:
    if config.weights:
        return {i: float(config.weights.get(i, 1.0)) for i in intervals}
    if config.weighting == "interval":
        return {i: interval_weight(i) for i in intervals}
    return {i: 1.0 for i in intervals}


def suggested_timeframes(style: str) -> Tuple[str, ...]:
    return SUGGESTED_TIMEFRAMES.get(style, DEFAULT_INTERVALS)


# ═══════════════════════════════════════════════════════════════════════════
# AGREEMENT
# ═══════════════════════════════════════════════════════════════════════════

def _modal_share(values: Sequence) -> float:
    """Fraction of values equal to the most common value (1.0 for a single value)."""
    if not values:
        return 0.0
    return Counter(values).most_common(1)[0][1] / len(values)


def _z_bucket(z_score: float) -> int:
    if z_score > 0:
        return 1
    if z_score < 0:
        return -1
    return 0


def _correlation_bucket(correlation: float, strong: float, moderate: float) -> str:
    value = abs(correlation)
    if value >= strong:
        return "strong"
    if value >= moderate:
        return "moderate"
    return "weak"


def majority_direction(directions: Sequence[SpreadDirection]) -> SpreadDirection:
    """Most common direction; NEUTRAL when the top two are tied."""
    if not directions:
        return SpreadDirection.NEUTRAL
    ranked = Counter(directions).most_common()
    if len(ranked) > 1 and ranked[0][1] == ranked[1][1]:
        return SpreadDirection.NEUTRAL
    return ranked[0][0]


def determine_confidence(
    directions: Sequence[SpreadDirection],
    aligned: int,
    average_quality: float,
) -> ConfidenceLevel:
    votes = Counter(directions)
    longs = votes[SpreadDirection.LONG_SPREAD]
    shorts = votes[SpreadDirection.SHORT_SPREAD]
    if longs and shorts and min(longs, shorts) / max(longs, shorts) > MIXED_SPLIT_RATIO:
        return ConfidenceLevel.MIXED

    ratio = aligned / len(directions) if directions else 0.0
    if ratio >= HIGH_CONFIDENCE_ALIGNMENT and average_quality >= HIGH_CONFIDENCE_QUALITY:
        return ConfidenceLevel.HIGH
    if ratio >= MEDIUM_CONFIDENCE_ALIGNMENT:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


# ═══════════════════════════════════════════════════════════════════════════
# ANALYSIS
# ═══════════════════════════════════════════════════════════════════════════

def _unpack(series) -> Tuple[Sequence[float], Sequence[float]]:
    if isinstance(series, Mapping):
        primary = series.get("primary")
        secondary = series.get("secondary")
        return ([] if primary is None else primary), ([] if secondary is None else secondary)
    primary, secondary = series
    return primary, secondary


def create_empty_confluence_result(symbol: str, primary_symbol: str, total: int,
                                   notes: Sequence[Note] = ()) -> ConfluenceResult:
    return ConfluenceResult(
        symbol=symbol,
        primary_symbol=primary_symbol,
        total_timeframes=total,
        notes=tuple(notes) + (Note(NoteKind.INSUFFICIENT_DATA, {"bars": 0, "required": 1}),),
    )


def _build_notes(
    analyses: Dict[str, PairAnalysisResult],
    confidence: ConfidenceLevel,
    aligned: int,
    direction: SpreadDirection,
    z_agreement: float,
    identical: bool,
    symbol: str,
    primary_symbol: str,
) -> List[Note]:
    notes = []
    if identical:
        shared = next(iter(analyses.values())).opportunity_score
        notes.append(Note(NoteKind.IDENTICAL_SCORES, {
            "count": len(analyses),
            "score": shared,
            "detail": "no timeframe is tradable" if shared == 0 else "check data quality",
        }))

    notes.append(Note(NoteKind.CONFIDENCE_SUMMARY, {
        "confidence": confidence.value.upper(),
        "aligned": aligned,
        "total": len(analyses),
    }))

    if direction != SpreadDirection.NEUTRAL:
        is_long = direction == SpreadDirection.LONG_SPREAD
        notes.append(Note(NoteKind.SUGGESTED_ACTION, {
            "action": "LONG" if is_long else "SHORT",
            "primary_side": "LONG" if is_long else "SHORT",
            "primary": primary_symbol,
            "secondary_side": "SHORT" if is_long else "LONG",
            "secondary": symbol,
        }))

    if z_agreement > 0.8:
        notes.append(Note(NoteKind.Z_SCORE_AGREEMENT, {"agreement": "agree", "ratio": z_agreement}))
    elif z_agreement < 0.4:
        notes.append(Note(NoteKind.Z_SCORE_AGREEMENT, {"agreement": "diverge", "ratio": z_agreement}))

    best = max(analyses, key=lambda i: analyses[i].opportunity_score)
    if analyses[best].opportunity_score > BEST_TIMEFRAME_NOTE_MIN:
        notes.append(Note(NoteKind.BEST_TIMEFRAME, {
            "interval": best,
            "score": analyses[best].opportunity_score,
        }))
    return notes


def analyze_multi_timeframe(
    timeframe_data: Mapping[str, object],
    symbol: str,
    primary_symbol: str,
    config: Optional[ConfluenceConfig] = None,
) -> ConfluenceResult:
    """
    Aggregate per-timeframe pair analyses into one confluence verdict.

    Args:
        timeframe_data: {interval: {"primary": closes, "secondary": closes}}
            (a TimeframeSeries or (primary, secondary) tuple also works)
        symbol: Candidate symbol
        primary_symbol: Reference symbol
        config: Weighting and analysis settings

    Returns:
        ConfluenceResult; empty or misaligned timeframes are skipped and an
        all-skipped input gives a zero-score LOW confidence result
    """
    config = config or ConfluenceConfig()
    analyses: Dict[str, PairAnalysisResult] = {}
    skipped: List[Note] = []

    for interval, series in timeframe_data.items():
        primary, secondary = _unpack(series)
        if len(primary) == 0 or len(secondary) == 0:
            reason = "no data"
        elif len(primary) != len(secondary):
            reason = f"misaligned ({len(primary)} vs {len(secondary)} bars)"
        else:
            analyses[interval] = analyze_pair(primary, secondary, symbol, primary_symbol, config.analysis)
            continue
        logger.warning("%s/%s %s skipped: %s", primary_symbol, symbol, interval, reason)
        skipped.append(Note(NoteKind.TIMEFRAME_SKIPPED, {"interval": interval, "reason": reason}))

    if not analyses:
        return create_empty_confluence_result(symbol, primary_symbol, len(timeframe_data), skipped)

    intervals = tuple(analyses)
    results = [analyses[i] for i in intervals]
    weights = resolve_weights(intervals, config)

    total_weight = sum(weights.values())
    if total_weight > 0:
        weighted = sum(weights[i] * analyses[i].opportunity_score for i in intervals) / total_weight
    else:
        weighted = sum(r.opportunity_score for r in results) / len(results)

    directions = [r.confluence.direction for r in results]
    direction = majority_direction(directions)
    aligned = sum(1 for d in directions if d == direction)

    correlation_cfg = config.analysis.correlation
    z_agreement = _modal_share([_z_bucket(r.spread_z_score) for r in results])
    correlation_agreement = _modal_share([
        _correlation_bucket(r.correlation, correlation_cfg.strong_correlation,
                            correlation_cfg.moderate_correlation)
        for r in results
    ])
    quality_agreement = _modal_share([r.volatility_adjusted_spread.quality for r in results])
    mean_agreement = (z_agreement + correlation_agreement + quality_agreement) / 3.0

    scores = [r.opportunity_score for r in results]
    identical = len(results) > 2 and len(set(scores)) == 1
    penalty = IDENTICAL_SCORE_PENALTY if identical and weighted > IDENTICAL_SCORE_MIN_AVERAGE else 0
    score = int(clamp(round(weighted * (0.5 + 0.75 * mean_agreement) - penalty), 0, 100))

    average_quality = sum(QUALITY_SCORES[r.volatility_adjusted_spread.quality] for r in results) / len(results)
    confidence = determine_confidence(directions, aligned, average_quality)
    if identical and confidence == ConfidenceLevel.HIGH:
        confidence = ConfidenceLevel.MEDIUM

    best = max(intervals, key=lambda i: analyses[i].opportunity_score)
    worst = min(intervals, key=lambda i: analyses[i].opportunity_score)

    notes = skipped + _build_notes(analyses, confidence, aligned, direction, z_agreement,
                                   identical, symbol, primary_symbol)

    return ConfluenceResult(
        symbol=symbol,
        primary_symbol=primary_symbol,
        timeframes=intervals,
        analyses=analyses,
        weights=weights,
        confluence_score=score,
        confidence=confidence,
        signal_direction=direction,
        aligned_timeframes=aligned,
        total_timeframes=len(timeframe_data),
        z_score_agreement=z_agreement,
        correlation_agreement=correlation_agreement,
        quality_agreement=quality_agreement,
        weighted_opportunity=round(weighted, 2),
        best_timeframe=best,
        worst_timeframe=worst,
        notes=tuple(notes),
    )


def analyze_confluence_for_pairs(
    symbol_interval_data: Mapping[str, Mapping[str, Sequence[float]]],
    primary_symbol: str,
    intervals: Optional[Sequence[str]] = None,
    config: Optional[ConfluenceConfig] = None,
) -> List[ConfluenceResult]:
    """
    Multi-timeframe confluence for every symbol against the primary.

    Args:
        symbol_interval_data: {symbol: {interval: closes}}, including the primary
        primary_symbol: Reference symbol (must be present)
        intervals: Intervals to use (config.intervals when None)

    Returns:
        Results sorted by confluence score, best first
    """
    config = config or ConfluenceConfig()
    intervals = tuple(intervals or config.intervals)
    if primary_symbol not in symbol_interval_data:
        raise ValueError(f"Primary pair data not found: {primary_symbol}")

    primary_data = symbol_interval_data[primary_symbol]
    results = []
    for symbol, pair_data in symbol_interval_data.items():
        if symbol == primary_symbol:
            continue
        timeframe_data = {}
        for interval in intervals:
            primary = primary_data.get(interval)
            secondary = pair_data.get(interval)
            if primary is not None and secondary is not None and len(primary) and len(secondary):
                n = min(len(primary), len(secondary))
                timeframe_data[interval] = TimeframeSeries(primary[len(primary) - n:],
                                                           secondary[len(secondary) - n:])
        if timeframe_data:
            results.append(analyze_multi_timeframe(timeframe_data, symbol, primary_symbol, config))

    return sorted(results, key=lambda r: r.confluence_score, reverse=True)
