"""
Pair Reversion Engine - Pair Analysis Orchestrator

Runs the full single-timeframe pipeline for one (primary, secondary) pair:

1. Align and clean both close series
2. Return correlation
3. Stationarity verdict (rolling beta, ADF, cointegration, half-life)
4. Hedge-ratio spread and its trailing z-score
5. Volatility-adjusted signal grade
6. Correlation velocity / regime
7. Confluence rating
8. Opportunity score (0 unless the pair is tradable)
9. Fallback reversion probability and diagnostic notes

Never raises for short or malformed price data; those pairs come back as a
neutral result with an insufficient-data note.
"""

import logging
import math
from typing import Dict, List, NamedTuple, Optional, Sequence

from .confluence import calculate_confluence
from .constants import MIN_ANALYSIS_BARS
from .correlation_velocity import calculate_correlation_velocity
from .models import (
    AnalysisConfig,
    Note,
    NoteKind,
    PairAnalysisResult,
    ProbabilityMethod,
    ReversionProbability,
    SignalQuality,
    StationarityAnalysis,
)
from .notes import build_notes
from .stationarity import analyze_stationarity, build_spread
from .statistics import (
    ArrayLike,
    align_series,
    calculate_returns,
    calculate_zscore,
    clamp,
    is_finite,
    pearson_correlation,
)
from .volatility import calculate_volatility_adjusted_spread

logger = logging.getLogger(__name__)

QUALITY_SCORES = {
    SignalQuality.PREMIUM: 100.0,
    SignalQuality.STRONG: 80.0,
    SignalQuality.MODERATE: 60.0,
    SignalQuality.WEAK: 30.0,
    SignalQuality.NOISY: 15.0,
    SignalQuality.INSUFFICIENT_DATA: 0.0,
}

ALL_VS_ALL_MIN_CORRELATION = 0.35
ALL_VS_ALL_MAX_CANDIDATES = 2500


def spread_opportunity(z_score: float, extreme_z: float) -> float:
    """0-100, linear in |z|, saturating at twice the extreme threshold."""
    if not is_finite(z_score) or extreme_z <= 0:
        return 0.0
    return clamp(abs(z_score) / (2.0 * extreme_z), 0.0, 1.0) * 100.0


def method_average(quality: SignalQuality, stationarity: StationarityAnalysis) -> float:
    """Blend of signal-quality tier and share of stationarity checks passed."""
    quality_score = QUALITY_SCORES.get(quality, 0.0)
    stationarity_score = stationarity.checks_passed / 3.0 * 100.0
    return 0.5 * quality_score + 0.5 * stationarity_score


def calculate_opportunity_score(spread_score: float, method_score: float, tradable: bool) -> int:
    if not tradable:
        return 0
    raw = 0.6 * spread_score + 0.4 * method_score
    if not is_finite(raw):
        return 0
    return int(clamp(round(raw), 0, 100))


def fallback_reversion_probability(
    z_score: float,
    tradable: bool,
    lookahead_bars: int,
) -> ReversionProbability:
    """Heuristic probability used until history is available for the pair."""
    base = clamp(0.5 + 0.1 * (abs(z_score) - 1.0), 0.05, 0.95) if is_finite(z_score) else 0.5
    if not tradable:
        base *= 0.5
    return ReversionProbability(
        probability=round(base, 4),
        lookahead_bars=lookahead_bars,
        sample_size=0,
        wins=0,
        method=ProbabilityMethod.FALLBACK,
    )


def create_empty_result(symbol: str, primary_symbol: str, bars: int = 0,
                        required: int = MIN_ANALYSIS_BARS,
                        config: AnalysisConfig = AnalysisConfig()) -> PairAnalysisResult:
    return PairAnalysisResult(
        symbol=symbol,
        primary_symbol=primary_symbol,
        aligned_bars=bars,
        stationarity=StationarityAnalysis(sample_size=bars),
        reversion_probability=fallback_reversion_probability(0.0, False, config.fallback_lookahead_bars),
        notes=(Note(NoteKind.INSUFFICIENT_DATA, {"bars": bars, "required": required}),),
    )


def analyze_pair(
    primary_closes: ArrayLike,
    secondary_closes: ArrayLike,
    symbol: str,
    primary_symbol: str = "primary",
    config: Optional[AnalysisConfig] = None,
) -> PairAnalysisResult:
    """
    Analyze one pair on one timeframe.

    Args:
        primary_closes: Close prices of the primary (reference) leg
        secondary_closes: Close prices of the candidate leg
        symbol: Candidate symbol
        primary_symbol: Reference symbol
        config: Analysis settings (defaults when None)

    Returns:
        PairAnalysisResult
    """
    config = config or AnalysisConfig()
    primary, secondary, dropped = align_series(primary_closes, secondary_closes)
    bars = int(primary.size)
    if dropped:
        logger.debug("%s/%s: dropped %d invalid bars", primary_symbol, symbol, dropped)

    if bars < config.min_bars:
        logger.debug("%s/%s: %d bars < %d, neutral result", primary_symbol, symbol, bars, config.min_bars)
        return create_empty_result(symbol, primary_symbol, bars, config.min_bars, config)

    returns_primary = calculate_returns(primary)
    returns_secondary = calculate_returns(secondary)
    correlation = pearson_correlation(returns_primary, returns_secondary)

    stationarity = analyze_stationarity(primary, secondary, config.stationarity)
    spread = build_spread(primary, secondary, stationarity.current_beta)
    z = calculate_zscore(spread, config.zscore_window)

    volatility = calculate_volatility_adjusted_spread(primary, secondary, z.zscore, config.volatility)
    velocity = calculate_correlation_velocity(returns_primary, returns_secondary, config.correlation)
    confluence = calculate_confluence(
        z.zscore,
        velocity.regime,
        volatility.quality,
        config.volatility.extreme_z,
        config.confluence_min_rating,
    )

    spread_score = spread_opportunity(z.zscore, config.volatility.extreme_z)
    method_score = method_average(volatility.quality, stationarity)
    score = calculate_opportunity_score(spread_score, method_score, stationarity.is_tradable)

    notes = build_notes(z.zscore, correlation, volatility, velocity, stationarity, config.volatility)

    return PairAnalysisResult(
        symbol=symbol,
        primary_symbol=primary_symbol,
        correlation=correlation,
        spread=z.current,
        spread_mean=z.mean,
        spread_std=z.std,
        spread_z_score=z.zscore,
        ratio=float(primary[-1] / secondary[-1]),
        aligned_bars=bars,
        spread_opportunity=round(spread_score, 2),
        method_average=round(method_score, 2),
        volatility_adjusted_spread=volatility,
        correlation_velocity=velocity,
        stationarity=stationarity,
        confluence=confluence,
        reversion_probability=fallback_reversion_probability(
            z.zscore, stationarity.is_tradable, config.fallback_lookahead_bars),
        opportunity_score=score,
        notes=tuple(notes),
    )


def analyze_all_pairs(
    primary_closes: ArrayLike,
    pairs_data: Dict[str, ArrayLike],
    primary_symbol: str = "primary",
    config: Optional[AnalysisConfig] = None,
) -> List[PairAnalysisResult]:
    """Analyze every candidate against one primary, best opportunity first."""
    results = [
        analyze_pair(primary_closes, closes, symbol, primary_symbol, config)
        for symbol, closes in pairs_data.items()
        if symbol != primary_symbol
    ]
    return sorted(results, key=lambda r: r.opportunity_score, reverse=True)


class PairCandidate(NamedTuple):
    first: str
    second: str
    abs_correlation: float


def build_all_vs_all_candidates(
    series: Dict[str, Sequence[float]],
    min_correlation: float = ALL_VS_ALL_MIN_CORRELATION,
    max_candidates: int = ALL_VS_ALL_MAX_CANDIDATES,
) -> List[PairCandidate]:
    """
    Pre-filter every unordered symbol pair by |return correlation|.

    Returns candidates above `min_correlation`, strongest first, capped at
    `max_candidates`.
    """
    symbols = list(series)
    returns = {symbol: calculate_returns(series[symbol]) for symbol in symbols}
    candidates = []
    for i, first in enumerate(symbols):
        for second in symbols[i + 1:]:
            value = abs(pearson_correlation(returns[first], returns[second]))
            if math.isfinite(value) and value >= min_correlation:
                candidates.append(PairCandidate(first, second, value))
    candidates.sort(key=lambda c: c.abs_correlation, reverse=True)
    return candidates[:max_candidates]
