"""
Pair Reversion Engine - Data Models

Enums, immutable configuration objects and result records shared across the
analysis pipeline. Every record is a plain dataclass with a to_dict() suitable
for JSON serialization; analysis results can be rebuilt with from_dict().
"""

import math
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from . import constants as C


# ═══════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════

class SignalQuality(str, Enum):
    PREMIUM = "premium"
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"
    NOISY = "noisy"
    INSUFFICIENT_DATA = "insufficient_data"


class CorrelationRegime(str, Enum):
    STRENGTHENING = "strengthening"
    WEAKENING = "weakening"
    BREAKING_DOWN = "breaking_down"
    RECOVERING = "recovering"
    STABLE_STRONG = "stable_strong"
    STABLE_WEAK = "stable_weak"
    STABLE = "stable"


class SpreadDirection(str, Enum):
    LONG_SPREAD = "long_spread"
    SHORT_SPREAD = "short_spread"
    NEUTRAL = "neutral"


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    MIXED = "mixed"


class ProbabilityMethod(str, Enum):
    HISTORY = "history"
    FALLBACK = "fallback"


class NoteKind(str, Enum):
    INSUFFICIENT_DATA = "insufficient_data"
    SPREAD_DIVERGENCE = "spread_divergence"
    EXTREME_SPREAD = "extreme_spread"
    CORRELATION_LEVEL = "correlation_level"
    CORRELATION_REGIME = "correlation_regime"
    CORRELATION_ACCELERATION = "correlation_acceleration"
    SIGNAL_QUALITY = "signal_quality"
    VOLATILITY_IMBALANCE = "volatility_imbalance"
    STATIONARITY = "stationarity"
    REVERSION_EDGE = "reversion_edge"
    IDENTICAL_SCORES = "identical_scores"
    TIMEFRAME_SKIPPED = "timeframe_skipped"
    CONFIDENCE_SUMMARY = "confidence_summary"
    SUGGESTED_ACTION = "suggested_action"
    Z_SCORE_AGREEMENT = "z_score_agreement"
    BEST_TIMEFRAME = "best_timeframe"


# Message templates keyed by note kind; filled from Note.params.
NOTE_TEMPLATES = {
    NoteKind.INSUFFICIENT_DATA: "Insufficient data: {bars} aligned bars (need {required})",
    NoteKind.SPREAD_DIVERGENCE: "Spread {direction} by {z_score:.2f} sigma",
    NoteKind.EXTREME_SPREAD: "Extreme spread divergence ({z_score:.2f} sigma)",
    NoteKind.CORRELATION_LEVEL: "{strength} correlation ({correlation:.2f})",
    NoteKind.CORRELATION_REGIME: "Correlation regime: {regime} ({velocity:+.4f}/bar)",
    NoteKind.CORRELATION_ACCELERATION: "Correlation change is {trend} ({acceleration:+.4f})",
    NoteKind.SIGNAL_QUALITY: "Signal quality {quality} (strength {strength:.0f}/100)",
    NoteKind.VOLATILITY_IMBALANCE: "Volatility imbalance: {leg} leg {ratio:.1f}x more volatile",
    NoteKind.STATIONARITY: "Stationarity {verdict}: ADF t={adf_t_stat:.2f}, half-life {half_life}",
    NoteKind.REVERSION_EDGE: "Historical reversion {probability:.0%} over {sample_size} samples ({lookahead_bars} bars)",
    NoteKind.IDENTICAL_SCORES: "Identical opportunity scores ({score}) across {count} timeframes; {detail}",
    NoteKind.TIMEFRAME_SKIPPED: "Skipped {interval}: {reason}",
    NoteKind.CONFIDENCE_SUMMARY: "{confidence} confidence: {aligned}/{total} timeframes aligned",
    NoteKind.SUGGESTED_ACTION: "Suggested: {action} spread ({primary_side} {primary}, {secondary_side} {secondary})",
    NoteKind.Z_SCORE_AGREEMENT: "Z-scores {agreement} across timeframes ({ratio:.0%})",
    NoteKind.BEST_TIMEFRAME: "Strongest signal on {interval} ({score}/100)",
}


def _plain(value: Any) -> Any:
    """Convert dataclasses/enums/tuples into JSON-friendly structures."""
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {str(_plain(k)): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


class Serializable:
    def to_dict(self) -> Dict[str, Any]:
        return _plain(self)


def _float(data: Mapping, key: str, default: float = 0.0) -> float:
    value = data.get(key, default)
    if value is None:
        return default
    return float(value)


# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StationarityConfig(Serializable):
    rolling_beta_window: int = C.ROLLING_BETA_WINDOW
    rolling_beta_min_window: int = C.ROLLING_BETA_MIN_WINDOW
    adf_critical_value: float = C.ADF_CRITICAL_VALUE
    adf_lags: int = 0
    min_half_life_bars: float = C.MIN_HALF_LIFE_BARS
    max_half_life_bars: float = C.MAX_HALF_LIFE_BARS


@dataclass(frozen=True)
class VolatilityConfig(Serializable):
    lookback_period: int = C.VOLATILITY_LOOKBACK
    volatility_scale: float = C.VOLATILITY_SCALE
    extreme_z: float = C.EXTREME_Z_THRESHOLD
    strong_z: float = C.STRONG_Z_THRESHOLD
    high_z: float = C.HIGH_Z_THRESHOLD
    premium_max_volatility: float = C.PREMIUM_MAX_VOLATILITY
    strong_max_volatility: float = C.STRONG_MAX_VOLATILITY
    noisy_min_volatility: float = C.NOISY_MIN_VOLATILITY


@dataclass(frozen=True)
class CorrelationVelocityConfig(Serializable):
    window_size: int = C.CORRELATION_WINDOW
    velocity_lookback: int = C.CORRELATION_VELOCITY_LOOKBACK
    velocity_threshold: float = C.CORRELATION_VELOCITY_THRESHOLD
    strong_correlation: float = C.STRONG_CORRELATION
    moderate_correlation: float = C.MODERATE_CORRELATION


@dataclass(frozen=True)
class AnalysisConfig(Serializable):
    """Everything the single-pair analyzer needs, bundled and immutable."""
    min_bars: int = C.MIN_ANALYSIS_BARS
    zscore_window: int = C.ZSCORE_WINDOW
    fallback_lookahead_bars: int = C.REVERSION_LOOKAHEAD_BARS
    confluence_min_rating: int = C.CONFLUENCE_MIN_RATING
    stationarity: StationarityConfig = field(default_factory=StationarityConfig)
    volatility: VolatilityConfig = field(default_factory=VolatilityConfig)
    correlation: CorrelationVelocityConfig = field(default_factory=CorrelationVelocityConfig)


@dataclass(frozen=True)
class ConfluenceConfig(Serializable):
    """
    Multi-timeframe settings.

    weighting: "equal" (default) or "interval" (reliability table per interval).
    weights: explicit per-interval weights; overrides `weighting` when given.
    """
    intervals: Tuple[str, ...] = C.DEFAULT_INTERVALS
    weighting: str = "equal"
    weights: Optional[Mapping[str, float]] = None
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)


# ═══════════════════════════════════════════════════════════════════════════
# STATIONARITY RESULTS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RollingBeta(Serializable):
    beta_series: Tuple[float, ...]
    current_beta: float


@dataclass(frozen=True)
class AdfTestResult(Serializable):
    t_stat: float
    critical_value: float
    passed: bool
    p_value: float = 1.0
    n_obs: int = 0


@dataclass(frozen=True)
class StationarityAnalysis(Serializable):
    adf_t_stat: float = 0.0
    adf_critical_value: float = C.ADF_CRITICAL_VALUE
    adf_passed: bool = False
    adf_p_value: float = 1.0
    cointegration_t_stat: float = 0.0
    cointegration_critical_value: float = C.ADF_CRITICAL_VALUE
    cointegration_passed: bool = False
    cointegration_p_value: float = 1.0
    half_life_bars: float = math.inf
    half_life_passed: bool = False
    is_tradable: bool = False
    current_beta: float = 1.0
    sample_size: int = 0

    @property
    def is_mean_reverting(self) -> bool:
        return self.is_tradable

    @property
    def checks_passed(self) -> int:
        return int(self.adf_passed) + int(self.cointegration_passed) + int(self.half_life_passed)

    @classmethod
    def from_dict(cls, data: Mapping) -> "StationarityAnalysis":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


# ═══════════════════════════════════════════════════════════════════════════
# SIGNAL RESULTS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class VolatilityAdjustedSpreadResult(Serializable):
    primary_volatility: float = 0.0
    secondary_volatility: float = 0.0
    combined_volatility: float = 0.0
    raw_z_score: float = 0.0
    adjusted_z_score: float = 0.0
    volatility_adjustment: float = 1.0
    signal_strength: float = 0.0
    quality: SignalQuality = SignalQuality.INSUFFICIENT_DATA

    @classmethod
    def from_dict(cls, data: Mapping) -> "VolatilityAdjustedSpreadResult":
        return cls(
            primary_volatility=_float(data, "primary_volatility"),
            secondary_volatility=_float(data, "secondary_volatility"),
            combined_volatility=_float(data, "combined_volatility"),
            raw_z_score=_float(data, "raw_z_score"),
            adjusted_z_score=_float(data, "adjusted_z_score"),
            volatility_adjustment=_float(data, "volatility_adjustment", 1.0),
            signal_strength=_float(data, "signal_strength"),
            quality=SignalQuality(data.get("quality", SignalQuality.INSUFFICIENT_DATA.value)),
        )


@dataclass(frozen=True)
class CorrelationVelocityResult(Serializable):
    current_correlation: float = 0.0
    previous_correlation: float = 0.0
    velocity: float = 0.0
    acceleration: float = 0.0
    regime: CorrelationRegime = CorrelationRegime.STABLE

    @classmethod
    def from_dict(cls, data: Mapping) -> "CorrelationVelocityResult":
        return cls(
            current_correlation=_float(data, "current_correlation"),
            previous_correlation=_float(data, "previous_correlation"),
            velocity=_float(data, "velocity"),
            acceleration=_float(data, "acceleration"),
            regime=CorrelationRegime(data.get("regime", CorrelationRegime.STABLE.value)),
        )


@dataclass(frozen=True)
class ConfluenceAnalysis(Serializable):
    z_score_extreme: bool = False
    correlation_favorable: bool = False
    quality_high: bool = False
    rating: int = 0
    rating_label: str = "No Confluence"
    meets_threshold: bool = False
    direction: SpreadDirection = SpreadDirection.NEUTRAL

    @classmethod
    def from_dict(cls, data: Mapping) -> "ConfluenceAnalysis":
        return cls(
            z_score_extreme=bool(data.get("z_score_extreme", False)),
            correlation_favorable=bool(data.get("correlation_favorable", False)),
            quality_high=bool(data.get("quality_high", False)),
            rating=int(data.get("rating", 0)),
            rating_label=data.get("rating_label", "No Confluence"),
            meets_threshold=bool(data.get("meets_threshold", False)),
            direction=SpreadDirection(data.get("direction", SpreadDirection.NEUTRAL.value)),
        )


@dataclass(frozen=True)
class ReversionProbability(Serializable):
    probability: float = 0.5
    lookahead_bars: int = C.REVERSION_LOOKAHEAD_BARS
    sample_size: int = 0
    wins: int = 0
    method: ProbabilityMethod = ProbabilityMethod.FALLBACK

    @classmethod
    def from_dict(cls, data: Mapping) -> "ReversionProbability":
        return cls(
            probability=_float(data, "probability", 0.5),
            lookahead_bars=int(data.get("lookahead_bars", C.REVERSION_LOOKAHEAD_BARS)),
            sample_size=int(data.get("sample_size", 0)),
            wins=int(data.get("wins", 0)),
            method=ProbabilityMethod(data.get("method", ProbabilityMethod.FALLBACK.value)),
        )


@dataclass(frozen=True)
class Note(Serializable):
    """A tagged diagnostic entry; `message` renders it for humans."""
    kind: NoteKind
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def message(self) -> str:
        template = NOTE_TEMPLATES.get(self.kind)
        if template is None:
            return self.kind.value
        try:
            return template.format(**self.params)
        except (KeyError, ValueError, TypeError):
            return f"{self.kind.value}: {self.params}"

    @classmethod
    def from_dict(cls, data: Mapping) -> "Note":
        return cls(kind=NoteKind(data["kind"]), params=dict(data.get("params", {})))


# ═══════════════════════════════════════════════════════════════════════════
# PAIR ANALYSIS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PairAnalysisResult(Serializable):
    symbol: str
    primary_symbol: str = "primary"
    correlation: float = 0.0
    spread: float = 0.0
    spread_mean: float = 0.0
    spread_std: float = 0.0
    spread_z_score: float = 0.0
    ratio: float = 0.0
    aligned_bars: int = 0
    spread_opportunity: float = 0.0
    method_average: float = 0.0
    volatility_adjusted_spread: VolatilityAdjustedSpreadResult = field(
        default_factory=VolatilityAdjustedSpreadResult)
    correlation_velocity: CorrelationVelocityResult = field(default_factory=CorrelationVelocityResult)
    stationarity: Optional[StationarityAnalysis] = None
    confluence: ConfluenceAnalysis = field(default_factory=ConfluenceAnalysis)
    reversion_probability: ReversionProbability = field(default_factory=ReversionProbability)
    opportunity_score: int = 0
    notes: Tuple[Note, ...] = ()

    @property
    def pair_key(self) -> Tuple[str, str]:
        return (self.primary_symbol, self.symbol)

    @property
    def is_tradable(self) -> bool:
        # History entries recorded without stationarity are treated as tradable
        return self.stationarity is None or self.stationarity.is_tradable

    @property
    def messages(self) -> List[str]:
        return [note.message for note in self.notes]

    @classmethod
    def from_dict(cls, data: Mapping) -> "PairAnalysisResult":
        stationarity = data.get("stationarity")
        return cls(
            symbol=data["symbol"],
            primary_symbol=data.get("primary_symbol", "primary"),
            correlation=_float(data, "correlation"),
            spread=_float(data, "spread"),
            spread_mean=_float(data, "spread_mean"),
            spread_std=_float(data, "spread_std"),
            spread_z_score=_float(data, "spread_z_score"),
            ratio=_float(data, "ratio"),
            aligned_bars=int(data.get("aligned_bars", 0)),
            spread_opportunity=_float(data, "spread_opportunity"),
            method_average=_float(data, "method_average"),
            volatility_adjusted_spread=VolatilityAdjustedSpreadResult.from_dict(
                data.get("volatility_adjusted_spread") or {}),
            correlation_velocity=CorrelationVelocityResult.from_dict(
                data.get("correlation_velocity") or {}),
            stationarity=StationarityAnalysis.from_dict(stationarity) if stationarity else None,
            confluence=ConfluenceAnalysis.from_dict(data.get("confluence") or {}),
            reversion_probability=ReversionProbability.from_dict(
                data.get("reversion_probability") or {}),
            opportunity_score=int(data.get("opportunity_score", 0)),
            notes=tuple(Note.from_dict(n) for n in data.get("notes", [])),
        )


@dataclass(frozen=True)
class ConfluenceResult(Serializable):
    symbol: str
    primary_symbol: str
    timeframes: Tuple[str, ...] = ()
    analyses: Dict[str, PairAnalysisResult] = field(default_factory=dict)
    weights: Dict[str, float] = field(default_factory=dict)
    confluence_score: int = 0
    confidence: ConfidenceLevel = ConfidenceLevel.LOW
    signal_direction: SpreadDirection = SpreadDirection.NEUTRAL
    aligned_timeframes: int = 0
    total_timeframes: int = 0
    z_score_agreement: float = 0.0
    correlation_agreement: float = 0.0
    quality_agreement: float = 0.0
    weighted_opportunity: float = 0.0
    best_timeframe: Optional[str] = None
    worst_timeframe: Optional[str] = None
    notes: Tuple[Note, ...] = ()


# ═══════════════════════════════════════════════════════════════════════════
# HISTORY
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class HistoricalRecord(Serializable):
    """One stored analysis snapshot; records are ordered by timestamp."""
    id: str
    timestamp: float
    primary_pair: str
    interval: str
    results: Tuple[PairAnalysisResult, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping) -> "HistoricalRecord":
        return cls(
            id=str(data.get("id", "")),
            timestamp=float(data.get("timestamp", 0)),
            primary_pair=data["primary_pair"],
            interval=data["interval"],
            results=tuple(PairAnalysisResult.from_dict(r) for r in data.get("results", [])),
        )
