"""
Pair Reversion Engine - Core Analytics

Statistical core for scanning pairs for mean-reversion opportunities.

Modules:
- statistics: mean / std / log returns / correlation / z-score primitives
- stationarity: rolling hedge ratio, ADF, cointegration, half-life
- volatility: volatility-adjusted z-score and signal quality tiers
- correlation_velocity: rolling correlation trend and regime
- confluence: 0-3 indicator agreement rating
- notes: structured diagnostic notes
- pair_analyzer: single-timeframe orchestrator
- multi_timeframe: cross-timeframe confluence scoring

Usage:
    from core import analyze_pair, analyze_multi_timeframe

    result = analyze_pair(btc_closes, eth_closes, "ETHUSDT", "BTCUSDT")
    print(result.opportunity_score, result.stationarity.is_tradable)
"""

# Models
from .models import (
    AnalysisConfig,
    ConfidenceLevel,
    ConfluenceAnalysis,
    ConfluenceConfig,
    ConfluenceResult,
    CorrelationRegime,
    CorrelationVelocityConfig,
    CorrelationVelocityResult,
    HistoricalRecord,
    Note,
    NoteKind,
    PairAnalysisResult,
    ProbabilityMethod,
    ReversionProbability,
    SignalQuality,
    SpreadDirection,
    StationarityAnalysis,
    StationarityConfig,
    VolatilityAdjustedSpreadResult,
    VolatilityConfig,
)

# Statistics
from .statistics import (
    align_series,
    calculate_returns,
    calculate_zscore,
    mean,
    pearson_correlation,
    standard_deviation,
)

# Stationarity
from .stationarity import (
    analyze_stationarity,
    calculate_rolling_beta,
    estimate_half_life,
    perform_adf_test,
    perform_cointegration_test,
)

# Signals
from .volatility import calculate_volatility_adjusted_spread
from .correlation_velocity import calculate_correlation_velocity, determine_correlation_regime
from .confluence import calculate_confluence

# Orchestration
from .pair_analyzer import analyze_all_pairs, analyze_pair, build_all_vs_all_candidates
from .multi_timeframe import (
    analyze_confluence_for_pairs,
    analyze_multi_timeframe,
    interval_weight,
    suggested_timeframes,
)

__all__ = [
    # Models
    'AnalysisConfig', 'ConfidenceLevel', 'ConfluenceAnalysis', 'ConfluenceConfig',
    'ConfluenceResult', 'CorrelationRegime', 'CorrelationVelocityConfig',
    'CorrelationVelocityResult', 'HistoricalRecord', 'Note', 'NoteKind',
    'PairAnalysisResult', 'ProbabilityMethod', 'ReversionProbability', 'SignalQuality',
    'SpreadDirection', 'StationarityAnalysis', 'StationarityConfig',
    'VolatilityAdjustedSpreadResult', 'VolatilityConfig',
    # Statistics
    'align_series', 'calculate_returns', 'calculate_zscore', 'mean',
    'pearson_correlation', 'standard_deviation',
    # Stationarity
    'analyze_stationarity', 'calculate_rolling_beta', 'estimate_half_life',
    'perform_adf_test', 'perform_cointegration_test',
    # Signals
    'calculate_volatility_adjusted_spread', 'calculate_correlation_velocity',
    'determine_correlation_regime', 'calculate_confluence',
    # Orchestration
    'analyze_pair', 'analyze_all_pairs', 'build_all_vs_all_candidates',
    'analyze_multi_timeframe', 'analyze_confluence_for_pairs', 'interval_weight',
    'suggested_timeframes',
]
