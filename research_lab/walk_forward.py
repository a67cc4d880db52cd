"""
Walk-Forward Parameter Optimization

Rolling train/test search for backtest parameters that hold up out of sample.

For each window:
1. Grid-search every BacktestConfig on the train slice (scored by score_summary)
2. Run the winner on the following test slice
3. Run the default config on the same test slice as a baseline

Windows advance by the test size. The config whose out-of-sample scores are
best on recency-weighted average (weight 1 + 0.1 x window index) is returned.

Usage:
    from research_lab.walk_forward import build_price_data, optimize_parameters
    params = optimize_parameters(build_price_data(btc_closes, eth_closes))
"""

import logging
import math
import os
import sys
from dataclasses import dataclass, field
from itertools import product
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

import pandas as pd

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core import constants as C
from core.models import ConfidenceLevel, Serializable
from research_lab.backtest_pairs import (
    BacktestConfig,
    BacktestSummary,
    PreparedSeries,
    create_empty_result,
    prepare_series,
    simulate,
)

logger = logging.getLogger(__name__)

DEFAULT_PARAMETER_GRID = {
    'entry_spread_threshold': C.ENTRY_GRID,
    'min_correlation': C.CORRELATION_GRID,
    'take_profit_percent': C.TAKE_PROFIT_GRID,
    'stop_loss_percent': C.STOP_LOSS_GRID,
}

PROFIT_FACTOR_CAP = 4.0
MIN_TRADES_WITHOUT_PENALTY = 3
LOW_TRADE_PENALTY = 5.0


class PriceData(NamedTuple):
    primary_close: float
    secondary_close: float


@dataclass(frozen=True)
class WindowResult(Serializable):
    window_index: int
    train_start: int
    train_end: int
    test_start: int
    test_end: int
    selected_config: BacktestConfig
    train_score: float
    test_score: float
    test_summary: BacktestSummary
    baseline_profit_percent: float


@dataclass(frozen=True)
class OptimizedParams(Serializable):
    config: BacktestConfig
    confidence: ConfidenceLevel
    windows_evaluated: int
    train_window: int
    test_window: int
    forward_score: float = 0.0
    walk_forward_profit_percent: float = 0.0
    walk_forward_win_rate: float = 0.0
    walk_forward_trades: int = 0
    baseline_profit_percent: float = 0.0
    improvement_percent: float = 0.0
    window_results: List[WindowResult] = field(default_factory=list)


@dataclass
class _ConfigAggregate:
    config: BacktestConfig
    weighted_score: float = 0.0
    total_weight: float = 0.0
    total_profit: float = 0.0
    selection_count: int = 0

    @property
    def average_score(self) -> float:
        return self.weighted_score / self.total_weight if self.total_weight > 0 else -math.inf


# ═══════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════

def build_price_data(primary_closes: Sequence[float], secondary_closes: Sequence[float]) -> List[PriceData]:
    """Pair the closes up, aligned on the trailing overlap."""
    n = min(len(primary_closes), len(secondary_closes))
    if n == 0:
        return []
    primary = list(primary_closes)[-n:]
    secondary = list(secondary_closes)[-n:]
    return [PriceData(float(p), float(s)) for p, s in zip(primary, secondary)]


def build_config_grid(parameter_grid: Optional[Dict[str, Sequence[float]]] = None) -> List[BacktestConfig]:
    grid = dict(DEFAULT_PARAMETER_GRID)
    if parameter_grid:
        grid.update(parameter_grid)
    return [
        BacktestConfig(entry, corr, tp, sl)
        for entry, corr, tp, sl in product(
            grid['entry_spread_threshold'],
            grid['min_correlation'],
            grid['take_profit_percent'],
            grid['stop_loss_percent'],
        )
    ]


def normalize_window_size(value: int, fallback: int) -> int:
    size = int(math.floor(value))
    return size if size >= C.MIN_WINDOW_BARS else fallback


def score_summary(summary: BacktestSummary) -> float:
    """
    Rank a backtest summary.

    2.2 x profit + 0.35 x win rate + 6 x min(PF, 4) - 1.8 x max drawdown,
    minus 5 per trade short of 3. No trades scores -300.
    """
    if summary.total_trades == 0:
        return C.NO_TRADE_SCORE
    profit_factor = min(summary.profit_factor, PROFIT_FACTOR_CAP)
    shortfall = max(0, MIN_TRADES_WITHOUT_PENALTY - summary.total_trades)
    return (
        summary.total_profit_percent * 2.2
        + summary.win_rate * 0.35
        + profit_factor * 6
        - summary.max_drawdown_percent * 1.8
        - shortfall * LOW_TRADE_PENALTY
    )


def _prepare(window: Sequence[PriceData]) -> Optional[PreparedSeries]:
    return prepare_series([p.primary_close for p in window], [p.secondary_close for p in window])


def _run(prepared: Optional[PreparedSeries], config: BacktestConfig) -> BacktestSummary:
    if prepared is None:
        return create_empty_result("", "", config).summary
    return simulate(prepared, config).summary


def create_fallback(train_window: int, test_window: int) -> OptimizedParams:
    return OptimizedParams(
        config=BacktestConfig(),
        confidence=ConfidenceLevel.LOW,
        windows_evaluated=0,
        train_window=train_window,
        test_window=test_window,
    )


def select_confidence(windows: int, selection_count: int, improvement: float,
                      positive_windows: int) -> ConfidenceLevel:
    """
    HIGH: >= 6 windows, chosen config selected in >= half of them, beats the
    baseline, and at least half the test windows were profitable.
    MEDIUM: >= 3 windows and no worse than the baseline by more than 1%.
    """
    if windows == 0:
        return ConfidenceLevel.LOW
    selection_ratio = selection_count / windows
    consistency = positive_windows / windows
    if windows >= 6 and selection_ratio >= 0.5 and improvement > 0 and consistency >= 0.5:
        return ConfidenceLevel.HIGH
    if windows >= 3 and improvement > -1:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def _config_key(config: BacktestConfig) -> Tuple[float, float, float, float]:
    return (
        round(config.entry_spread_threshold, 2),
        round(config.min_correlation, 2),
        round(config.take_profit_percent, 2),
        round(config.stop_loss_percent, 2),
    )


def _pick_best(aggregates: Dict[Tuple, _ConfigAggregate]) -> Optional[_ConfigAggregate]:
    best = None
    for aggregate in aggregates.values():
        if best is None or aggregate.average_score > best.average_score:
            best = aggregate
        elif aggregate.average_score == best.average_score and aggregate.total_profit > best.total_profit:
            best = aggregate
    return best


# ═══════════════════════════════════════════════════════════════════════════
# OPTIMIZER
# ═══════════════════════════════════════════════════════════════════════════

def evaluate_window(
    data: Sequence[PriceData],
    start: int,
    train_window: int,
    test_window: int,
    config_grid: Sequence[BacktestConfig],
    window_index: int = 0,
) -> WindowResult:
    train = _prepare(data[start:start + train_window])
    test = _prepare(data[start + train_window:start + train_window + test_window])

    best_config = BacktestConfig()
    best_score = -math.inf
    for candidate in config_grid:
        score = score_summary(_run(train, candidate))
        if score > best_score:
            best_score = score
            best_config = candidate

    test_summary = _run(test, best_config)
    baseline = _run(test, BacktestConfig())

    return WindowResult(
        window_index=window_index,
        train_start=start,
        train_end=start + train_window - 1,
        test_start=start + train_window,
        test_end=start + train_window + test_window - 1,
        selected_config=best_config,
        train_score=best_score,
        test_score=score_summary(test_summary),
        test_summary=test_summary,
        baseline_profit_percent=baseline.total_profit_percent,
    )


def optimize_parameters(
    historical_data: Sequence[PriceData],
    train_window: int = C.TRAIN_WINDOW,
    test_window: int = C.TEST_WINDOW,
    parameter_grid: Optional[Dict[str, Sequence[float]]] = None,
) -> OptimizedParams:
    """
    Walk-forward optimization over rolling windows.

    Args:
        historical_data: Aligned price pairs (see build_price_data)
        train_window: Bars per train slice (< 120 falls back to 500)
        test_window: Bars per test slice (< 120 falls back to 120)
        parameter_grid: Optional overrides of DEFAULT_PARAMETER_GRID entries

    Returns:
        OptimizedParams; the default config with LOW confidence and zero
        windows when the data cannot fill one train + test window
    """
    train_window = normalize_window_size(train_window, C.FALLBACK_TRAIN_WINDOW)
    test_window = normalize_window_size(test_window, C.FALLBACK_TEST_WINDOW)
    required = train_window + test_window

    if len(historical_data) < required:
        logger.info("Walk-forward: %d bars < %d required, using defaults", len(historical_data), required)
        return create_fallback(train_window, test_window)

    config_grid = build_config_grid(parameter_grid)
    windows: List[WindowResult] = []
    aggregates: Dict[Tuple, _ConfigAggregate] = {}

    start = 0
    while start + required <= len(historical_data):
        window_index = len(windows)
        result = evaluate_window(historical_data, start, train_window, test_window, config_grid, window_index)
        windows.append(result)

        key = _config_key(result.selected_config)
        aggregate = aggregates.setdefault(key, _ConfigAggregate(result.selected_config))
        weight = 1 + window_index * C.RECENCY_WEIGHT_STEP
        aggregate.weighted_score += result.test_score * weight
        aggregate.total_weight += weight
        aggregate.total_profit += result.test_summary.total_profit_percent
        aggregate.selection_count += 1

        logger.debug("Window %d: %s train=%.2f test=%.2f", window_index,
                     key, result.train_score, result.test_score)
        start += test_window

    best = _pick_best(aggregates)
    if best is None:
        return create_fallback(train_window, test_window)

    total_trades = sum(w.test_summary.total_trades for w in windows)
    total_wins = sum(w.test_summary.winning_trades for w in windows)
    total_profit = sum(w.test_summary.total_profit_percent for w in windows)
    baseline_profit = sum(w.baseline_profit_percent for w in windows)
    positive_windows = sum(1 for w in windows if w.test_summary.total_profit_percent > 0)
    improvement = total_profit - baseline_profit

    return OptimizedParams(
        config=best.config,
        confidence=select_confidence(len(windows), best.selection_count, improvement, positive_windows),
        windows_evaluated=len(windows),
        train_window=train_window,
        test_window=test_window,
        forward_score=best.average_score,
        walk_forward_profit_percent=total_profit,
        walk_forward_win_rate=total_wins / total_trades * 100 if total_trades else 0.0,
        walk_forward_trades=total_trades,
        baseline_profit_percent=baseline_profit,
        improvement_percent=improvement,
        window_results=windows,
    )


def window_results_frame(params: OptimizedParams) -> pd.DataFrame:
    """One row per walk-forward window, for reporting."""
    rows = []
    for w in params.window_results:
        cfg = w.selected_config
        rows.append({
            'window': w.window_index,
            'test_bars': f"{w.test_start}-{w.test_end}",
            'entry_z': cfg.entry_spread_threshold,
            'min_corr': cfg.min_correlation,
            'tp': cfg.take_profit_percent,
            'sl': cfg.stop_loss_percent,
            'train_score': round(w.train_score, 2),
            'test_score': round(w.test_score, 2),
            'test_trades': w.test_summary.total_trades,
            'test_profit': round(w.test_summary.total_profit_percent, 3),
            'baseline_profit': round(w.baseline_profit_percent, 3),
        })
    return pd.DataFrame(rows)
