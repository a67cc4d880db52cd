"""
Pair Backtest Engine

Bar-by-bar simulation of a z-score entry / TP-SL exit pair strategy.

Rules:
- Entry: |rolling log-spread z| > entry threshold and the pair's overall return
  correlation >= min correlation. z > 0 shorts the primary and buys the
  secondary; z < 0 does the opposite.
- P&L: average of the two legs' signed % moves since entry
- Exit: P&L >= take profit or <= -stop loss; anything open at the end of the
  data is closed at the last bar (end_of_data)

NO LOOK-AHEAD: the z-score at bar i uses only bars i-99..i.

Usage:
    from research_lab.backtest_pairs import run_backtest
    result = run_backtest(btc_closes, eth_closes, "ETHUSDT", "BTCUSDT")
"""

import json
import logging
import math
import os
import sys
from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional, Sequence

import numpy as np
import pandas as pd
from tabulate import tabulate

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core import constants as C
from core.models import Serializable
from core.statistics import align_series, calculate_returns, pearson_correlation, rolling_zscores

logger = logging.getLogger(__name__)

ROLLING_WINDOW = C.ROLLING_WINDOW
MIN_BACKTEST_BARS = C.MIN_BACKTEST_BARS


# ═══════════════════════════════════════════════════════════════════════════
# MODELS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BacktestConfig(Serializable):
    entry_spread_threshold: float = C.ENTRY_SPREAD_THRESHOLD
    min_correlation: float = C.MIN_CORRELATION
    take_profit_percent: float = C.TAKE_PROFIT_PERCENT
    stop_loss_percent: float = C.STOP_LOSS_PERCENT


@dataclass(frozen=True)
class Trade(Serializable):
    """
    One closed round trip.

    `entry_index` and `exit_index` are positions in the cleaned series: the
    trailing overlap of both inputs with invalid bars removed. They equal the
    caller's positions only when the inputs have equal length and no invalid
    bars; `entry_primary` and the other price fields identify the bars either way.
    """
    entry_index: int
    exit_index: int
    direction: str
    entry_spread: float
    exit_spread: float
    entry_correlation: float
    entry_primary: float
    entry_secondary: float
    exit_primary: float
    exit_secondary: float
    profit_percent: float
    exit_reason: str
    duration_bars: int


@dataclass(frozen=True)
class BacktestSummary(Serializable):
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    total_profit_percent: float = 0.0
    average_profit_percent: float = 0.0
    max_drawdown_percent: float = 0.0
    profit_factor: float = 0.0
    average_duration_bars: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0


@dataclass(frozen=True)
class BacktestResult(Serializable):
    symbol: str
    primary_symbol: str
    config: BacktestConfig
    trades: List[Trade] = field(default_factory=list)
    summary: BacktestSummary = field(default_factory=BacktestSummary)
    equity_curve: List[float] = field(default_factory=lambda: [0.0])


class PreparedSeries(NamedTuple):
    """Aligned prices plus the config-independent inputs of a simulation."""
    primary: np.ndarray
    secondary: np.ndarray
    zscores: np.ndarray
    correlation: float


def create_empty_result(symbol: str, primary_symbol: str, config: BacktestConfig) -> BacktestResult:
    return BacktestResult(symbol=symbol, primary_symbol=primary_symbol, config=config)


# ═══════════════════════════════════════════════════════════════════════════
# METRICS
# ═══════════════════════════════════════════════════════════════════════════

def calculate_combined_pnl(direction: str, entry_primary: float, entry_secondary: float,
                           exit_primary: float, exit_secondary: float) -> float:
    """Average of the two legs' signed percentage moves."""
    primary_move = (exit_primary - entry_primary) / entry_primary
    secondary_move = (exit_secondary - entry_secondary) / entry_secondary
    if direction == C.DIRECTION_LONG_PRIMARY:
        return (primary_move - secondary_move) / 2 * 100
    return (secondary_move - primary_move) / 2 * 100


def calculate_equity_curve(trades: Sequence[Trade]) -> List[float]:
    curve = [0.0]
    cumulative = 0.0
    for trade in trades:
        cumulative += trade.profit_percent
        curve.append(cumulative)
    return curve


def calculate_max_drawdown(equity_curve: Sequence[float]) -> float:
    peak = 0.0
    max_drawdown = 0.0
    for equity in equity_curve:
        peak = max(peak, equity)
        max_drawdown = max(max_drawdown, peak - equity)
    return max_drawdown


def calculate_summary(trades: Sequence[Trade]) -> BacktestSummary:
    """
    Aggregate statistics over closed trades.

    Wins are trades with profit > 0. Profit factor is gross profit / gross
    loss; inf when there are no losses but some profit, 0 with neither.
    """
    if not trades:
        return BacktestSummary()

    profits = [t.profit_percent for t in trades]
    wins = [p for p in profits if p > 0]
    losses = [p for p in profits if p <= 0]
    gross_profit = sum(wins)
    gross_loss = abs(sum(losses))
    total = sum(profits)

    if gross_loss > 0:
        profit_factor = gross_profit / gross_loss
    else:
        profit_factor = math.inf if gross_profit > 0 else 0.0

    return BacktestSummary(
        total_trades=len(trades),
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=len(wins) / len(trades) * 100,
        total_profit_percent=total,
        average_profit_percent=total / len(trades),
        max_drawdown_percent=calculate_max_drawdown(calculate_equity_curve(trades)),
        profit_factor=profit_factor,
        average_duration_bars=sum(t.duration_bars for t in trades) / len(trades),
        largest_win=max(profits),
        largest_loss=min(profits),
    )


# ═══════════════════════════════════════════════════════════════════════════
# ENGINE
# ═══════════════════════════════════════════════════════════════════════════

def prepare_series(primary_closes: Sequence[float], secondary_closes: Sequence[float]) -> Optional[PreparedSeries]:
    """
    Align to the trailing overlap, drop invalid prices, and precompute the
    rolling z-scores and overall return correlation. None when too short.
    """
    primary, secondary, dropped = align_series(primary_closes, secondary_closes)
    if dropped:
        logger.debug("Backtest: dropped %d invalid bars", dropped)
    if primary.size < MIN_BACKTEST_BARS:
        return None

    spread = np.log(primary) - np.log(secondary)
    zscores = rolling_zscores(spread, ROLLING_WINDOW)
    correlation = pearson_correlation(calculate_returns(primary), calculate_returns(secondary))
    return PreparedSeries(primary, secondary, zscores, correlation)


def simulate(prepared: PreparedSeries, config: BacktestConfig,
             symbol: str = "", primary_symbol: str = "") -> BacktestResult:
    """Run the trading rules over prepared series for one config."""
    if prepared.correlation < config.min_correlation:
        return create_empty_result(symbol, primary_symbol, config)

    primary = prepared.primary.tolist()
    secondary = prepared.secondary.tolist()
    zscores = prepared.zscores.tolist()
    threshold = abs(config.entry_spread_threshold)
    n = len(primary)

    trades = []
    position = None  # (entry_index, direction, entry_z)

    for i in range(ROLLING_WINDOW, n):
        z = zscores[i]
        if position is None:
            if abs(z) > threshold:
                direction = C.DIRECTION_SHORT_PRIMARY if z > 0 else C.DIRECTION_LONG_PRIMARY
                position = (i, direction, float(z))
            continue

        entry_index, direction, _ = position
        pnl = calculate_combined_pnl(direction, primary[entry_index], secondary[entry_index],
                                     primary[i], secondary[i])
        if pnl >= config.take_profit_percent:
            reason = C.EXIT_TAKE_PROFIT
        elif pnl <= -config.stop_loss_percent:
            reason = C.EXIT_STOP_LOSS
        else:
            continue

        trades.append(_close_trade(prepared, position, i, pnl, reason))
        position = None

    if position is not None:
        last = n - 1
        entry_index, direction, _ = position
        pnl = calculate_combined_pnl(direction, primary[entry_index], secondary[entry_index],
                                     primary[last], secondary[last])
        trades.append(_close_trade(prepared, position, last, pnl, C.EXIT_END_OF_DATA))

    return BacktestResult(
        symbol=symbol,
        primary_symbol=primary_symbol,
        config=config,
        trades=trades,
        summary=calculate_summary(trades),
        equity_curve=calculate_equity_curve(trades),
    )


def _close_trade(prepared: PreparedSeries, position, exit_index: int, pnl: float, reason: str) -> Trade:
    entry_index, direction, entry_z = position
    return Trade(
        entry_index=entry_index,
        exit_index=exit_index,
        direction=direction,
        entry_spread=entry_z,
        exit_spread=float(prepared.zscores[exit_index]),
        entry_correlation=prepared.correlation,
        entry_primary=float(prepared.primary[entry_index]),
        entry_secondary=float(prepared.secondary[entry_index]),
        exit_primary=float(prepared.primary[exit_index]),
        exit_secondary=float(prepared.secondary[exit_index]),
        profit_percent=float(pnl),
        exit_reason=reason,
        duration_bars=exit_index - entry_index,
    )


def run_backtest(
    primary_closes: Sequence[float],
    secondary_closes: Sequence[float],
    symbol: str,
    primary_symbol: str,
    config: Optional[BacktestConfig] = None,
) -> BacktestResult:
    """
    Backtest one pair.

    Returns an empty result (no trades, zeroed summary, equity [0.0]) when
    fewer than 110 valid aligned bars remain or the return correlation is
    below `min_correlation`.
    """
    config = config or BacktestConfig()
    prepared = prepare_series(primary_closes, secondary_closes)
    if prepared is None:
        logger.debug("Backtest %s/%s: not enough data", primary_symbol, symbol)
        return create_empty_result(symbol, primary_symbol, config)
    return simulate(prepared, config, symbol, primary_symbol)


def run_backtest_all_pairs(
    primary_closes: Sequence[float],
    pairs_data: Dict[str, Sequence[float]],
    primary_symbol: str,
    config: Optional[BacktestConfig] = None,
) -> List[BacktestResult]:
    return [
        run_backtest(primary_closes, closes, symbol, primary_symbol, config)
        for symbol, closes in pairs_data.items()
    ]


# ═══════════════════════════════════════════════════════════════════════════
# REPORTING
# ═══════════════════════════════════════════════════════════════════════════

def summarize_results(results: Sequence[BacktestResult]) -> pd.DataFrame:
    rows = []
    for res in results:
        s = res.summary
        rows.append({
            'pair': f"{res.primary_symbol}/{res.symbol}",
            'trades': s.total_trades,
            'win_rate': round(s.win_rate, 1),
            'profit_pct': round(s.total_profit_percent, 3),
            'profit_factor': round(s.profit_factor, 2) if math.isfinite(s.profit_factor) else s.profit_factor,
            'max_dd_pct': round(s.max_drawdown_percent, 3),
            'avg_bars': round(s.average_duration_bars, 1),
        })
    df = pd.DataFrame(rows)
    if not df.empty:
        df = df.sort_values(by='profit_pct', ascending=False)
    return df


def print_backtest_report(results: Sequence[BacktestResult], top: int = 15) -> pd.DataFrame:
    df = summarize_results(results)
    if df.empty:
        print("❌ No valid results.")
        return df
    print("\n🏆 BACKTEST RESULTS")
    print(tabulate(df.head(top), headers="keys", tablefmt="simple_grid", showindex=False))
    return df


def save_results(results: Sequence[BacktestResult], path: str) -> None:
    with open(path, "w") as f:
        json.dump([r.to_dict() for r in results], f, indent=4)
    print(f"\n✅ Saved {len(results)} backtests to {path}")
