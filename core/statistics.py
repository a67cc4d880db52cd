"""
Pair Reversion Engine - Statistics Primitives

Small numeric helpers used by every analyzer. All functions accept plain
sequences or numpy arrays and degrade to neutral values (0) instead of
raising on empty or degenerate input.
"""

import math
from typing import NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np

from .constants import EPSILON

ArrayLike = Union[Sequence[float], np.ndarray]


class ZScoreStats(NamedTuple):
    zscore: float
    mean: float
    std: float
    current: float


def is_finite(value) -> bool:
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def _as_array(values: ArrayLike) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def mean(values: ArrayLike) -> float:
    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    return float(arr.mean())


def standard_deviation(values: ArrayLike, mean_hint: Optional[float] = None) -> float:
    """Population standard deviation; fewer than two values gives 0."""
    arr = _as_array(values)
    if arr.size < 2:
        return 0.0
    mu = mean(arr) if mean_hint is None else mean_hint
    return float(np.sqrt(np.mean((arr - mu) ** 2)))


def calculate_returns(closes: ArrayLike) -> np.ndarray:
    """
    Log returns ln(p_t / p_{t-1}).

    Prices are floored at EPSILON so a zero never produces -inf.

    Returns:
        Array of length len(closes) - 1 (empty for fewer than two prices)
    """
    arr = _as_array(closes)
    if arr.size < 2:
        return np.empty(0, dtype=np.float64)
    floored = np.maximum(arr, EPSILON)
    return np.log(floored[1:] / floored[:-1])


def pearson_correlation(a: ArrayLike, b: ArrayLike) -> float:
    """
    Pearson correlation over the common prefix of two series.

    Returns 0 for fewer than two points or when either side has no variance;
    otherwise the coefficient clamped to [-1, 1].
    """
    x = _as_array(a)
    y = _as_array(b)
    n = min(x.size, y.size)
    if n < 2:
        return 0.0
    x = x[:n] - x[:n].mean()
    y = y[:n] - y[:n].mean()
    denominator = math.sqrt(float(np.dot(x, x)) * float(np.dot(y, y)))
    if denominator < EPSILON or not is_finite(denominator):
        return 0.0
    value = float(np.dot(x, y)) / denominator
    if not is_finite(value):
        return 0.0
    return clamp(value, -1.0, 1.0)


def calculate_spread(primary: ArrayLike, secondary: ArrayLike, beta: float = 1.0) -> np.ndarray:
    """Log spread ln(p) - beta * ln(s) over the common prefix."""
    p = _as_array(primary)
    s = _as_array(secondary)
    n = min(p.size, s.size)
    return np.log(np.maximum(p[:n], EPSILON)) - beta * np.log(np.maximum(s[:n], EPSILON))


def calculate_ratio(primary: ArrayLike, secondary: ArrayLike) -> np.ndarray:
    p = _as_array(primary)
    s = _as_array(secondary)
    n = min(p.size, s.size)
    return p[:n] / np.maximum(s[:n], EPSILON)


def align_series(
    primary: ArrayLike,
    secondary: ArrayLike,
    require_positive: bool = True,
) -> Tuple[np.ndarray, np.ndarray, int]:
    """
    Align two price series on their trailing overlap and drop invalid bars.

    A bar is dropped when either leg is non-finite (or non-positive when
    `require_positive`).

    Returns:
        (primary, secondary, dropped_count)
    """
    p = _as_array(primary)
    s = _as_array(secondary)
    n = min(p.size, s.size)
    if n == 0:
        empty = np.empty(0, dtype=np.float64)
        return empty, empty, 0
    p = p[p.size - n:]
    s = s[s.size - n:]
    mask = np.isfinite(p) & np.isfinite(s)
    if require_positive:
        mask &= (p > 0) & (s > 0)
    dropped = int(n - mask.sum())
    return p[mask], s[mask], dropped


def calculate_zscore(values: ArrayLike, window: Optional[int] = None) -> ZScoreStats:
    """
    Z-score of the last value against the trailing `window` values (all when None).
    """
    arr = _as_array(values)
    if arr.size == 0:
        return ZScoreStats(0.0, 0.0, 0.0, 0.0)
    if window is not None and window > 0:
        arr = arr[-window:]
    mu = mean(arr)
    std = standard_deviation(arr, mu)
    current = float(arr[-1])
    if std < EPSILON:
        return ZScoreStats(0.0, mu, std, current)
    z = (current - mu) / std
    return ZScoreStats(z if is_finite(z) else 0.0, mu, std, current)


def rolling_zscores(series: ArrayLike, window: int) -> np.ndarray:
    """
    Trailing z-score of every bar against the `window` bars ending at it.

    Bars with fewer than `window` observations behind them are 0. Computed
    once with a sliding window view instead of per-bar recomputation.
    """
    arr = _as_array(series)
    out = np.zeros(arr.size, dtype=np.float64)
    if window < 2 or arr.size < window:
        return out
    windows = np.lib.stride_tricks.sliding_window_view(arr, window)
    mu = windows.mean(axis=1)
    std = np.sqrt(np.mean((windows - mu[:, None]) ** 2, axis=1))
    last = windows[:, -1]
    with np.errstate(divide="ignore", invalid="ignore"):
        z = np.where(std > EPSILON, (last - mu) / std, 0.0)
    z[~np.isfinite(z)] = 0.0
    out[window - 1:] = z
    return out
