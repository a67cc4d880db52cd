"""
OHLCV Resampling

Builds custom intervals (2m, 7m, 10m, ...) from native exchange candles.
Buckets are aligned to the Unix epoch: open=first, high=max, low=min,
close=last, volume=sum.
"""

import logging
from typing import NamedTuple

import pandas as pd

logger = logging.getLogger(__name__)

NATIVE_INTERVALS = frozenset({
    '1m', '3m', '5m', '15m', '30m',
    '1h', '2h', '4h', '6h', '8h', '12h',
    '1d', '3d', '1w', '1M',
})

SOURCE_CANDIDATES = ('1m', '3m', '5m', '15m', '30m', '1h', '2h', '4h', '6h', '8h', '12h', '1d')

UNIT_SECONDS = {'m': 60, 'h': 3600, 'd': 86400, 'w': 604800}
MONTH_SECONDS = 2592000

OHLCV_AGG = {
    'open': 'first',
    'high': 'max',
    'low': 'min',
    'close': 'last',
    'volume': 'sum',
}


class FetchPlan(NamedTuple):
    source_interval: str
    needs_resample: bool
    ratio: int


def interval_to_seconds(interval: str) -> int:
    """'1m' -> 60, '2h' -> 7200, '1M' -> 30 days. Unknown units count as minutes."""
    unit = interval[-1:]
    try:
        value = int(interval[:-1])
    except ValueError:
        value = 1
    if unit == 'M':
        return value * MONTH_SECONDS
    return value * UNIT_SECONDS.get(unit.lower(), 60)


def is_native_interval(interval: str) -> bool:
    return interval in NATIVE_INTERVALS


def resolve_fetch_interval(interval: str) -> FetchPlan:
    """
    Pick the source interval to fetch for `interval`.

    Native intervals are fetched as-is. Custom ones use the largest native
    interval that divides them evenly (10m -> 5m x 2, 7m -> 1m x 7).
    """
    if is_native_interval(interval):
        return FetchPlan(interval, False, 1)

    target = interval_to_seconds(interval)
    best_interval, best_seconds = '1m', 60
    for candidate in SOURCE_CANDIDATES:
        seconds = interval_to_seconds(candidate)
        if seconds < target and target % seconds == 0 and seconds > best_seconds:
            best_interval, best_seconds = candidate, seconds
    return FetchPlan(best_interval, True, target // best_seconds)


def resample_ohlcv(df: pd.DataFrame, target_interval: str) -> pd.DataFrame:
    """
    Aggregate candles to `target_interval`.

    Args:
        df: OHLCV frame indexed by timestamp (or with a 'time'/'date' column),
            sorted ascending
        target_interval: e.g. "2m", "7m", "10m"

    Returns:
        Resampled frame; the input unchanged when the target is not coarser
        than the source spacing
    """
    if df.empty:
        return df

    frame = df.copy()
    frame.columns = [str(c).lower().strip() for c in frame.columns]
    if not isinstance(frame.index, pd.DatetimeIndex):
        for column in ('time', 'date', 'timestamp'):
            if column in frame.columns:
                values = frame[column]
                unit = 'ms' if pd.api.types.is_numeric_dtype(values) else None
                frame[column] = pd.to_datetime(values, unit=unit)
                frame = frame.set_index(column)
                break
        else:
            raise ValueError("OHLCV frame needs a DatetimeIndex or a time/date column")

    frame = frame.sort_index()
    target_seconds = interval_to_seconds(target_interval)
    if len(frame) >= 2:
        source_seconds = (frame.index[1] - frame.index[0]).total_seconds()
        if target_seconds <= source_seconds:
            return frame

    agg = {col: how for col, how in OHLCV_AGG.items() if col in frame.columns}
    resampled = frame.resample(f"{target_seconds}s", origin='epoch', label='left', closed='left').agg(agg)
    resampled = resampled.dropna(subset=['close'] if 'close' in resampled.columns else None)
    logger.debug("Resampled %d bars to %d %s bars", len(frame), len(resampled), target_interval)
    return resampled
