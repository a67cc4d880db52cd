import os
import logging
from typing import Dict, List, Optional, Tuple

import pandas as pd

import infrastructure.config as config

logger = logging.getLogger(__name__)

DATE_COLUMNS = ("date", "time", "timestamp", "datetime", "open_time")
CLOSE_COLUMNS = ("close", "adj close", "adj_close", "price")


def get_csv_path(symbol: str, interval: str = "5m", data_dir: Optional[str] = None) -> str:
    return os.path.join(data_dir or config.DATA_DIR, f"{symbol}_{interval}.csv")


def load_ohlcv(path: str) -> pd.DataFrame:
    """Load a candle CSV, lower-casing columns and indexing by timestamp."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Price file not found: {path}")

    df = pd.read_csv(path)
    df.columns = [str(c).lower().strip() for c in df.columns]
    for column in DATE_COLUMNS:
        if column in df.columns:
            values = df[column]
            unit = "ms" if pd.api.types.is_numeric_dtype(values) else None
            df[column] = pd.to_datetime(values, unit=unit)
            df = df.set_index(column).sort_index()
            break
    return df


def load_close_series(path: str) -> pd.Series:
    """Close prices from a CSV; raises ValueError when no close column exists."""
    df = load_ohlcv(path)
    for column in CLOSE_COLUMNS:
        if column in df.columns:
            closes = pd.to_numeric(df[column], errors="coerce")
            closes.name = os.path.splitext(os.path.basename(path))[0]
            return closes
    raise ValueError(f"No close column in {path} (columns: {list(df.columns)})")


def align_closes(primary: pd.Series, secondary: pd.Series) -> Tuple[List[float], List[float]]:
    """
    Inner-join two close series on timestamp and drop gaps.

    Series without a datetime index are aligned on their trailing overlap.
    """
    if isinstance(primary.index, pd.DatetimeIndex) and isinstance(secondary.index, pd.DatetimeIndex):
        df = pd.concat([primary, secondary], axis=1, join="inner").dropna()
        df.columns = ["primary", "secondary"]
        return df["primary"].tolist(), df["secondary"].tolist()

    n = min(len(primary), len(secondary))
    return primary.iloc[len(primary) - n:].tolist(), secondary.iloc[len(secondary) - n:].tolist()


def load_pair(primary_path: str, secondary_path: str) -> Tuple[List[float], List[float]]:
    primary, secondary = align_closes(load_close_series(primary_path), load_close_series(secondary_path))
    logger.info("Loaded %d aligned bars (%s / %s)", len(primary),
                os.path.basename(primary_path), os.path.basename(secondary_path))
    return primary, secondary


def load_universe(paths: Dict[str, str]) -> Dict[str, pd.Series]:
    """Load {symbol: csv path}; unreadable files are logged and skipped."""
    series = {}
    for symbol, path in paths.items():
        try:
            series[symbol] = load_close_series(path)
        except (FileNotFoundError, ValueError) as e:
            logger.warning("Skipping %s: %s", symbol, e)
    return series
