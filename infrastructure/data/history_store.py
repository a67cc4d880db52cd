"""
Scan History Store

JSON file of HistoricalRecord snapshots consumed by the reversion
probability model. Analyzers only read history; the CLI appends to it.
"""

import os
import json
import time
import uuid
import logging
from typing import List, Optional, Sequence

from core.models import HistoricalRecord, PairAnalysisResult

logger = logging.getLogger(__name__)

MAX_RECORDS = 5000


def load_history(path: str) -> List[HistoricalRecord]:
    """
    Read snapshots, oldest first. A missing file is empty history; malformed
    records are logged and skipped.
    """
    if not os.path.exists(path):
        return []
    with open(path, "r") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid history file {path}: {e}") from e

    records = []
    for item in raw if isinstance(raw, list) else []:
        try:
            records.append(HistoricalRecord.from_dict(item))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed history record: %s", e)
    return sorted(records, key=lambda r: r.timestamp)


def save_history(records: Sequence[HistoricalRecord], path: str) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w") as f:
        json.dump([r.to_dict() for r in records], f, indent=2)


def append_snapshot(
    results: Sequence[PairAnalysisResult],
    primary_pair: str,
    interval: str,
    path: str,
    timestamp: Optional[float] = None,
    max_records: int = MAX_RECORDS,
) -> HistoricalRecord:
    """Store one scan; the oldest snapshots are dropped beyond `max_records`."""
    record = HistoricalRecord(
        id=uuid.uuid4().hex,
        timestamp=time.time() if timestamp is None else timestamp,
        primary_pair=primary_pair,
        interval=interval,
        results=tuple(results),
    )
    records = load_history(path) + [record]
    save_history(records[-max_records:], path)
    logger.info("Saved snapshot %s (%d results) to %s", record.id, len(results), path)
    return record
