"""
Reversion Probability Model

Empirical probability that a spread signal reverts within N snapshots,
learned from stored scan history.

Labeling (per historical entry with |z| >= entry threshold, tradable only):
- walk forward through later snapshots of the same pair, up to N of them
- REVERTED when the spread crosses the mean, |z| <= exit threshold, or |z|
  compresses to half the entry |z|
- a label is only counted when it reverted or the full N snapshots were seen

Outcomes are aggregated into a fixed hierarchy of buckets, most specific
first. Estimates use the first bucket with enough samples, else the largest
one, with Laplace smoothing (wins + 1) / (total + 2).

Usage:
    from research_lab.reversion_probability import apply_probability_scoring
    ranked = apply_probability_scoring(results, history, "BTCUSDT", "5m")
"""

import logging
import os
import sys
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core import constants as C
from core.models import (
    HistoricalRecord,
    Note,
    NoteKind,
    PairAnalysisResult,
    ProbabilityMethod,
    ReversionProbability,
)
from core.statistics import is_finite

logger = logging.getLogger(__name__)

ALL_PAIRS_PRIMARY = "ALL_PAIRS"


@dataclass(frozen=True)
class ReversionModelOptions:
    lookahead_bars: int = C.REVERSION_LOOKAHEAD_BARS
    entry_z_score: float = C.REVERSION_ENTRY_Z
    exit_z_score: float = C.REVERSION_EXIT_Z
    min_sample_size: int = C.REVERSION_MIN_SAMPLE


@dataclass(frozen=True)
class ReversionEstimate:
    probability: float
    lookahead_bars: int
    sample_size: int
    wins: int
    level: "BucketLevel"


class BucketLevel(str, Enum):
    PAIR_BUCKET = "pair_bucket"          # pair + direction + z bucket + corr bucket
    PAIR_DIRECTION = "pair_direction"    # primary + symbol + direction
    BUCKET = "bucket"                    # direction + z bucket + corr bucket
    DIRECTION = "direction"
    GLOBAL = "global"


class BucketKey(NamedTuple):
    level: BucketLevel
    values: Tuple[str, ...]


class Outcome(NamedTuple):
    wins: int
    total: int

    @property
    def probability(self) -> float:
        return (self.wins + 1) / (self.total + 2)


# ═══════════════════════════════════════════════════════════════════════════
# BUCKETING
# ═══════════════════════════════════════════════════════════════════════════

def signal_direction(z_score: float) -> str:
    return "short" if z_score >= 0 else "long"


def z_bucket(z_score: float) -> str:
    value = abs(z_score)
    if value >= 3:
        return "extreme"
    if value >= 2:
        return "high"
    return "medium"


def correlation_bucket(correlation: float) -> str:
    value = abs(correlation)
    if value >= C.STRONG_CORRELATION:
        return "strong"
    if value >= C.MODERATE_CORRELATION:
        return "moderate"
    return "weak"


def build_keys(result: PairAnalysisResult) -> List[BucketKey]:
    """Bucket keys for a result, most specific first."""
    direction = signal_direction(result.spread_z_score)
    zb = z_bucket(result.spread_z_score)
    cb = correlation_bucket(result.correlation)
    pair = (result.primary_symbol, result.symbol)
    return [
        BucketKey(BucketLevel.PAIR_BUCKET, pair + (direction, zb, cb)),
        BucketKey(BucketLevel.PAIR_DIRECTION, pair + (direction,)),
        BucketKey(BucketLevel.BUCKET, (direction, zb, cb)),
        BucketKey(BucketLevel.DIRECTION, (direction,)),
        BucketKey(BucketLevel.GLOBAL, ()),
    ]


def _has_signal(result: PairAnalysisResult, entry_z: float) -> bool:
    return is_finite(result.spread_z_score) and abs(result.spread_z_score) >= entry_z


def _is_reverted(entry: PairAnalysisResult, future: PairAnalysisResult, exit_z: float) -> bool:
    crossed = signal_direction(entry.spread_z_score) != signal_direction(future.spread_z_score)
    normalized = abs(future.spread_z_score) <= exit_z
    compressed = abs(future.spread_z_score) <= abs(entry.spread_z_score) * C.REVERSION_HALF_ENTRY_RATIO
    return crossed or normalized or compressed


def _find_pair(record: HistoricalRecord, entry: PairAnalysisResult) -> Optional[PairAnalysisResult]:
    for result in record.results:
        if result.symbol == entry.symbol and result.primary_symbol == entry.primary_symbol:
            return result
    return None


# ═══════════════════════════════════════════════════════════════════════════
# MODEL
# ═══════════════════════════════════════════════════════════════════════════

class ReversionModel:
    """Read-only bucket counters built from history."""

    def __init__(self, counters: Mapping[BucketKey, Outcome], options: ReversionModelOptions):
        self._counters = MappingProxyType(dict(counters))
        self.options = options

    @property
    def counters(self) -> Mapping[BucketKey, Outcome]:
        return self._counters

    def estimate(self, result: PairAnalysisResult) -> Optional[ReversionEstimate]:
        """
        Probability estimate for a current result, or None without history.

        The first bucket (most specific) with at least `min_sample_size`
        labels wins; otherwise the bucket with the most labels is used.
        """
        best_key = None
        best = None
        for key in build_keys(result):
            outcome = self._counters.get(key)
            if outcome is None:
                continue
            if outcome.total >= self.options.min_sample_size:
                return self._to_estimate(outcome, key)
            if best is None or outcome.total > best.total:
                best_key, best = key, outcome

        if best is None or best.total == 0:
            return None
        return self._to_estimate(best, best_key)

    def _to_estimate(self, outcome: Outcome, key: BucketKey) -> ReversionEstimate:
        return ReversionEstimate(
            probability=outcome.probability,
            lookahead_bars=self.options.lookahead_bars,
            sample_size=outcome.total,
            wins=outcome.wins,
            level=key.level,
        )


def build_reversion_model(
    history: Iterable[HistoricalRecord],
    primary_pair: str,
    interval: str,
    options: Optional[ReversionModelOptions] = None,
) -> ReversionModel:
    """
    Label historical signals and aggregate them into bucket counters.

    Args:
        history: Stored snapshots (any order; filtered and sorted here)
        primary_pair: Only snapshots scanned against this primary are used
        interval: Only snapshots of this interval are used
        options: Lookahead / thresholds / minimum sample size

    Returns:
        ReversionModel
    """
    options = options or ReversionModelOptions()
    records = sorted(
        (r for r in history if r.primary_pair == primary_pair and r.interval == interval),
        key=lambda r: r.timestamp,
    )

    counters: Dict[BucketKey, Outcome] = {}
    labeled = 0
    for i, record in enumerate(records):
        for entry in record.results:
            if not entry.is_tradable or not _has_signal(entry, options.entry_z_score):
                continue

            seen = 0
            reverted = False
            for future_record in records[i + 1:]:
                if seen >= options.lookahead_bars:
                    break
                future = _find_pair(future_record, entry)
                if future is None:
                    continue
                seen += 1
                if _is_reverted(entry, future, options.exit_z_score):
                    reverted = True
                    break

            if not reverted and seen < options.lookahead_bars:
                continue

            labeled += 1
            for key in build_keys(entry):
                wins, total = counters.get(key, Outcome(0, 0))
                counters[key] = Outcome(wins + int(reverted), total + 1)

    logger.debug("Reversion model %s/%s: %d snapshots, %d labels",
                 primary_pair, interval, len(records), labeled)
    return ReversionModel(counters, options)


# ═══════════════════════════════════════════════════════════════════════════
# SCORING
# ═══════════════════════════════════════════════════════════════════════════

def model_primary(primary_pair: str, all_vs_all: bool = False) -> str:
    return ALL_PAIRS_PRIMARY if all_vs_all else primary_pair


class ReversionScorer:
    """Re-scores analysis results with the history-based reversion probability."""

    def __init__(self, model: ReversionModel):
        self.model = model

    def score(self, result: PairAnalysisResult) -> PairAnalysisResult:
        estimate = self.model.estimate(result)
        current = result.reversion_probability
        if estimate is not None:
            probability = ReversionProbability(
                probability=estimate.probability,
                lookahead_bars=estimate.lookahead_bars,
                sample_size=estimate.sample_size,
                wins=estimate.wins,
                method=ProbabilityMethod.HISTORY,
            )
        else:
            probability = current

        note = Note(NoteKind.REVERSION_EDGE, {
            "probability": probability.probability,
            "sample_size": probability.sample_size,
            "lookahead_bars": probability.lookahead_bars,
            "method": probability.method.value,
        })
        return replace(
            result,
            opportunity_score=int(round(probability.probability * 100)) if result.is_tradable else 0,
            reversion_probability=probability,
            notes=result.notes + (note,),
        )


def create_reversion_scorer(
    history: Sequence[HistoricalRecord],
    primary_pair: str,
    interval: str,
    all_vs_all: bool = False,
    options: Optional[ReversionModelOptions] = None,
) -> ReversionScorer:
    model = build_reversion_model(history, model_primary(primary_pair, all_vs_all), interval, options)
    return ReversionScorer(model)


def apply_probability_scoring(
    results: Sequence[PairAnalysisResult],
    history: Sequence[HistoricalRecord],
    primary_pair: str,
    interval: str,
    all_vs_all: bool = False,
    options: Optional[ReversionModelOptions] = None,
) -> List[PairAnalysisResult]:
    """Re-score every result and sort by the new opportunity score."""
    if not results:
        return []
    scorer = create_reversion_scorer(history, primary_pair, interval, all_vs_all, options)
    scored = [scorer.score(r) for r in results]
    return sorted(scored, key=lambda r: r.opportunity_score, reverse=True)
