"""
Unit Tests for the History-Based Reversion Probability Model
"""

import sys
import os
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.models import (
    HistoricalRecord,
    NoteKind,
    PairAnalysisResult,
    ProbabilityMethod,
    StationarityAnalysis,
)
from research_lab.reversion_probability import (
    ALL_PAIRS_PRIMARY,
    BucketLevel,
    Outcome,
    ReversionModelOptions,
    apply_probability_scoring,
    build_keys,
    build_reversion_model,
    create_reversion_scorer,
    model_primary,
    z_bucket,
)

OPTIONS = ReversionModelOptions(lookahead_bars=1, entry_z_score=1.5, exit_z_score=0.6, min_sample_size=3)


def _result(z, correlation=0.82, symbol="ALPHAUSDT", stationarity=None):
    return PairAnalysisResult(
        symbol=symbol,
        primary_symbol="ETHUSDT",
        spread_z_score=z,
        correlation=correlation,
        stationarity=stationarity,
    )


def _history(interval="1m", stationarity=None):
    """
    20 snapshots alternating signal / follow-up. The first 8 signals revert
    on the next snapshot (z 0.25); the last 2 stay stretched (z 1.2).
    """
    records = []
    for i in range(20):
        if i % 2 == 0:
            z = 2.2
        else:
            z = 0.25 if i // 2 < 8 else 1.2
        records.append(HistoricalRecord(
            id=f"snap-{i}",
            timestamp=float(i),
            primary_pair="ETHUSDT",
            interval=interval,
            results=(_result(z, stationarity=stationarity),),
        ))
    return records


class TestBuckets(unittest.TestCase):

    def test_keys_most_specific_first(self):
        keys = build_keys(_result(2.1, 0.8))
        self.assertEqual([k.level for k in keys], list(BucketLevel))
        self.assertEqual(keys[0].values, ("ETHUSDT", "ALPHAUSDT", "short", "high", "strong"))
        self.assertEqual(keys[-1].values, ())

    def test_each_level_is_a_distinct_bucket(self):
        keys = build_keys(_result(2.1, 0.8))
        self.assertEqual(len({k.values for k in keys}), len(keys))

    def test_z_buckets(self):
        self.assertEqual(z_bucket(1.6), "medium")
        self.assertEqual(z_bucket(-2.5), "high")
        self.assertEqual(z_bucket(3.0), "extreme")

    def test_laplace_smoothing(self):
        self.assertEqual(Outcome(0, 0).probability, 0.5)
        self.assertEqual(Outcome(8, 10).probability, 0.75)


class TestReversionModel(unittest.TestCase):

    def test_estimate_from_history(self):
        model = build_reversion_model(_history(), "ETHUSDT", "1m", OPTIONS)
        estimate = model.estimate(_result(2.1, 0.8))
        self.assertIsNotNone(estimate)
        self.assertEqual(estimate.sample_size, 10)
        self.assertEqual(estimate.wins, 8)
        self.assertAlmostEqual(estimate.probability, 0.75)
        self.assertEqual(estimate.level, BucketLevel.PAIR_BUCKET)
        self.assertEqual(estimate.lookahead_bars, 1)

    def test_counters_are_read_only(self):
        model = build_reversion_model(_history(), "ETHUSDT", "1m", OPTIONS)
        with self.assertRaises(TypeError):
            model.counters[build_keys(_result(2.1))[0]] = Outcome(0, 0)

    def test_no_history(self):
        model = build_reversion_model([], "ETHUSDT", "1m", OPTIONS)
        self.assertIsNone(model.estimate(_result(2.1)))

    def test_other_interval_ignored(self):
        model = build_reversion_model(_history(interval="5m"), "ETHUSDT", "1m", OPTIONS)
        self.assertIsNone(model.estimate(_result(2.1)))

    def test_non_tradable_entries_ignored(self):
        history = _history(stationarity=StationarityAnalysis(is_tradable=False))
        model = build_reversion_model(history, "ETHUSDT", "1m", OPTIONS)
        self.assertIsNone(model.estimate(_result(2.1)))

    def test_falls_back_to_broader_bucket(self):
        """An unseen symbol uses the direction-level bucket"""
        model = build_reversion_model(_history(), "ETHUSDT", "1m", OPTIONS)
        estimate = model.estimate(_result(2.1, 0.8, symbol="NEWUSDT"))
        self.assertEqual(estimate.level, BucketLevel.BUCKET)
        self.assertEqual(estimate.sample_size, 10)

    def test_unseen_z_bucket_uses_pair_direction(self):
        model = build_reversion_model(_history(), "ETHUSDT", "1m", OPTIONS)
        estimate = model.estimate(_result(3.5, 0.8))
        self.assertEqual(estimate.level, BucketLevel.PAIR_DIRECTION)
        self.assertEqual(estimate.sample_size, 10)

    def test_model_primary(self):
        self.assertEqual(model_primary("ETHUSDT"), "ETHUSDT")
        self.assertEqual(model_primary("ETHUSDT", all_vs_all=True), ALL_PAIRS_PRIMARY)


class TestScoring(unittest.TestCase):

    def test_scorer_rescales_opportunity(self):
        scorer = create_reversion_scorer(_history(), "ETHUSDT", "1m", options=OPTIONS)
        scored = scorer.score(_result(2.1, 0.8))
        self.assertEqual(scored.opportunity_score, 75)
        self.assertEqual(scored.reversion_probability.method, ProbabilityMethod.HISTORY)
        self.assertEqual(scored.reversion_probability.sample_size, 10)
        self.assertEqual(scored.notes[-1].kind, NoteKind.REVERSION_EDGE)

    def test_non_tradable_scores_zero(self):
        scorer = create_reversion_scorer(_history(), "ETHUSDT", "1m", options=OPTIONS)
        scored = scorer.score(_result(2.1, 0.8, stationarity=StationarityAnalysis(is_tradable=False)))
        self.assertEqual(scored.opportunity_score, 0)

    def test_without_history_keeps_fallback(self):
        scorer = create_reversion_scorer([], "ETHUSDT", "1m", options=OPTIONS)
        scored = scorer.score(_result(2.1))
        self.assertEqual(scored.reversion_probability.method, ProbabilityMethod.FALLBACK)
        self.assertEqual(scored.opportunity_score, 50)

    def test_apply_probability_scoring_sorts(self):
        tradable = _result(2.1, 0.8)
        blocked = _result(2.1, 0.8, symbol="BETAUSDT",
                          stationarity=StationarityAnalysis(is_tradable=False))
        ranked = apply_probability_scoring([blocked, tradable], _history(), "ETHUSDT", "1m", options=OPTIONS)
        self.assertEqual([r.symbol for r in ranked], ["ALPHAUSDT", "BETAUSDT"])
        self.assertEqual(apply_probability_scoring([], _history(), "ETHUSDT", "1m"), [])


if __name__ == '__main__':
    unittest.main(verbosity=2)
