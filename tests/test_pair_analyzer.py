"""
Unit Tests for the Pair Analysis Orchestrator
"""

import sys
import os
import json
import unittest

import numpy as np

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.models import (
    AnalysisConfig,
    NoteKind,
    PairAnalysisResult,
    ProbabilityMethod,
    SignalQuality,
    SpreadDirection,
    StationarityAnalysis,
)
from core.pair_analyzer import (
    analyze_all_pairs,
    analyze_pair,
    build_all_vs_all_candidates,
    calculate_opportunity_score,
    fallback_reversion_probability,
    method_average,
    spread_opportunity,
)
from tests.synthetic import drifting_pair, mean_reverting_pair


class TestScoring(unittest.TestCase):
    """Test the opportunity score components"""

    def test_spread_opportunity(self):
        self.assertAlmostEqual(spread_opportunity(1.0, 2.0), 25.0)
        self.assertAlmostEqual(spread_opportunity(-2.0, 2.0), 50.0)
        self.assertEqual(spread_opportunity(4.0, 2.0), 100.0)
        self.assertEqual(spread_opportunity(10.0, 2.0), 100.0)
        self.assertEqual(spread_opportunity(float('nan'), 2.0), 0.0)

    def test_method_average(self):
        stationarity = StationarityAnalysis(adf_passed=True, cointegration_passed=True)
        self.assertAlmostEqual(method_average(SignalQuality.PREMIUM, stationarity), 50 + 100 / 3)
        self.assertEqual(method_average(SignalQuality.INSUFFICIENT_DATA, StationarityAnalysis()), 0.0)

    def test_opportunity_score_requires_tradable(self):
        self.assertEqual(calculate_opportunity_score(100, 100, False), 0)
        self.assertEqual(calculate_opportunity_score(50, 50, True), 50)
        self.assertEqual(calculate_opportunity_score(100, 100, True), 100)

    def test_fallback_probability(self):
        self.assertAlmostEqual(fallback_reversion_probability(3.0, True, 12).probability, 0.7)
        self.assertAlmostEqual(fallback_reversion_probability(3.0, False, 12).probability, 0.35)
        self.assertAlmostEqual(fallback_reversion_probability(20.0, True, 12).probability, 0.95)
        self.assertAlmostEqual(fallback_reversion_probability(0.0, True, 12).probability, 0.4)
        self.assertEqual(fallback_reversion_probability(3.0, True, 12).method, ProbabilityMethod.FALLBACK)


class TestAnalyzePair(unittest.TestCase):
    """Test the full single-timeframe pipeline"""

    def test_insufficient_data(self):
        result = analyze_pair([100.0] * 10, [50.0] * 10, "ETHUSDT", "BTCUSDT")
        self.assertEqual(result.opportunity_score, 0)
        self.assertEqual(result.aligned_bars, 10)
        self.assertFalse(result.is_tradable)
        self.assertEqual(result.confluence.direction, SpreadDirection.NEUTRAL)
        self.assertEqual(result.notes[0].kind, NoteKind.INSUFFICIENT_DATA)
        self.assertIn("10 aligned bars", result.messages[0])

    def test_mean_reverting_pair(self):
        primary, secondary = mean_reverting_pair()
        result = analyze_pair(primary, secondary, "ETHUSDT", "BTCUSDT")
        self.assertEqual(result.pair_key, ("BTCUSDT", "ETHUSDT"))
        self.assertEqual(result.aligned_bars, 300)
        self.assertTrue(result.is_tradable)
        self.assertGreater(result.opportunity_score, 0)
        self.assertLessEqual(result.opportunity_score, 100)
        self.assertGreater(result.correlation, 0.5)
        self.assertAlmostEqual(result.ratio, primary[-1] / secondary[-1])
        self.assertNotEqual(result.volatility_adjusted_spread.quality, SignalQuality.INSUFFICIENT_DATA)

        kinds = [note.kind for note in result.notes]
        self.assertIn(NoteKind.STATIONARITY, kinds)
        self.assertIn(NoteKind.CORRELATION_LEVEL, kinds)
        self.assertTrue(all(isinstance(m, str) for m in result.messages))

    def test_non_tradable_pair_scores_zero(self):
        primary, secondary = drifting_pair()
        result = analyze_pair(primary, secondary, "ETHUSDT", "BTCUSDT")
        self.assertFalse(result.is_tradable)
        self.assertEqual(result.opportunity_score, 0)
        self.assertLessEqual(result.reversion_probability.probability, 0.5)

    def test_invalid_bars_dropped(self):
        primary, secondary = mean_reverting_pair()
        primary = primary.copy()
        primary[5] = np.nan
        secondary = secondary.copy()
        secondary[6] = -1.0
        result = analyze_pair(primary, secondary, "ETHUSDT", "BTCUSDT")
        self.assertEqual(result.aligned_bars, 298)

    def test_min_bars_config(self):
        primary, secondary = mean_reverting_pair(n=60)
        result = analyze_pair(primary, secondary, "ETHUSDT", "BTCUSDT", config=AnalysisConfig(min_bars=100))
        self.assertEqual(result.opportunity_score, 0)
        self.assertEqual(result.notes[0].params["required"], 100)

    def test_json_round_trip(self):
        primary, secondary = mean_reverting_pair()
        result = analyze_pair(primary, secondary, "ETHUSDT", "BTCUSDT")
        restored = PairAnalysisResult.from_dict(json.loads(json.dumps(result.to_dict())))
        self.assertEqual(restored.symbol, "ETHUSDT")
        self.assertEqual(restored.opportunity_score, result.opportunity_score)
        self.assertEqual(restored.stationarity, result.stationarity)
        self.assertEqual(restored.volatility_adjusted_spread, result.volatility_adjusted_spread)
        self.assertEqual(restored.confluence, result.confluence)
        self.assertEqual([n.kind for n in restored.notes], [n.kind for n in result.notes])


class TestAnalyzeAllPairs(unittest.TestCase):

    def test_sorted_and_primary_excluded(self):
        primary, good = mean_reverting_pair()
        _, bad = drifting_pair()
        results = analyze_all_pairs(primary, {"GOOD": good, "BAD": bad, "BTCUSDT": primary}, "BTCUSDT")
        self.assertEqual(len(results), 2)
        self.assertEqual({r.symbol for r in results}, {"GOOD", "BAD"})
        by_symbol = {r.symbol: r for r in results}
        self.assertGreater(by_symbol["GOOD"].opportunity_score, 0)
        scores = [r.opportunity_score for r in results]
        self.assertEqual(scores, sorted(scores, reverse=True))

    def test_all_vs_all_candidates(self):
        rng = np.random.default_rng(4)
        base = np.exp(np.cumsum(rng.normal(0, 0.01, 200)))
        noise = np.exp(np.cumsum(rng.normal(0, 0.01, 200)))
        series = {"A": base, "B": base * 1.5, "C": noise}
        candidates = build_all_vs_all_candidates(series, min_correlation=0.9)
        self.assertEqual(len(candidates), 1)
        self.assertEqual((candidates[0].first, candidates[0].second), ("A", "B"))
        self.assertAlmostEqual(candidates[0].abs_correlation, 1.0)


if __name__ == '__main__':
    unittest.main(verbosity=2)
