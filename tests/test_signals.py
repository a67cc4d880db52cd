"""
Unit Tests for Signal Classification

Volatility-adjusted spread, correlation velocity regimes and confluence.
"""

import sys
import os
import unittest

import numpy as np

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.confluence import calculate_confluence, spread_direction
from core.correlation_velocity import calculate_correlation_velocity, determine_correlation_regime
from core.models import (
    CorrelationRegime,
    CorrelationVelocityConfig,
    SignalQuality,
    SpreadDirection,
)
from core.volatility import calculate_volatility_adjusted_spread, classify_signal_quality


class TestVolatilityAdjustedSpread(unittest.TestCase):
    """Test volatility adjustment and quality tiers"""

    def test_quality_tiers(self):
        self.assertEqual(classify_signal_quality(2.5, 0.01), SignalQuality.PREMIUM)
        self.assertEqual(classify_signal_quality(-2.5, 0.03), SignalQuality.STRONG)
        self.assertEqual(classify_signal_quality(1.6, 0.03), SignalQuality.STRONG)
        self.assertEqual(classify_signal_quality(1.2, 0.10), SignalQuality.MODERATE)
        self.assertEqual(classify_signal_quality(0.5, 0.06), SignalQuality.NOISY)
        self.assertEqual(classify_signal_quality(0.5, 0.01), SignalQuality.WEAK)

    def test_thresholds_are_strict(self):
        """|z| exactly at 2.0 is not premium"""
        self.assertEqual(classify_signal_quality(2.0, 0.01), SignalQuality.STRONG)
        self.assertEqual(classify_signal_quality(1.0, 0.01), SignalQuality.WEAK)

    def test_insufficient_prices(self):
        result = calculate_volatility_adjusted_spread([100.0, 101.0], [50.0, 50.5], 2.4)
        self.assertEqual(result.quality, SignalQuality.INSUFFICIENT_DATA)
        self.assertEqual(result.raw_z_score, 2.4)

    def test_calm_legs_double_the_score(self):
        """Constant-growth legs have no volatility, so adjusted z = 2 x raw"""
        primary = [100 * 1.001 ** i for i in range(40)]
        secondary = [50 * 1.002 ** i for i in range(40)]
        result = calculate_volatility_adjusted_spread(primary, secondary, 1.5)
        self.assertAlmostEqual(result.adjusted_z_score, 3.0, places=6)
        self.assertAlmostEqual(result.volatility_adjustment, 1.0, places=6)

    def test_noisy_legs_are_suppressed(self):
        rng = np.random.default_rng(1)
        calm = np.exp(np.cumsum(rng.normal(0, 0.005, 60)))
        wild = np.exp(np.cumsum(rng.normal(0, 0.05, 60)))
        calm_result = calculate_volatility_adjusted_spread(calm, calm * 1.01, 2.0)
        wild_result = calculate_volatility_adjusted_spread(wild, wild * 1.01, 2.0)
        self.assertGreater(calm_result.adjusted_z_score, wild_result.adjusted_z_score)
        self.assertGreater(wild_result.combined_volatility, calm_result.combined_volatility)
        for result in (calm_result, wild_result):
            self.assertGreaterEqual(result.signal_strength, 0.0)
            self.assertLessEqual(result.signal_strength, 100.0)


class TestCorrelationVelocity(unittest.TestCase):
    """Test correlation regime detection"""

    def test_regimes(self):
        self.assertEqual(determine_correlation_regime(-0.6, 0.03, -0.9), CorrelationRegime.WEAKENING)
        self.assertEqual(determine_correlation_regime(-0.2, 0.04, -0.6), CorrelationRegime.BREAKING_DOWN)
        self.assertEqual(determine_correlation_regime(-0.85, -0.02, -0.7), CorrelationRegime.STRENGTHENING)
        self.assertEqual(determine_correlation_regime(0.5, 0.02, 0.3), CorrelationRegime.RECOVERING)
        self.assertEqual(determine_correlation_regime(0.8, 0.0, 0.8), CorrelationRegime.STABLE_STRONG)
        self.assertEqual(determine_correlation_regime(0.2, 0.0, 0.2), CorrelationRegime.STABLE_WEAK)
        self.assertEqual(determine_correlation_regime(0.5, 0.005, 0.45), CorrelationRegime.STABLE)

    def test_insufficient_returns_is_stable(self):
        rng = np.random.default_rng(2)
        a = rng.normal(0, 1, 20)
        result = calculate_correlation_velocity(a, a * 2)
        self.assertEqual(result.regime, CorrelationRegime.STABLE)
        self.assertEqual(result.velocity, 0.0)
        self.assertAlmostEqual(result.current_correlation, 1.0)
        self.assertEqual(result.current_correlation, result.previous_correlation)

    def test_rising_correlation_strengthens(self):
        config = CorrelationVelocityConfig(window_size=4, velocity_lookback=2)
        a = [1, 2, 3, 4, 5, 6, 7, 8]
        b = [4, 3, 2, 1, 1, 2, 3, 4]
        result = calculate_correlation_velocity(a, b, config)
        self.assertAlmostEqual(result.current_correlation, 1.0)
        self.assertAlmostEqual(result.previous_correlation, 0.0)
        self.assertAlmostEqual(result.velocity, 0.5)
        self.assertAlmostEqual(result.acceleration, 0.0)
        self.assertEqual(result.regime, CorrelationRegime.STRENGTHENING)

    def test_collapsing_correlation_breaks_down(self):
        config = CorrelationVelocityConfig(window_size=4, velocity_lookback=2)
        a = [1, 2, 3, 4, 5, 6, 7, 8]
        b = [0, 0, 1, 2, 3, 4, 4, 3]
        result = calculate_correlation_velocity(a, b, config)
        self.assertLess(result.velocity, 0)
        self.assertEqual(result.regime, CorrelationRegime.BREAKING_DOWN)


class TestConfluence(unittest.TestCase):
    """Test the 0-3 confluence rating"""

    def test_full_confluence(self):
        result = calculate_confluence(2.5, CorrelationRegime.STRENGTHENING, SignalQuality.PREMIUM)
        self.assertEqual(result.rating, 3)
        self.assertEqual(result.rating_label, "Strong Confluence")
        self.assertTrue(result.meets_threshold)
        self.assertEqual(result.direction, SpreadDirection.SHORT_SPREAD)

    def test_partial_confluence(self):
        result = calculate_confluence(-2.5, CorrelationRegime.RECOVERING, SignalQuality.WEAK)
        self.assertEqual(result.rating, 1)
        self.assertFalse(result.meets_threshold)
        self.assertEqual(result.direction, SpreadDirection.LONG_SPREAD)

        result = calculate_confluence(-1.0, CorrelationRegime.STABLE_STRONG, SignalQuality.STRONG)
        self.assertEqual(result.rating, 2)
        self.assertTrue(result.meets_threshold)

    def test_direction(self):
        self.assertEqual(spread_direction(0.0), SpreadDirection.NEUTRAL)
        self.assertEqual(spread_direction(-0.1), SpreadDirection.LONG_SPREAD)


if __name__ == '__main__':
    unittest.main(verbosity=2)
