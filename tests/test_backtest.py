"""
Unit Tests for the Pair Backtest Engine

Covers the trading rules, alignment / cleaning of input prices, summary
metrics and the no-look-ahead z-score.
"""

import sys
import os
import json
import math
import tempfile
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from research_lab.backtest_pairs import (
    BacktestConfig,
    Trade,
    calculate_combined_pnl,
    calculate_equity_curve,
    calculate_max_drawdown,
    calculate_summary,
    run_backtest,
    run_backtest_all_pairs,
    save_results,
    summarize_results,
)
from tests.synthetic import backtest_pair

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _trade(profit, duration=3):
    return Trade(
        entry_index=100, exit_index=100 + duration, direction="long_primary",
        entry_spread=-3.2, exit_spread=-0.4, entry_correlation=0.9,
        entry_primary=100.0, entry_secondary=50.0, exit_primary=101.0, exit_secondary=50.0,
        profit_percent=profit, exit_reason="take_profit", duration_bars=duration,
    )


def _spike_pair():
    """Flat pair whose log spread jumps to 0.05 at bar 150 and snaps back to 0."""
    primary = []
    secondary = []
    for i in range(200):
        s = 100 + 0.1 * math.sin(i * 0.3)
        if i < 150:
            spread = 0.001 * math.sin(i * 0.7)
        elif i == 150:
            spread = 0.05
        else:
            spread = 0.0
        secondary.append(s)
        primary.append(s * math.exp(spread))
    return primary, secondary


class TestBacktestSourceCompliance(unittest.TestCase):
    """Test structural guarantees of backtest_pairs.py"""

    def _read_file(self, path):
        with open(os.path.join(ROOT, path), 'r') as f:
            return f.read()

    def test_no_lookahead_bias(self):
        """Verify rolling window comment indicating no look-ahead"""
        source = self._read_file('research_lab/backtest_pairs.py')
        self.assertIn('NO LOOK-AHEAD', source.upper())

    def test_equity_curve_tracked(self):
        """Verify equity curve is tracked for risk metrics"""
        source = self._read_file('research_lab/backtest_pairs.py')
        self.assertIn('equity_curve', source)
        self.assertIn('profit_factor', source)


class TestBacktestRules(unittest.TestCase):
    """Test entry / exit behavior"""

    def test_too_short_returns_empty_result(self):
        """Fewer than 110 valid bars gives no trades and a flat equity curve"""
        primary, secondary = backtest_pair(109)
        result = run_backtest(primary, secondary, "ETHUSDT", "BTCUSDT")
        self.assertEqual(result.trades, [])
        self.assertEqual(result.summary.total_trades, 0)
        self.assertEqual(result.equity_curve, [0.0])

    def test_correlation_filter_blocks_trading(self):
        """An unreachable correlation floor means no trades"""
        primary, secondary = backtest_pair(400)
        result = run_backtest(primary, secondary, "ETHUSDT", "BTCUSDT",
                              BacktestConfig(min_correlation=1.01))
        self.assertEqual(result.summary.total_trades, 0)
        self.assertEqual(result.equity_curve, [0.0])

    def test_spike_opens_short_primary_and_takes_profit(self):
        """A positive spread spike shorts the primary and exits on reversion"""
        primary, secondary = _spike_pair()
        result = run_backtest(primary, secondary, "ETHUSDT", "BTCUSDT",
                              BacktestConfig(min_correlation=-1.0))
        self.assertGreaterEqual(result.summary.total_trades, 1)

        trade = result.trades[0]
        self.assertEqual(trade.entry_index, 150)
        self.assertEqual(trade.exit_index, 151)
        self.assertEqual(trade.direction, "short_primary")
        self.assertEqual(trade.exit_reason, "take_profit")
        self.assertGreater(trade.profit_percent, 0.5)
        self.assertGreater(trade.entry_spread, 3.0)
        self.assertEqual(trade.duration_bars, 1)

    def test_indices_refer_to_cleaned_series(self):
        """An invalid bar before the spike shifts trade indices down by one"""
        primary, secondary = _spike_pair()
        primary[20] = float('nan')
        result = run_backtest(primary, secondary, "ETHUSDT", "BTCUSDT",
                              BacktestConfig(min_correlation=-1.0))
        trade = result.trades[0]
        self.assertEqual(trade.entry_index, 149)
        self.assertEqual(trade.exit_index, 150)
        self.assertEqual(trade.entry_primary, primary[150])
        self.assertEqual(trade.exit_secondary, secondary[151])

    def test_open_position_closed_at_end_of_data(self):
        """A spike on the final bar is closed as end_of_data"""
        primary, secondary = _spike_pair()
        primary = primary[:151]
        secondary = secondary[:151]
        result = run_backtest(primary, secondary, "ETHUSDT", "BTCUSDT",
                              BacktestConfig(min_correlation=-1.0))
        self.assertEqual(result.summary.total_trades, 1)
        self.assertEqual(result.trades[0].exit_reason, "end_of_data")
        self.assertEqual(result.trades[0].profit_percent, 0.0)

    def test_unaligned_prefix_is_ignored(self):
        """Extra leading primary bars do not change the result"""
        primary, secondary = backtest_pair(320)
        baseline = run_backtest(primary, secondary, "ETHUSDT", "BTCUSDT",
                                BacktestConfig(min_correlation=0.5))
        prefixed = run_backtest([95.0 + i * 0.01 for i in range(40)] + primary, secondary,
                                "ETHUSDT", "BTCUSDT", BacktestConfig(min_correlation=0.5))
        self.assertEqual(prefixed.summary.total_trades, baseline.summary.total_trades)
        self.assertAlmostEqual(prefixed.summary.total_profit_percent,
                               baseline.summary.total_profit_percent, places=10)

    def test_invalid_prices_are_dropped(self):
        """Zero, negative and non-finite prices never leak into P&L"""
        primary, secondary = backtest_pair(320)
        primary[150] = 0.0
        primary[151] = -5.0
        secondary[152] = float('nan')
        secondary[153] = float('inf')
        result = run_backtest(primary, secondary, "ETHUSDT", "BTCUSDT",
                              BacktestConfig(entry_spread_threshold=1.5, min_correlation=-1.0))
        self.assertTrue(math.isfinite(result.summary.total_profit_percent))
        for trade in result.trades:
            self.assertTrue(math.isfinite(trade.profit_percent))

    def test_all_pairs(self):
        primary, secondary = backtest_pair(200)
        results = run_backtest_all_pairs(primary, {"A": secondary, "B": secondary[:50]}, "BTCUSDT")
        self.assertEqual([r.symbol for r in results], ["A", "B"])
        self.assertEqual(results[1].summary.total_trades, 0)


class TestBacktestRiskMetrics(unittest.TestCase):
    """Test summary statistics"""

    def test_combined_pnl(self):
        self.assertAlmostEqual(calculate_combined_pnl("long_primary", 100, 100, 101, 100), 0.5)
        self.assertAlmostEqual(calculate_combined_pnl("short_primary", 100, 100, 101, 100), -0.5)
        self.assertAlmostEqual(calculate_combined_pnl("short_primary", 100, 50, 100, 51), 1.0)

    def test_summary_metrics(self):
        """Win rate, profit factor, equity curve and drawdown"""
        trades = [_trade(1.0), _trade(-0.5), _trade(0.5)]
        summary = calculate_summary(trades)
        self.assertEqual(summary.total_trades, 3)
        self.assertEqual(summary.winning_trades, 2)
        self.assertEqual(summary.losing_trades, 1)
        self.assertAlmostEqual(summary.win_rate, 200 / 3)
        self.assertAlmostEqual(summary.total_profit_percent, 1.0)
        self.assertAlmostEqual(summary.profit_factor, 3.0)
        self.assertAlmostEqual(summary.max_drawdown_percent, 0.5)
        self.assertAlmostEqual(summary.largest_win, 1.0)
        self.assertAlmostEqual(summary.largest_loss, -0.5)
        self.assertEqual(calculate_equity_curve(trades), [0.0, 1.0, 0.5, 1.0])

    def test_profit_factor_without_losses(self):
        self.assertEqual(calculate_summary([_trade(0.4), _trade(0.6)]).profit_factor, math.inf)
        self.assertEqual(calculate_summary([_trade(0.0)]).profit_factor, 0.0)

    def test_empty_summary(self):
        summary = calculate_summary([])
        self.assertEqual(summary.total_trades, 0)
        self.assertEqual(summary.win_rate, 0.0)
        self.assertEqual(summary.profit_factor, 0.0)

    def test_max_drawdown_from_peak(self):
        self.assertAlmostEqual(calculate_max_drawdown([0.0, 2.0, 1.0, 3.0, 0.5]), 2.5)
        self.assertEqual(calculate_max_drawdown([0.0]), 0.0)

    def test_report_and_save(self):
        primary, secondary = _spike_pair()
        results = [run_backtest(primary, secondary, "ETHUSDT", "BTCUSDT",
                                BacktestConfig(min_correlation=-1.0))]
        df = summarize_results(results)
        self.assertEqual(df.iloc[0]['pair'], "BTCUSDT/ETHUSDT")

        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "results.json")
            save_results(results, path)
            with open(path) as f:
                saved = json.load(f)
        self.assertEqual(saved[0]['symbol'], "ETHUSDT")
        self.assertEqual(saved[0]['trades'][0]['exit_reason'], "take_profit")


if __name__ == '__main__':
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestBacktestSourceCompliance))
    suite.addTests(loader.loadTestsFromTestCase(TestBacktestRules))
    suite.addTests(loader.loadTestsFromTestCase(TestBacktestRiskMetrics))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)
    sys.exit(0 if result.wasSuccessful() else 1)
