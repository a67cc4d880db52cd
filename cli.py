#!/usr/bin/env python
import argparse
import logging
import math
import os
import sys
from dataclasses import replace

# Add root to path so we can import 'core', 'research_lab', etc.
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from tabulate import tabulate

import infrastructure.config as config
from infrastructure.data.price_loader import align_closes, load_close_series, load_ohlcv, load_pair

logger = logging.getLogger("cli")


def _symbol_from_path(path):
    """BTCUSDT_5m.csv -> BTCUSDT"""
    return os.path.splitext(os.path.basename(path))[0].split("_")[0]


def _fmt(value, digits=2):
    if isinstance(value, float) and not math.isfinite(value):
        return "∞" if value > 0 else "-∞"
    return round(value, digits)


# ===========================================================
# COMMAND HANDLERS
# ===========================================================

def cmd_analyze(args, settings):
    from core.pair_analyzer import analyze_pair
    from infrastructure.data.history_store import append_snapshot, load_history
    from research_lab.reversion_probability import apply_probability_scoring

    primary_symbol = args.primary_symbol or _symbol_from_path(args.primary)
    primary = load_close_series(args.primary)
    print(f"\n--- 🔍 PAIR ANALYSIS vs {primary_symbol} ({args.interval}) ---")

    results = []
    for path in args.secondary:
        symbol = _symbol_from_path(path)
        p, s = align_closes(primary, load_close_series(path))
        results.append(analyze_pair(p, s, symbol, primary_symbol, settings.analysis))

    if args.history:
        history = load_history(config.HISTORY_FILE)
        results = apply_probability_scoring(results, history, primary_symbol, args.interval,
                                            options=settings.reversion)
        print(f"📚 Scored with {len(history)} historical snapshots")
    else:
        results.sort(key=lambda r: r.opportunity_score, reverse=True)

    rows = []
    for r in results:
        st = r.stationarity
        rows.append([
            r.symbol, r.opportunity_score, _fmt(r.spread_z_score), _fmt(r.correlation),
            r.volatility_adjusted_spread.quality.value, r.correlation_velocity.regime.value,
            f"{r.confluence.rating}/3", r.confluence.direction.value,
            "✅" if st and st.is_tradable else "❌",
            _fmt(st.half_life_bars, 1) if st else "-",
            f"{r.reversion_probability.probability:.0%}",
        ])
    print(tabulate(rows, headers=["symbol", "score", "z", "corr", "quality", "regime",
                                  "confluence", "direction", "tradable", "half-life", "p(revert)"],
                   tablefmt="simple_grid"))

    if args.verbose:
        for r in results:
            print(f"\n📝 {r.primary_symbol}/{r.symbol}")
            for message in r.messages:
                print(f"   • {message}")

    if args.record:
        record = append_snapshot(results, primary_symbol, args.interval, config.HISTORY_FILE)
        print(f"\n✅ Snapshot {record.id[:8]} saved to {config.HISTORY_FILE}")
    return 0


def cmd_mtf(args, settings):
    from core.multi_timeframe import analyze_multi_timeframe
    from infrastructure.data.resample import resample_ohlcv

    primary_symbol = args.primary_symbol or _symbol_from_path(args.primary)
    symbol = _symbol_from_path(args.secondary)
    primary_df = load_ohlcv(args.primary)
    secondary_df = load_ohlcv(args.secondary)
    intervals = tuple(args.intervals or settings.confluence.intervals)

    timeframe_data = {}
    for interval in intervals:
        p = resample_ohlcv(primary_df, interval)["close"]
        s = resample_ohlcv(secondary_df, interval)["close"]
        p_closes, s_closes = align_closes(p, s)
        timeframe_data[interval] = {"primary": p_closes, "secondary": s_closes}

    confluence_config = settings.confluence
    if args.weighting:
        confluence_config = replace(confluence_config, weighting=args.weighting)
    result = analyze_multi_timeframe(timeframe_data, symbol, primary_symbol, confluence_config)

    print(f"\n--- 🧭 MULTI-TIMEFRAME CONFLUENCE: {primary_symbol}/{symbol} ---")
    rows = [[i, a.aligned_bars, a.opportunity_score, _fmt(a.spread_z_score), _fmt(a.correlation),
             a.volatility_adjusted_spread.quality.value, a.confluence.direction.value,
             _fmt(result.weights.get(i, 0.0))]
            for i, a in result.analyses.items()]
    print(tabulate(rows, headers=["interval", "bars", "score", "z", "corr", "quality", "direction", "weight"],
                   tablefmt="simple_grid"))
    print(f"🎯 Confluence score: {result.confluence_score}/100 ({result.confidence.value})")
    print(f"📊 Direction: {result.signal_direction.value} "
          f"({result.aligned_timeframes}/{result.total_timeframes} aligned)")
    for note in result.notes:
        print(f"   • {note.message}")
    return 0


def cmd_backtest(args, settings):
    from research_lab.backtest_pairs import (
        print_backtest_report,
        run_backtest,
        save_results,
    )

    primary_symbol = args.primary_symbol or _symbol_from_path(args.primary)
    primary = load_close_series(args.primary)
    bt_config = settings.backtest
    overrides = {
        "entry_spread_threshold": args.entry,
        "min_correlation": args.min_corr,
        "take_profit_percent": args.tp,
        "stop_loss_percent": args.sl,
    }
    bt_config = replace(bt_config, **{k: v for k, v in overrides.items() if v is not None})

    print(f"--- 🧪 PAIR BACKTEST vs {primary_symbol} ---")
    print(f"⚙️  entry |z|>{bt_config.entry_spread_threshold} corr>={bt_config.min_correlation} "
          f"TP {bt_config.take_profit_percent}% SL {bt_config.stop_loss_percent}%")

    results = []
    for path in args.secondary:
        symbol = _symbol_from_path(path)
        print(f"Testing {primary_symbol}-{symbol}...", end="\r")
        p, s = align_closes(primary, load_close_series(path))
        results.append(run_backtest(p, s, symbol, primary_symbol, bt_config))

    print_backtest_report(results)
    if args.save:
        config.ensure_dirs()
        save_results(results, config.BACKTEST_RESULTS_FILE)
    return 0


def cmd_optimize(args, settings):
    from research_lab.walk_forward import build_price_data, optimize_parameters, window_results_frame

    p, s = load_pair(args.primary, args.secondary)
    train = args.train or settings.train_window
    test = args.test or settings.test_window

    print(f"--- 🔬 WALK-FORWARD OPTIMIZATION ({len(p)} bars, train {train} / test {test}) ---")
    params = optimize_parameters(build_price_data(p, s), train, test)

    if params.windows_evaluated == 0:
        print(f"⚠️  Not enough data for one {params.train_window}+{params.test_window} window. Using defaults.")
    else:
        print(tabulate(window_results_frame(params), headers="keys", tablefmt="simple_grid", showindex=False))

    cfg = params.config
    print(f"\n🏆 Best config: entry |z|>{cfg.entry_spread_threshold}, corr>={cfg.min_correlation}, "
          f"TP {cfg.take_profit_percent}%, SL {cfg.stop_loss_percent}%")
    print(f"📈 Walk-forward profit: {params.walk_forward_profit_percent:.3f}% over "
          f"{params.walk_forward_trades} trades (win rate {params.walk_forward_win_rate:.1f}%)")
    print(f"📉 Baseline profit: {params.baseline_profit_percent:.3f}% "
          f"(improvement {params.improvement_percent:+.3f}%)")
    print(f"🎯 Confidence: {params.confidence.value.upper()} ({params.windows_evaluated} windows)")
    return 0


def cmd_resample(args, _settings):
    from infrastructure.data.resample import resample_ohlcv, resolve_fetch_interval

    plan = resolve_fetch_interval(args.interval)
    df = resample_ohlcv(load_ohlcv(args.input), args.interval)
    output = args.output or args.input.replace(".csv", f"_{args.interval}.csv")
    df.to_csv(output, index_label="date")
    print(f"✅ Resampled to {args.interval} ({len(df)} bars, "
          f"source {plan.source_interval} x{plan.ratio}) -> {output}")
    return 0


def cmd_init_config(args, _settings):
    config.ensure_dirs()
    if os.path.exists(args.config):
        print(f"⚠️  {args.config} already exists")
        return 0
    config.load_settings(args.config, create_template=True)
    return 0


# ===========================================================
# MAIN PARSER
# ===========================================================

def build_parser():
    parser = argparse.ArgumentParser(description="Pair Reversion CLI")
    parser.add_argument("--config", default=config.CONFIG_FILE, help="Settings JSON")
    parser.add_argument("--log-level", default="WARNING")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # 1. ANALYSIS
    p_an = subparsers.add_parser("analyze", help="Analyze pairs on one timeframe")
    p_an.add_argument("--primary", required=True, help="Primary CSV (e.g. BTCUSDT_5m.csv)")
    p_an.add_argument("--secondary", required=True, nargs="+", help="Candidate CSVs")
    p_an.add_argument("--primary-symbol")
    p_an.add_argument("--interval", default="5m")
    p_an.add_argument("--history", action="store_true", help="Score with stored scan history")
    p_an.add_argument("--record", action="store_true", help="Append this scan to history")
    p_an.add_argument("--verbose", "-v", action="store_true", help="Print notes")
    p_an.set_defaults(func=cmd_analyze)

    p_mtf = subparsers.add_parser("mtf", help="Multi-timeframe confluence from base candles")
    p_mtf.add_argument("--primary", required=True)
    p_mtf.add_argument("--secondary", required=True)
    p_mtf.add_argument("--primary-symbol")
    p_mtf.add_argument("--intervals", nargs="+", help="e.g. 5m 15m 1h")
    p_mtf.add_argument("--weighting", choices=["equal", "interval"])
    p_mtf.set_defaults(func=cmd_mtf)

    # 2. RESEARCH LAB
    p_bt = subparsers.add_parser("backtest", help="Backtest z-score pair strategy")
    p_bt.add_argument("--primary", required=True)
    p_bt.add_argument("--secondary", required=True, nargs="+")
    p_bt.add_argument("--primary-symbol")
    p_bt.add_argument("--entry", type=float)
    p_bt.add_argument("--min-corr", type=float)
    p_bt.add_argument("--tp", type=float)
    p_bt.add_argument("--sl", type=float)
    p_bt.add_argument("--save", action="store_true")
    p_bt.set_defaults(func=cmd_backtest)

    p_opt = subparsers.add_parser("optimize", help="Walk-forward parameter optimization")
    p_opt.add_argument("--primary", required=True)
    p_opt.add_argument("--secondary", required=True)
    p_opt.add_argument("--train", type=int)
    p_opt.add_argument("--test", type=int)
    p_opt.set_defaults(func=cmd_optimize)

    # 3. DATA
    p_rs = subparsers.add_parser("resample", help="Resample an OHLCV CSV")
    p_rs.add_argument("--input", required=True)
    p_rs.add_argument("--interval", required=True)
    p_rs.add_argument("--output")
    p_rs.set_defaults(func=cmd_resample)

    subparsers.add_parser("init-config", help="Write a settings template").set_defaults(func=cmd_init_config)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    config.setup_logging(args.log_level)
    try:
        settings = config.load_settings(args.config, create_template=False)
        return args.func(args, settings)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
