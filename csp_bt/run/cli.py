"""
CLI entrypoint for running backtests.
"""

import argparse
import logging
import sys
from typing import List, Optional

from ..config import load_config, apply_env_overrides, apply_cli_overrides, RunConfig
from ..data import write_price_csv
from .artifacts import generate_run_id
from .runner import run_backtest, RunResult

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO"):
    """Setup logging configuration"""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _fmt_pct(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.2f}%"


def print_summary(run: RunResult, show_trades: bool = True):
    """Print backtest summary to console"""
    result = run.result
    perf = run.performance

    print("\n" + "=" * 70)
    print("BACKTEST SUMMARY")
    print("=" * 70)
    print(f"Run ID: {run.run_id}")
    print(f"Run Directory: {run.run_dir}")
    print(f"Date Range: {result.start_date.isoformat()} to {result.end_date.isoformat()}")
    print("-" * 70)
    print(f"Starting BTC: {result.starting_btc:.8f} BTC")
    print(f"Final BTC: {result.final_btc:.8f} BTC")
    print(f"BTC Change: {_fmt_pct(perf.btc_growth_percent)}")
    print(f"Starting USD: ${result.starting_usd:,.2f}")
    print(f"Final USD: ${result.final_usd:,.2f}")
    print(f"Total Trades: {result.total_trades}")
    print(f"Assigned Puts: {result.assigned_puts}")
    print(f"Total Premium Collected: ${result.total_premium_collected:,.2f}")
    print("-" * 70)
    print(f"Final BTC Price: ${result.final_price:,.2f}")
    print(f"USD Value Growth: {_fmt_pct(perf.usd_value_growth_percent)}")
    print(f"Final Portfolio Value: ${perf.final_portfolio_value_usd:,.2f}")
    print("=" * 70)

    if show_trades:
        print("TRADING ACTIVITY")
        print("-" * 70)
        if not result.trades:
            print("  No trades were executed during this period.")
        for i, trade in enumerate(result.trades, start=1):
            print(
                f"[{i}] {trade.timestamp.isoformat()} - {trade.action} @ ${trade.btc_price:,.2f} "
                f"| BTC: {trade.btc_balance:.8f} | USD: ${trade.usd_balance:,.2f}"
            )
        print("=" * 70 + "\n")


def cmd_dry_run(config: RunConfig, run_id_mode: str):
    """Dry run: resolve config and print run ID without executing"""
    run_id = generate_run_id(config.model_dump(), mode=run_id_mode)

    print("\n" + "=" * 70)
    print("DRY RUN - Configuration Resolved")
    print("=" * 70)
    print(f"Run ID (mode: {run_id_mode}): {run_id}")
    print(f"Data: {config.data.csv_path}")
    print(f"Date Range: {config.engine.start or 'all'} to {config.engine.end or 'all'}")
    print(f"Pricing: {config.strategy.pricing_mode}")
    print(f"Strike Discount: {config.strategy.strike_discount_percent}")
    print(f"Premium: {config.strategy.put_premium_percent}")
    print(f"Days To Expiration: {config.strategy.days_to_expiration}")
    print("=" * 70 + "\n")

    return run_id


def resolve_config(
    config_path: str,
    data: Optional[str],
    start: Optional[str],
    end: Optional[str],
    sets: List[str],
) -> RunConfig:
    """Load config, then apply env overrides, --set overrides, and explicit flags (in that order)"""
    config = load_config(config_path)
    config = apply_env_overrides(config)
    if sets:
        config = apply_cli_overrides(config, sets)
    if data:
        config.data.csv_path = data
    if start:
        config.engine.start = start
    if end:
        config.engine.end = end
    return config


def main(argv: Optional[List[str]] = None):
    """Main CLI entrypoint"""
    parser = argparse.ArgumentParser(
        description="Cash-Secured Put Backtest - CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with config file
  python -m csp_bt.run --config configs/btc_weekly_puts.yaml

  # Override date range and data file
  python -m csp_bt.run --config configs/btc_weekly_puts.yaml --data data/btcusd_1-min_data.csv --start 2023-01-01 --end 2023-12-31

  # Override strategy values
  python -m csp_bt.run --config configs/btc_weekly_puts.yaml --set strategy.pricing_mode=black_scholes --set strategy.days_to_expiration=14

  # Write the bundled sample CSV
  python -m csp_bt.run --write-sample data/btc_sample_data.csv
        """,
    )

    parser.add_argument("--config", type=str, help="Path to config file (YAML or JSON)")
    parser.add_argument("--data", type=str, help="Override price CSV path")
    parser.add_argument("--start", type=str, help="Override start date (ISO format, e.g., 2023-01-01)")
    parser.add_argument("--end", type=str, help="Override end date (ISO format, e.g., 2023-12-31)")
    parser.add_argument(
        "--set",
        action="append",
        dest="sets",
        metavar="KEY=VALUE",
        help="Override config value (can be used multiple times). Use nested keys: strategy.days_to_expiration=14",
    )
    parser.add_argument(
        "--run-id-mode",
        choices=["deterministic", "timestamp"],
        default="timestamp",
        help="Run ID generation mode (default: timestamp)",
    )
    parser.add_argument("--dry-run", action="store_true", help="Resolve config and print run ID without executing")
    parser.add_argument("--write-sample", type=str, metavar="PATH", help="Write the sample OHLCV CSV to PATH and exit")
    parser.add_argument("--no-trades", action="store_true", help="Do not print the trade log")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    if args.write_sample:
        path = write_price_csv(args.write_sample)
        print(f"Sample data written to {path}")
        return 0

    if not args.config:
        print("ERROR: --config is required", file=sys.stderr)
        parser.print_help()
        return 1

    try:
        config = resolve_config(args.config, args.data, args.start, args.end, args.sets or [])

        if args.dry_run:
            cmd_dry_run(config, args.run_id_mode)
            return 0

        result = run_backtest(config, run_id_mode=args.run_id_mode)
        print_summary(result, show_trades=not args.no_trades)
        return 0

    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        logger.exception("Backtest failed")
        return 1


if __name__ == "__main__":
    sys.exit(main())
