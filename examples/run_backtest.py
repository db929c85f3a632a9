"""
Example runner script demonstrating programmatic backtest execution.

Writes the bundled sample CSV, then calls the same run_backtest() function used by the CLI.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from csp_bt.config import load_config
from csp_bt.data import write_price_csv
from csp_bt.run.cli import print_summary
from csp_bt.run.runner import run_backtest


def main():
    """Run example backtest"""
    root = Path(__file__).parent.parent
    config_path = root / "configs" / "sample_flat.json"

    if not config_path.exists():
        print(f"ERROR: Config file not found: {config_path}")
        return 1

    try:
        config = load_config(str(config_path))
        config.data.csv_path = str(write_price_csv(root / "data" / "btc_sample_data.csv"))

        # Optionally override programmatically
        # config.engine.start = "2012-01-01T10:01:00Z"

        print(f"Running backtest with config: {config_path}")
        result = run_backtest(config, run_id_mode="timestamp")
        print_summary(result)

        print(f"Results saved to: {result.run_dir}")
        print("Files:")
        print("  - config_resolved.json")
        print("  - manifest.json")
        print("  - trades.csv")
        print("  - balances.csv")
        print("  - metrics.json")
        print("  - run.log")

        return 0

    except Exception as e:
        print(f"ERROR: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
