"""
Run artifacts: standardized output files for each backtest run.
"""

import hashlib
import json
import logging
import random
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Dict, Any

import pandas as pd
import yaml

logger = logging.getLogger(__name__)

# Handlers attach to the package logger so engine/driver messages land in run.log too
_PACKAGE_LOGGER = "csp_bt"

TRADE_COLUMNS = [
    "timestamp",
    "action",
    "btc_price",
    "strike_price",
    "premium",
    "btc_balance",
    "usd_balance",
]

BALANCE_COLUMNS = [
    "timestamp",
    "price",
    "btc_balance",
    "usd_balance",
    "portfolio_value_usd",
    "active_strike",
]


class RunArtifacts:
    """
    Manages run artifacts (output files) for a backtest run.

    Each run writes to: runs/<run_id>/
    - config_resolved.yaml|json
    - manifest.json
    - trades.csv
    - balances.csv
    - metrics.json
    - run.log
    """

    def __init__(
        self,
        run_dir: Path,
        run_id: str,
        config: Dict[str, Any],
        save_log: bool = True,
    ):
        """
        Initialize run artifacts writer.

        Args:
            run_dir: Root directory for runs (e.g., Path("runs"))
            run_id: Unique run ID (deterministic hash or timestamp-based)
            config: Resolved RunConfig as dictionary
            save_log: Mirror package logging into run.log
        """
        self.run_dir = Path(run_dir) / run_id
        self.run_id = run_id
        self.config = config

        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.log_file = self.run_dir / "run.log"
        self._file_handler = None
        if save_log:
            self._setup_logging()

    def _setup_logging(self):
        """Setup file logging for this run"""
        file_handler = logging.FileHandler(self.log_file, encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        file_handler.setFormatter(formatter)
        logging.getLogger(_PACKAGE_LOGGER).addHandler(file_handler)
        self._file_handler = file_handler

    def close(self):
        """Close file handlers"""
        if self._file_handler is not None:
            logging.getLogger(_PACKAGE_LOGGER).removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def write_config_resolved(self, format: Literal["yaml", "json"] = "json"):
        """Write resolved configuration file"""
        if format == "yaml":
            # Round-trip through JSON so Decimals/datetimes become plain scalars
            plain = json.loads(json.dumps(self.config, default=str))
            with open(self.run_dir / "config_resolved.yaml", "w", encoding="utf-8") as f:
                yaml.safe_dump(plain, f, default_flow_style=False, sort_keys=False)
        elif format == "json":
            with open(self.run_dir / "config_resolved.json", "w", encoding="utf-8") as f:
                json.dump(self.config, f, indent=2, default=str)
        else:
            raise ValueError(f"Invalid config format: {format}")

    def write_manifest(self, metadata: Dict[str, Any]):
        """Write manifest.json with run metadata"""
        manifest = {
            "run_id": self.run_id,
            "created_at": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "config": self.config,
            **metadata,
        }

        with open(self.run_dir / "manifest.json", "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2, default=str)

    def write_trades(self, trades: pd.DataFrame):
        """
        Write trades.csv

        Expected columns: timestamp, action, btc_price, strike_price, premium, btc_balance, usd_balance
        """
        if trades.empty:
            trades = pd.DataFrame(columns=TRADE_COLUMNS)

        trades.to_csv(self.run_dir / "trades.csv", index=False)

    def write_balances(self, balances: pd.DataFrame):
        """
        Write balances.csv (per-tick holdings)

        Expected columns: timestamp, price, btc_balance, usd_balance, portfolio_value_usd, active_strike
        """
        if balances.empty:
            balances = pd.DataFrame(columns=BALANCE_COLUMNS)

        balances.to_csv(self.run_dir / "balances.csv", index=False)

    def write_metrics(self, metrics: Dict[str, Any]):
        """Write metrics.json"""
        with open(self.run_dir / "metrics.json", "w", encoding="utf-8") as f:
            json.dump(metrics, f, indent=2, default=str)


def generate_run_id(
    config: Dict[str, Any],
    mode: Literal["deterministic", "timestamp"] = "timestamp",
) -> str:
    """
    Generate run ID.

    Args:
        config: Resolved RunConfig as dictionary
        mode: "deterministic" (hash of config) or "timestamp" (YYYYMMDD-HHMMSS-<suffix>)

    Returns:
        Run ID string
    """
    if mode == "deterministic":
        config_json = json.dumps(config, sort_keys=True, default=str)
        hash_hex = hashlib.sha256(config_json.encode("utf-8")).hexdigest()[:12]
        return f"run-{hash_hex}"

    elif mode == "timestamp":
        now = datetime.now(timezone.utc)
        timestamp_str = now.strftime("%Y%m%d-%H%M%S")
        # Short random suffix to avoid collisions
        suffix = random.randint(100, 999)
        return f"run-{timestamp_str}-{suffix}"

    else:
        raise ValueError(f"Invalid run_id_mode: {mode}")
