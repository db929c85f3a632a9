"""
End-to-end tests for the config-driven runner and the CLI.
"""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pandas as pd
import pytest

from csp_bt.config import DataConfig, EngineConfig, ReportingConfig, RunConfig, StrategyConfig
from csp_bt.data import PricePoint, SAMPLE_ROWS, write_price_csv
from csp_bt.errors import EmptyRangeError
from csp_bt.run.cli import main
from csp_bt.run.runner import run_backtest


@pytest.fixture
def sample_config(tmp_path):
    csv_path = write_price_csv(tmp_path / "btc_sample_data.csv")
    return RunConfig(
        data=DataConfig(csv_path=str(csv_path)),
        strategy=StrategyConfig(initial_btc=Decimal("1"), initial_usd=Decimal("50000")),
        reporting=ReportingConfig(run_dir_root=str(tmp_path / "runs")),
    )


def test_run_backtest_writes_artifacts(sample_config):
    run = run_backtest(sample_config, run_id_mode="deterministic")

    for name in ["config_resolved.json", "manifest.json", "trades.csv", "balances.csv", "metrics.json", "run.log"]:
        assert (run.run_dir / name).exists(), name

    # 14 minutes of data against a 7-day put: one sale, no settlement
    assert run.result.total_trades == 1
    assert run.metrics["puts_sold"] == 1
    assert run.metrics["assigned_puts"] == 0
    assert run.metrics["points_processed"] == len(SAMPLE_ROWS)
    assert run.metrics["total_premium_collected"] == pytest.approx(4.58 * 0.95 * 0.02)

    trades = pd.read_csv(run.run_dir / "trades.csv")
    assert list(trades["action"]) == ["SELL_PUT"]

    balances = pd.read_csv(run.run_dir / "balances.csv")
    assert len(balances) == len(SAMPLE_ROWS)
    assert (balances["usd_balance"] >= 0).all()
    assert balances["active_strike"].notna().all()

    with open(run.run_dir / "metrics.json") as f:
        metrics = json.load(f)
    assert metrics["btc_growth_pct"] == pytest.approx(0.0)


def test_run_backtest_with_preloaded_prices(tmp_path):
    t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
    prices = [
        PricePoint(timestamp=t0, price=Decimal("100")),
        PricePoint(timestamp=t0 + timedelta(days=7), price=Decimal("90")),
    ]
    config = RunConfig(
        data=DataConfig(csv_path="unused.csv"),
        strategy=StrategyConfig(initial_usd=Decimal("1000"), settlement_boundary="inclusive"),
        reporting=ReportingConfig(run_dir_root=str(tmp_path / "runs"), save_csv=False),
    )
    run = run_backtest(config, run_id_mode="deterministic", prices=prices)

    assert run.result.final_btc == Decimal("1001.9") / Decimal("95")
    assert run.result.final_usd == 0
    assert run.performance.btc_growth_percent is None
    assert not (run.run_dir / "trades.csv").exists()
    assert (run.run_dir / "metrics.json").exists()


def test_run_backtest_empty_range_propagates(sample_config):
    sample_config.engine = EngineConfig(start="2020-01-01", end="2020-12-31")
    with pytest.raises(EmptyRangeError):
        run_backtest(sample_config, run_id_mode="deterministic")


def test_progress_total_counts_only_points_in_range(sample_config, monkeypatch):
    import csp_bt.run.runner as runner_module

    bars = []

    class RecordingBar:
        def __init__(self, total, **kwargs):
            self.total = total
            self.n = 0
            bars.append(self)

        def update(self, n):
            self.n += n

        def close(self):
            pass

    monkeypatch.setattr(runner_module, "_progress_enabled", lambda: True)
    monkeypatch.setattr(runner_module, "tqdm", RecordingBar)
    # first five one-minute bars of the sample
    sample_config.engine = EngineConfig(start="2012-01-01T10:01:00Z", end="2012-01-01T10:05:00Z")

    run = run_backtest(sample_config, run_id_mode="deterministic")

    assert run.result.points_processed == 5
    assert len(bars) == 1
    assert bars[0].total == 5
    assert bars[0].n == bars[0].total


def test_cli_write_sample(tmp_path, capsys):
    target = tmp_path / "data" / "sample.csv"
    assert main(["--write-sample", str(target)]) == 0
    assert target.exists()
    assert "Sample data written" in capsys.readouterr().out


def test_cli_run_and_dry_run(tmp_path, capsys):
    csv_path = write_price_csv(tmp_path / "sample.csv")
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "data": {"csv_path": str(csv_path)},
                "strategy": {"initial_btc": 1, "initial_usd": 50000},
                "reporting": {"run_dir_root": str(tmp_path / "runs")},
            }
        )
    )

    assert main(["--config", str(config_path), "--dry-run", "--run-id-mode", "deterministic"]) == 0
    assert "DRY RUN" in capsys.readouterr().out

    code = main([
        "--config", str(config_path),
        "--run-id-mode", "deterministic",
        "--set", "strategy.pricing_mode=black_scholes",
    ])
    out = capsys.readouterr().out
    assert code == 0
    assert "BACKTEST SUMMARY" in out
    assert "SELL_PUT" in out
    assert "Assigned Puts: 0" in out


def test_cli_requires_config(capsys):
    assert main([]) == 1
    assert "--config is required" in capsys.readouterr().err


def test_cli_reports_failures(tmp_path, capsys):
    assert main(["--config", str(tmp_path / "missing.yaml")]) == 1
    assert "ERROR" in capsys.readouterr().err
