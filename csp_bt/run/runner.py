"""
Backtest runner: orchestrates a config-driven run.

CSV -> PricePoints -> PutSellingEngine -> backtest_strategy -> artifacts.
The CLI and the example script both go through run_backtest().
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from tqdm.auto import tqdm

from ..config import RunConfig
from ..data import PricePoint, load_price_csv
from ..strategy import PutSellingEngine
from .artifacts import RunArtifacts, generate_run_id
from .backtest import (
    BacktestResult,
    PerformanceMetrics,
    backtest_strategy,
    calculate_performance_metrics,
    filter_by_date,
)

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Result of a backtest run"""
    run_id: str
    run_dir: Path
    result: BacktestResult
    performance: PerformanceMetrics
    metrics: Dict[str, Any] = field(default_factory=dict)
    trades: pd.DataFrame = field(default_factory=pd.DataFrame)
    balances: pd.DataFrame = field(default_factory=pd.DataFrame)
    config: Dict[str, Any] = field(default_factory=dict)


def _progress_enabled() -> bool:
    """Progress bar only on an interactive terminal, unless CSPBT_TQDM=0"""
    return os.environ.get("CSPBT_TQDM", "1") != "0" and sys.stderr.isatty()


def trades_to_frame(result: BacktestResult) -> pd.DataFrame:
    return pd.DataFrame([t.to_dict() for t in result.trades])


def build_metrics(result: BacktestResult, performance: PerformanceMetrics) -> Dict[str, Any]:
    return {
        "start_date": result.start_date.isoformat(),
        "end_date": result.end_date.isoformat(),
        "points_processed": result.points_processed,
        "starting_btc": float(result.starting_btc),
        "final_btc": float(result.final_btc),
        "starting_usd": float(result.starting_usd),
        "final_usd": float(result.final_usd),
        "total_trades": result.total_trades,
        "puts_sold": sum(1 for t in result.trades if t.action == "SELL_PUT"),
        "assigned_puts": result.assigned_puts,
        "total_premium_collected": float(result.total_premium_collected),
        "final_price": float(result.final_price),
        "btc_growth_pct": performance.btc_growth_percent,
        "usd_value_growth_pct": performance.usd_value_growth_percent,
        "initial_portfolio_value_usd": performance.initial_portfolio_value_usd,
        "final_portfolio_value_usd": performance.final_portfolio_value_usd,
    }


def run_backtest(
    config: RunConfig,
    run_id_mode: str = "timestamp",
    prices: Optional[List[PricePoint]] = None,
) -> RunResult:
    """
    Run a backtest with the given configuration.

    Args:
        config: RunConfig instance
        run_id_mode: "deterministic" or "timestamp" for run ID generation
        prices: Pre-loaded price points; when None they are read from config.data.csv_path

    Returns:
        RunResult with the engine snapshot, metrics, DataFrames, and run_dir
    """
    logger.info("Starting backtest run...")

    config_dict = config.model_dump()
    run_id = generate_run_id(config_dict, mode=run_id_mode)
    artifacts = RunArtifacts(
        Path(config.reporting.run_dir_root),
        run_id,
        config_dict,
        save_log=config.reporting.save_log,
    )

    try:
        logger.info(f"Run ID: {run_id}")
        logger.info(f"Run directory: {artifacts.run_dir}")

        artifacts.write_config_resolved(format="json")

        if prices is None:
            prices = load_price_csv(config.data.csv_path)

        start_dt = config.engine.get_start_datetime()
        end_dt = config.engine.get_end_datetime()
        logger.info(f"Date range: {start_dt or 'all'} to {end_dt or 'all'}")
        logger.info(
            f"Strategy: pricing={config.strategy.pricing_mode} strike_discount={config.strategy.strike_discount_percent} "
            f"premium={config.strategy.put_premium_percent} dte={config.strategy.days_to_expiration}"
        )

        engine = PutSellingEngine(config.strategy)
        balance_rows: List[Dict[str, Any]] = []

        pbar = None
        if _progress_enabled():
            # Only points inside the date range are simulated
            total = len(filter_by_date(prices, start_dt, end_dt))
            pbar = tqdm(total=total, desc="Simulating", unit="pt", dynamic_ncols=True)

        def on_tick(point: PricePoint, eng: PutSellingEngine) -> None:
            active = eng.active_contract
            balance_rows.append(
                {
                    "timestamp": point.timestamp.isoformat(),
                    "price": float(point.price),
                    "btc_balance": float(eng.btc_balance),
                    "usd_balance": float(eng.usd_balance),
                    "portfolio_value_usd": float(eng.portfolio_value_usd(point.price)),
                    "active_strike": float(active.strike) if active is not None else None,
                }
            )
            if pbar is not None:
                pbar.update(1)

        try:
            result = backtest_strategy(prices, engine, start=start_dt, end=end_dt, on_tick=on_tick)
        finally:
            if pbar is not None:
                pbar.close()

        performance = calculate_performance_metrics(result, result.final_price)
        metrics = build_metrics(result, performance)
        trades = trades_to_frame(result)
        balances = pd.DataFrame(balance_rows)

        artifacts.write_manifest({
            "total_trades": result.total_trades,
            "start": result.start_date.isoformat(),
            "end": result.end_date.isoformat(),
        })
        if config.reporting.save_csv:
            artifacts.write_trades(trades)
            artifacts.write_balances(balances)
        artifacts.write_metrics(metrics)

        logger.info(f"Backtest complete. Run ID: {run_id}")

        return RunResult(
            run_id=run_id,
            run_dir=artifacts.run_dir,
            result=result,
            performance=performance,
            metrics=metrics,
            trades=trades,
            balances=balances,
            config=config_dict,
        )

    except Exception as e:
        logger.error(f"Backtest failed: {e}", exc_info=True)
        raise
    finally:
        artifacts.close()
