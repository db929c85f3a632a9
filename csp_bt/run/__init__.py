"""
Run module: backtest driver, runner, CLI, and artifacts.
"""

from .backtest import (
    BacktestResult,
    PerformanceMetrics,
    backtest_strategy,
    calculate_performance_metrics,
    filter_by_date,
)
from .runner import run_backtest, RunResult
from .artifacts import RunArtifacts, generate_run_id

__all__ = [
    "BacktestResult",
    "PerformanceMetrics",
    "backtest_strategy",
    "calculate_performance_metrics",
    "filter_by_date",
    "run_backtest",
    "RunResult",
    "RunArtifacts",
    "generate_run_id",
]
