"""
Backtest driver: feeds a chronological price stream through a PutSellingEngine and
snapshots the outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Sequence, Tuple

from ..data.models import PricePoint, to_utc
from ..errors import EmptyInputError, EmptyRangeError
from ..portfolio.portfolio import TradeRecord
from ..strategy.engine import PutSellingEngine

logger = logging.getLogger(__name__)

TickObserver = Callable[[PricePoint, PutSellingEngine], None]


@dataclass(frozen=True)
class BacktestResult:
    starting_btc: Decimal
    starting_usd: Decimal
    final_btc: Decimal
    final_usd: Decimal
    trades: Tuple[TradeRecord, ...]
    total_trades: int
    assigned_puts: int
    total_premium_collected: Decimal
    start_date: datetime
    end_date: datetime
    points_processed: int
    final_price: Decimal


@dataclass(frozen=True)
class PerformanceMetrics:
    btc_growth_percent: Optional[float]
    usd_value_growth_percent: Optional[float]
    initial_portfolio_value_usd: float
    final_portfolio_value_usd: float


def filter_by_date(
    prices: Sequence[PricePoint],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list:
    """Stable chronological sort of a copy of `prices`, restricted to [start, end] (inclusive)."""
    start_utc = to_utc(start) if start is not None else None
    end_utc = to_utc(end) if end is not None else None
    ordered = sorted(prices, key=lambda p: p.timestamp)
    return [
        p
        for p in ordered
        if (start_utc is None or p.timestamp >= start_utc) and (end_utc is None or p.timestamp <= end_utc)
    ]


def backtest_strategy(
    prices: Sequence[PricePoint],
    engine: PutSellingEngine,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    on_tick: Optional[TickObserver] = None,
) -> BacktestResult:
    """
    Run the engine over `prices` once, in timestamp order.

    Args:
        prices: Price points in any order (not modified)
        engine: Fresh engine; its balances at call time are the starting snapshot
        start: Inclusive lower bound (None = unbounded)
        end: Inclusive upper bound (None = unbounded)
        on_tick: Called with (point, engine) after each processed point

    Returns:
        BacktestResult

    Raises:
        EmptyInputError: If `prices` is empty
        EmptyRangeError: If no point falls inside [start, end]
    """
    if not prices:
        raise EmptyInputError("Price data cannot be empty")

    filtered = filter_by_date(prices, start, end)
    if not filtered:
        raise EmptyRangeError(
            f"No data points found in the specified date range "
            f"({start.isoformat() if start else '-inf'} .. {end.isoformat() if end else '+inf'})"
        )

    starting_btc = engine.btc_balance
    starting_usd = engine.usd_balance

    logger.info(
        f"Backtesting {len(filtered)} points from {filtered[0].timestamp.isoformat()} "
        f"to {filtered[-1].timestamp.isoformat()}"
    )

    for point in filtered:
        engine.process(point)
        if on_tick is not None:
            on_tick(point, engine)

    trades = engine.trades
    result = BacktestResult(
        starting_btc=starting_btc,
        starting_usd=starting_usd,
        final_btc=engine.btc_balance,
        final_usd=engine.usd_balance,
        trades=trades,
        total_trades=len(trades),
        assigned_puts=engine.assigned_puts,
        total_premium_collected=engine.total_premium_collected,
        start_date=filtered[0].timestamp,
        end_date=filtered[-1].timestamp,
        points_processed=len(filtered),
        final_price=filtered[-1].price,
    )
    logger.info(
        f"Backtest finished: trades={result.total_trades} assigned={result.assigned_puts} "
        f"premium={result.total_premium_collected}"
    )
    return result


def calculate_performance_metrics(result: BacktestResult, final_price) -> PerformanceMetrics:
    """
    Growth figures valued at a single reference spot.

    btc_growth_percent is None when the run started with no BTC; usd_value_growth_percent is
    None when the starting portfolio was worth nothing at `final_price`.
    """
    spot = Decimal(str(final_price))
    initial_value = result.starting_btc * spot + result.starting_usd
    final_value = result.final_btc * spot + result.final_usd

    btc_growth = None
    if result.starting_btc != 0:
        btc_growth = float((result.final_btc - result.starting_btc) / result.starting_btc * 100)

    usd_growth = None
    if initial_value != 0:
        usd_growth = float((final_value - initial_value) / initial_value * 100)

    return PerformanceMetrics(
        btc_growth_percent=btc_growth,
        usd_value_growth_percent=usd_growth,
        initial_portfolio_value_usd=float(initial_value),
        final_portfolio_value_usd=float(final_value),
    )
