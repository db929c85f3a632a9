"""
Historical volatility estimation.

Assumes one observation per calendar day: returns are annualized with sqrt(365). Intraday
bars are not rescaled, so minute data yields figures far below the true annual volatility
and usually lands on the 10% floor.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from ..data.models import PricePoint

logger = logging.getLogger(__name__)

DEFAULT_VOLATILITY = 0.5
MIN_VOLATILITY = 0.10
MAX_VOLATILITY = 2.00
PERIODS_PER_YEAR = 365


def historical_volatility(points: Sequence[PricePoint], window_size: int = 30) -> float:
    """
    Annualized volatility of the last `window_size` log returns.

    Returns DEFAULT_VOLATILITY when fewer than window_size + 1 points are available or when
    the computation is not finite (zero/negative prices). Otherwise the sample standard
    deviation (ddof=1) times sqrt(365), clamped to [0.10, 2.00].
    """
    if window_size < 2:
        raise ValueError(f"window_size must be at least 2, got {window_size}")
    if points is None or len(points) < window_size + 1:
        return DEFAULT_VOLATILITY

    tail = list(points)[-(window_size + 1):]
    prices = np.array([float(p.price) for p in tail], dtype=float)

    with np.errstate(divide="ignore", invalid="ignore"):
        log_returns = np.diff(np.log(prices))
        std = float(np.std(log_returns, ddof=1))

    if not np.isfinite(std):
        logger.warning(f"Historical volatility not finite over {window_size} returns; using default {DEFAULT_VOLATILITY}")
        return DEFAULT_VOLATILITY

    annualized = std * np.sqrt(PERIODS_PER_YEAR)
    return float(min(max(annualized, MIN_VOLATILITY), MAX_VOLATILITY))
