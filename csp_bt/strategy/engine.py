"""
Cash-secured put selling engine.

Each price tick runs, in order:
1. history update (volatility input; stale/duplicate points dropped)
2. settlement of every due contract: assignment if spot < strike, expiry otherwise
3. issuance of a new put when USD is available and nothing is open

Per contract slot: NONE -> ACTIVE -> {EXPIRED | ASSIGNED}. At most one contract is open at
any time. Balances are only touched by premium credit (sale) and the USD->BTC swap
(assignment).
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from ..config.schemas import StrategyConfig, history_settings_problem
from ..data.models import PriceHistoryWindow, PricePoint
from ..errors import InvalidConfigError, NumericDomainError
from ..portfolio.portfolio import OptionContract, PortfolioState, TradeRecord
from ..pricing.black_scholes import price_put
from ..pricing.volatility import historical_volatility

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365
ONE = Decimal("1")


def validate_strategy_config(cfg: StrategyConfig) -> None:
    """Range checks for configs that bypassed pydantic validation (e.g. model_construct)."""
    if Decimal(cfg.initial_btc) < 0 or Decimal(cfg.initial_usd) < 0:
        raise InvalidConfigError("initial balances must be non-negative")
    for name in ("put_premium_percent", "strike_discount_percent"):
        value = Decimal(getattr(cfg, name))
        if not (0 <= value < 1):
            raise InvalidConfigError(f"{name} must be in [0, 1), got {value}")
    if int(cfg.days_to_expiration) <= 0:
        raise InvalidConfigError(f"days_to_expiration must be positive, got {cfg.days_to_expiration}")
    if cfg.pricing_mode not in ("flat", "black_scholes"):
        raise InvalidConfigError(f"Unknown pricing_mode: {cfg.pricing_mode}")
    if cfg.settlement_boundary not in ("strict", "inclusive"):
        raise InvalidConfigError(f"Unknown settlement_boundary: {cfg.settlement_boundary}")
    if int(cfg.volatility_window) < 2 or int(cfg.history_size) < 2 or int(cfg.min_history_points) < 0:
        raise InvalidConfigError("volatility_window and history_size must be >= 2, min_history_points >= 0")
    problem = history_settings_problem(cfg)
    if problem:
        raise InvalidConfigError(problem)


class PutSellingEngine:
    """
    Owns the portfolio, the open contract and the trade ledger for one backtest run.

    Not thread-safe; each run needs its own instance.
    """

    def __init__(self, config: StrategyConfig):
        validate_strategy_config(config)
        self.config = config
        self.portfolio = PortfolioState(
            btc_balance=Decimal(config.initial_btc),
            usd_balance=Decimal(config.initial_usd),
        )
        self.price_history = PriceHistoryWindow(max_size=config.history_size)
        self._active: List[OptionContract] = []
        self._contracts: List[OptionContract] = []
        self._trades: List[TradeRecord] = []
        self._assigned_puts = 0

    # ------------------------------------------------------------------ state

    @property
    def btc_balance(self) -> Decimal:
        return self.portfolio.btc_balance

    @property
    def usd_balance(self) -> Decimal:
        return self.portfolio.usd_balance

    @property
    def total_premium_collected(self) -> Decimal:
        return self.portfolio.premium_collected

    @property
    def assigned_puts(self) -> int:
        return self._assigned_puts

    @property
    def trades(self) -> Tuple[TradeRecord, ...]:
        return tuple(self._trades)

    @property
    def contracts(self) -> Tuple[OptionContract, ...]:
        """Every contract issued so far, oldest first."""
        return tuple(self._contracts)

    @property
    def active_contract(self) -> Optional[OptionContract]:
        return self._active[0] if self._active else None

    def portfolio_value_usd(self, spot: Decimal) -> Decimal:
        return self.portfolio.value_usd(Decimal(spot))

    # ------------------------------------------------------------------ tick

    def process(self, point: PricePoint) -> None:
        """Advance the engine by one price tick."""
        self.price_history.append(point)
        self._settle_due(point)
        if self._can_issue():
            self._sell_put(point)

    def _settle_due(self, point: PricePoint) -> None:
        inclusive = self.config.settlement_boundary == "inclusive"
        still_active: List[OptionContract] = []
        for contract in self._active:
            if not contract.is_due(point.timestamp, inclusive=inclusive):
                still_active.append(contract)
                continue

            if point.price < contract.strike:
                contract.settle(assigned=True)
                self._assigned_puts += 1
                btc_bought = self.portfolio.assign(contract.strike)
                logger.debug(
                    f"PUT_ASSIGNED ts={point.timestamp.isoformat()} spot={point.price} strike={contract.strike} "
                    f"btc_bought={btc_bought}"
                )
                self._record(point, "PUT_ASSIGNED", strike=contract.strike)
            else:
                contract.settle(assigned=False)
                logger.debug(f"PUT_EXPIRED ts={point.timestamp.isoformat()} spot={point.price} strike={contract.strike}")
                self._record(point, "PUT_EXPIRED", strike=contract.strike)
        self._active = still_active

    def _can_issue(self) -> bool:
        if self._active or self.portfolio.usd_balance <= 0:
            return False
        return len(self.price_history) >= self.config.min_history_points

    def _sell_put(self, point: PricePoint) -> None:
        cfg = self.config
        spot = point.price
        strike = spot * (ONE - Decimal(cfg.strike_discount_percent))
        if strike <= 0:
            raise NumericDomainError(f"Cannot sell a put on non-positive spot {spot} at {point.timestamp.isoformat()}")

        premium = self._premium(point, strike)
        contract = OptionContract(
            strike=strike,
            premium=premium,
            created_at=point.timestamp,
            expires_at=point.timestamp + timedelta(days=cfg.days_to_expiration),
        )
        self._active.append(contract)
        self._contracts.append(contract)
        self.portfolio.credit_premium(premium)

        logger.debug(
            f"SELL_PUT ts={point.timestamp.isoformat()} spot={spot} strike={strike} premium={premium} "
            f"expires={contract.expires_at.isoformat()}"
        )
        self._record(point, "SELL_PUT", strike=strike, premium=premium)

    def _premium(self, point: PricePoint, strike: Decimal) -> Decimal:
        cfg = self.config
        if cfg.pricing_mode == "flat":
            return strike * Decimal(cfg.put_premium_percent)

        # Only data up to and including this tick
        sigma = historical_volatility(self.price_history.up_to(point.timestamp), cfg.volatility_window)
        premium = price_put(
            float(point.price),
            float(strike),
            cfg.days_to_expiration / DAYS_PER_YEAR,
            sigma,
            cfg.risk_free_rate,
        )
        return Decimal(str(premium))

    def _record(
        self,
        point: PricePoint,
        action: str,
        strike: Optional[Decimal] = None,
        premium: Optional[Decimal] = None,
    ) -> None:
        self._trades.append(
            TradeRecord(
                timestamp=point.timestamp,
                action=action,
                btc_price=point.price,
                btc_balance=self.portfolio.btc_balance,
                usd_balance=self.portfolio.usd_balance,
                strike_price=strike,
                premium=premium,
            )
        )
