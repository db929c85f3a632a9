"""
Two-asset portfolio for the cash-secured put strategy:
- BTC and USD balances (Decimal)
- short put contracts and their one-way lifecycle
- append-only trade records
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Literal, Optional

TradeAction = Literal["SELL_PUT", "PUT_EXPIRED", "PUT_ASSIGNED"]

ZERO = Decimal("0")


@dataclass(frozen=True)
class TradeRecord:
    timestamp: datetime
    action: TradeAction
    btc_price: Decimal
    btc_balance: Decimal
    usd_balance: Decimal
    strike_price: Optional[Decimal] = None
    premium: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        """Flat row for CSV/JSON output. Decimals are rendered as strings to keep them exact."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "action": self.action,
            "btc_price": str(self.btc_price),
            "strike_price": str(self.strike_price) if self.strike_price is not None else None,
            "premium": str(self.premium) if self.premium is not None else None,
            "btc_balance": str(self.btc_balance),
            "usd_balance": str(self.usd_balance),
        }


@dataclass
class OptionContract:
    strike: Decimal
    premium: Decimal
    created_at: datetime
    expires_at: datetime
    is_active: bool = True
    was_assigned: bool = False
    option_type: Literal["PUT"] = "PUT"

    def __post_init__(self) -> None:
        if self.strike <= 0:
            raise ValueError(f"strike must be positive, got {self.strike}")
        if self.premium < 0:
            raise ValueError(f"premium must be non-negative, got {self.premium}")
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be after created_at")

    def is_due(self, ts: datetime, inclusive: bool = False) -> bool:
        if inclusive:
            return ts >= self.expires_at
        return ts > self.expires_at

    def settle(self, assigned: bool) -> None:
        """Close the contract. Happens exactly once."""
        if not self.is_active:
            raise RuntimeError(f"Contract expiring {self.expires_at.isoformat()} is already settled")
        self.is_active = False
        self.was_assigned = bool(assigned)


@dataclass
class PortfolioState:
    btc_balance: Decimal = ZERO
    usd_balance: Decimal = ZERO
    premium_collected: Decimal = field(default=ZERO)

    def credit_premium(self, amount: Decimal) -> None:
        if amount < 0:
            raise ValueError(f"premium must be non-negative, got {amount}")
        self.usd_balance += amount
        self.premium_collected += amount

    def assign(self, strike: Decimal) -> Decimal:
        """Spend all USD buying BTC at `strike`. Returns the BTC bought."""
        if strike <= 0:
            raise ValueError(f"strike must be positive, got {strike}")
        btc_amount = self.usd_balance / strike
        self.btc_balance += btc_amount
        self.usd_balance = ZERO
        return btc_amount

    def value_usd(self, spot: Decimal) -> Decimal:
        return self.btc_balance * spot + self.usd_balance
