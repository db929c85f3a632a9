"""
Data models for price points and the bounded price history used for volatility estimation.
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Deque, Dict, Iterator, List, Optional, Union


def to_utc(ts: datetime) -> datetime:
    """Normalize a datetime to aware UTC (naive values are taken as UTC)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


@dataclass(frozen=True)
class PricePoint:
    """
    A single observation of the underlying.

    Ordering key is `timestamp` (aware UTC). `price` is kept as Decimal so balance
    accounting never touches binary floats.
    """
    timestamp: datetime
    price: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", to_utc(self.timestamp))
        if not isinstance(self.price, Decimal):
            object.__setattr__(self, "price", Decimal(str(self.price)))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PricePoint":
        """Build from the interchange form {"t": ISO-8601 string, "p": number}."""
        ts = datetime.fromisoformat(str(data["t"]).replace("Z", "+00:00"))
        return cls(timestamp=ts, price=Decimal(str(data["p"])))

    def to_dict(self) -> Dict[str, Any]:
        return {"t": self.timestamp.isoformat().replace("+00:00", "Z"), "p": float(self.price)}


def load_price_points_json(path: Union[str, Path]) -> List[PricePoint]:
    """Load a JSON array of {"t", "p"} objects."""
    with open(path, "r", encoding="utf-8") as f:
        rows = json.load(f)
    return [PricePoint.from_dict(r) for r in rows]


class PriceHistoryWindow:
    """
    Bounded FIFO of the most recent price points, strictly increasing in time.

    A derived cache feeding the volatility estimator; not authoritative state.
    """

    def __init__(self, max_size: int = 100):
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = int(max_size)
        self._points: Deque[PricePoint] = deque(maxlen=self.max_size)

    def append(self, point: PricePoint) -> bool:
        """Append if newer than the last retained point; duplicates and stale points are dropped."""
        if self._points and point.timestamp <= self._points[-1].timestamp:
            return False
        self._points.append(point)
        return True

    def up_to(self, ts: datetime) -> List[PricePoint]:
        """Points with timestamp <= ts, oldest first."""
        ts = to_utc(ts)
        return [p for p in self._points if p.timestamp <= ts]

    @property
    def last(self) -> Optional[PricePoint]:
        return self._points[-1] if self._points else None

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[PricePoint]:
        return iter(list(self._points))
