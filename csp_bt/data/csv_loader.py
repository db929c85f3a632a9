"""
CSV price loader.

Reads OHLCV files in the `Timestamp,Open,High,Low,Close,Volume` layout and keeps the Close
as the price. Timestamps may be Unix epoch seconds, epoch milliseconds, or ISO-8601 strings.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from .models import PricePoint

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("Timestamp", "Close")

# Epoch values above this are milliseconds (13 digits vs 10)
EPOCH_MS_THRESHOLD = 10_000_000_000


# Epoch seconds representable as pandas nanosecond timestamps (~1685 .. ~2255)
MAX_EPOCH_SECONDS = 9_000_000_000


def parse_timestamp_column(raw: pd.Series) -> pd.Series:
    """
    Convert a column of CSV timestamp cells to tz-aware UTC, vectorized.

    Numeric cells are Unix epoch seconds, or milliseconds when above EPOCH_MS_THRESHOLD.
    Other non-empty cells are parsed as ISO-8601. Unparseable cells become NaT.
    """
    text = raw.astype(str).str.strip()
    numeric = pd.to_numeric(text, errors="coerce")

    seconds = numeric.where(numeric <= EPOCH_MS_THRESHOLD, numeric / 1000.0)
    seconds = seconds.where(seconds.abs() <= MAX_EPOCH_SECONDS)
    from_epoch = pd.to_datetime(seconds, unit="s", utc=True, errors="coerce")

    is_text = numeric.isna() & (text != "")
    from_text = pd.to_datetime(text.where(is_text), utc=True, errors="coerce", format="ISO8601")

    return from_epoch.where(numeric.notna(), from_text)


def parse_timestamp(raw: str) -> Optional[datetime]:
    """Single-cell form of parse_timestamp_column; None if the cell cannot be parsed."""
    ts = parse_timestamp_column(pd.Series([raw], dtype=object)).iloc[0]
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def load_price_csv(path: Union[str, Path]) -> List[PricePoint]:
    """
    Load price points from an OHLCV CSV file.

    Rows with a missing or unparseable Timestamp/Close are skipped. File order is preserved;
    chronological sorting is the backtest driver's job.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the Timestamp or Close column is missing
    """
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Price file not found: {path}")

    # Read as text so Close keeps its exact decimal representation
    df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip() for c in df.columns]

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Price file {path} is missing columns: {missing}")

    points: List[PricePoint] = []
    skipped = 0
    timestamps = parse_timestamp_column(df["Timestamp"])
    for ts, raw_close in zip(timestamps, df["Close"]):
        if pd.isna(ts) or not str(raw_close).strip():
            skipped += 1
            continue
        try:
            price = Decimal(str(raw_close).strip())
        except InvalidOperation:
            skipped += 1
            continue
        if not price.is_finite():
            skipped += 1
            continue
        points.append(PricePoint(timestamp=ts.to_pydatetime(), price=price))

    if skipped:
        logger.warning(f"Skipped {skipped} malformed rows in {csv_path.name}")
    logger.info(f"Loaded {len(points)} price points from {csv_path}")
    return points
