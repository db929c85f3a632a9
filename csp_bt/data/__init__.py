"""
Data layer: price points, history window, CSV loading, sample data
"""

from .models import PricePoint, PriceHistoryWindow, load_price_points_json, to_utc
from .csv_loader import load_price_csv, parse_timestamp, parse_timestamp_column
from .sample import SAMPLE_ROWS, write_price_csv

__all__ = [
    "PricePoint",
    "PriceHistoryWindow",
    "load_price_points_json",
    "to_utc",
    "load_price_csv",
    "parse_timestamp",
    "parse_timestamp_column",
    "SAMPLE_ROWS",
    "write_price_csv",
]
