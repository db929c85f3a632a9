"""
Cash-Secured Put Backtest Engine

A deterministic, single-pass simulator for a recurring cash-secured put selling strategy:
a price stream drives option issuance, expiry and assignment against a BTC/USD portfolio.
"""

__version__ = "0.1.0"
