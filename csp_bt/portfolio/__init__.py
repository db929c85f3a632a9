"""
Portfolio layer: balances, option contracts, trade records.
"""

from .portfolio import PortfolioState, OptionContract, TradeRecord, TradeAction

__all__ = ["PortfolioState", "OptionContract", "TradeRecord", "TradeAction"]
