"""
Strategy layer: the cash-secured put state engine.
"""

from .engine import PutSellingEngine, validate_strategy_config

__all__ = ["PutSellingEngine", "validate_strategy_config"]
