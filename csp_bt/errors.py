"""
Exception types raised by the backtest engine.
"""


class BacktestError(Exception):
    """Base class for all engine errors."""


class InvalidConfigError(BacktestError, ValueError):
    """Strategy parameters outside their allowed ranges."""


class EmptyInputError(BacktestError):
    """The driver was given no price points."""


class EmptyRangeError(BacktestError):
    """No price points fall inside the requested date range."""


class ConvergenceError(BacktestError):
    """Implied-volatility solver exhausted its iterations."""


class NumericDomainError(BacktestError, ValueError):
    """Pricer input outside its mathematical domain (zero/negative spot, strike, volatility or time)."""
