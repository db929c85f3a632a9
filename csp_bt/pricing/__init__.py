"""
Pricing layer: Black-Scholes put pricing, implied and historical volatility
"""

from .black_scholes import (
    erf,
    norm_cdf,
    norm_pdf,
    d1_d2,
    call_price,
    price_put,
    vega,
    implied_volatility,
)
from .volatility import historical_volatility, DEFAULT_VOLATILITY

__all__ = [
    "erf",
    "norm_cdf",
    "norm_pdf",
    "d1_d2",
    "call_price",
    "price_put",
    "vega",
    "implied_volatility",
    "historical_volatility",
    "DEFAULT_VOLATILITY",
]
