"""
Black-Scholes pricing for European options.

Call: C = S*N(d1) - K*exp(-rT)*N(d2)
Put:  P = C + K*exp(-rT) - S            (put-call parity)

    d1 = [ln(S/K) + (r + sigma^2/2)*T] / (sigma*sqrt(T))
    d2 = d1 - sigma*sqrt(T)

N(x) uses the Abramowitz-Stegun 7.1.26 approximation of erf (max abs error ~1.5e-7),
so the module has no special-function dependency.
"""

from __future__ import annotations

import logging
import math
from typing import Literal, Tuple

from ..errors import ConvergenceError, NumericDomainError

logger = logging.getLogger(__name__)

OptionType = Literal["call", "put"]

DEFAULT_RISK_FREE_RATE = 0.05

# Implied volatility solver
IV_INITIAL_GUESS = 0.3
IV_TOLERANCE = 1e-4
IV_MAX_ITERATIONS = 100

# A&S 7.1.26
_A1 = 0.254829592
_A2 = -0.284496736
_A3 = 1.421413741
_A4 = -1.453152027
_A5 = 1.061405429
_P = 0.3275911

_SQRT_2 = math.sqrt(2.0)
_SQRT_2PI = math.sqrt(2.0 * math.pi)


def erf(x: float) -> float:
    sign = -1.0 if x < 0 else 1.0
    x = abs(x)
    t = 1.0 / (1.0 + _P * x)
    y = 1.0 - (((((_A5 * t + _A4) * t) + _A3) * t + _A2) * t + _A1) * t * math.exp(-x * x)
    return sign * y


def norm_cdf(x: float) -> float:
    """Standard normal CDF."""
    return 0.5 * (1.0 + erf(x / _SQRT_2))


def norm_pdf(x: float) -> float:
    """Standard normal PDF."""
    return math.exp(-0.5 * x * x) / _SQRT_2PI


def _validate_inputs(spot: float, strike: float, t: float, sigma: float, r: float) -> None:
    """Reject inputs that would divide by zero or take the log of a non-positive number."""
    for name, value in (("spot", spot), ("strike", strike), ("time_to_expiry", t), ("volatility", sigma)):
        if value is None or not math.isfinite(value) or value <= 0:
            raise NumericDomainError(f"{name} must be positive and finite, got {value}")
    if r is None or not math.isfinite(r):
        raise NumericDomainError(f"risk_free_rate must be finite, got {r}")


def d1_d2(spot: float, strike: float, t: float, sigma: float, r: float) -> Tuple[float, float]:
    _validate_inputs(spot, strike, t, sigma, r)
    vol_sqrt_t = sigma * math.sqrt(t)
    d1 = (math.log(spot / strike) + (r + sigma * sigma / 2.0) * t) / vol_sqrt_t
    return d1, d1 - vol_sqrt_t


def call_price(spot: float, strike: float, t: float, sigma: float, r: float = DEFAULT_RISK_FREE_RATE) -> float:
    """European call price."""
    d1, d2 = d1_d2(spot, strike, t, sigma, r)
    return spot * norm_cdf(d1) - strike * math.exp(-r * t) * norm_cdf(d2)


def price_put(spot: float, strike: float, t: float, sigma: float, r: float = DEFAULT_RISK_FREE_RATE) -> float:
    """
    European put premium via put-call parity.

    Args:
        spot: Underlying price
        strike: Strike price
        t: Time to expiry in years
        sigma: Annualized volatility
        r: Annual risk-free rate

    Returns:
        Premium, floored at 0 (the erf approximation can leave a tiny negative residue on
        deep out-of-the-money puts)

    Raises:
        NumericDomainError: If spot, strike, t or sigma is not positive and finite
    """
    call = call_price(spot, strike, t, sigma, r)
    return max(0.0, call + strike * math.exp(-r * t) - spot)


def vega(spot: float, strike: float, t: float, sigma: float, r: float = DEFAULT_RISK_FREE_RATE) -> float:
    """dPrice/dSigma (identical for calls and puts)."""
    d1, _ = d1_d2(spot, strike, t, sigma, r)
    return spot * math.sqrt(t) * norm_pdf(d1)


def implied_volatility(
    option_price: float,
    spot: float,
    strike: float,
    t: float,
    r: float = DEFAULT_RISK_FREE_RATE,
    option_type: OptionType = "call",
) -> float:
    """
    Solve for the volatility that reproduces `option_price` (Newton-Raphson on vega).

    Starts at sigma=0.3 and stops once |model - observed| < 1e-4.

    Raises:
        ConvergenceError: After 100 iterations without reaching tolerance, or when the
            iteration degenerates (vega ~ 0, sigma leaves the positive domain)
        NumericDomainError: If spot, strike or t are invalid
    """
    if option_type not in ("call", "put"):
        raise ValueError(f"Invalid option_type: {option_type}")
    pricer = call_price if option_type == "call" else price_put

    sigma = IV_INITIAL_GUESS
    for iteration in range(IV_MAX_ITERATIONS):
        diff = pricer(spot, strike, t, sigma, r) - option_price
        if abs(diff) < IV_TOLERANCE:
            logger.debug(f"implied_volatility converged sigma={sigma:.6f} iterations={iteration}")
            return sigma

        v = vega(spot, strike, t, sigma, r)
        if not math.isfinite(v) or v < 1e-12:
            raise ConvergenceError(f"Implied volatility calculation did not converge (vega={v} at sigma={sigma})")
        sigma = sigma - diff / v
        if not math.isfinite(sigma) or sigma <= 0:
            raise ConvergenceError(f"Implied volatility calculation did not converge (sigma={sigma})")

    raise ConvergenceError("Implied volatility calculation did not converge")
