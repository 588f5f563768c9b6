"""
Options Pricing Module for Opportunity Screening

This module provides the Black-Scholes pricing engine used by the quote
endpoint and by the opportunity screener. It computes the theoretical value
of a European option together with its first-order Greeks, the one standard
deviation "expected move" of the underlying and a ladder of listed-looking
strikes around spot.

Mathematical Framework:
    The Black-Scholes model assumes:
    - European-style options (no early exercise)
    - Log-normal distribution of underlying returns
    - Constant volatility and risk-free rate
    - No dividends

Key Formulas:
    Call Price: C = S*N(d1) - K*exp(-rT)*N(d2)
    Put Price:  P = K*exp(-rT)*N(-d2) - S*N(-d1)

    where:
        d1 = [ln(S/K) + (r + sigma^2/2)*T] / (sigma*sqrt(T))
        d2 = d1 - sigma*sqrt(T)
        N(x) = cumulative standard normal distribution

Greek Scaling:
    Theta is quoted per calendar day, vega per 1 percentage point of
    volatility and rho per 1 percentage point of the risk-free rate.

Normal Distribution:
    N(x) uses the Abramowitz & Stegun 26.2.17 rational approximation
    (absolute error below 7.5e-8). It accepts scalars and numpy arrays so
    the screener can price a whole candidate grid in one call.

Usage:
    from optionscan.core.pricing import (
        black_scholes_price,
        calculate_greeks,
        calculate_expected_move,
        calculate_implied_volatility,
    )

    price = black_scholes_price(S=100, K=100, T=1.0, r=0.05, sigma=0.25)
    greeks = calculate_greeks(S=100, K=100, T=1.0, r=0.05, sigma=0.25,
                              option_type='call')

References:
    - Black, F., & Scholes, M. (1973). The Pricing of Options and Corporate Liabilities.
    - Abramowitz, M., & Stegun, I. (1964). Handbook of Mathematical Functions, 26.2.17.
    - Hull, J. C. (2018). Options, Futures, and Other Derivatives.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Union

import numpy as np
from scipy.optimize import brentq

# Configure module logger
logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray]


# =============================================================================
# Exceptions
# =============================================================================

class PricingError(Exception):
    """Exception raised when pricing calculation fails."""
    pass


class ImpliedVolatilityError(PricingError):
    """Exception raised when implied volatility cannot be solved."""
    pass


# =============================================================================
# Constants
# =============================================================================

DAYS_PER_YEAR = 365             # Calendar days for T and theta

DEFAULT_RISK_FREE_RATE = 0.05   # 5% annualized
DEFAULT_VOLATILITY = 0.25       # 25% annualized
MAX_VOLATILITY = 5.0            # 500%
MAX_DAYS_TO_EXPIRY = 1825       # 5 years
MAX_PRICE = 1_000_000.0

# Numerical stability thresholds
MIN_TIME_TO_EXPIRY = 1e-10
MIN_VOLATILITY = 1e-10

# IV search bracket
IV_LOWER_BOUND = 0.001
IV_UPPER_BOUND = 5.0
IV_TOLERANCE = 1e-8
IV_MAX_ITERATIONS = 100

# Abramowitz & Stegun 26.2.17 coefficients
_AS_P = 0.2316419
_AS_B1 = 0.319381530
_AS_B2 = -0.356563782
_AS_B3 = 1.781477937
_AS_B4 = -1.821255978
_AS_B5 = 1.330274429

_INV_SQRT_2PI = 1.0 / math.sqrt(2.0 * math.pi)

# Suggested strike ladder
STRIKE_LADDER_STEPS = 5         # strikes on each side of spot
STRIKE_LADDER_INTERVAL = 0.025  # 2.5% of spot between rungs


# =============================================================================
# Standard Normal Distribution
# =============================================================================

def norm_pdf(x: ArrayLike) -> ArrayLike:
    """Standard normal probability density."""
    x = np.asarray(x, dtype=np.float64)
    result = np.exp(-0.5 * x * x) * _INV_SQRT_2PI
    return float(result) if result.ndim == 0 else result


def norm_cdf(x: ArrayLike) -> ArrayLike:
    """
    Standard normal cumulative distribution.

    Rational polynomial approximation:
        N(x) = 1 - n(x) * (b1*t + b2*t^2 + b3*t^3 + b4*t^4 + b5*t^5)
        t = 1 / (1 + p*|x|)

    mirrored for negative arguments. Returns a float for scalar input and
    an ndarray otherwise.
    """
    x = np.asarray(x, dtype=np.float64)
    t = 1.0 / (1.0 + _AS_P * np.abs(x))
    poly = t * (_AS_B1 + t * (_AS_B2 + t * (_AS_B3 + t * (_AS_B4 + t * _AS_B5))))
    tail = np.exp(-0.5 * x * x) * _INV_SQRT_2PI * poly
    result = np.where(x >= 0, 1.0 - tail, tail)
    return float(result) if result.ndim == 0 else result


# =============================================================================
# Helper Functions
# =============================================================================

def _is_call_mask(option_type: Any) -> np.ndarray:
    """Boolean mask of call options from a type string or array of strings."""
    types = np.char.lower(np.char.strip(np.asarray(option_type, dtype=str)))
    known = np.isin(types, ('call', 'c', 'put', 'p'))
    if not np.all(known):
        bad = sorted(set(np.atleast_1d(types[~known]).tolist()))
        raise ValueError(f"option_type must be 'call' or 'put', got {bad}")
    return np.isin(types, ('call', 'c'))


def _calculate_d1_d2(
    S: np.ndarray,
    K: np.ndarray,
    T: np.ndarray,
    r: np.ndarray,
    sigma: np.ndarray
):
    """
    Calculate d1 and d2 for the Black-Scholes formula.

    Degenerate inputs (T=0 or sigma=0) produce inf/nan here; callers mask
    those entries out.
    """
    sqrt_T = np.sqrt(T)
    sigma_sqrt_T = sigma * sqrt_T

    d1 = (np.log(S / K) + (r + 0.5 * sigma ** 2) * T) / sigma_sqrt_T
    d2 = d1 - sigma_sqrt_T

    return d1, d2, sqrt_T


# =============================================================================
# Black-Scholes Pricing and Greeks
# =============================================================================

def calculate_greeks_vectorized(
    S: ArrayLike,
    K: ArrayLike,
    T: ArrayLike,
    r: ArrayLike,
    sigma: ArrayLike,
    option_type: Any = 'call'
) -> Dict[str, np.ndarray]:
    """
    Price and calculate Greeks for arrays of options.

    All numeric inputs broadcast against each other. ``option_type`` may be
    a single string or an array of 'call'/'put' strings.

    Args:
        S: Spot prices.
        K: Strike prices.
        T: Times to expiration in years.
        r: Risk-free rates (annualized).
        sigma: Volatilities (annualized).
        option_type: 'call', 'put' or array of them.

    Returns:
        Dict of arrays with keys price, delta, gamma, theta, vega, rho.

    Edge Cases:
        Entries with T=0 (or sigma=0) are valued at intrinsic value
        max(S-K, 0) / max(K-S, 0). Their delta is 1/0 (call) or -1/0 (put)
        by moneyness and +/-0.5 exactly at the money; gamma, theta, vega
        and rho are zero.
    """
    is_call = _is_call_mask(option_type)
    S, K, T, r, sigma, is_call = np.broadcast_arrays(
        np.asarray(S, dtype=np.float64),
        np.asarray(K, dtype=np.float64),
        np.asarray(T, dtype=np.float64),
        np.asarray(r, dtype=np.float64),
        np.asarray(sigma, dtype=np.float64),
        is_call,
    )

    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        d1, d2, sqrt_T = _calculate_d1_d2(S, K, T, r, sigma)
        discount = np.exp(-r * T)

        n_d1 = norm_cdf(d1)
        n_d2 = norm_cdf(d2)
        pdf_d1 = norm_pdf(d1)

        price = np.where(
            is_call,
            S * n_d1 - K * discount * n_d2,
            K * discount * (1.0 - n_d2) - S * (1.0 - n_d1),
        )

        delta = np.where(is_call, n_d1, n_d1 - 1.0)

        # Same for calls and puts
        gamma = pdf_d1 / (S * sigma * sqrt_T)

        time_decay = -(S * pdf_d1 * sigma) / (2.0 * sqrt_T)
        theta = np.where(
            is_call,
            time_decay - r * K * discount * n_d2,
            time_decay + r * K * discount * (1.0 - n_d2),
        ) / DAYS_PER_YEAR

        vega = S * pdf_d1 * sqrt_T / 100.0

        rho = np.where(
            is_call,
            K * T * discount * n_d2,
            -K * T * discount * (1.0 - n_d2),
        ) / 100.0

    expired = (T < MIN_TIME_TO_EXPIRY) | (sigma < MIN_VOLATILITY)
    if np.any(expired):
        intrinsic = np.where(is_call, np.maximum(S - K, 0.0), np.maximum(K - S, 0.0))
        call_delta = np.where(S > K, 1.0, np.where(S < K, 0.0, 0.5))
        put_delta = np.where(S < K, -1.0, np.where(S > K, 0.0, -0.5))

        price = np.where(expired, intrinsic, price)
        delta = np.where(expired, np.where(is_call, call_delta, put_delta), delta)
        gamma = np.where(expired, 0.0, gamma)
        theta = np.where(expired, 0.0, theta)
        vega = np.where(expired, 0.0, vega)
        rho = np.where(expired, 0.0, rho)

    # Delta stays inside its theoretical range after approximation error
    delta = np.where(is_call, np.clip(delta, 0.0, 1.0), np.clip(delta, -1.0, 0.0))
    price = np.maximum(price, 0.0)

    return {
        'price': price,
        'delta': delta,
        'gamma': gamma,
        'theta': theta,
        'vega': vega,
        'rho': rho,
    }


def calculate_greeks(
    S: float,
    K: float,
    T: float,
    r: float,
    sigma: float,
    option_type: str = 'call'
) -> Dict[str, float]:
    """
    Calculate price and all first-order Greeks for a single option.

    Args:
        S: Spot price
        K: Strike price
        T: Time to expiration in years
        r: Risk-free rate (annualized)
        sigma: Volatility (annualized)
        option_type: 'call' or 'put'

    Returns:
        Dict with keys price, delta, gamma, theta, vega, rho (unrounded).

    Example:
        >>> greeks = calculate_greeks(S=100, K=100, T=1.0, r=0.05, sigma=0.25)
        >>> round(greeks['delta'], 3)
        0.627
    """
    result = calculate_greeks_vectorized(S, K, T, r, sigma, option_type)
    return {name: float(value) for name, value in result.items()}


def black_scholes_price(
    S: float,
    K: float,
    T: float,
    r: float,
    sigma: float,
    option_type: str = 'call'
) -> float:
    """
    Calculate European option price using the Black-Scholes formula.

    Args:
        S: Current spot price of the underlying asset.
        K: Strike price of the option.
        T: Time to expiration in years.
        r: Risk-free interest rate (annualized).
        sigma: Volatility of the underlying (annualized).
        option_type: 'call' or 'put'.

    Returns:
        Option price. At T=0 this is the intrinsic value.

    Raises:
        ValueError: If option_type is not 'call' or 'put'.
    """
    return calculate_greeks(S, K, T, r, sigma, option_type)['price']


def calculate_implied_volatility(
    option_price: float,
    S: float,
    K: float,
    T: float,
    r: float,
    option_type: str = 'call',
    tol: float = IV_TOLERANCE,
    max_iter: int = IV_MAX_ITERATIONS
) -> float:
    """
    Solve the volatility that reproduces an observed option price.

    Uses Brent's bracketed root search between IV_LOWER_BOUND and
    IV_UPPER_BOUND.

    Raises:
        ImpliedVolatilityError: If the price is outside the range the model
            can reproduce, or at expiration.
    """
    if option_price is None or not np.isfinite(option_price) or option_price <= 0:
        raise ImpliedVolatilityError(f"option_price must be positive, got {option_price}")

    if T < MIN_TIME_TO_EXPIRY:
        raise ImpliedVolatilityError("Cannot calculate IV at expiration (T=0)")

    def objective(sigma: float) -> float:
        return black_scholes_price(S, K, T, r, sigma, option_type) - option_price

    f_lower = objective(IV_LOWER_BOUND)
    f_upper = objective(IV_UPPER_BOUND)

    if f_lower > 0:
        raise ImpliedVolatilityError(
            f"Option price ({option_price:.4f}) is below the model price even "
            f"at minimum IV ({IV_LOWER_BOUND:.4f})"
        )
    if f_upper < 0:
        raise ImpliedVolatilityError(
            f"Option price ({option_price:.4f}) exceeds the model price even "
            f"at maximum IV ({IV_UPPER_BOUND:.4f})"
        )

    try:
        return float(brentq(objective, IV_LOWER_BOUND, IV_UPPER_BOUND,
                            xtol=tol, maxiter=max_iter))
    except (RuntimeError, ValueError) as e:
        raise ImpliedVolatilityError(f"IV calculation failed: {e}") from e


# =============================================================================
# Expected Move and Strike Ladder
# =============================================================================

@dataclass(frozen=True)
class ExpectedMove:
    """One standard deviation move of the underlying over the option's life."""

    amount: float
    percent: float
    upper_bound: float
    lower_bound: float

    def to_dict(self) -> Dict[str, float]:
        return {
            'amount': self.amount,
            'percent': self.percent,
            'upperBound': self.upper_bound,
            'lowerBound': self.lower_bound,
        }


def calculate_expected_move(
    spot: float,
    volatility: float,
    days_to_expiry: float
) -> ExpectedMove:
    """
    Calculate the expected move S * sigma * sqrt(T), rounded to cents.

    Example:
        >>> calculate_expected_move(100, 0.25, 365).amount
        25.0
    """
    move = spot * volatility * math.sqrt(days_to_expiry / DAYS_PER_YEAR)
    percent = move / spot * 100.0 if spot else 0.0
    return ExpectedMove(
        amount=round(move, 2),
        percent=round(percent, 2),
        upper_bound=round(spot + move, 2),
        lower_bound=round(spot - move, 2),
    )


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def suggest_strikes(spot: float) -> List[float]:
    """
    Build a ladder of strikes around spot.

    Rungs are spaced by 2.5% of spot rounded to whole dollars, five on each
    side, and each rung is snapped to the listing increment ($5 at or above
    $50, $1 below). Rungs that snap to the same strike collapse, so the
    ladder can hold fewer than eleven strikes. Only positive strikes are
    returned, ascending.

    Example:
        >>> suggest_strikes(100)
        [85.0, 90.0, 95.0, 100.0, 105.0, 110.0, 115.0]
    """
    step = 5 if spot >= 50 else 1
    interval = _round_half_up(spot * STRIKE_LADDER_INTERVAL)

    strikes: List[float] = []
    for i in range(-STRIKE_LADDER_STEPS, STRIKE_LADDER_STEPS + 1):
        strike = float(_round_half_up((spot + i * interval) / step) * step)
        if strike > 0 and strike not in strikes:
            strikes.append(strike)

    return sorted(strikes)


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    # Exceptions
    'PricingError',
    'ImpliedVolatilityError',

    # Normal distribution
    'norm_cdf',
    'norm_pdf',

    # Pricing and Greeks
    'black_scholes_price',
    'calculate_greeks',
    'calculate_greeks_vectorized',
    'calculate_implied_volatility',

    # Expected move and strikes
    'ExpectedMove',
    'calculate_expected_move',
    'suggest_strikes',

    # Constants
    'DAYS_PER_YEAR',
    'DEFAULT_RISK_FREE_RATE',
    'DEFAULT_VOLATILITY',
    'MAX_VOLATILITY',
    'MAX_DAYS_TO_EXPIRY',
    'MAX_PRICE',
]
