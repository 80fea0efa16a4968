"""
Base option pricing models.

Implements:
- Bachelier (normal) model for rates options
- Black'76 model on a shifted forward, for negative rates

These are the "base models" that take implied vol as input. Volatility
objects provide the implied vol, then these models price. Prices are
forward premiums multiplied by the discount factor passed in (default 1,
i.e. undiscounted).
"""

from typing import Dict
import numpy as np
from scipy.stats import norm

from ..conventions import PutCall


# Standard normal CDF and PDF
N = norm.cdf
n = norm.pdf


def _intrinsic(F: float, K: float, put_call: PutCall) -> float:
    return max(F - K, 0.0) if put_call == PutCall.CALL else max(K - F, 0.0)


def bachelier_price(
    F: float,
    K: float,
    T: float,
    sigma_n: float,
    put_call: PutCall = PutCall.CALL,
    df: float = 1.0
) -> float:
    """
    Bachelier (normal) model option price.

    Assumes forward follows arithmetic Brownian motion:
    dF = sigma_n * dW

    Args:
        F: Forward rate
        K: Strike
        T: Time to expiry (years)
        sigma_n: Normal volatility
        put_call: Call (caplet) or put (floorlet)
        df: Discount factor to payment

    Returns:
        Option price
    """
    if T <= 0 or sigma_n <= 0:
        return _intrinsic(F, K, put_call) * df

    std = sigma_n * np.sqrt(T)
    d = (F - K) / std
    if put_call == PutCall.CALL:
        return df * ((F - K) * N(d) + std * n(d))
    return df * ((K - F) * N(-d) + std * n(d))


def black_price(
    F: float,
    K: float,
    T: float,
    sigma_b: float,
    put_call: PutCall = PutCall.CALL,
    shift: float = 0.0,
    df: float = 1.0
) -> float:
    """
    Shifted Black'76 model option price.

    Assumes the shifted forward follows geometric Brownian motion:
    d(F + shift) = sigma_b * (F + shift) * dW

    Args:
        F: Forward rate (can be negative if shift > -F)
        K: Strike
        T: Time to expiry
        sigma_b: Black volatility of the shifted forward
        put_call: Call or put
        shift: Shift parameter
        df: Discount factor

    Returns:
        Option price

    Raises:
        ValueError: If the shifted forward is not positive or the shifted
            strike is negative
    """
    F_s = F + shift
    K_s = K + shift
    if T <= 0:
        return _intrinsic(F_s, K_s, put_call) * df

    if F_s <= 0 or K_s < 0:
        raise ValueError(f"Shifted forward ({F_s}) must be positive and strike ({K_s}) non-negative")

    if K_s == 0 or sigma_b <= 0:
        return _intrinsic(F_s, K_s, put_call) * df

    sqrt_t = np.sqrt(T)
    d1 = (np.log(F_s / K_s) + 0.5 * sigma_b**2 * T) / (sigma_b * sqrt_t)
    d2 = d1 - sigma_b * sqrt_t
    if put_call == PutCall.CALL:
        return df * (F_s * N(d1) - K_s * N(d2))
    return df * (K_s * N(-d2) - F_s * N(-d1))


def bachelier_greeks(
    F: float,
    K: float,
    T: float,
    sigma_n: float,
    put_call: PutCall = PutCall.CALL,
    df: float = 1.0
) -> Dict[str, float]:
    """
    Compute Greeks for Bachelier model.

    Returns:
        Dict with delta (dP/dF), gamma, vega (dP/dsigma_n) and
        strike (dP/dK)
    """
    is_call = put_call == PutCall.CALL
    if T <= 0 or sigma_n <= 0:
        itm = (F > K and is_call) or (F < K and not is_call)
        delta = (df if is_call else -df) if itm else 0.0
        return {'delta': delta, 'gamma': 0.0, 'vega': 0.0, 'strike': -delta}

    sqrt_t = np.sqrt(T)
    d = (F - K) / (sigma_n * sqrt_t)
    delta = df * N(d) if is_call else -df * N(-d)

    return {
        'delta': delta,
        'gamma': df * n(d) / (sigma_n * sqrt_t),
        'vega': df * sqrt_t * n(d),
        'strike': -delta,
    }


def black_greeks(
    F: float,
    K: float,
    T: float,
    sigma_b: float,
    put_call: PutCall = PutCall.CALL,
    shift: float = 0.0,
    df: float = 1.0
) -> Dict[str, float]:
    """
    Compute Greeks for the shifted Black'76 model.

    Returns:
        Dict with delta (dP/dF), gamma, vega (dP/dsigma_b) and
        strike (dP/dK)
    """
    is_call = put_call == PutCall.CALL
    F_s = F + shift
    K_s = K + shift
    if T <= 0 or sigma_b <= 0 or F_s <= 0 or K_s <= 0:
        itm = (F_s > K_s and is_call) or (F_s < K_s and not is_call)
        sign = 1.0 if is_call else -1.0
        return {
            'delta': sign * df if itm else 0.0,
            'gamma': 0.0,
            'vega': 0.0,
            'strike': -sign * df if itm else 0.0,
        }

    sqrt_t = np.sqrt(T)
    d1 = (np.log(F_s / K_s) + 0.5 * sigma_b**2 * T) / (sigma_b * sqrt_t)
    d2 = d1 - sigma_b * sqrt_t

    if is_call:
        delta = df * N(d1)
        dk = -df * N(d2)
    else:
        delta = -df * N(-d1)
        dk = df * N(-d2)

    return {
        'delta': delta,
        'gamma': df * n(d1) / (F_s * sigma_b * sqrt_t),
        'vega': df * F_s * sqrt_t * n(d1),
        'strike': dk,
    }


__all__ = [
    "bachelier_price",
    "black_price",
    "bachelier_greeks",
    "black_greeks",
]
