"""
SABR stochastic volatility model.

Implements the SABR model for rates volatility:
- Hagan et al. implied volatility approximation
- Shifted SABR for negative rates
- Parameter derivatives of the implied volatility for risk

Parameters are stored in the (alpha, beta, rho, nu) form used by the
swaption volatility grids, so sensitivities map directly onto grid nodes.

References:
- Hagan, P.S. et al. (2002). "Managing Smile Risk." Wilmott Magazine.
"""

from dataclasses import dataclass, replace
from typing import Dict, Sequence, Tuple
import numpy as np

from ..sensitivity import SabrParameterType


@dataclass(frozen=True)
class SabrParams:
    """
    SABR model parameters at one expiry/tenor point.

    Attributes:
        alpha: Initial volatility level
        beta: CEV exponent (0 = normal, 1 = lognormal, typically fixed)
        rho: Correlation between forward and vol (-1 < rho < 1)
        nu: Volatility of volatility (vol-of-vol)
        shift: Shift parameter for negative rates (default 0)
    """
    alpha: float
    beta: float
    rho: float
    nu: float
    shift: float = 0.0

    def __post_init__(self):
        """Validate parameters."""
        if not -1 < self.rho < 1:
            raise ValueError(f"rho must be in (-1, 1), got {self.rho}")
        if self.nu < 0:
            raise ValueError(f"nu must be non-negative, got {self.nu}")
        if not 0 <= self.beta <= 1:
            raise ValueError(f"beta must be in [0, 1], got {self.beta}")
        if self.alpha <= 0:
            raise ValueError(f"alpha must be positive, got {self.alpha}")

    def get(self, parameter: SabrParameterType) -> float:
        return getattr(self, parameter.name.lower())

    def with_value(self, parameter: SabrParameterType, value: float) -> "SabrParams":
        return replace(self, **{parameter.name.lower(): value})

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {
            "alpha": self.alpha,
            "beta": self.beta,
            "rho": self.rho,
            "nu": self.nu,
            "shift": self.shift
        }

    @classmethod
    def from_dict(cls, d: Dict[str, float]) -> "SabrParams":
        """Create from dictionary."""
        return cls(
            alpha=d["alpha"],
            beta=d["beta"],
            rho=d["rho"],
            nu=d["nu"],
            shift=d.get("shift", 0.0)
        )


def hagan_black_vol(
    F: float,
    K: float,
    T: float,
    alpha: float,
    beta: float,
    rho: float,
    nu: float,
    shift: float = 0.0
) -> float:
    """
    Hagan et al. approximation for SABR Black implied volatility.

    Args:
        F: Forward rate
        K: Strike
        T: Time to expiry (years)
        alpha: SABR alpha (instantaneous vol)
        beta: CEV exponent
        rho: Correlation
        nu: Vol of vol
        shift: Shift for negative rates

    Returns:
        Black implied volatility of the shifted forward
    """
    F_s = F + shift
    K_s = K + shift

    if F_s <= 0 or K_s <= 0:
        raise ValueError(f"Shifted forward ({F_s}) and strike ({K_s}) must be positive")

    if abs(F_s - K_s) < 1e-10:
        return _hagan_atm_vol(F_s, T, alpha, beta, rho, nu)

    log_fk = np.log(F_s / K_s)
    fk_mid = (F_s * K_s) ** ((1 - beta) / 2)

    one_minus_beta = 1 - beta
    denom1 = fk_mid * (1 + one_minus_beta**2 / 24 * log_fk**2
                       + one_minus_beta**4 / 1920 * log_fk**4)

    # z / x(z)
    z = nu / alpha * fk_mid * log_fk
    if abs(z) < 1e-10:
        x_z = 1.0
    else:
        sqrt_term = np.sqrt(1 - 2 * rho * z + z**2)
        x_z = z / np.log((sqrt_term + z - rho) / (1 - rho))

    term1 = one_minus_beta**2 * alpha**2 / (24 * fk_mid**2)
    term2 = rho * beta * nu * alpha / (4 * fk_mid)
    term3 = (2 - 3 * rho**2) * nu**2 / 24
    time_adj = 1 + (term1 + term2 + term3) * T

    return alpha / denom1 * x_z * time_adj


def _hagan_atm_vol(
    F: float,
    T: float,
    alpha: float,
    beta: float,
    rho: float,
    nu: float
) -> float:
    """ATM Black vol from Hagan formula."""
    F_beta = F ** (1 - beta)

    term1 = (1 - beta)**2 * alpha**2 / (24 * F**(2 - 2*beta))
    term2 = rho * beta * nu * alpha / (4 * F**(1 - beta))
    term3 = (2 - 3 * rho**2) * nu**2 / 24

    return alpha / F_beta * (1 + (term1 + term2 + term3) * T)


# Central difference steps for parameter derivatives
_RELATIVE_STEP = 1e-5
_ABSOLUTE_STEP = 1e-6


def parameter_bump(params: SabrParams, parameter: SabrParameterType) -> Tuple[float, float]:
    """
    Up and down values for a central difference in one parameter, kept
    inside the parameter domain.
    """
    value = params.get(parameter)
    eps = max(abs(value) * _RELATIVE_STEP, _ABSOLUTE_STEP)
    up = value + eps
    down = value - eps
    if parameter == SabrParameterType.RHO:
        up = min(up, 1.0 - _ABSOLUTE_STEP)
        down = max(down, -1.0 + _ABSOLUTE_STEP)
    elif parameter == SabrParameterType.BETA:
        up = min(up, 1.0)
        down = max(down, 0.0)
    elif parameter == SabrParameterType.NU:
        down = max(down, 0.0)
    return up, down


class SabrModel:
    """
    SABR implied volatility and its first derivatives.

    Derivatives are central differences of the Hagan formula. Rho and beta
    are bumped inward when they sit at the edge of their domain.
    """

    def implied_vol_black(
        self,
        F: float,
        K: float,
        T: float,
        params: SabrParams
    ) -> float:
        """
        Compute Black'76 implied vol of the shifted forward.

        Args:
            F: Forward rate
            K: Strike
            T: Time to expiry
            params: SABR parameters

        Returns:
            Black implied volatility
        """
        return hagan_black_vol(F, K, T, params.alpha, params.beta, params.rho, params.nu, params.shift)

    def dsigma_dF(self, F: float, K: float, T: float, params: SabrParams) -> float:
        """Derivative of implied vol w.r.t. forward, parameters held fixed."""
        eps = (F + params.shift) * _RELATIVE_STEP
        vol_up = self.implied_vol_black(F + eps, K, T, params)
        vol_down = self.implied_vol_black(F - eps, K, T, params)
        return (vol_up - vol_down) / (2 * eps)

    def dsigma_dparameter(
        self,
        F: float,
        K: float,
        T: float,
        params: SabrParams,
        parameter: SabrParameterType
    ) -> float:
        """
        Derivative of implied vol w.r.t. one SABR parameter.

        Args:
            F: Forward rate
            K: Strike
            T: Time to expiry
            params: SABR parameters
            parameter: Parameter to differentiate by

        Returns:
            d_sigma/d_parameter
        """
        up, down = parameter_bump(params, parameter)
        vol_up = self.implied_vol_black(F, K, T, params.with_value(parameter, up))
        vol_down = self.implied_vol_black(F, K, T, params.with_value(parameter, down))
        return (vol_up - vol_down) / (up - down)

    def parameter_derivatives(
        self,
        F: float,
        K: float,
        T: float,
        params: SabrParams
    ) -> np.ndarray:
        """Vector of d_sigma/d(alpha, beta, rho, nu)."""
        return np.array([
            self.dsigma_dparameter(F, K, T, params, p) for p in SabrParameterType
        ])

    def smile_at_strikes(
        self,
        F: float,
        strikes: Sequence[float],
        T: float,
        params: SabrParams
    ) -> Dict[float, float]:
        """
        Compute implied Black vol smile across strikes.

        Returns:
            Dict of {strike: implied_vol}
        """
        return {K: self.implied_vol_black(F, K, T, params) for K in strikes}


__all__ = [
    "SabrParams",
    "SabrModel",
    "hagan_black_vol",
    "parameter_bump",
]
