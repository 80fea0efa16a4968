"""
SABR swaption volatilities.

SabrSwaptionVolatilities holds one grid per SABR parameter (alpha, beta,
rho, nu) over swaption expiry and underlying tenor, both in years. The
parameters at any (expiry, tenor) are interpolated bilinearly and the
implied volatility comes from the Hagan formula with a common shift.

Parameters are indexed in the order alpha grid, beta grid, rho grid, nu
grid, each flattened expiry-major. with_parameter and with_perturbation
use that indexing and always return a SabrSwaptionVolatilities.
"""

from dataclasses import dataclass, replace
from datetime import date
from typing import Callable, List, Sequence

import numpy as np

from ..conventions import DayCount, year_fraction
from ..exceptions import ModelMismatchError
from ..sensitivity import (
    CurrencyParameterSensitivities,
    CurrencyParameterSensitivity,
    PointSensitivities,
    SwaptionSabrSensitivity,
)
from .grid import VolatilityType, bilinear, bilinear_weights, check_axis, check_grid
from .sabr import SabrModel, SabrParams

_GRID_FIELDS = ("alpha", "beta", "rho", "nu")


@dataclass(frozen=True, eq=False)
class SabrSwaptionVolatilities:
    """
    SABR parameter surfaces for swaptions of one swap convention.

    Attributes:
        name: Surface name
        convention: Swap convention / index name the surface applies to
        currency: Currency of the underlying swaps
        valuation_date: Date the expiry times are measured from
        expiries: Expiry axis in years
        tenors: Tenor axis in years
        alpha, beta, rho, nu: Parameter grids of shape (expiries, tenors)
        shift: Shift applied to forward and strike
        day_count: Day count for expiry times
    """
    name: str
    convention: str
    currency: str
    valuation_date: date
    expiries: np.ndarray
    tenors: np.ndarray
    alpha: np.ndarray
    beta: np.ndarray
    rho: np.ndarray
    nu: np.ndarray
    shift: float = 0.0
    day_count: DayCount = DayCount.ACT_365F

    def __post_init__(self):
        expiries = check_axis("expiries", self.expiries)
        tenors = check_axis("tenors", self.tenors)
        object.__setattr__(self, "expiries", expiries)
        object.__setattr__(self, "tenors", tenors)
        shape = (len(expiries), len(tenors))
        for field_name in _GRID_FIELDS:
            object.__setattr__(self, field_name, check_grid(field_name, getattr(self, field_name), shape))
        if np.any(self.alpha <= 0):
            raise ValueError("alpha must be positive at every node")
        if np.any(np.abs(self.rho) >= 1):
            raise ValueError("rho must be in (-1, 1) at every node")

    @classmethod
    def flat(
        cls,
        name: str,
        convention: str,
        currency: str,
        valuation_date: date,
        params: SabrParams,
        expiries: Sequence[float] = (1.0,),
        tenors: Sequence[float] = (1.0,)
    ) -> "SabrSwaptionVolatilities":
        """Surface with the same parameters at every node."""
        shape = (len(expiries), len(tenors))
        return cls(
            name, convention, currency, valuation_date, expiries, tenors,
            np.full(shape, params.alpha), np.full(shape, params.beta),
            np.full(shape, params.rho), np.full(shape, params.nu),
            shift=params.shift,
        )

    @property
    def volatility_type(self) -> VolatilityType:
        return VolatilityType.SABR

    @property
    def parameter_count(self) -> int:
        return 4 * self.alpha.size

    def relative_time(self, d: date) -> float:
        return year_fraction(self.valuation_date, d, self.day_count)

    def parameters(self, expiry: float, tenor: float) -> SabrParams:
        """Interpolated SABR parameters at (expiry, tenor)."""
        return SabrParams(
            alpha=bilinear(self.expiries, self.tenors, self.alpha, expiry, tenor),
            beta=bilinear(self.expiries, self.tenors, self.beta, expiry, tenor),
            rho=bilinear(self.expiries, self.tenors, self.rho, expiry, tenor),
            nu=bilinear(self.expiries, self.tenors, self.nu, expiry, tenor),
            shift=self.shift,
        )

    def volatility(self, expiry: float, tenor: float, strike: float, forward: float) -> float:
        """Black volatility of the shifted rate."""
        return SabrModel().implied_vol_black(forward, strike, expiry, self.parameters(expiry, tenor))

    def parameter_value(self, index: int) -> float:
        grid, flat_index = divmod(index, self.alpha.size)
        return float(getattr(self, _GRID_FIELDS[grid]).ravel()[flat_index])

    def with_parameter(self, index: int, value: float) -> "SabrSwaptionVolatilities":
        if not 0 <= index < self.parameter_count:
            raise IndexError(f"Parameter index {index} out of range 0..{self.parameter_count - 1}")
        return self.with_perturbation(lambda i, v: value if i == index else v)

    def with_perturbation(self, fn: Callable[[int, float], float]) -> "SabrSwaptionVolatilities":
        """New surface with every parameter replaced by fn(index, value)."""
        size = self.alpha.size
        grids = {}
        for g, field_name in enumerate(_GRID_FIELDS):
            values = getattr(self, field_name).ravel()
            bumped = [fn(g * size + k, float(v)) for k, v in enumerate(values)]
            grids[field_name] = np.array(bumped).reshape(self.alpha.shape)
        return replace(self, **grids)

    def node_labels(self) -> List[str]:
        return [f"{e:g}Yx{t:g}Y" for e in self.expiries for t in self.tenors]

    def parameter_sensitivity(self, points: PointSensitivities) -> CurrencyParameterSensitivities:
        """
        Map SABR point sensitivities onto the parameter grids.

        Only SwaptionSabrSensitivity entries of this surface's convention
        are mapped; one sensitivity per parameter grid and currency.
        """
        labels = self.node_labels()
        result = CurrencyParameterSensitivities.empty()
        for point in points:
            if not isinstance(point, SwaptionSabrSensitivity) or point.convention != self.convention:
                continue
            weights = bilinear_weights(self.expiries, self.tenors, point.expiry, point.tenor)
            result = result.plus(CurrencyParameterSensitivity(
                f"{self.name}-{point.sensitivity_type.name}",
                point.currency,
                labels,
                point.sensitivity * weights.ravel(),
            ))
        return result


def require_sabr(volatilities) -> SabrSwaptionVolatilities:
    """
    Check that swaption volatilities are SABR parameters.

    Raises:
        ModelMismatchError: For any other volatility family
    """
    if not isinstance(volatilities, SabrSwaptionVolatilities):
        raise ModelMismatchError(
            f"SABR swaption volatilities required, got {type(volatilities).__name__}"
        )
    return volatilities


__all__ = [
    "SabrSwaptionVolatilities",
    "require_sabr",
]
