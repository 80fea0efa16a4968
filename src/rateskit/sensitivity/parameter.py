"""
Parameter (bucketed) sensitivities.

A CurrencyParameterSensitivity holds the derivative of a value with respect
to every parameter of one curve or surface, expressed in one currency. The
PV01 measures are built from these.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import numpy as np

from ..currency import CurrencyAmount, FxMatrix, MultiCurrencyAmount

ONE_BP = 1e-4


@dataclass(frozen=True)
class CurrencyParameterSensitivity:
    """
    Sensitivity to each parameter of one market data object.

    Attributes:
        market_data_name: Curve or surface name
        currency: Currency of the values
        parameter_labels: One label per parameter (e.g. node tenor)
        sensitivity: Values aligned with parameter_labels
    """
    market_data_name: str
    currency: str
    parameter_labels: Tuple[str, ...]
    sensitivity: np.ndarray

    def __post_init__(self):
        values = np.array(self.sensitivity, dtype=float)
        values.setflags(write=False)
        object.__setattr__(self, "sensitivity", values)
        object.__setattr__(self, "parameter_labels", tuple(self.parameter_labels))
        if len(self.parameter_labels) != len(values):
            raise ValueError(
                f"{self.market_data_name}: {len(self.parameter_labels)} labels "
                f"for {len(values)} sensitivities"
            )

    @property
    def parameter_count(self) -> int:
        return len(self.sensitivity)

    def key(self) -> Tuple[str, str]:
        return (self.market_data_name, self.currency)

    def with_sensitivity(self, sensitivity: np.ndarray) -> "CurrencyParameterSensitivity":
        return CurrencyParameterSensitivity(
            self.market_data_name, self.currency, self.parameter_labels, sensitivity
        )

    def multiplied_by(self, factor: float) -> "CurrencyParameterSensitivity":
        return self.with_sensitivity(self.sensitivity * factor)

    def map_sensitivity(self, fn: Callable[[float], float]) -> "CurrencyParameterSensitivity":
        return self.with_sensitivity(np.array([fn(v) for v in self.sensitivity]))

    def plus(self, other: "CurrencyParameterSensitivity") -> "CurrencyParameterSensitivity":
        if other.key() != self.key() or other.parameter_labels != self.parameter_labels:
            raise ValueError(
                f"Cannot add sensitivity to {other.market_data_name}/{other.currency} "
                f"to {self.market_data_name}/{self.currency}"
            )
        return self.with_sensitivity(self.sensitivity + other.sensitivity)

    def converted_to(self, currency: str, fx: FxMatrix) -> "CurrencyParameterSensitivity":
        if currency == self.currency:
            return self
        rate = fx.fx_rate(self.currency, currency)
        return CurrencyParameterSensitivity(
            self.market_data_name, currency, self.parameter_labels, self.sensitivity * rate
        )

    def total(self) -> CurrencyAmount:
        return CurrencyAmount(self.currency, float(np.sum(self.sensitivity)))

    def __eq__(self, other) -> bool:
        if not isinstance(other, CurrencyParameterSensitivity):
            return NotImplemented
        return (
            self.key() == other.key()
            and self.parameter_labels == other.parameter_labels
            and np.array_equal(self.sensitivity, other.sensitivity)
        )

    def __hash__(self) -> int:
        return hash((self.key(), self.parameter_labels))


class CurrencyParameterSensitivities:
    """
    Collection of parameter sensitivities, one per (name, currency).

    Adding a sensitivity for a key already present sums the vectors.
    """

    def __init__(self, sensitivities: Iterable[CurrencyParameterSensitivity] = ()):
        merged: Dict[Tuple[str, str], CurrencyParameterSensitivity] = {}
        for s in sensitivities:
            existing = merged.get(s.key())
            merged[s.key()] = s if existing is None else existing.plus(s)
        self._sensitivities = tuple(merged[k] for k in sorted(merged))

    @classmethod
    def of(cls, *sensitivities: CurrencyParameterSensitivity) -> "CurrencyParameterSensitivities":
        return cls(sensitivities)

    @classmethod
    def empty(cls) -> "CurrencyParameterSensitivities":
        return cls()

    @property
    def sensitivities(self) -> Tuple[CurrencyParameterSensitivity, ...]:
        return self._sensitivities

    def size(self) -> int:
        return len(self._sensitivities)

    def __len__(self) -> int:
        return len(self._sensitivities)

    def __iter__(self) -> Iterator[CurrencyParameterSensitivity]:
        return iter(self._sensitivities)

    def find_sensitivity(self, name: str, currency: str) -> Optional[CurrencyParameterSensitivity]:
        for s in self._sensitivities:
            if s.key() == (name, currency):
                return s
        return None

    def get_sensitivity(self, name: str, currency: str) -> CurrencyParameterSensitivity:
        found = self.find_sensitivity(name, currency)
        if found is None:
            raise KeyError(f"No sensitivity for {name} in {currency}")
        return found

    def combined_with(
        self,
        other: Union["CurrencyParameterSensitivities", CurrencyParameterSensitivity]
    ) -> "CurrencyParameterSensitivities":
        if isinstance(other, CurrencyParameterSensitivity):
            return CurrencyParameterSensitivities(self._sensitivities + (other,))
        return CurrencyParameterSensitivities(self._sensitivities + other._sensitivities)

    def plus(self, other) -> "CurrencyParameterSensitivities":
        return self.combined_with(other)

    def __add__(self, other):
        return self.combined_with(other)

    def multiplied_by(self, factor: float) -> "CurrencyParameterSensitivities":
        return CurrencyParameterSensitivities(s.multiplied_by(factor) for s in self._sensitivities)

    def map_sensitivities(self, fn: Callable[[float], float]) -> "CurrencyParameterSensitivities":
        return CurrencyParameterSensitivities(s.map_sensitivity(fn) for s in self._sensitivities)

    def converted_to(self, currency: str, fx: FxMatrix) -> "CurrencyParameterSensitivities":
        return CurrencyParameterSensitivities(s.converted_to(currency, fx) for s in self._sensitivities)

    def total(self, currency: Optional[str] = None, fx: Optional[FxMatrix] = None):
        """
        Sum of all parameter sensitivities.

        Args:
            currency: Target currency; requires fx when entries are in other currencies
            fx: FX rates for conversion

        Returns:
            MultiCurrencyAmount when no currency is given, else CurrencyAmount
        """
        amounts = MultiCurrencyAmount.total(s.total() for s in self._sensitivities)
        if currency is None:
            return amounts
        return amounts.converted_to(currency, fx if fx is not None else FxMatrix.empty())

    def equal_with_tolerance(self, other: "CurrencyParameterSensitivities", tolerance: float) -> bool:
        keys = {s.key() for s in self._sensitivities} | {s.key() for s in other._sensitivities}
        for name, ccy in keys:
            mine = self.find_sensitivity(name, ccy)
            theirs = other.find_sensitivity(name, ccy)
            a = mine.sensitivity if mine is not None else np.zeros(theirs.parameter_count)
            b = theirs.sensitivity if theirs is not None else np.zeros(mine.parameter_count)
            if a.shape != b.shape or np.any(np.abs(a - b) > tolerance):
                return False
        return True

    def to_frame(self):
        """Long-format table: one row per (curve, currency, label)."""
        import pandas as pd

        rows: List[dict] = []
        for s in self._sensitivities:
            for label, value in zip(s.parameter_labels, s.sensitivity):
                rows.append({
                    "market_data_name": s.market_data_name,
                    "currency": s.currency,
                    "label": label,
                    "sensitivity": float(value),
                })
        return pd.DataFrame(rows, columns=["market_data_name", "currency", "label", "sensitivity"])

    def __eq__(self, other) -> bool:
        if not isinstance(other, CurrencyParameterSensitivities):
            return NotImplemented
        return self._sensitivities == other._sensitivities

    def __repr__(self) -> str:
        return f"CurrencyParameterSensitivities({list(self._sensitivities)})"


__all__ = [
    "ONE_BP",
    "CurrencyParameterSensitivity",
    "CurrencyParameterSensitivities",
]
