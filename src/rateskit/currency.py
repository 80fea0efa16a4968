"""
Currency amounts and FX conversion.

Provides:
- CurrencyAmount: a signed amount in one currency
- MultiCurrencyAmount: currency-wise sum of amounts
- MultiCurrencyAmountArray: one multi-currency amount per scenario
- FxMatrix: FX rates between currency pairs

Combining multi-currency amounts never drops a currency present in either
operand; a missing currency counts as zero and zero entries are kept.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

import numpy as np

from .exceptions import ConversionError

CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")


def _check_currency(currency: str) -> str:
    if not isinstance(currency, str) or not CURRENCY_PATTERN.match(currency):
        raise ValueError(f"Invalid currency code: {currency!r}")
    return currency


class FxMatrix:
    """
    Matrix of FX rates.

    A rate for base/counter is the number of counter units per base unit.
    Inverse rates are implied and one intermediate currency is used to
    triangulate when a pair is not quoted directly.
    """

    def __init__(self, rates: Optional[Mapping[Tuple[str, str], float]] = None):
        self._rates: Dict[Tuple[str, str], float] = {}
        for (base, counter), rate in (rates or {}).items():
            self._add(base, counter, rate)

    @classmethod
    def of(cls, base: str, counter: str, rate: float) -> "FxMatrix":
        return cls({(base, counter): rate})

    @classmethod
    def empty(cls) -> "FxMatrix":
        return cls()

    def _add(self, base: str, counter: str, rate: float) -> None:
        _check_currency(base)
        _check_currency(counter)
        if rate <= 0:
            raise ValueError(f"FX rate must be positive, got {rate} for {base}/{counter}")
        self._rates[(base, counter)] = float(rate)

    def with_rate(self, base: str, counter: str, rate: float) -> "FxMatrix":
        """Return a new matrix with an added or replaced rate."""
        new = FxMatrix(self._rates)
        new._add(base, counter, rate)
        return new

    @property
    def currencies(self) -> List[str]:
        found = set()
        for base, counter in self._rates:
            found.add(base)
            found.add(counter)
        return sorted(found)

    def _direct(self, base: str, counter: str) -> Optional[float]:
        if (base, counter) in self._rates:
            return self._rates[(base, counter)]
        if (counter, base) in self._rates:
            return 1.0 / self._rates[(counter, base)]
        return None

    def fx_rate(self, base: str, counter: str) -> float:
        """
        Rate to convert one unit of base into counter.

        Raises:
            ConversionError: If no direct or triangulated rate exists
        """
        if base == counter:
            return 1.0
        direct = self._direct(base, counter)
        if direct is not None:
            return direct
        for via in self.currencies:
            first = self._direct(base, via)
            second = self._direct(via, counter)
            if first is not None and second is not None:
                return first * second
        raise ConversionError(base, counter)

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        return amount * self.fx_rate(from_currency, to_currency)

    def __repr__(self) -> str:
        return f"FxMatrix({self._rates})"


@dataclass(frozen=True)
class CurrencyAmount:
    """An amount of money in a single currency."""
    currency: str
    amount: float

    def __post_init__(self):
        _check_currency(self.currency)

    @classmethod
    def zero(cls, currency: str) -> "CurrencyAmount":
        return cls(currency, 0.0)

    def plus(self, other: "CurrencyAmount") -> "CurrencyAmount":
        if other.currency != self.currency:
            raise ValueError(
                f"Unable to add amounts in different currencies: {self.currency} and {other.currency}"
            )
        return CurrencyAmount(self.currency, self.amount + other.amount)

    def minus(self, other: "CurrencyAmount") -> "CurrencyAmount":
        return self.plus(other.negated())

    def multiplied_by(self, factor: float) -> "CurrencyAmount":
        return CurrencyAmount(self.currency, self.amount * factor)

    def negated(self) -> "CurrencyAmount":
        return CurrencyAmount(self.currency, -self.amount)

    def map_amount(self, fn: Callable[[float], float]) -> "CurrencyAmount":
        return CurrencyAmount(self.currency, fn(self.amount))

    def converted_to(self, currency: str, fx: FxMatrix) -> "CurrencyAmount":
        if currency == self.currency:
            return self
        return CurrencyAmount(currency, fx.convert(self.amount, self.currency, currency))

    def __add__(self, other: "CurrencyAmount") -> "CurrencyAmount":
        return self.plus(other)

    def __neg__(self) -> "CurrencyAmount":
        return self.negated()

    def __str__(self) -> str:
        return f"{self.currency} {self.amount:,.2f}"


class MultiCurrencyAmount:
    """
    A sum of amounts in several currencies.

    Immutable; every operation returns a new instance. Currencies are kept
    in sorted order so equal amounts compare and print identically.
    """

    __slots__ = ("_amounts",)

    def __init__(self, amounts: Optional[Mapping[str, float]] = None):
        checked = {}
        for currency, amount in (amounts or {}).items():
            checked[_check_currency(currency)] = float(amount)
        self._amounts: Dict[str, float] = dict(sorted(checked.items()))

    @classmethod
    def of(cls, *amounts: CurrencyAmount) -> "MultiCurrencyAmount":
        """Create from currency amounts, summing duplicated currencies."""
        totals: Dict[str, float] = {}
        for ca in amounts:
            totals[ca.currency] = totals.get(ca.currency, 0.0) + ca.amount
        return cls(totals)

    @classmethod
    def empty(cls) -> "MultiCurrencyAmount":
        return cls()

    @classmethod
    def total(cls, amounts: Iterable[Union["MultiCurrencyAmount", CurrencyAmount]]) -> "MultiCurrencyAmount":
        result = cls()
        for amount in amounts:
            result = result.plus(amount)
        return result

    @property
    def currencies(self) -> List[str]:
        return list(self._amounts)

    @property
    def amounts(self) -> List[CurrencyAmount]:
        return [CurrencyAmount(c, a) for c, a in self._amounts.items()]

    def contains(self, currency: str) -> bool:
        return currency in self._amounts

    def get_amount(self, currency: str) -> CurrencyAmount:
        if currency not in self._amounts:
            raise ValueError(f"Unknown currency {currency}, not in {self.currencies}")
        return CurrencyAmount(currency, self._amounts[currency])

    def get_amount_or_zero(self, currency: str) -> CurrencyAmount:
        return CurrencyAmount(currency, self._amounts.get(currency, 0.0))

    def plus(
        self,
        other: Union["MultiCurrencyAmount", CurrencyAmount, str],
        amount: Optional[float] = None
    ) -> "MultiCurrencyAmount":
        """
        Add another amount currency by currency.

        Accepts a MultiCurrencyAmount, a CurrencyAmount, or a currency code
        with an amount.
        """
        if isinstance(other, str):
            other = CurrencyAmount(other, 0.0 if amount is None else amount)
        if isinstance(other, CurrencyAmount):
            other = MultiCurrencyAmount({other.currency: other.amount})
        combined = dict(self._amounts)
        for currency, value in other._amounts.items():
            combined[currency] = combined.get(currency, 0.0) + value
        return MultiCurrencyAmount(combined)

    def minus(self, other: Union["MultiCurrencyAmount", CurrencyAmount]) -> "MultiCurrencyAmount":
        return self.plus(other.negated())

    def multiplied_by(self, factor: float) -> "MultiCurrencyAmount":
        return self.map_amounts(lambda a: a * factor)

    def negated(self) -> "MultiCurrencyAmount":
        return self.map_amounts(lambda a: -a)

    def map_amounts(self, fn: Callable[[float], float]) -> "MultiCurrencyAmount":
        return MultiCurrencyAmount({c: fn(a) for c, a in self._amounts.items()})

    def converted_to(self, currency: str, fx: FxMatrix) -> CurrencyAmount:
        """Convert and sum every amount into one currency."""
        total = 0.0
        for ccy, amount in self._amounts.items():
            total += fx.convert(amount, ccy, currency)
        return CurrencyAmount(currency, total)

    def to_dict(self) -> Dict[str, float]:
        return dict(self._amounts)

    def __iter__(self) -> Iterator[CurrencyAmount]:
        return iter(self.amounts)

    def __len__(self) -> int:
        return len(self._amounts)

    def __add__(self, other):
        return self.plus(other)

    def __sub__(self, other):
        return self.minus(other)

    def __neg__(self):
        return self.negated()

    def __eq__(self, other) -> bool:
        if not isinstance(other, MultiCurrencyAmount):
            return NotImplemented
        return self._amounts == other._amounts

    def __hash__(self) -> int:
        return hash(tuple(self._amounts.items()))

    def __repr__(self) -> str:
        inner = ", ".join(f"{c} {a}" for c, a in self._amounts.items())
        return f"MultiCurrencyAmount([{inner}])"


class MultiCurrencyAmountArray:
    """
    Multi-currency amounts for a list of scenarios.

    Values are held per currency as numpy arrays of equal size; a currency
    missing from one scenario is zero in that scenario.
    """

    def __init__(self, values: Mapping[str, np.ndarray], size: Optional[int] = None):
        arrays = {_check_currency(c): np.asarray(v, dtype=float) for c, v in values.items()}
        sizes = {len(a) for a in arrays.values()}
        if len(sizes) > 1:
            raise ValueError("Arrays must have the same size")
        self._size = sizes.pop() if sizes else (size or 0)
        self._values = dict(sorted(arrays.items()))

    @classmethod
    def of(cls, amounts: Union[List[MultiCurrencyAmount], Mapping[str, np.ndarray]]) -> "MultiCurrencyAmountArray":
        if isinstance(amounts, Mapping):
            return cls(amounts)
        currencies = sorted({c for mca in amounts for c in mca.currencies})
        values = {c: np.zeros(len(amounts)) for c in currencies}
        for i, mca in enumerate(amounts):
            for ca in mca:
                values[ca.currency][i] = ca.amount
        return cls(values, size=len(amounts))

    @classmethod
    def of_function(cls, size: int, fn: Callable[[int], MultiCurrencyAmount]) -> "MultiCurrencyAmountArray":
        return cls.of([fn(i) for i in range(size)])

    def size(self) -> int:
        return self._size

    def __len__(self) -> int:
        return self._size

    @property
    def currencies(self) -> List[str]:
        return list(self._values)

    def get_values(self, currency: Optional[str] = None):
        """Values for one currency, or a dict of all values."""
        if currency is None:
            return {c: v.copy() for c, v in self._values.items()}
        if currency not in self._values:
            raise ValueError(f"Unknown currency {currency}, not in {self.currencies}")
        return self._values[currency].copy()

    def get(self, index: int) -> MultiCurrencyAmount:
        if index < 0 or index >= self._size:
            raise IndexError(f"Index {index} out of range for size {self._size}")
        return MultiCurrencyAmount({c: v[index] for c, v in self._values.items()})

    def __iter__(self) -> Iterator[MultiCurrencyAmount]:
        return (self.get(i) for i in range(self._size))

    def plus(self, other: Union["MultiCurrencyAmountArray", MultiCurrencyAmount]) -> "MultiCurrencyAmountArray":
        if isinstance(other, MultiCurrencyAmount):
            other = MultiCurrencyAmountArray.of([other] * self._size)
        if other._size != self._size:
            raise ValueError(f"Sizes must be equal, {self._size} and {other._size}")
        combined = {c: v.copy() for c, v in self._values.items()}
        for c, v in other._values.items():
            combined[c] = combined[c] + v if c in combined else v.copy()
        return MultiCurrencyAmountArray(combined, size=self._size)

    def minus(self, other: Union["MultiCurrencyAmountArray", MultiCurrencyAmount]) -> "MultiCurrencyAmountArray":
        if isinstance(other, MultiCurrencyAmount):
            return self.plus(other.negated())
        return self.plus(MultiCurrencyAmountArray({c: -v for c, v in other._values.items()}, size=other._size))

    def converted_to(self, currency: str, fx: FxMatrix) -> np.ndarray:
        """Total per scenario expressed in one currency."""
        total = np.zeros(self._size)
        for c, v in self._values.items():
            total = total + v * fx.fx_rate(c, currency)
        return total

    def __eq__(self, other) -> bool:
        if not isinstance(other, MultiCurrencyAmountArray):
            return NotImplemented
        return (
            self._size == other._size
            and self.currencies == other.currencies
            and all(np.array_equal(self._values[c], other._values[c]) for c in self._values)
        )

    def __repr__(self) -> str:
        return f"MultiCurrencyAmountArray(size={self._size}, currencies={self.currencies})"


__all__ = [
    "CurrencyAmount",
    "MultiCurrencyAmount",
    "MultiCurrencyAmountArray",
    "FxMatrix",
]
