"""
Explain trees for present value breakdowns.

An ExplainMap is an immutable mapping from ExplainKey to a value, where a
value may itself be a list of ExplainMaps (one per leg or payment period).
Pricers build them with ExplainMapBuilder.
"""

from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional


class ExplainKey(Enum):
    """Keys used in explain trees."""
    ENTRY_TYPE = "EntryType"
    ENTRY_INDEX = "EntryIndex"
    LEGS = "Legs"
    PAYMENT_PERIODS = "PaymentPeriods"
    LEG_TYPE = "LegType"
    PAY_RECEIVE = "PayReceive"
    BUY_SELL = "BuySell"
    CURRENCY = "Currency"
    INDEX = "Index"
    NOTIONAL = "Notional"
    START_DATE = "StartDate"
    END_DATE = "EndDate"
    FIXING_DATE = "FixingDate"
    PAYMENT_DATE = "PaymentDate"
    ACCRUAL_YEAR_FRACTION = "AccrualYearFraction"
    FIXED_RATE = "FixedRate"
    FORWARD_RATE = "ForwardRate"
    OBSERVED_RATE = "ObservedRate"
    STRIKE_VALUE = "StrikeValue"
    VOLATILITY = "Volatility"
    DISCOUNT_FACTOR = "DiscountFactor"
    SURVIVAL_PROBABILITY = "SurvivalProbability"
    FORECAST_VALUE = "ForecastValue"
    PRESENT_VALUE = "PresentValue"
    PROTECTION_LEG = "ProtectionLeg"
    PREMIUM_LEG = "PremiumLeg"
    ACCRUED_PREMIUM = "AccruedPremium"
    UPFRONT_FEE = "UpfrontFee"
    COMPLETED = "Completed"


class ExplainMap:
    """Immutable explain tree node."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Dict[ExplainKey, Any]):
        self._entries = dict(entries)

    @classmethod
    def empty(cls) -> "ExplainMap":
        return cls({})

    def get(self, key: ExplainKey) -> Optional[Any]:
        return self._entries.get(key)

    def __getitem__(self, key: ExplainKey) -> Any:
        return self._entries[key]

    def __contains__(self, key: ExplainKey) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[ExplainKey]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self):
        return self._entries.keys()

    def to_dict(self) -> Dict[str, Any]:
        """Nested plain-dict view keyed by key names."""
        out = {}
        for key, value in self._entries.items():
            if isinstance(value, list):
                out[key.value] = [v.to_dict() if isinstance(v, ExplainMap) else v for v in value]
            else:
                out[key.value] = value
        return out

    def explain_string(self, indent: int = 0) -> str:
        pad = "  " * indent
        lines = []
        for key, value in self._entries.items():
            if isinstance(value, list) and value and isinstance(value[0], ExplainMap):
                lines.append(f"{pad}{key.value}:")
                for i, child in enumerate(value):
                    lines.append(f"{pad}  [{i}]")
                    lines.append(child.explain_string(indent + 2))
            else:
                lines.append(f"{pad}{key.value} = {value}")
        return "\n".join(lines)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ExplainMap):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"ExplainMap({self.to_dict()})"


class ExplainMapBuilder:
    """Mutable builder for ExplainMap."""

    def __init__(self):
        self._entries: Dict[ExplainKey, Any] = {}

    def put(self, key: ExplainKey, value: Any) -> "ExplainMapBuilder":
        self._entries[key] = value
        return self

    def add_list_entry(
        self,
        key: ExplainKey,
        fn: Callable[["ExplainMapBuilder"], Any]
    ) -> "ExplainMapBuilder":
        """Build a child map with fn and append it to the list under key."""
        child = ExplainMapBuilder()
        fn(child)
        entries: List[ExplainMap] = self._entries.setdefault(key, [])
        entries.append(child.build())
        return self

    def add_list_entries(self, key: ExplainKey, maps: List[ExplainMap]) -> "ExplainMapBuilder":
        self._entries.setdefault(key, []).extend(maps)
        return self

    def build(self) -> ExplainMap:
        return ExplainMap(
            {k: list(v) if isinstance(v, list) else v for k, v in self._entries.items()}
        )


__all__ = [
    "ExplainKey",
    "ExplainMap",
    "ExplainMapBuilder",
]
