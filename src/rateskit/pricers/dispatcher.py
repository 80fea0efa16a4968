"""
Unified measure dispatch.

CalculationRunner computes a list of named measures for a product against a
MarketState. Each product type has one pricer:
    Swap          -> DiscountingSwapProductPricer
    Cms           -> SabrExtrapolationReplicationCmsProductPricer
    IborCapFloor  -> VolatilityIborCapFloorProductPricer
    Cds           -> IsdaCdsProductPricer

PV01 measures:
- PV01CalibratedBucketed: curve point sensitivities mapped onto curve nodes,
  scaled to one basis point
- PV01MarketQuoteBucketed: the calibrated sensitivities chained through the
  calibration Jacobian of each curve whose BootstrapResult is supplied
- the Sum variants total the bucketed values per currency
- PV01SemiParallelGammaBucketed: per curve node, the second difference of PV
  for a one basis point shift up and down

When a reporting currency is set, results of currency-convertible measures
are converted with the market FX rates.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
import logging

import numpy as np

from ..config import settings
from ..currency import CurrencyAmount, MultiCurrencyAmount
from ..curves.bootstrap import BootstrapResult
from ..exceptions import PricingError
from ..market_state import MarketState
from ..measures import Measure, Measures, StandardMeasures
from ..products import Cds, Cms, IborCapFloor, Swap
from ..sensitivity import ONE_BP, CurrencyParameterSensitivities, CurrencyParameterSensitivity
from .capfloor import VolatilityIborCapFloorProductPricer
from .cds import IsdaCdsProductPricer
from .cms import SabrExtrapolationReplicationCmsProductPricer
from .swaps import DiscountingSwapProductPricer

logger = logging.getLogger(__name__)

MeasureLike = Union[Measure, str]


@dataclass
class CalculationResult:
    """Measure results for one product, keyed by measure name."""

    product_type: str
    values: Dict[str, Any]

    def get(self, measure: MeasureLike) -> Any:
        return self.values[str(measure)]

    def to_dict(self) -> Dict[str, Any]:
        return {"product_type": self.product_type, **self.values}


class ProductPricers:
    """One product pricer per supported product type."""

    def __init__(
        self,
        swap_pricer: Optional[DiscountingSwapProductPricer] = None,
        cms_pricer: Optional[SabrExtrapolationReplicationCmsProductPricer] = None,
        cap_floor_pricer: Optional[VolatilityIborCapFloorProductPricer] = None,
        cds_pricer: Optional[IsdaCdsProductPricer] = None
    ):
        self.swap_pricer = swap_pricer or DiscountingSwapProductPricer()
        self.cms_pricer = cms_pricer or SabrExtrapolationReplicationCmsProductPricer()
        self.cap_floor_pricer = cap_floor_pricer or VolatilityIborCapFloorProductPricer()
        self.cds_pricer = cds_pricer or IsdaCdsProductPricer()

    def for_product(self, product):
        """
        Raises:
            PricingError: If no pricer handles the product type
        """
        if isinstance(product, Swap):
            return self.swap_pricer
        if isinstance(product, Cms):
            return self.cms_pricer
        if isinstance(product, IborCapFloor):
            return self.cap_floor_pricer
        if isinstance(product, Cds):
            return self.cds_pricer
        raise PricingError(f"Unsupported product type: {type(product).__name__}", step="Dispatch")


class CalculationRunner:
    """
    Computes measures for products against one market state.

    Attributes:
        market: Market state shared by every calculation
        calibrations: Calibration results by curve name, for market-quote PV01
        reporting_currency: Target currency for convertible measures
            (defaults to RATESKIT_REPORTING_CURRENCY, unset means no conversion)
        pricers: Product pricers
    """

    def __init__(
        self,
        market: MarketState,
        calibrations: Optional[Mapping[str, BootstrapResult]] = None,
        reporting_currency: Optional[str] = None,
        pricers: Optional[ProductPricers] = None
    ):
        self.market = market
        self.calibrations = dict(calibrations or {})
        self.reporting_currency = reporting_currency or settings.reporting_currency
        self.pricers = pricers or ProductPricers()

    def _pricer(self, product):
        return self.pricers.for_product(product)

    # ------------------------------------------------------------------
    # Sensitivities

    def _calibrated(self, product, market: MarketState) -> CurrencyParameterSensitivities:
        pricer = self._pricer(product)
        if isinstance(product, Cds):
            sensitivities = pricer.present_value_sensitivity(product, market)
        else:
            points = pricer.present_value_sensitivity(product, market).build().normalized()
            sensitivities = market.parameter_sensitivity(points)
        return sensitivities.multiplied_by(ONE_BP)

    def _market_quote(self, product, market: MarketState) -> CurrencyParameterSensitivities:
        result = []
        for s in self._calibrated(product, market):
            calibration = self.calibrations.get(s.market_data_name)
            result.append(calibration.market_quote_sensitivity(s) if calibration is not None else s)
        return CurrencyParameterSensitivities(result)

    def _semi_parallel_gamma(self, product, market: MarketState) -> CurrencyParameterSensitivities:
        pricer = self._pricer(product)

        def pv(m: MarketState) -> MultiCurrencyAmount:
            value = pricer.present_value(product, m)
            return value if isinstance(value, MultiCurrencyAmount) else MultiCurrencyAmount.of(value)

        base = pv(market)
        result: List[CurrencyParameterSensitivity] = []
        for name in dict.fromkeys(s.market_data_name for s in self._calibrated(product, market)):
            try:
                curve = market.curve_by_name(name)
            except ValueError:
                continue
            rates = curve.get_node_rates()
            gammas: Dict[str, np.ndarray] = {}
            for i in range(curve.node_count):
                up = pv(market.with_curve(name, curve.with_parameter(i, rates[i] + ONE_BP)))
                down = pv(market.with_curve(name, curve.with_parameter(i, rates[i] - ONE_BP)))
                gamma = up.plus(down).minus(base.multiplied_by(2.0))
                for amount in gamma:
                    gammas.setdefault(amount.currency, np.zeros(curve.node_count))[i] = amount.amount
            for ccy, values in gammas.items():
                result.append(CurrencyParameterSensitivity(name, ccy, curve.labels, values))
        return CurrencyParameterSensitivities(result)

    # ------------------------------------------------------------------
    # Dispatch

    def _compute(self, product, measure: Measure, market: MarketState) -> Any:
        pricer = self._pricer(product)
        m = StandardMeasures

        if measure in (m.PRESENT_VALUE, m.PRESENT_VALUE_MULTI_CCY):
            value = pricer.present_value(product, market)
            return value if isinstance(value, MultiCurrencyAmount) else MultiCurrencyAmount.of(value)
        if measure == m.EXPLAIN_PRESENT_VALUE:
            return pricer.explain_present_value(product, market)
        if measure == m.CURRENCY_EXPOSURE:
            return pricer.currency_exposure(product, market)
        if measure == m.CURRENT_CASH:
            value = pricer.current_cash(product, market)
            return value if isinstance(value, MultiCurrencyAmount) else MultiCurrencyAmount.of(value)
        if measure == m.PV01_CALIBRATED_BUCKETED:
            return self._calibrated(product, market)
        if measure == m.PV01_CALIBRATED_SUM:
            return self._calibrated(product, market).total()
        if measure == m.PV01_MARKET_QUOTE_BUCKETED:
            return self._market_quote(product, market)
        if measure == m.PV01_MARKET_QUOTE_SUM:
            return self._market_quote(product, market).total()
        if measure == m.PV01_SEMI_PARALLEL_GAMMA_BUCKETED:
            return self._semi_parallel_gamma(product, market)

        if isinstance(product, Swap):
            if measure == m.PAR_RATE:
                return pricer.par_rate(product, market)
            if measure == m.ACCRUED_INTEREST:
                return pricer.accrued_interest(product, market)
            if measure == m.CASH_FLOWS:
                return pricer.cash_flows(product, market)
            if measure == m.LEG_PRESENT_VALUE:
                return pricer.leg_present_values(product, market)
            if measure == m.LEG_INITIAL_NOTIONAL:
                return [CurrencyAmount(leg.currency, abs(leg.periods[0].notional)) for leg in product.legs]
        if isinstance(product, Cds):
            if measure == m.PAR_SPREAD:
                return pricer.par_spread(product, market)
            if measure == m.ACCRUED_INTEREST:
                return MultiCurrencyAmount.of(pricer.accrued_premium(product, market.valuation_date))

        raise PricingError(
            f"Measure {measure.name} is not supported for {type(product).__name__}", step=measure.name
        )

    def _convert(self, measure: Measure, value: Any) -> Any:
        ccy = self.reporting_currency
        if ccy is None or not measure.currency_convertible:
            return value
        fx = self.market.fx_matrix
        if isinstance(value, (CurrencyAmount, MultiCurrencyAmount, CurrencyParameterSensitivities)):
            return value.converted_to(ccy, fx)
        if isinstance(value, list) and all(isinstance(v, CurrencyAmount) for v in value):
            return [v.converted_to(ccy, fx) for v in value]
        return value

    def calculate_one(self, product, measure: MeasureLike) -> Any:
        """
        Compute one measure.

        Raises:
            PricingError: If the measure is not supported for the product
            KeyError: If the measure name is unknown
        """
        if not isinstance(measure, Measure):
            measure = Measures.of(measure)
        logger.debug("Computing %s for %s", measure.name, type(product).__name__)
        return self._convert(measure, self._compute(product, measure, self.market))

    def calculate(self, product, measures: Sequence[MeasureLike]) -> CalculationResult:
        """Compute several measures for one product."""
        values: Dict[str, Any] = {}
        for measure in measures:
            values[str(measure)] = self.calculate_one(product, measure)
        return CalculationResult(type(product).__name__, values)

    def calculate_all(
        self,
        products: Sequence[Any],
        measures: Sequence[MeasureLike]
    ) -> List[CalculationResult]:
        return [self.calculate(p, measures) for p in products]


__all__ = [
    "ProductPricers",
    "CalculationResult",
    "CalculationRunner",
]
