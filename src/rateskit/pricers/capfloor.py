"""
Ibor cap/floor pricing from caplet volatilities.

The option model follows the volatility surface:
- BlackIborCapFloorVolatilities: shifted Black'76 on the forward rate
- NormalIborCapFloorVolatilities: Bachelier

A caplet pays N * tau * max(L - K, 0) at its payment date, where L is the
Ibor rate fixed at expiry. Once the rate is observed the payoff is known
and only discounting remains.
"""

from typing import List, Optional, Tuple
import logging

from ..currency import CurrencyAmount, MultiCurrencyAmount
from ..exceptions import ModelMismatchError
from ..explain import ExplainKey, ExplainMap, ExplainMapBuilder
from ..market_state import MarketState
from ..options.base_models import bachelier_greeks, bachelier_price, black_greeks, black_price
from ..products.capfloor import IborCapFloor, IborCapFloorLeg, IborCapletFloorletPeriod
from ..sensitivity import IborCapFloorSensitivity, MutablePointSensitivities
from ..vol.capfloor_vols import IborCapFloorVolatilities
from ..vol.grid import VolatilityType
from .swaps import DiscountingSwapLegPricer

logger = logging.getLogger(__name__)


class VolatilityIborCapletFloorletPeriodPricer:
    """
    Prices caplets and floorlets with the model named by the volatilities.

    Subclasses restrict the accepted volatility family.
    """

    supported_types: Tuple[VolatilityType, ...] = (VolatilityType.BLACK, VolatilityType.NORMAL)

    def _volatilities(
        self,
        period: IborCapletFloorletPeriod,
        market: MarketState,
        volatilities: Optional[IborCapFloorVolatilities]
    ) -> IborCapFloorVolatilities:
        if volatilities is None:
            volatilities = market.capfloor_volatility(period.index.name)
        if not isinstance(volatilities, IborCapFloorVolatilities):
            raise ModelMismatchError(
                f"Ibor cap/floor volatilities required, got {type(volatilities).__name__}"
            )
        if volatilities.volatility_type not in self.supported_types:
            raise ModelMismatchError(
                f"{type(self).__name__} cannot price with {volatilities.volatility_type.value}"
            )
        return volatilities

    def _is_fixed(self, period: IborCapletFloorletPeriod, market: MarketState) -> bool:
        return market.is_fixed(period.index.name, period.fixing_date)

    def _inputs(
        self,
        period: IborCapletFloorletPeriod,
        market: MarketState,
        volatilities: IborCapFloorVolatilities
    ) -> Tuple[float, float, float]:
        forward = market.ibor_rate(period.index, period.fixing_date)
        expiry = volatilities.relative_time(period.fixing_date)
        vol = volatilities.volatility(expiry, period.strike, forward)
        return forward, expiry, vol

    def _price(self, volatilities, forward: float, strike: float, expiry: float, vol: float, put_call) -> float:
        if volatilities.volatility_type == VolatilityType.BLACK:
            return black_price(forward, strike, expiry, vol, put_call, volatilities.shift)
        return bachelier_price(forward, strike, expiry, vol, put_call)

    def _greeks(self, volatilities, forward: float, strike: float, expiry: float, vol: float, put_call):
        if volatilities.volatility_type == VolatilityType.BLACK:
            return black_greeks(forward, strike, expiry, vol, put_call, volatilities.shift)
        return bachelier_greeks(forward, strike, expiry, vol, put_call)

    def forward_rate(self, period: IborCapletFloorletPeriod, market: MarketState) -> float:
        return market.ibor_rate(period.index, period.fixing_date)

    def implied_volatility(
        self,
        period: IborCapletFloorletPeriod,
        market: MarketState,
        volatilities: Optional[IborCapFloorVolatilities] = None
    ) -> float:
        """
        Raises:
            ValueError: If the option has expired
        """
        vols = self._volatilities(period, market, volatilities)
        expiry = vols.relative_time(period.fixing_date)
        if expiry < 0.0:
            raise ValueError(f"Option expired on {period.fixing_date}")
        return vols.volatility(expiry, period.strike, self.forward_rate(period, market))

    def present_value(
        self,
        period: IborCapletFloorletPeriod,
        market: MarketState,
        volatilities: Optional[IborCapFloorVolatilities] = None
    ) -> CurrencyAmount:
        """
        Raises:
            ModelMismatchError: If the volatility family is not supported
            ValueError: If a past fixing is missing
        """
        if period.payment_date < market.valuation_date:
            return CurrencyAmount.zero(period.currency)
        amount = period.notional * period.year_fraction
        df = market.discount_factor(period.currency, period.payment_date)
        if self._is_fixed(period, market):
            fixing = market.fixing(period.index.name, period.fixing_date)
            return CurrencyAmount(period.currency, amount * period.payoff(fixing) * df)
        vols = self._volatilities(period, market, volatilities)
        forward, expiry, vol = self._inputs(period, market, vols)
        price = self._price(vols, forward, period.strike, expiry, vol, period.put_call)
        return CurrencyAmount(period.currency, amount * price * df)

    def present_value_delta(
        self,
        period: IborCapletFloorletPeriod,
        market: MarketState,
        volatilities: Optional[IborCapFloorVolatilities] = None
    ) -> CurrencyAmount:
        """d PV / d forward rate."""
        if period.payment_date < market.valuation_date or self._is_fixed(period, market):
            return CurrencyAmount.zero(period.currency)
        vols = self._volatilities(period, market, volatilities)
        forward, expiry, vol = self._inputs(period, market, vols)
        greeks = self._greeks(vols, forward, period.strike, expiry, vol, period.put_call)
        df = market.discount_factor(period.currency, period.payment_date)
        return CurrencyAmount(period.currency, period.notional * period.year_fraction * df * greeks['delta'])

    def present_value_sensitivity(
        self,
        period: IborCapletFloorletPeriod,
        market: MarketState,
        volatilities: Optional[IborCapFloorVolatilities] = None
    ) -> MutablePointSensitivities:
        """Curve sensitivity with the volatility held fixed."""
        result = MutablePointSensitivities()
        if period.payment_date < market.valuation_date:
            return result
        amount = period.notional * period.year_fraction
        df_point = market.discount_factor_point_sensitivity(period.currency, period.payment_date)
        if self._is_fixed(period, market):
            fixing = market.fixing(period.index.name, period.fixing_date)
            return result.add(df_point.multiplied_by(amount * period.payoff(fixing)))
        vols = self._volatilities(period, market, volatilities)
        forward, expiry, vol = self._inputs(period, market, vols)
        price = self._price(vols, forward, period.strike, expiry, vol, period.put_call)
        greeks = self._greeks(vols, forward, period.strike, expiry, vol, period.put_call)
        df = market.discount_factor(period.currency, period.payment_date)
        result.add(df_point.multiplied_by(amount * price))
        result.add(market.ibor_rate_point_sensitivity(period.index, period.fixing_date)
                   .multiplied_by(amount * df * greeks['delta']))
        return result

    def present_value_sensitivity_model_params_volatility(
        self,
        period: IborCapletFloorletPeriod,
        market: MarketState,
        volatilities: Optional[IborCapFloorVolatilities] = None
    ) -> MutablePointSensitivities:
        """Vega as an IborCapFloorSensitivity; empty once fixed or paid."""
        result = MutablePointSensitivities()
        if period.payment_date < market.valuation_date or self._is_fixed(period, market):
            return result
        vols = self._volatilities(period, market, volatilities)
        forward, expiry, vol = self._inputs(period, market, vols)
        greeks = self._greeks(vols, forward, period.strike, expiry, vol, period.put_call)
        df = market.discount_factor(period.currency, period.payment_date)
        return result.add(IborCapFloorSensitivity(
            index=period.index.name,
            expiry=expiry,
            strike=period.strike,
            forward=forward,
            currency=period.currency,
            sensitivity=period.notional * period.year_fraction * df * greeks['vega'],
        ))

    def current_cash(
        self,
        period: IborCapletFloorletPeriod,
        market: MarketState,
        volatilities: Optional[IborCapFloorVolatilities] = None
    ) -> CurrencyAmount:
        if period.payment_date != market.valuation_date:
            return CurrencyAmount.zero(period.currency)
        return self.present_value(period, market, volatilities)

    def explain_present_value(
        self,
        period: IborCapletFloorletPeriod,
        market: MarketState,
        builder: ExplainMapBuilder,
        volatilities: Optional[IborCapFloorVolatilities] = None
    ) -> None:
        builder.put(ExplainKey.ENTRY_TYPE, "IborCapletFloorletPeriod")
        builder.put(ExplainKey.PAYMENT_DATE, period.payment_date)
        builder.put(ExplainKey.START_DATE, period.start_date)
        builder.put(ExplainKey.END_DATE, period.end_date)
        builder.put(ExplainKey.FIXING_DATE, period.fixing_date)
        builder.put(ExplainKey.ACCRUAL_YEAR_FRACTION, period.year_fraction)
        builder.put(ExplainKey.NOTIONAL, CurrencyAmount(period.currency, period.notional))
        builder.put(ExplainKey.INDEX, period.index.name)
        builder.put(ExplainKey.STRIKE_VALUE, period.strike)
        if period.payment_date < market.valuation_date:
            builder.put(ExplainKey.COMPLETED, True)
            builder.put(ExplainKey.PRESENT_VALUE, CurrencyAmount.zero(period.currency))
            return
        builder.put(ExplainKey.DISCOUNT_FACTOR, market.discount_factor(period.currency, period.payment_date))
        if self._is_fixed(period, market):
            builder.put(ExplainKey.OBSERVED_RATE, market.fixing(period.index.name, period.fixing_date))
        else:
            vols = self._volatilities(period, market, volatilities)
            forward, _, vol = self._inputs(period, market, vols)
            builder.put(ExplainKey.FORWARD_RATE, forward)
            builder.put(ExplainKey.VOLATILITY, vol)
        builder.put(ExplainKey.PRESENT_VALUE, self.present_value(period, market, volatilities))


class BlackIborCapletFloorletPeriodPricer(VolatilityIborCapletFloorletPeriodPricer):
    """Accepts Black volatilities only."""
    supported_types = (VolatilityType.BLACK,)


class NormalIborCapletFloorletPeriodPricer(VolatilityIborCapletFloorletPeriodPricer):
    """Accepts normal volatilities only."""
    supported_types = (VolatilityType.NORMAL,)


class VolatilityIborCapFloorLegPricer:
    """Prices a cap/floor leg as the sum of its caplets/floorlets."""

    def __init__(self, period_pricer: Optional[VolatilityIborCapletFloorletPeriodPricer] = None):
        self.period_pricer = period_pricer or VolatilityIborCapletFloorletPeriodPricer()

    def present_value(self, leg: IborCapFloorLeg, market: MarketState, volatilities=None) -> CurrencyAmount:
        total = CurrencyAmount.zero(leg.currency)
        for period in leg.periods:
            total = total.plus(self.period_pricer.present_value(period, market, volatilities))
        return total

    def present_value_delta(self, leg: IborCapFloorLeg, market: MarketState, volatilities=None) -> CurrencyAmount:
        total = CurrencyAmount.zero(leg.currency)
        for period in leg.periods:
            total = total.plus(self.period_pricer.present_value_delta(period, market, volatilities))
        return total

    def present_value_sensitivity(
        self,
        leg: IborCapFloorLeg,
        market: MarketState,
        volatilities=None
    ) -> MutablePointSensitivities:
        result = MutablePointSensitivities()
        for period in leg.periods:
            result.add(self.period_pricer.present_value_sensitivity(period, market, volatilities))
        return result

    def present_value_sensitivity_model_params_volatility(
        self,
        leg: IborCapFloorLeg,
        market: MarketState,
        volatilities=None
    ) -> MutablePointSensitivities:
        result = MutablePointSensitivities()
        for period in leg.periods:
            result.add(self.period_pricer.present_value_sensitivity_model_params_volatility(
                period, market, volatilities
            ))
        return result

    def current_cash(self, leg: IborCapFloorLeg, market: MarketState, volatilities=None) -> CurrencyAmount:
        total = CurrencyAmount.zero(leg.currency)
        for period in leg.periods:
            total = total.plus(self.period_pricer.current_cash(period, market, volatilities))
        return total

    def explain_present_value(self, leg: IborCapFloorLeg, market: MarketState, volatilities=None) -> ExplainMap:
        builder = ExplainMapBuilder()
        builder.put(ExplainKey.ENTRY_TYPE, "IborCapFloorLeg")
        builder.put(ExplainKey.PAY_RECEIVE, leg.pay_receive.value)
        for i, period in enumerate(leg.periods):
            def explain_period(child, i=i, period=period):
                child.put(ExplainKey.ENTRY_INDEX, i)
                self.period_pricer.explain_present_value(period, market, child, volatilities)
            builder.add_list_entry(ExplainKey.PAYMENT_PERIODS, explain_period)
        builder.put(ExplainKey.PRESENT_VALUE, self.present_value(leg, market, volatilities))
        return builder.build()


class VolatilityIborCapFloorProductPricer:
    """
    Prices a cap/floor product: the option leg plus the optional premium leg.
    """

    def __init__(
        self,
        cap_floor_leg_pricer: Optional[VolatilityIborCapFloorLegPricer] = None,
        swap_leg_pricer: Optional[DiscountingSwapLegPricer] = None
    ):
        self.cap_floor_leg_pricer = cap_floor_leg_pricer or VolatilityIborCapFloorLegPricer()
        self.swap_leg_pricer = swap_leg_pricer or DiscountingSwapLegPricer()

    def present_value(self, cap_floor: IborCapFloor, market: MarketState, volatilities=None) -> MultiCurrencyAmount:
        pv = MultiCurrencyAmount.of(
            self.cap_floor_leg_pricer.present_value(cap_floor.cap_floor_leg, market, volatilities)
        )
        if cap_floor.pay_leg is not None:
            pv = pv.plus(self.swap_leg_pricer.present_value(cap_floor.pay_leg, market))
        return pv

    def present_value_sensitivity(
        self,
        cap_floor: IborCapFloor,
        market: MarketState,
        volatilities=None
    ) -> MutablePointSensitivities:
        result = self.cap_floor_leg_pricer.present_value_sensitivity(cap_floor.cap_floor_leg, market, volatilities)
        if cap_floor.pay_leg is not None:
            result.add(self.swap_leg_pricer.present_value_sensitivity(cap_floor.pay_leg, market))
        return result

    def present_value_sensitivity_model_params_volatility(
        self,
        cap_floor: IborCapFloor,
        market: MarketState,
        volatilities=None
    ) -> MutablePointSensitivities:
        return self.cap_floor_leg_pricer.present_value_sensitivity_model_params_volatility(
            cap_floor.cap_floor_leg, market, volatilities
        )

    def current_cash(self, cap_floor: IborCapFloor, market: MarketState, volatilities=None) -> MultiCurrencyAmount:
        cash = MultiCurrencyAmount.of(
            self.cap_floor_leg_pricer.current_cash(cap_floor.cap_floor_leg, market, volatilities)
        )
        if cap_floor.pay_leg is not None:
            cash = cash.plus(self.swap_leg_pricer.current_cash(cap_floor.pay_leg, market))
        return cash

    def currency_exposure(self, cap_floor: IborCapFloor, market: MarketState, volatilities=None) -> MultiCurrencyAmount:
        return self.present_value(cap_floor, market, volatilities)

    def explain_present_value(self, cap_floor: IborCapFloor, market: MarketState, volatilities=None) -> ExplainMap:
        legs: List[ExplainMap] = [
            self.cap_floor_leg_pricer.explain_present_value(cap_floor.cap_floor_leg, market, volatilities)
        ]
        if cap_floor.pay_leg is not None:
            legs.append(self.swap_leg_pricer.explain_present_value(cap_floor.pay_leg, market))
        builder = ExplainMapBuilder()
        builder.put(ExplainKey.ENTRY_TYPE, "IborCapFloor")
        builder.add_list_entries(ExplainKey.LEGS, legs)
        builder.put(ExplainKey.PRESENT_VALUE, self.present_value(cap_floor, market, volatilities))
        logger.debug("Explained cap/floor with %d legs", len(legs))
        return builder.build()


__all__ = [
    "VolatilityIborCapletFloorletPeriodPricer",
    "BlackIborCapletFloorletPeriodPricer",
    "NormalIborCapletFloorletPeriodPricer",
    "VolatilityIborCapFloorLegPricer",
    "VolatilityIborCapFloorProductPricer",
]
