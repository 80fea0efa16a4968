"""
Unit tests for conventions module.
"""

from datetime import date
import pytest

from rateskit.conventions import (
    DayCount,
    BusinessDayConvention,
    StubConvention,
    PayReceive,
    BuySell,
    year_fraction,
    adjust_business_day,
    add_business_days,
    Conventions,
    IsdaYieldCurveConvention,
    CdsConvention,
)


class TestDayCount:
    """Tests for day count conventions."""

    def test_act_360(self):
        """Test ACT/360 day count."""
        start = date(2024, 1, 15)
        end = date(2024, 4, 15)  # 91 days

        yf = year_fraction(start, end, DayCount.ACT_360)
        assert abs(yf - 91 / 360) < 1e-10

    def test_act_365f(self):
        """Test ACT/365F day count."""
        start = date(2024, 1, 15)
        end = date(2024, 4, 15)

        yf = year_fraction(start, end, DayCount.ACT_365F)
        assert abs(yf - 91 / 365) < 1e-10

    def test_act_act_across_leap_year(self):
        yf = year_fraction(date(2023, 7, 1), date(2024, 7, 1), DayCount.ACT_ACT)
        expected = 184 / 365 + 182 / 366
        assert abs(yf - expected) < 1e-12

    def test_thirty_360_vs_thirty_e_360(self):
        """US 30/360 keeps day 31 unless the start is 30; 30E/360 always caps."""
        start = date(2024, 2, 15)
        end = date(2024, 3, 31)
        assert abs(year_fraction(start, end, DayCount.THIRTY_360) - 46 / 360) < 1e-12
        assert abs(year_fraction(start, end, DayCount.THIRTY_E_360) - 45 / 360) < 1e-12

    def test_year_fraction_same_date(self):
        d = date(2024, 1, 15)
        assert year_fraction(d, d, DayCount.ACT_360) == 0.0

    def test_year_fraction_reversed_is_negative(self):
        a, b = date(2024, 1, 15), date(2024, 7, 15)
        assert year_fraction(b, a, DayCount.ACT_365F) == -year_fraction(a, b, DayCount.ACT_365F)

    def test_from_string(self):
        assert DayCount.from_string("ACT/365F") == DayCount.ACT_365F
        assert DayCount.from_string("act/360") == DayCount.ACT_360
        assert DayCount.from_string("30/360 ISDA") == DayCount.THIRTY_E_360
        with pytest.raises(ValueError):
            DayCount.from_string("BUS/252")


class TestBusinessDays:
    """Tests for business day adjustment."""

    def test_following(self):
        # 2024-06-15 is a Saturday
        assert adjust_business_day(date(2024, 6, 15), BusinessDayConvention.FOLLOWING) == date(2024, 6, 17)

    def test_preceding(self):
        assert adjust_business_day(date(2024, 6, 15), BusinessDayConvention.PRECEDING) == date(2024, 6, 14)

    def test_modified_following_month_end(self):
        # 2024-08-31 is a Saturday; following would cross into September
        adjusted = adjust_business_day(date(2024, 8, 31), BusinessDayConvention.MODIFIED_FOLLOWING)
        assert adjusted == date(2024, 8, 30)

    def test_business_day_unchanged(self):
        d = date(2024, 1, 15)
        for conv in BusinessDayConvention:
            assert adjust_business_day(d, conv) == d

    def test_add_business_days_skips_weekend(self):
        assert add_business_days(date(2024, 1, 12), 2) == date(2024, 1, 16)
        assert add_business_days(date(2024, 1, 16), -2) == date(2024, 1, 12)


class TestEnums:
    def test_signs(self):
        assert PayReceive.PAY.sign == -1
        assert PayReceive.RECEIVE.sign == 1
        assert BuySell.BUY.sign == 1
        assert BuySell.SELL.sign == -1

    def test_stub_from_string(self):
        assert StubConvention.from_string("front_short") == StubConvention.SHORT_INITIAL
        assert StubConvention.from_string("ShortFinal") == StubConvention.SHORT_FINAL
        with pytest.raises(ValueError):
            StubConvention.from_string("long")


class TestConventions:
    """Tests for convention presets."""

    def test_eur_fixed_leg_preset(self):
        conv = Conventions.eur_fixed_leg()
        assert conv.day_count == DayCount.THIRTY_E_360
        assert conv.payment_frequency == 1
        assert conv.settlement_days == 2

    def test_usd_fixed_leg_preset(self):
        conv = Conventions.usd_fixed_leg()
        assert conv.day_count == DayCount.THIRTY_360
        assert conv.payment_frequency == 2

    def test_conventions_hashable(self):
        assert hash(Conventions.eur_fixed_leg()) == hash(Conventions.eur_fixed_leg())

    def test_isda_yield_spot_date(self):
        conv = IsdaYieldCurveConvention.usd_isda()
        assert conv.spot_date(date(2024, 1, 12)) == date(2024, 1, 16)

    def test_cds_convention_dates(self):
        conv = CdsConvention.usd_standard()
        valuation = date(2024, 1, 15)
        assert conv.payment_interval_months == 3
        assert conv.unadjusted_step_in_date(valuation) == date(2024, 1, 16)
        assert conv.adjusted_start_date(valuation) == date(2023, 12, 20)
        assert conv.unadjusted_maturity_date(valuation, "5Y") == date(2029, 3, 20)
        assert conv.adjusted_settle_date(valuation) == date(2024, 1, 18)
