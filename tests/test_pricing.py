"""
Unit tests for price calculation
"""
from decimal import Decimal

import pytest

from apartment_admin.core.errors import (
    InvalidSeasonError,
    NoPricingRuleError,
    ValidationError,
)
from apartment_admin.domain import pricing
from apartment_admin.models import Season

from conftest import make_rule


class TestWorkedExamples:
    def test_three_day_regular_stay(self):
        quote = pricing.calculate(3, Season.REGULAR, 0, make_rule())

        assert quote.base_rate == Decimal("100.00")
        assert quote.multiplier == Decimal("1.00")
        assert quote.subtotal == Decimal("300.00")
        assert quote.tax == Decimal("30.00")
        assert quote.grand_total == Decimal("330.00")
        assert quote.currency == "USD"

    def test_seven_day_peak_stay_with_discount(self):
        quote = pricing.calculate(7, "peak", Decimal("50"), make_rule())

        assert quote.base_rate == Decimal("80.00")
        assert quote.subtotal == Decimal("622.00")
        assert quote.tax == Decimal("62.20")
        assert quote.grand_total == Decimal("684.20")

    def test_grand_total_is_subtotal_plus_tax(self):
        quote = pricing.calculate(5, Season.OFFPEAK, Decimal("12.34"), make_rule(tax_percent=Decimal("7.5")))
        assert quote.grand_total == quote.subtotal + quote.tax


class TestTiers:
    @pytest.mark.parametrize(
        "days,expected",
        [
            (1, Decimal("100.00")),
            (3, Decimal("100.00")),
            (4, Decimal("90.00")),
            (6, Decimal("90.00")),
            (7, Decimal("80.00")),
            (30, Decimal("80.00")),
        ],
    )
    def test_tier_boundaries(self, days, expected):
        assert pricing.tier_rate(days, make_rule()) == expected

    def test_four_days_uses_middle_tier(self):
        quote = pricing.calculate(4, Season.REGULAR, 0, make_rule())
        assert quote.base_rate == Decimal("90.00")
        assert quote.subtotal == Decimal("360.00")


class TestSeasons:
    def test_multiplier_lookup(self):
        rule = make_rule()
        assert pricing.season_multiplier(Season.REGULAR, rule) == Decimal("1.00")
        assert pricing.season_multiplier("peak", rule) == Decimal("1.20")
        assert pricing.season_multiplier("offpeak", rule) == Decimal("0.80")

    def test_unknown_season(self):
        with pytest.raises(InvalidSeasonError):
            pricing.calculate(3, "winter", 0, make_rule())

    def test_unknown_season_is_validation_error(self):
        assert issubclass(InvalidSeasonError, ValidationError)


class TestEdgeCases:
    def test_no_rule(self):
        with pytest.raises(NoPricingRuleError):
            pricing.calculate(3, Season.REGULAR, 0, None)

    @pytest.mark.parametrize("days", [0, -1, True, 2.5])
    def test_days_below_one(self, days):
        with pytest.raises(ValidationError):
            pricing.calculate(days, Season.REGULAR, 0, make_rule())

    def test_negative_discount(self):
        with pytest.raises(ValidationError):
            pricing.calculate(3, Season.REGULAR, Decimal("-1"), make_rule())

    def test_discount_larger_than_price_is_unclamped_by_default(self):
        quote = pricing.calculate(1, Season.REGULAR, Decimal("150"), make_rule())
        assert quote.subtotal == Decimal("-50.00")
        assert quote.tax == Decimal("-5.00")
        assert quote.grand_total == Decimal("-55.00")

    def test_clamp_negative_subtotal(self):
        quote = pricing.calculate(1, Season.REGULAR, Decimal("150"), make_rule(), clamp_negative=True)
        assert quote.subtotal == Decimal("0.00")
        assert quote.tax == Decimal("0.00")
        assert quote.grand_total == Decimal("0.00")

    def test_recalculation_is_identical(self):
        rule = make_rule(tax_percent=Decimal("12.5"), season_peak=Decimal("1.15"))
        first = pricing.calculate(5, Season.PEAK, Decimal("33.33"), rule)
        second = pricing.calculate(5, Season.PEAK, Decimal("33.33"), rule)
        assert first == second

    def test_float_inputs_have_no_binary_noise(self):
        rule = make_rule(rate_1_3=0.1, tax_percent=0)
        quote = pricing.calculate(3, Season.REGULAR, 0, rule)
        assert quote.subtotal == Decimal("0.30")

    def test_rounding_is_half_up(self):
        assert pricing.to_money(Decimal("0.125")) == Decimal("0.13")
        assert pricing.to_money(Decimal("2.675")) == Decimal("2.68")
