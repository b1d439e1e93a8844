"""
Price calculation for a stay.

Pure functions only: the caller looks up the effective pricing rule and
passes it in. All money is ``Decimal`` quantized to cents, so recomputing a
booking on every edit gives identical totals.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Protocol, Union

from apartment_admin.core.errors import (
    InvalidSeasonError,
    NoPricingRuleError,
    ValidationError,
)
from apartment_admin.models import Season

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# Stay length buckets: (max days inclusive, rule attribute)
TIER_FIELDS = (
    (3, "rate_1_3"),
    (6, "rate_4_6"),
)
LONG_STAY_FIELD = "rate_7_plus"


class PricingTerms(Protocol):
    """Anything shaped like a pricing rule (ORM row or schema)."""

    rate_1_3: Decimal
    rate_4_6: Decimal
    rate_7_plus: Decimal
    season_regular: Decimal
    season_peak: Decimal
    season_offpeak: Decimal
    tax_percent: Decimal
    currency: str


@dataclass(frozen=True)
class PriceQuote:
    base_rate: Decimal
    multiplier: Decimal
    days: int
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    grand_total: Decimal
    currency: str


def to_decimal(value: Union[Decimal, int, str, float]) -> Decimal:
    if isinstance(value, float):
        value = str(value)
    return Decimal(value)


def to_money(value: Union[Decimal, int, str, float, None]) -> Decimal:
    """Quantize to two places. Floats go through ``str`` to avoid binary noise."""
    if value is None:
        return Decimal("0.00")
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"Invalid money amount: {value!r}")


def tier_rate(days: int, rule: PricingTerms) -> Decimal:
    """
    Per-day rate for the stay length.

    Step function, not interpolation: 1-3 days, 4-6 days, 7+ days.
    """
    for max_days, field in TIER_FIELDS:
        if days <= max_days:
            return to_money(getattr(rule, field))
    return to_money(getattr(rule, LONG_STAY_FIELD))


def season_multiplier(season: Union[Season, str], rule: PricingTerms) -> Decimal:
    try:
        season = Season(season)
    except ValueError:
        raise InvalidSeasonError(f"Unknown season: {season!r}")

    multipliers = {
        Season.REGULAR: rule.season_regular,
        Season.PEAK: rule.season_peak,
        Season.OFFPEAK: rule.season_offpeak,
    }
    return to_decimal(multipliers[season])


def calculate(
    days: int,
    season: Union[Season, str],
    discount: Union[Decimal, int, str, float, None],
    rule: Optional[PricingTerms],
    *,
    clamp_negative: bool = False,
) -> PriceQuote:
    """
    Quote a stay against a pricing rule.

    subtotal    = base_rate * days * multiplier - discount
    tax         = subtotal * tax_percent / 100
    grand_total = subtotal + tax

    The discount is taken once, after the multiplier. A discount larger than
    the stay price yields a negative subtotal (and tax) unless
    ``clamp_negative`` is set, in which case the subtotal floors at zero.
    """
    if rule is None:
        raise NoPricingRuleError("No pricing rule is currently in effect")
    if not isinstance(days, int) or isinstance(days, bool) or days < 1:
        raise ValidationError("Stay must be at least 1 day", days=days)

    discount = to_money(discount)
    if discount < 0:
        raise ValidationError("Discount cannot be negative", discount=str(discount))

    base_rate = tier_rate(days, rule)
    multiplier = season_multiplier(season, rule)

    subtotal = to_money(base_rate * days * multiplier - discount)
    if clamp_negative and subtotal < 0:
        subtotal = Decimal("0.00")

    tax = to_money(subtotal * to_decimal(rule.tax_percent) / HUNDRED)
    grand_total = to_money(subtotal + tax)

    return PriceQuote(
        base_rate=base_rate,
        multiplier=multiplier,
        days=days,
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        grand_total=grand_total,
        currency=rule.currency,
    )
