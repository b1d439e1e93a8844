from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from apartment_admin.models import Season


class PricingRuleBase(BaseModel):
    rate_1_3: Decimal = Field(ge=0, decimal_places=2)
    rate_4_6: Decimal = Field(ge=0, decimal_places=2)
    rate_7_plus: Decimal = Field(ge=0, decimal_places=2)
    season_regular: Decimal = Field(default=Decimal("1.00"), ge=Decimal("0.1"), le=10)
    season_peak: Decimal = Field(default=Decimal("1.20"), ge=Decimal("0.1"), le=10)
    season_offpeak: Decimal = Field(default=Decimal("0.80"), ge=Decimal("0.1"), le=10)
    tax_percent: Decimal = Field(default=Decimal("0.00"), ge=0, le=100)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    effective_date: date

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str):
        return v.upper()


class PricingRuleCreate(PricingRuleBase):
    pass


class PricingRuleUpdate(PricingRuleBase):
    pass


class PricingRuleOut(PricingRuleBase):
    id: int
    updated_by: Optional[int] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PriceCalculationRequest(BaseModel):
    days: int = Field(ge=1)
    season: Season = Season.REGULAR
    discount: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)


class PriceQuoteOut(BaseModel):
    base_rate: Decimal
    multiplier: Decimal
    days: int
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    grand_total: Decimal
    currency: str

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )
