import re
from decimal import Decimal
from typing import Literal, Optional
from pydantic import AwareDatetime, BaseModel, Field, field_validator

from lounge.schemas.common import Money
from lounge.schemas.promotions import Promotion

RuleKindLiteral = Literal["regular", "happy_hour"]
PricingPathLiteral = Literal["none", "promotional", "manual"]

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class PricingRuleIn(BaseModel):
    kind: RuleKindLiteral = "regular"
    category: str
    duration: str
    person_count: int = Field(default=1, ge=1)
    price: Decimal = Field(ge=0)

class PricingRuleOut(BaseModel):
    id: str
    kind: RuleKindLiteral
    category: str
    duration: str
    duration_minutes: int
    person_count: int
    price: Money

class HappyHourWindowIn(BaseModel):
    category: str
    start_time: str
    end_time: str
    enabled: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def _hhmm(cls, v: str) -> str:
        if not _HHMM.match(v):
            raise ValueError("expected HH:MM")
        return v

class HappyHourWindowPatch(BaseModel):
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    enabled: Optional[bool] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _hhmm(cls, v: str | None) -> str | None:
        if v is not None and not _HHMM.match(v):
            raise ValueError("expected HH:MM")
        return v

class HappyHourWindowOut(HappyHourWindowIn):
    id: str


class DiscountBreakdown(BaseModel):
    path: PricingPathLiteral = "none"
    discount_percentage: Optional[Money] = None
    discount_amount: Money = Decimal("0.00")
    bonus_minutes: int = 0
    manual_price: Optional[Money] = None
    warnings: list[str] = []

class PriceQuote(BaseModel):
    base_price: Money
    applied_rule_kind: RuleKindLiteral
    final_price: Money
    billed_minutes: int
    bonus_minutes: int = 0
    hourly_rate: Optional[Money] = None
    discount_breakdown: DiscountBreakdown

class QuoteIn(BaseModel):
    category: str
    scheduled_start: Optional[AwareDatetime] = None
    duration: Optional[str] = None   # None = open-ended hourly billing
    elapsed_minutes: Optional[int] = Field(default=None, ge=0)
    person_count: int = Field(default=1, ge=1)
    promotions: list[Promotion] = []
