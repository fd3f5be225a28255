from decimal import Decimal
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter, model_validator

from lounge.schemas.common import Money


class PercentDiscount(BaseModel):
    kind: Literal["discount"] = "discount"
    percentage: Decimal = Field(gt=0, le=100)
    label: Optional[str] = None

class BonusHours(BaseModel):
    kind: Literal["bonus"] = "bonus"
    hours: Decimal = Field(gt=0)
    label: Optional[str] = None

class ManualOverride(BaseModel):
    """Staff override; replaces every promotional adjustment on the booking."""
    kind: Literal["manual"] = "manual"
    price: Optional[Money] = Field(default=None, ge=0)
    discount_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    free_hours: Optional[Decimal] = Field(default=None, ge=0)
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _something_set(self):
        if self.price is None and self.discount_percentage is None and self.free_hours is None:
            raise ValueError("manual override needs a price, discount_percentage or free_hours")
        return self


Promotion = Annotated[Union[PercentDiscount, BonusHours, ManualOverride], Field(discriminator="kind")]

promotions_adapter = TypeAdapter(list[Promotion])


def load_promotions(raw) -> list:
    """Validate promotions read back from a JSON column."""
    return promotions_adapter.validate_python(raw or [])

def dump_promotions(promos) -> list:
    return promotions_adapter.dump_python(list(promos), mode="json")
