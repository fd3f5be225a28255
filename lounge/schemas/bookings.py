from pydantic import AwareDatetime, BaseModel, Field, TypeAdapter
from typing import Optional, Literal
from datetime import datetime
from decimal import Decimal

from lounge.schemas.common import Money
from lounge.schemas.promotions import Promotion

BookingTypeLiteral = Literal["hourly", "fixed_slot"]
PaymentMethodLiteral = Literal["cash", "upi", "split"]


class BookingStartIn(BaseModel):
    category: str
    seat_name: str
    customer_name: str
    whatsapp_number: Optional[str] = None
    booking_type: BookingTypeLiteral = "fixed_slot"
    duration: Optional[str] = None
    person_count: int = Field(default=1, ge=1)
    promotions: list[Promotion] = []
    group_id: Optional[str] = None
    start_time: Optional[AwareDatetime] = None

class FoodOrderIn(BaseModel):
    food_item_id: str
    quantity: int = Field(gt=0)

class PaymentIn(BaseModel):
    method: PaymentMethodLiteral
    cash_amount: Decimal = Field(default=Decimal("0"), ge=0)
    upi_amount: Decimal = Field(default=Decimal("0"), ge=0)

class ExtendIn(BaseModel):
    duration: str


class FoodOrderLine(BaseModel):
    """One food line on a booking; also the shape frozen into history."""
    id: str
    food_item_id: str
    food_name: str
    unit_price: Money
    quantity: int
    unit_cost: Money
    ordered_at: datetime

food_lines_adapter = TypeAdapter(list[FoodOrderLine])


class BookingOut(BaseModel):
    id: str
    booking_code: str
    group_id: Optional[str] = None
    group_code: Optional[str] = None
    category: str
    seat_name: str
    customer_name: str
    whatsapp_number: Optional[str] = None
    booking_type: BookingTypeLiteral
    status: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    bonus_minutes: int = 0
    person_count: int
    paused_remaining_seconds: Optional[int] = None
    original_price: Money
    price: Money
    discount_amount: Money
    extension_total: Money
    food_total: Money
    amount_due: Money
    applied_rule_kind: str
    pricing_path: str
    pricing_warnings: list[str] = []
    payment_method: Optional[PaymentMethodLiteral] = None
    cash_amount: Money
    upi_amount: Money
    payment_status: str
    last_payment_action: Optional[str] = None
    ended_at: Optional[datetime] = None
    food_orders: list[FoodOrderLine] = []

class BookingHistoryOut(BaseModel):
    id: str
    booking_id: str
    booking_code: str
    group_code: Optional[str] = None
    category: str
    seat_name: str
    customer_name: str
    booking_type: BookingTypeLiteral
    status: str
    start_time: datetime
    end_time: Optional[datetime] = None
    ended_at: datetime
    billed_minutes: int
    original_price: Money
    price: Money
    food_total: Money
    cash_amount: Money
    upi_amount: Money
    payment_status: str
    food_orders: list[FoodOrderLine] = []
    booked_at: datetime
    archived_at: datetime

class LivePriceOut(BaseModel):
    booking_id: str
    seat_name: str
    status: str
    elapsed_minutes: int
    price: Money
    amount_due: Money
