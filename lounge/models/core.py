from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, Integer, JSON, UniqueConstraint, Index, text, event
)
from sqlalchemy.orm import Mapped, mapped_column
from enum import Enum as PyEnum
from datetime import datetime
from decimal import Decimal
from lounge.db import Base
from lounge.errors import HistoryImmutable
from lounge.models.common import IdMixin, TSMMixin, UTCDateTime

# ── Enums ───────────────────────────────────────────────────────────────────
class BookingStatus(PyEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (BookingStatus.COMPLETED, BookingStatus.CANCELLED)

class BookingType(PyEnum):
    HOURLY = "hourly"          # open-ended, billed on elapsed time
    FIXED_SLOT = "fixed_slot"  # a priced duration bucket

class PaymentStatus(PyEnum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"

class PaymentMethod(PyEnum):
    CASH = "cash"
    UPI = "upi"
    SPLIT = "split"

class FoodKind(PyEnum):
    TRACKABLE = "trackable"
    UNTRACKED = "untracked"

class RuleKind(PyEnum):
    REGULAR = "regular"
    HAPPY_HOUR = "happy_hour"

# ── Configuration ───────────────────────────────────────────────────────────
class DeviceConfig(Base, IdMixin, TSMMixin):
    __tablename__ = "device_config"
    category: Mapped[str] = mapped_column(String(40), unique=True)
    seats: Mapped[list] = mapped_column(JSON, default=list)  # ["PS5-1", "PS5-2", ...]

class PricingRule(Base, IdMixin, TSMMixin):
    __tablename__ = "pricing_rule"
    kind: Mapped[RuleKind] = mapped_column(Enum(RuleKind), default=RuleKind.REGULAR)
    category: Mapped[str] = mapped_column(String(40))
    duration: Mapped[str] = mapped_column(String(40))       # label as shown at the counter, e.g. "1 hour"
    duration_minutes: Mapped[int] = mapped_column(Integer)
    person_count: Mapped[int] = mapped_column(Integer, default=1)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    __table_args__ = (
        UniqueConstraint("kind", "category", "duration_minutes", "person_count", name="uq_pricing_rule_key"),
    )

class HappyHourWindow(Base, IdMixin, TSMMixin):
    __tablename__ = "happy_hour_window"
    category: Mapped[str] = mapped_column(String(40))
    start_time: Mapped[str] = mapped_column(String(5))  # "HH:MM", local time
    end_time: Mapped[str] = mapped_column(String(5))
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)

# ── Inventory ───────────────────────────────────────────────────────────────
class FoodItem(Base, IdMixin, TSMMixin):
    __tablename__ = "food_item"
    name: Mapped[str] = mapped_column(String(160))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    cost_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    current_stock: Mapped[int] = mapped_column(Integer, default=0)
    min_stock_level: Mapped[int] = mapped_column(Integer, default=10)
    kind: Mapped[FoodKind] = mapped_column(Enum(FoodKind), default=FoodKind.TRACKABLE)
    supplier: Mapped[str | None] = mapped_column(String(160))
    expiry_date: Mapped[datetime | None] = mapped_column(UTCDateTime)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def trackable(self) -> bool:
        return self.kind == FoodKind.TRACKABLE

class StockBatch(Base, IdMixin, TSMMixin):
    __tablename__ = "stock_batch"
    food_item_id: Mapped[str] = mapped_column(String(36), ForeignKey("food_item.id"), index=True)
    quantity: Mapped[int] = mapped_column(Integer)  # remaining
    initial_quantity: Mapped[int] = mapped_column(Integer)
    cost_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    supplier: Mapped[str | None] = mapped_column(String(160))
    purchase_date: Mapped[datetime] = mapped_column(UTCDateTime)
    expiry_date: Mapped[datetime | None] = mapped_column(UTCDateTime)
    notes: Mapped[str | None] = mapped_column(Text)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version_id}

# ── Sessions ────────────────────────────────────────────────────────────────
class SessionGroup(Base, IdMixin, TSMMixin):
    __tablename__ = "session_group"
    group_code: Mapped[str] = mapped_column(String(20), unique=True)
    group_name: Mapped[str] = mapped_column(String(160))
    category: Mapped[str] = mapped_column(String(40))
    booking_type: Mapped[BookingType] = mapped_column(Enum(BookingType))
    dissolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version_id}

class Booking(Base, IdMixin, TSMMixin):
    __tablename__ = "booking"
    booking_code: Mapped[str] = mapped_column(String(20), unique=True)
    group_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("session_group.id"), index=True)
    group_code: Mapped[str | None] = mapped_column(String(20))
    category: Mapped[str] = mapped_column(String(40))
    seat_name: Mapped[str] = mapped_column(String(60))
    customer_name: Mapped[str] = mapped_column(String(160))
    whatsapp_number: Mapped[str | None] = mapped_column(String(20))
    booking_type: Mapped[BookingType] = mapped_column(Enum(BookingType))
    status: Mapped[BookingStatus] = mapped_column(Enum(BookingStatus), default=BookingStatus.ACTIVE)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime)
    end_time: Mapped[datetime | None] = mapped_column(UTCDateTime)  # effective billed end, None when open-ended
    duration_minutes: Mapped[int | None] = mapped_column(Integer)
    bonus_minutes: Mapped[int] = mapped_column(Integer, default=0)
    extension_minutes: Mapped[int] = mapped_column(Integer, default=0)
    person_count: Mapped[int] = mapped_column(Integer, default=1)
    paused_remaining_seconds: Mapped[int | None] = mapped_column(Integer)
    paused_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    active_seconds: Mapped[int] = mapped_column(Integer, default=0)
    last_resumed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    # pricing
    original_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    extension_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    food_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    applied_rule_kind: Mapped[RuleKind] = mapped_column(Enum(RuleKind), default=RuleKind.REGULAR)
    pricing_path: Mapped[str] = mapped_column(String(20), default="none")
    promotion_details: Mapped[list] = mapped_column(JSON, default=list)
    pricing_warnings: Mapped[list] = mapped_column(JSON, default=list)
    # payment
    payment_method: Mapped[PaymentMethod | None] = mapped_column(Enum(PaymentMethod))
    cash_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    upi_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    payment_status: Mapped[PaymentStatus] = mapped_column(Enum(PaymentStatus), default=PaymentStatus.UNPAID)
    last_payment_action: Mapped[str | None] = mapped_column(String(120))
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version_id}
    __table_args__ = (
        # one live occupancy per seat
        Index(
            "uq_booking_live_seat", "category", "seat_name", unique=True,
            sqlite_where=text("status IN ('ACTIVE', 'PAUSED')"),
            postgresql_where=text("status IN ('ACTIVE', 'PAUSED')"),
        ),
    )

    @property
    def amount_due(self) -> Decimal:
        return Decimal(self.price or 0) + Decimal(self.food_total or 0)

    @property
    def amount_paid(self) -> Decimal:
        return Decimal(self.cash_amount or 0) + Decimal(self.upi_amount or 0)

class BookingFoodOrder(Base, IdMixin, TSMMixin):
    __tablename__ = "booking_food_order"
    booking_id: Mapped[str] = mapped_column(String(36), ForeignKey("booking.id"), index=True)
    food_item_id: Mapped[str] = mapped_column(String(36), ForeignKey("food_item.id"))
    food_name: Mapped[str] = mapped_column(String(160))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    quantity: Mapped[int] = mapped_column(Integer)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)  # weighted FIFO cost
    ordered_at: Mapped[datetime] = mapped_column(UTCDateTime)

class BookingHistory(Base, IdMixin, TSMMixin):
    __tablename__ = "booking_history"
    booking_id: Mapped[str] = mapped_column(String(36), index=True)
    booking_code: Mapped[str] = mapped_column(String(20))
    group_id: Mapped[str | None] = mapped_column(String(36))
    group_code: Mapped[str | None] = mapped_column(String(20))
    category: Mapped[str] = mapped_column(String(40))
    seat_name: Mapped[str] = mapped_column(String(60))
    customer_name: Mapped[str] = mapped_column(String(160))
    whatsapp_number: Mapped[str | None] = mapped_column(String(20))
    booking_type: Mapped[BookingType] = mapped_column(Enum(BookingType))
    status: Mapped[BookingStatus] = mapped_column(Enum(BookingStatus))
    start_time: Mapped[datetime] = mapped_column(UTCDateTime)
    end_time: Mapped[datetime | None] = mapped_column(UTCDateTime)
    ended_at: Mapped[datetime] = mapped_column(UTCDateTime)
    duration_minutes: Mapped[int | None] = mapped_column(Integer)
    bonus_minutes: Mapped[int] = mapped_column(Integer, default=0)
    extension_minutes: Mapped[int] = mapped_column(Integer, default=0)
    billed_minutes: Mapped[int] = mapped_column(Integer, default=0)
    person_count: Mapped[int] = mapped_column(Integer, default=1)
    paused_remaining_seconds: Mapped[int | None] = mapped_column(Integer)
    original_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    extension_total: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    food_total: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    applied_rule_kind: Mapped[RuleKind] = mapped_column(Enum(RuleKind))
    pricing_path: Mapped[str] = mapped_column(String(20))
    promotion_details: Mapped[list] = mapped_column(JSON, default=list)
    pricing_warnings: Mapped[list] = mapped_column(JSON, default=list)
    payment_method: Mapped[PaymentMethod | None] = mapped_column(Enum(PaymentMethod))
    cash_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    upi_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    payment_status: Mapped[PaymentStatus] = mapped_column(Enum(PaymentStatus))
    last_payment_action: Mapped[str | None] = mapped_column(String(120))
    food_orders: Mapped[list] = mapped_column(JSON, default=list)
    booked_at: Mapped[datetime] = mapped_column(UTCDateTime)
    archived_at: Mapped[datetime] = mapped_column(UTCDateTime)

@event.listens_for(BookingHistory, "before_update")
@event.listens_for(BookingHistory, "before_delete")
def _history_is_append_only(mapper, connection, target):
    raise HistoryImmutable(f"booking history {target.id} is immutable")

# ── Audit & payments ────────────────────────────────────────────────────────
class ActivityLog(Base, IdMixin, TSMMixin):
    __tablename__ = "activity_log"
    user_id: Mapped[str] = mapped_column(String(36))
    username: Mapped[str] = mapped_column(String(160))
    user_role: Mapped[str] = mapped_column(String(40))
    action: Mapped[str] = mapped_column(String(60))
    entity_type: Mapped[str | None] = mapped_column(String(60))
    entity_id: Mapped[str | None] = mapped_column(String(36))
    details: Mapped[str | None] = mapped_column(Text)

class PaymentLog(Base, IdMixin, TSMMixin):
    __tablename__ = "payment_log"
    booking_id: Mapped[str] = mapped_column(String(36), index=True)
    seat_name: Mapped[str] = mapped_column(String(60))
    customer_name: Mapped[str] = mapped_column(String(160))
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod))
    payment_status: Mapped[PaymentStatus] = mapped_column(Enum(PaymentStatus))
    previous_status: Mapped[PaymentStatus | None] = mapped_column(Enum(PaymentStatus))
    previous_method: Mapped[PaymentMethod | None] = mapped_column(Enum(PaymentMethod))
    user_id: Mapped[str] = mapped_column(String(36))
    username: Mapped[str] = mapped_column(String(160))
