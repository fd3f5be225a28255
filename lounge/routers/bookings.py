# lounge/routers/bookings.py
from fastapi import APIRouter, Depends
from pydantic import AwareDatetime, BaseModel
from sqlalchemy.orm import Session
from lounge.db import get_db
from lounge.deps import get_ctx, require_actor
from lounge.models.core import BookingHistory
from lounge.schemas.bookings import (
    BookingHistoryOut, BookingOut, BookingStartIn, ExtendIn, FoodOrderIn, LivePriceOut, PaymentIn,
)
from lounge.schemas.common import Actor
from lounge.schemas.promotions import Promotion
from lounge.services import bookings
from lounge.services.billing import bill
from lounge.services.uow import ServiceContext

router = APIRouter(prefix="/bookings", tags=["bookings"])

class PromotionsIn(BaseModel):
    promotions: list[Promotion] = []

def _out(ctx: ServiceContext, b) -> BookingOut:
    return bookings.serialize(ctx.db, b)

def _history(h: BookingHistory) -> BookingHistoryOut:
    return BookingHistoryOut(
        id=h.id, booking_id=h.booking_id, booking_code=h.booking_code, group_code=h.group_code,
        category=h.category, seat_name=h.seat_name, customer_name=h.customer_name,
        booking_type=h.booking_type.value, status=h.status.value, start_time=h.start_time,
        end_time=h.end_time, ended_at=h.ended_at, billed_minutes=h.billed_minutes,
        original_price=h.original_price, price=h.price, food_total=h.food_total,
        cash_amount=h.cash_amount, upi_amount=h.upi_amount, payment_status=h.payment_status.value,
        food_orders=h.food_orders or [], booked_at=h.booked_at, archived_at=h.archived_at,
    )

@router.post("", response_model=BookingOut)
def start(body: BookingStartIn, ctx: ServiceContext = Depends(get_ctx)):
    b = bookings.start(ctx, **body.model_dump(exclude={"promotions"}), promotions=body.promotions)
    return _out(ctx, b)

@router.get("", response_model=list[BookingOut])
def list_bookings(status: str | None = None, ctx: ServiceContext = Depends(get_ctx)):
    return [_out(ctx, b) for b in bookings.list_bookings(ctx.db, status)]

# static paths before /{booking_id}
@router.get("/live", response_model=list[LivePriceOut])
def live(ctx: ServiceContext = Depends(get_ctx)):
    return bookings.live_prices(ctx)

@router.get("/history", response_model=list[BookingHistoryOut])
def history(category: str | None = None, since: AwareDatetime | None = None, until: AwareDatetime | None = None,
            limit: int = 100, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    return [_history(h) for h in bookings.list_history(db, category, since, until, limit)]

@router.get("/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, ctx: ServiceContext = Depends(get_ctx)):
    return _out(ctx, bookings.get_booking(ctx.db, booking_id))

@router.get("/{booking_id}/bill")
def get_bill(booking_id: str, ctx: ServiceContext = Depends(get_ctx)):
    return bill(bookings.get_booking(ctx.db, booking_id))

@router.post("/{booking_id}/pause", response_model=BookingOut)
def pause(booking_id: str, ctx: ServiceContext = Depends(get_ctx)):
    return _out(ctx, bookings.pause(ctx, booking_id))

@router.post("/{booking_id}/resume", response_model=BookingOut)
def resume(booking_id: str, ctx: ServiceContext = Depends(get_ctx)):
    return _out(ctx, bookings.resume(ctx, booking_id))

@router.post("/{booking_id}/extend", response_model=BookingOut)
def extend(booking_id: str, body: ExtendIn, ctx: ServiceContext = Depends(get_ctx)):
    return _out(ctx, bookings.extend(ctx, booking_id, body.duration))

@router.post("/{booking_id}/food", response_model=BookingOut)
def add_food(booking_id: str, body: FoodOrderIn, ctx: ServiceContext = Depends(get_ctx)):
    bookings.attach_food_order(ctx, booking_id, body.food_item_id, body.quantity)
    return _out(ctx, bookings.get_booking(ctx.db, booking_id))

@router.post("/{booking_id}/payments", response_model=BookingOut)
def pay(booking_id: str, body: PaymentIn, ctx: ServiceContext = Depends(get_ctx)):
    return _out(ctx, bookings.settle_payment(ctx, booking_id, body.method, body.cash_amount, body.upi_amount))

@router.put("/{booking_id}/promotions", response_model=BookingOut)
def promotions(booking_id: str, body: PromotionsIn, ctx: ServiceContext = Depends(get_ctx)):
    return _out(ctx, bookings.apply_promotions(ctx, booking_id, body.promotions))

@router.post("/{booking_id}/complete", response_model=BookingOut)
def complete(booking_id: str, ctx: ServiceContext = Depends(get_ctx)):
    return _out(ctx, bookings.complete(ctx, booking_id))

@router.post("/{booking_id}/cancel", response_model=BookingOut)
def cancel(booking_id: str, ctx: ServiceContext = Depends(get_ctx)):
    return _out(ctx, bookings.cancel(ctx, booking_id))
