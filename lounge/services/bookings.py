"""Seat-occupancy lifecycle.

    active <-> paused  ->  completed | cancelled

Every transition runs under the seat's lock and commits as one unit together
with its activity-log entry (and, for terminal transitions, the history
snapshot). Terminal bookings are never mutated again.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lounge.errors import (
    InvalidBooking, InvalidPayment, InvalidTransition, NoPricingRuleFound, NotFound,
    OverpaymentNotAllowed, SeatUnavailable, UnknownSeat, UnsettledPaymentBlocksCompletion,
)
from lounge.models.core import (
    Booking, BookingFoodOrder, BookingHistory, BookingStatus, BookingType, DeviceConfig,
    PaymentLog, PaymentMethod, PaymentStatus, RuleKind,
)
from lounge.schemas.bookings import BookingOut, FoodOrderLine, LivePriceOut, food_lines_adapter
from lounge.schemas.pricing import PriceQuote
from lounge.schemas.promotions import dump_promotions, load_promotions
from lounge.services import inventory, pricing
from lounge.services.billing import money, refresh_payment_status, ZERO
from lounge.services.locks import item_locks, seat_key, seat_locks
from lounge.services.uow import ServiceContext, run_in_transaction
from lounge.util.audit import audit
from lounge.util.codes import generate_code
from lounge.util.notify import event

logger = logging.getLogger(__name__)

LIVE = (BookingStatus.ACTIVE, BookingStatus.PAUSED)


# ── reads ───────────────────────────────────────────────────────────────────

def get_booking(db: Session, booking_id: str, fresh: bool = False) -> Booking:
    b = db.get(Booking, booking_id, populate_existing=fresh)
    if not b:
        raise NotFound(f"booking {booking_id} not found")
    return b


def list_bookings(db: Session, status: str | None = None, live_only: bool = True) -> list[Booking]:
    q = select(Booking)
    if status:
        q = q.where(Booking.status == BookingStatus(status))
    elif live_only:
        q = q.where(Booking.status.in_(LIVE))
    return list(db.scalars(q.order_by(Booking.category, Booking.seat_name)))


def food_lines(db: Session, booking_id: str) -> list[BookingFoodOrder]:
    q = (select(BookingFoodOrder)
         .where(BookingFoodOrder.booking_id == booking_id)
         .order_by(BookingFoodOrder.ordered_at.asc(), BookingFoodOrder.created_at.asc()))
    return list(db.scalars(q))


def list_history(db: Session, category: str | None = None, since: datetime | None = None,
                 until: datetime | None = None, limit: int = 100) -> list[BookingHistory]:
    q = select(BookingHistory)
    if category:
        q = q.where(BookingHistory.category == category)
    if since:
        q = q.where(BookingHistory.archived_at >= since)
    if until:
        q = q.where(BookingHistory.archived_at < until)
    return list(db.scalars(q.order_by(BookingHistory.archived_at.desc()).limit(limit)))


def _line(l: BookingFoodOrder) -> FoodOrderLine:
    return FoodOrderLine(
        id=l.id, food_item_id=l.food_item_id, food_name=l.food_name,
        unit_price=money(l.unit_price), quantity=l.quantity,
        unit_cost=money(l.unit_cost), ordered_at=l.ordered_at,
    )


def serialize(db: Session, b: Booking) -> BookingOut:
    return BookingOut(
        id=b.id, booking_code=b.booking_code, group_id=b.group_id, group_code=b.group_code,
        category=b.category, seat_name=b.seat_name, customer_name=b.customer_name,
        whatsapp_number=b.whatsapp_number, booking_type=b.booking_type.value, status=b.status.value,
        start_time=b.start_time, end_time=b.end_time, duration_minutes=b.duration_minutes,
        bonus_minutes=b.bonus_minutes or 0, person_count=b.person_count,
        paused_remaining_seconds=b.paused_remaining_seconds,
        original_price=money(b.original_price), price=money(b.price),
        discount_amount=money(b.discount_amount), extension_total=money(b.extension_total),
        food_total=money(b.food_total), amount_due=money(b.amount_due),
        applied_rule_kind=b.applied_rule_kind.value, pricing_path=b.pricing_path,
        pricing_warnings=list(b.pricing_warnings or []),
        payment_method=b.payment_method.value if b.payment_method else None,
        cash_amount=money(b.cash_amount), upi_amount=money(b.upi_amount),
        payment_status=b.payment_status.value, last_payment_action=b.last_payment_action,
        ended_at=b.ended_at, food_orders=[_line(l) for l in food_lines(db, b.id)],
    )


# ── helpers ─────────────────────────────────────────────────────────────────

def elapsed_seconds(b: Booking, now: datetime) -> int:
    secs = b.active_seconds or 0
    if b.status == BookingStatus.ACTIVE and b.last_resumed_at:
        secs += max(0, int((now - b.last_resumed_at).total_seconds()))
    return secs


def _billable_minutes(seconds: int) -> int:
    # a started minute is a billed minute
    return -(-seconds // 60)


def _require(b: Booking, *allowed: BookingStatus, action: str) -> None:
    if b.status not in allowed:
        raise InvalidTransition(f"cannot {action} a {b.status.value} booking",
                                booking_id=b.id, status=b.status.value)


def _check_seat(db: Session, category: str, seat_name: str) -> None:
    cfg = db.scalars(select(DeviceConfig).where(DeviceConfig.category == category)).first()
    if cfg is not None and seat_name not in (cfg.seats or []):
        raise UnknownSeat(f"seat {seat_name} is not configured for {category}")
    live = db.scalars(select(Booking.id).where(
        Booking.category == category, Booking.seat_name == seat_name, Booking.status.in_(LIVE))).first()
    if live:
        raise SeatUnavailable(f"seat {seat_name} ({category}) is already occupied", booking_id=live)


def _apply_quote(b: Booking, q: PriceQuote) -> None:
    b.original_price = q.base_price
    b.price = money(q.final_price + Decimal(b.extension_total or 0))
    b.discount_amount = q.discount_breakdown.discount_amount
    b.applied_rule_kind = RuleKind(q.applied_rule_kind)
    b.pricing_path = q.discount_breakdown.path
    b.pricing_warnings = list(q.discount_breakdown.warnings)


def _requote(ctx: ServiceContext, b: Booking, promotions=None, now: datetime | None = None) -> PriceQuote:
    promos = load_promotions(b.promotion_details) if promotions is None else list(promotions)
    if b.booking_type == BookingType.HOURLY:
        minutes = _billable_minutes(elapsed_seconds(b, now or ctx.now()))
        return pricing.quote(ctx.db, ctx.policy, b.category, b.start_time, None, b.person_count,
                             promos, elapsed_minutes=minutes)
    return pricing.quote(ctx.db, ctx.policy, b.category, b.start_time, b.duration_minutes,
                         b.person_count, promos)


def _refresh_quote(ctx: ServiceContext, b: Booking, now: datetime) -> None:
    """Re-price from current configuration and elapsed time.

    The stored quote is kept when a fixed slot's rule has gone, or when the new
    amount due would fall below what has already been paid.
    """
    try:
        q = _requote(ctx, b, now=now)
    except NoPricingRuleFound:
        if b.booking_type == BookingType.HOURLY:
            raise
        logger.warning("no pricing rule left for booking %s, keeping quoted price %s", b.id, b.price)
    else:
        due = money(q.final_price + Decimal(b.extension_total or 0) + Decimal(b.food_total or 0))
        if b.amount_paid > due:
            logger.warning("re-quote of booking %s to %s is below the %s already paid, keeping %s",
                           b.id, due, money(b.amount_paid), money(b.amount_due))
        else:
            _apply_quote(b, q)
    refresh_payment_status(b)


def _seat_of(db: Session, booking_id: str) -> str:
    b = get_booking(db, booking_id)
    return seat_key(b.category, b.seat_name)


def _locked(ctx: ServiceContext, booking_id: str, step, *item_ids: str):
    key = _seat_of(ctx.db, booking_id)
    with seat_locks.hold(key), item_locks.hold(*item_ids):
        result = run_in_transaction(ctx, lambda: step(get_booking(ctx.db, booking_id, fresh=True)), deliver=False)
    ctx.deliver()
    return result


# ── operations ──────────────────────────────────────────────────────────────

def start(ctx: ServiceContext, *, category: str, seat_name: str, customer_name: str,
          booking_type: str = "fixed_slot", duration: str | None = None, person_count: int = 1,
          whatsapp_number: str | None = None, promotions: Iterable = (), group_id: str | None = None,
          start_time: datetime | None = None) -> Booking:
    btype = BookingType(booking_type)
    minutes = pricing.parse_duration(duration) if duration else None
    if btype == BookingType.FIXED_SLOT and minutes is None:
        raise InvalidBooking("fixed-slot bookings need a duration")
    if btype == BookingType.HOURLY and minutes is not None:
        raise InvalidBooking("hourly bookings are open-ended and take no duration")
    promotions = list(promotions)

    def _start() -> Booking:
        db = ctx.db
        _check_seat(db, category, seat_name)
        at = start_time or ctx.now()
        q = pricing.quote(db, ctx.policy, category, at, minutes, person_count, promotions)
        b = Booking(
            booking_code=generate_code("BK"), category=category, seat_name=seat_name,
            customer_name=customer_name, whatsapp_number=whatsapp_number, booking_type=btype,
            status=BookingStatus.ACTIVE, start_time=at,
            end_time=at + timedelta(minutes=q.billed_minutes) if minutes is not None else None,
            duration_minutes=minutes, bonus_minutes=q.bonus_minutes, extension_minutes=0,
            person_count=person_count, active_seconds=0, last_resumed_at=at,
            extension_total=ZERO, food_total=ZERO, cash_amount=ZERO, upi_amount=ZERO,
            payment_status=PaymentStatus.UNPAID, promotion_details=dump_promotions(promotions),
        )
        _apply_quote(b, q)
        db.add(b)
        try:
            db.flush()
        except IntegrityError as exc:
            # lost the race on the live-seat index
            raise SeatUnavailable(f"seat {seat_name} ({category}) is already occupied") from exc
        if group_id:
            from lounge.services.groups import join_group
            join_group(db, group_id, b)
        audit(db, ctx.actor, "booking_started", "booking", b.id, details={
            "seat": seat_name, "category": category, "price": str(b.price),
            "applied_rule_kind": q.applied_rule_kind, "group_id": group_id,
        })
        ctx.emit(event("booking_started", "Session started",
                       f"{customer_name} on {seat_name} ({category})", "booking", b.id))
        return b

    with seat_locks.hold(seat_key(category, seat_name)):
        b = run_in_transaction(ctx, _start, deliver=False)
    ctx.deliver()
    logger.info("booking %s started on %s/%s", b.booking_code, category, seat_name)
    return b


def pause(ctx: ServiceContext, booking_id: str) -> Booking:
    def _pause(b: Booking) -> Booking:
        _require(b, BookingStatus.ACTIVE, action="pause")
        now = ctx.now()
        if b.booking_type == BookingType.FIXED_SLOT:
            b.paused_remaining_seconds = max(0, int((b.end_time - now).total_seconds()))
        b.active_seconds = elapsed_seconds(b, now)
        b.last_resumed_at = None
        b.paused_at = now
        b.status = BookingStatus.PAUSED
        if b.booking_type == BookingType.HOURLY:
            _refresh_quote(ctx, b, now)
        audit(ctx.db, ctx.actor, "booking_paused", "booking", b.id,
              details={"remaining_seconds": b.paused_remaining_seconds})
        return b
    return _locked(ctx, booking_id, _pause)


def resume(ctx: ServiceContext, booking_id: str) -> Booking:
    def _resume(b: Booking) -> Booking:
        _require(b, BookingStatus.PAUSED, action="resume")
        now = ctx.now()
        if b.booking_type == BookingType.FIXED_SLOT:
            b.end_time = now + timedelta(seconds=b.paused_remaining_seconds or 0)
        b.paused_remaining_seconds = None
        b.paused_at = None
        b.last_resumed_at = now
        b.status = BookingStatus.ACTIVE
        audit(ctx.db, ctx.actor, "booking_resumed", "booking", b.id,
              details={"end_time": b.end_time.isoformat() if b.end_time else None})
        return b
    return _locked(ctx, booking_id, _resume)


def extend(ctx: ServiceContext, booking_id: str, duration: str) -> Booking:
    minutes = pricing.parse_duration(duration)

    def _extend(b: Booking) -> Booking:
        _require(b, *LIVE, action="extend")
        if b.booking_type != BookingType.FIXED_SLOT:
            raise InvalidBooking("hourly sessions are billed on elapsed time and cannot be extended")
        q = pricing.quote(ctx.db, ctx.policy, b.category, ctx.now(), minutes, b.person_count)
        b.extension_total = money(Decimal(b.extension_total or 0) + q.final_price)
        b.extension_minutes = (b.extension_minutes or 0) + minutes
        b.price = money(Decimal(b.price) + q.final_price)
        if b.status == BookingStatus.PAUSED:
            b.paused_remaining_seconds = (b.paused_remaining_seconds or 0) + minutes * 60
        else:
            b.end_time = b.end_time + timedelta(minutes=minutes)
        refresh_payment_status(b)
        audit(ctx.db, ctx.actor, "booking_extended", "booking", b.id,
              details={"duration": duration, "price": str(q.final_price)})
        return b
    return _locked(ctx, booking_id, _extend)


def apply_promotions(ctx: ServiceContext, booking_id: str, promotions: Iterable) -> Booking:
    """Replace the booking's promotions/override and reprice."""
    promotions = list(promotions)

    def _apply(b: Booking) -> Booking:
        _require(b, *LIVE, action="reprice")
        now = ctx.now()
        q = _requote(ctx, b, promotions, now)
        delta = q.bonus_minutes - (b.bonus_minutes or 0)
        if b.booking_type == BookingType.FIXED_SLOT and delta:
            if b.status == BookingStatus.PAUSED:
                b.paused_remaining_seconds = max(0, (b.paused_remaining_seconds or 0) + delta * 60)
            else:
                b.end_time = b.end_time + timedelta(minutes=delta)
        b.bonus_minutes = q.bonus_minutes
        b.promotion_details = dump_promotions(promotions)
        _apply_quote(b, q)
        if b.amount_paid > b.amount_due:
            raise OverpaymentNotAllowed("already paid more than the repriced amount",
                                        paid=str(b.amount_paid), due=str(b.amount_due))
        refresh_payment_status(b)
        audit(ctx.db, ctx.actor, "booking_repriced", "booking", b.id, details={
            "path": q.discount_breakdown.path, "price": str(b.price),
            "warnings": q.discount_breakdown.warnings,
        })
        return b
    return _locked(ctx, booking_id, _apply)


def attach_food_order(ctx: ServiceContext, booking_id: str, food_item_id: str, quantity: int) -> BookingFoodOrder:
    def _attach(b: Booking) -> BookingFoodOrder:
        _require(b, *LIVE, action="add food to")
        db = ctx.db
        item = inventory.get_item(db, food_item_id)
        used = inventory.reserve(db, food_item_id, quantity)
        line = BookingFoodOrder(
            booking_id=b.id, food_item_id=item.id, food_name=item.name,
            unit_price=money(item.price), quantity=quantity,
            unit_cost=used.weighted_cost, ordered_at=ctx.now(),
        )
        db.add(line)
        b.food_total = money(Decimal(b.food_total or 0) + Decimal(item.price) * quantity)
        refresh_payment_status(b)
        audit(db, ctx.actor, "food_order_added", "booking", b.id, details={
            "food_item_id": item.id, "food": item.name, "quantity": quantity,
            "unit_cost": str(used.weighted_cost),
        })
        if used.low_stock:
            ctx.emit(inventory.low_stock_event(item, used))
        return line
    return _locked(ctx, booking_id, _attach, food_item_id)


def settle_payment(ctx: ServiceContext, booking_id: str, method: str,
                   cash_amount=ZERO, upi_amount=ZERO) -> Booking:
    pm = PaymentMethod(method)
    cash, upi = money(cash_amount), money(upi_amount)
    if cash < ZERO or upi < ZERO:
        raise InvalidPayment("payment amounts cannot be negative")
    if pm == PaymentMethod.CASH and upi:
        raise InvalidPayment("cash payment cannot carry a UPI amount")
    if pm == PaymentMethod.UPI and cash:
        raise InvalidPayment("UPI payment cannot carry a cash amount")
    if cash + upi <= ZERO:
        raise InvalidPayment("nothing to settle")

    def _settle(b: Booking) -> Booking:
        _require(b, *LIVE, action="settle")
        if b.booking_type == BookingType.HOURLY:
            # open-ended sessions owe what has accrued so far
            _refresh_quote(ctx, b, ctx.now())
        new_cash = money(Decimal(b.cash_amount or 0) + cash)
        new_upi = money(Decimal(b.upi_amount or 0) + upi)
        if new_cash + new_upi > money(b.amount_due):
            raise OverpaymentNotAllowed(
                f"payment of {cash + upi} exceeds the {money(b.amount_due - b.amount_paid)} outstanding",
                due=str(money(b.amount_due)), paid=str(money(b.amount_paid)),
            )
        prev_status, prev_method = b.payment_status, b.payment_method
        b.cash_amount, b.upi_amount = new_cash, new_upi
        if new_cash and new_upi:
            b.payment_method = PaymentMethod.SPLIT
        else:
            b.payment_method = PaymentMethod.CASH if new_cash else PaymentMethod.UPI
        b.last_payment_action = f"{pm.value}:{cash + upi}"
        refresh_payment_status(b)
        ctx.db.add(PaymentLog(
            booking_id=b.id, seat_name=b.seat_name, customer_name=b.customer_name,
            amount=cash + upi, payment_method=pm, payment_status=b.payment_status,
            previous_status=prev_status, previous_method=prev_method,
            user_id=ctx.actor.user_id, username=ctx.actor.username,
        ))
        audit(ctx.db, ctx.actor, "payment_settled", "booking", b.id, details={
            "method": pm.value, "cash": str(cash), "upi": str(upi), "status": b.payment_status.value,
        })
        return b
    return _locked(ctx, booking_id, _settle)


def archive(db: Session, b: Booking, at: datetime) -> BookingHistory:
    """Freeze a terminated booking into an append-only history row."""
    lines = [_line(l) for l in food_lines(db, b.id)]
    h = BookingHistory(
        booking_id=b.id, booking_code=b.booking_code, group_id=b.group_id, group_code=b.group_code,
        category=b.category, seat_name=b.seat_name, customer_name=b.customer_name,
        whatsapp_number=b.whatsapp_number, booking_type=b.booking_type, status=b.status,
        start_time=b.start_time, end_time=b.end_time, ended_at=b.ended_at or at,
        duration_minutes=b.duration_minutes, bonus_minutes=b.bonus_minutes or 0,
        extension_minutes=b.extension_minutes or 0, billed_minutes=_billed_minutes(b, at),
        person_count=b.person_count, paused_remaining_seconds=b.paused_remaining_seconds,
        original_price=money(b.original_price), price=money(b.price),
        discount_amount=money(b.discount_amount), extension_total=money(b.extension_total),
        food_total=money(b.food_total), applied_rule_kind=b.applied_rule_kind,
        pricing_path=b.pricing_path, promotion_details=list(b.promotion_details or []),
        pricing_warnings=list(b.pricing_warnings or []), payment_method=b.payment_method,
        cash_amount=money(b.cash_amount), upi_amount=money(b.upi_amount),
        payment_status=b.payment_status, last_payment_action=b.last_payment_action,
        food_orders=food_lines_adapter.dump_python(lines, mode="json"),
        booked_at=b.created_at or b.start_time, archived_at=at,
    )
    db.add(h)
    return h


def _billed_minutes(b: Booking, at: datetime) -> int:
    if b.booking_type == BookingType.HOURLY:
        return _billable_minutes(b.active_seconds or 0)
    return (b.duration_minutes or 0) + (b.bonus_minutes or 0) + (b.extension_minutes or 0)


def _finish(ctx: ServiceContext, b: Booking, status: BookingStatus) -> Booking:
    verb = "complete" if status == BookingStatus.COMPLETED else "cancel"
    _require(b, *LIVE, action=verb)
    db = ctx.db
    now = ctx.now()
    b.active_seconds = elapsed_seconds(b, now)
    b.last_resumed_at = None

    _refresh_quote(ctx, b, now)

    if status == BookingStatus.COMPLETED and ctx.policy.require_full_payment \
            and b.payment_status != PaymentStatus.PAID:
        raise UnsettledPaymentBlocksCompletion(
            f"{money(b.amount_due - b.amount_paid)} still outstanding on {b.booking_code}",
            due=str(money(b.amount_due)), paid=str(money(b.amount_paid)),
        )

    b.status = status
    b.ended_at = now
    history = archive(db, b, now)
    b.paused_remaining_seconds = None
    b.paused_at = None
    db.flush()

    if b.group_id:
        from lounge.services.groups import dissolve_if_done
        dissolve_if_done(db, b.group_id, now)
    audit(db, ctx.actor, f"booking_{status.value}", "booking", b.id, details={
        "history_id": history.id, "price": str(b.price), "food_total": str(b.food_total),
        "payment_status": b.payment_status.value,
    })
    ctx.emit(event(f"booking_{status.value}", f"Session {status.value}",
                   f"{b.customer_name} on {b.seat_name}: {money(b.amount_due)} due, "
                   f"{b.payment_status.value}", "booking", b.id))
    return b


def complete(ctx: ServiceContext, booking_id: str) -> Booking:
    return _locked(ctx, booking_id, lambda b: _finish(ctx, b, BookingStatus.COMPLETED))


def cancel(ctx: ServiceContext, booking_id: str) -> Booking:
    return _locked(ctx, booking_id, lambda b: _finish(ctx, b, BookingStatus.CANCELLED))


def live_prices(ctx: ServiceContext) -> list[LivePriceOut]:
    """Running price of open-ended sessions; read-only, nothing is committed."""
    now = ctx.now()
    out = []
    q = select(Booking).where(Booking.booking_type == BookingType.HOURLY, Booking.status.in_(LIVE))
    for b in ctx.db.scalars(q.order_by(Booking.category, Booking.seat_name)):
        secs = elapsed_seconds(b, now)
        try:
            quote = _requote(ctx, b, now=now)
        except NoPricingRuleFound:
            logger.warning("booking %s has no pricing rule, skipped in live sweep", b.id)
            continue
        price = money(quote.final_price + Decimal(b.extension_total or 0))
        out.append(LivePriceOut(
            booking_id=b.id, seat_name=b.seat_name, status=b.status.value,
            elapsed_minutes=_billable_minutes(secs), price=price,
            amount_due=money(price + Decimal(b.food_total or 0)),
        ))
    return out
