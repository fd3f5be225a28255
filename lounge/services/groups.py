"""Session groups: several seats started and managed as one party.

Bulk operations run each member in its own transaction. A failing member
never rolls back its siblings; the failures are collected and raised together.
"""
import logging
from datetime import datetime
from typing import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from lounge.errors import (
    BookingTypeMismatch, CategoryMismatch, GroupOperationError, InvalidTransition, LoungeError, NotFound,
)
from lounge.models.core import Booking, BookingType, SessionGroup
from lounge.schemas.groups import SessionGroupOut
from lounge.services import bookings
from lounge.services.locks import seat_key, seat_locks
from lounge.services.uow import ServiceContext, run_in_transaction
from lounge.util.audit import audit
from lounge.util.codes import generate_code

logger = logging.getLogger(__name__)


def get_group(db: Session, group_id: str, fresh: bool = False) -> SessionGroup:
    g = db.get(SessionGroup, group_id, populate_existing=fresh)
    if not g:
        raise NotFound(f"group {group_id} not found")
    return g


def members(db: Session, group_id: str, fresh: bool = False) -> list[Booking]:
    q = select(Booking).where(Booking.group_id == group_id).order_by(Booking.seat_name)
    if fresh:
        q = q.execution_options(populate_existing=True)
    return list(db.scalars(q))


def list_groups(db: Session, include_dissolved: bool = False) -> list[SessionGroup]:
    q = select(SessionGroup)
    if not include_dissolved:
        q = q.where(SessionGroup.dissolved_at.is_(None))
    return list(db.scalars(q.order_by(SessionGroup.created_at.desc())))


def serialize_group(db: Session, g: SessionGroup) -> SessionGroupOut:
    return SessionGroupOut(
        id=g.id, group_code=g.group_code, group_name=g.group_name, category=g.category,
        booking_type=g.booking_type.value, dissolved_at=g.dissolved_at,
        member_ids=[b.id for b in members(db, g.id)],
    )


def create_group(ctx: ServiceContext, category: str, booking_type: str,
                 group_name: str | None = None) -> SessionGroup:
    def _create() -> SessionGroup:
        code = generate_code("GRP")
        g = SessionGroup(group_code=code, group_name=group_name or code, category=category,
                         booking_type=BookingType(booking_type))
        ctx.db.add(g)
        ctx.db.flush()
        audit(ctx.db, ctx.actor, "group_created", "session_group", g.id,
              details={"code": code, "category": category, "booking_type": booking_type})
        return g
    return run_in_transaction(ctx, _create)


def join_group(db: Session, group_id: str, b: Booking) -> SessionGroup:
    """Attach a booking to a group; no commit."""
    g = get_group(db, group_id)
    if g.dissolved_at is not None:
        raise InvalidTransition(f"group {g.group_code} is dissolved", group_id=g.id)
    if b.status.terminal:
        raise InvalidTransition(f"booking {b.booking_code} is {b.status.value}", booking_id=b.id)
    if b.group_id and b.group_id != g.id:
        raise InvalidTransition(f"booking {b.booking_code} already belongs to group {b.group_code}",
                                booking_id=b.id)
    if b.category != g.category:
        raise CategoryMismatch(f"{b.category} booking cannot join a {g.category} group",
                               booking_id=b.id, group_id=g.id)
    if b.booking_type != g.booking_type:
        raise BookingTypeMismatch(
            f"{b.booking_type.value} booking cannot join a {g.booking_type.value} group",
            booking_id=b.id, group_id=g.id,
        )
    b.group_id = g.id
    b.group_code = g.group_code
    return g


def add_member(ctx: ServiceContext, group_id: str, booking_id: str) -> Booking:
    b = bookings.get_booking(ctx.db, booking_id)

    def _add() -> Booking:
        fresh = bookings.get_booking(ctx.db, booking_id, fresh=True)
        join_group(ctx.db, group_id, fresh)
        audit(ctx.db, ctx.actor, "group_member_added", "session_group", group_id,
              details={"booking_id": booking_id, "seat": fresh.seat_name})
        return fresh

    with seat_locks.hold(seat_key(b.category, b.seat_name)):
        return run_in_transaction(ctx, _add)


def dissolve_if_done(db: Session, group_id: str, at: datetime) -> bool:
    """Mark the group dissolved once every member is terminal; no commit."""
    g = get_group(db, group_id)
    if g.dissolved_at is not None:
        return True
    db.flush()
    ms = members(db, group_id, fresh=True)
    if ms and all(m.status.terminal for m in ms):
        g.dissolved_at = at
        logger.info("group %s dissolved", g.group_code)
        return True
    return False


def _for_each(ctx: ServiceContext, group_id: str, action: str,
              op: Callable[[ServiceContext, str], Booking]) -> list[str]:
    get_group(ctx.db, group_id)
    targets = [m.id for m in members(ctx.db, group_id, fresh=True) if not m.status.terminal]
    succeeded: list[str] = []
    failures: dict[str, LoungeError] = {}
    for booking_id in targets:
        try:
            op(ctx, booking_id)
        except LoungeError as exc:
            logger.warning("group %s: %s failed for booking %s: %s", group_id, action, booking_id, exc.message)
            failures[booking_id] = exc
        else:
            succeeded.append(booking_id)
    if failures:
        raise GroupOperationError(action, succeeded, failures)
    return succeeded


def pause_all(ctx: ServiceContext, group_id: str) -> list[str]:
    return _for_each(ctx, group_id, "pause", bookings.pause)


def resume_all(ctx: ServiceContext, group_id: str) -> list[str]:
    return _for_each(ctx, group_id, "resume", bookings.resume)


def complete_all(ctx: ServiceContext, group_id: str) -> list[str]:
    return _for_each(ctx, group_id, "complete", bookings.complete)


def cancel_all(ctx: ServiceContext, group_id: str) -> list[str]:
    return _for_each(ctx, group_id, "cancel", bookings.cancel)
