# lounge/routers/activity.py
import json
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session
from lounge.db import get_db
from lounge.deps import require_role
from lounge.models.core import ActivityLog, PaymentLog
from lounge.schemas.common import Actor

router = APIRouter(prefix="/activity", tags=["activity"])

@router.get("")
def list_activity(entity_type: str | None = None, entity_id: str | None = None, limit: int = 100,
                  db: Session = Depends(get_db), actor: Actor = Depends(require_role("manager"))):
    q = select(ActivityLog)
    if entity_type:
        q = q.where(ActivityLog.entity_type == entity_type)
    if entity_id:
        q = q.where(ActivityLog.entity_id == entity_id)
    rows = db.scalars(q.order_by(ActivityLog.created_at.desc()).limit(limit))
    return [{
        "id": a.id, "user_id": a.user_id, "username": a.username, "user_role": a.user_role,
        "action": a.action, "entity_type": a.entity_type, "entity_id": a.entity_id,
        "details": json.loads(a.details) if a.details else None,
        "created_at": a.created_at.isoformat(),
    } for a in rows]

@router.get("/payments")
def list_payments(booking_id: str | None = None, limit: int = 100,
                  db: Session = Depends(get_db), actor: Actor = Depends(require_role("manager"))):
    q = select(PaymentLog)
    if booking_id:
        q = q.where(PaymentLog.booking_id == booking_id)
    rows = db.scalars(q.order_by(PaymentLog.created_at.desc()).limit(limit))
    return [{
        "id": p.id, "booking_id": p.booking_id, "seat_name": p.seat_name, "customer_name": p.customer_name,
        "amount": float(p.amount), "payment_method": p.payment_method.value,
        "payment_status": p.payment_status.value,
        "previous_status": p.previous_status.value if p.previous_status else None,
        "previous_method": p.previous_method.value if p.previous_method else None,
        "username": p.username, "created_at": p.created_at.isoformat(),
    } for p in rows]
