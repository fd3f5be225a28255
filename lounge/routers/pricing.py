# lounge/routers/pricing.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from lounge.config import EnginePolicy
from lounge.db import get_db
from lounge.deps import get_policy, require_actor, require_role
from lounge.models.core import HappyHourWindow, PricingRule
from lounge.schemas.common import Actor
from lounge.schemas.pricing import (
    HappyHourWindowIn, HappyHourWindowOut, HappyHourWindowPatch, PriceQuote, PricingRuleIn, PricingRuleOut, QuoteIn,
)
from lounge.services import pricing
from lounge.util.audit import audit

router = APIRouter(prefix="/pricing", tags=["pricing"])

def _rule(r: PricingRule) -> PricingRuleOut:
    return PricingRuleOut(id=r.id, kind=r.kind.value, category=r.category, duration=r.duration,
                          duration_minutes=r.duration_minutes, person_count=r.person_count, price=r.price)

def _window(w: HappyHourWindow) -> HappyHourWindowOut:
    return HappyHourWindowOut(id=w.id, category=w.category, start_time=w.start_time,
                              end_time=w.end_time, enabled=w.enabled)

@router.post("/rules", response_model=PricingRuleOut)
def add_rule(body: PricingRuleIn, db: Session = Depends(get_db), policy: EnginePolicy = Depends(get_policy),
             actor: Actor = Depends(require_role("manager"))):
    r = pricing.add_rule(db, policy, **body.model_dump())
    audit(db, actor, "pricing_rule_added", "pricing_rule", r.id, details=body.model_dump(mode="json"))
    db.commit()
    return _rule(r)

@router.get("/rules", response_model=list[PricingRuleOut])
def list_rules(kind: str | None = None, category: str | None = None,
               db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    return [_rule(r) for r in pricing.list_rules(db, kind, category)]

@router.delete("/rules/{rule_id}")
def delete_rule(rule_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_role("manager"))):
    pricing.delete_rule(db, rule_id)
    audit(db, actor, "pricing_rule_deleted", "pricing_rule", rule_id)
    db.commit()
    return {"ok": True}

@router.post("/happy_hours", response_model=HappyHourWindowOut)
def add_window(body: HappyHourWindowIn, db: Session = Depends(get_db), actor: Actor = Depends(require_role("manager"))):
    w = pricing.add_window(db, **body.model_dump())
    audit(db, actor, "happy_hour_added", "happy_hour_window", w.id, details=body.model_dump())
    db.commit()
    return _window(w)

@router.patch("/happy_hours/{window_id}", response_model=HappyHourWindowOut)
def update_window(window_id: str, body: HappyHourWindowPatch, db: Session = Depends(get_db),
                  actor: Actor = Depends(require_role("manager"))):
    w = pricing.update_window(db, window_id, **body.model_dump(exclude_none=True))
    audit(db, actor, "happy_hour_updated", "happy_hour_window", w.id, details=body.model_dump(exclude_none=True))
    db.commit()
    return _window(w)

@router.get("/happy_hours", response_model=list[HappyHourWindowOut])
def list_windows(category: str | None = None, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    return [_window(w) for w in pricing.list_windows(db, category)]

@router.post("/quote", response_model=PriceQuote)
def quote(body: QuoteIn, db: Session = Depends(get_db), policy: EnginePolicy = Depends(get_policy),
          actor: Actor = Depends(require_actor)):
    return pricing.quote_now(db, policy, body.category, body.duration, body.person_count, body.promotions,
                             scheduled_start=body.scheduled_start, elapsed_minutes=body.elapsed_minutes)
