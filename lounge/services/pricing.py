"""Price resolution: regular vs happy-hour tables, then at most one override path.

Quotes are pure reads: the same inputs against the same configuration give
the same ``PriceQuote``.
"""
import logging
import re
from datetime import datetime, time
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lounge.config import EnginePolicy
from lounge.errors import InvalidPricingRule, InvalidPromotion, NoPricingRuleFound, NotFound
from lounge.models.common import utcnow
from lounge.models.core import HappyHourWindow, PricingRule, RuleKind
from lounge.schemas.pricing import DiscountBreakdown, PriceQuote
from lounge.schemas.promotions import BonusHours, ManualOverride, PercentDiscount
from lounge.services.billing import money, ZERO

logger = logging.getLogger(__name__)

_DURATION = re.compile(
    r"^\s*(?P<n>\d+(?:\.\d+)?)\s*(?P<unit>m|min|mins|minute|minutes|h|hr|hrs|hour|hours)?\s*$",
    re.IGNORECASE,
)
HUNDRED = Decimal("100")


def parse_duration(label: str) -> int:
    """Bucket label to minutes: '30 mins' -> 30, '1 hour' -> 60, '1.5 hours' -> 90, '45' -> 45."""
    m = _DURATION.match(label or "")
    if not m:
        raise InvalidPricingRule(f"unrecognised duration {label!r}")
    n = Decimal(m.group("n"))
    unit = (m.group("unit") or "m").lower()
    minutes = n * 60 if unit.startswith("h") else n
    if minutes <= 0 or minutes != minutes.to_integral_value():
        raise InvalidPricingRule(f"duration {label!r} must be a whole number of minutes")
    return int(minutes)


def _hhmm(v: str) -> time:
    hh, mm = v.split(":")
    return time(int(hh), int(mm))


def _in_window(t: time, start: time, end: time) -> bool:
    if start == end:
        return False
    if start < end:
        return start <= t < end
    # wraps past midnight, e.g. 22:00-02:00
    return t >= start or t < end


def in_happy_hour(db: Session, policy: EnginePolicy, category: str, at: datetime) -> bool:
    local = at.astimezone(policy.zone).time().replace(second=0, microsecond=0)
    windows = db.scalars(select(HappyHourWindow).where(
        HappyHourWindow.category == category, HappyHourWindow.enabled.is_(True)))
    return any(_in_window(local, _hhmm(w.start_time), _hhmm(w.end_time)) for w in windows)


def _rules(db: Session, kind: RuleKind, category: str, person_count: int) -> list[PricingRule]:
    q = (select(PricingRule)
         .where(PricingRule.kind == kind, PricingRule.category == category,
                PricingRule.person_count == person_count)
         .order_by(PricingRule.duration_minutes.asc()))
    return list(db.scalars(q))


def _pick_table(db, policy, category, scheduled_start, person_count, duration_minutes):
    """Returns (kind, rules) for the table that prices this request, or (None, [])."""
    if in_happy_hour(db, policy, category, scheduled_start):
        hh = _rules(db, RuleKind.HAPPY_HOUR, category, person_count)
        if duration_minutes is None and hh:
            return RuleKind.HAPPY_HOUR, hh
        if any(r.duration_minutes == duration_minutes for r in hh):
            return RuleKind.HAPPY_HOUR, hh
    regular = _rules(db, RuleKind.REGULAR, category, person_count)
    if regular:
        return RuleKind.REGULAR, regular
    return None, []


def hourly_rate(rules: list[PricingRule]) -> Decimal:
    smallest = rules[0]
    return Decimal(smallest.price) * 60 / smallest.duration_minutes


def _split_promotions(promotions):
    manual, discounts, bonuses = [], [], []
    for p in promotions:
        if isinstance(p, ManualOverride):
            manual.append(p)
        elif isinstance(p, PercentDiscount):
            discounts.append(p)
        elif isinstance(p, BonusHours):
            bonuses.append(p)
    for name, found in (("manual override", manual), ("discount", discounts), ("bonus", bonuses)):
        if len(found) > 1:
            raise InvalidPromotion(f"more than one {name} on a single booking")
    return (manual[0] if manual else None,
            discounts[0] if discounts else None,
            bonuses[0] if bonuses else None)


def _hours_to_minutes(hours: Decimal) -> int:
    return int((Decimal(hours) * 60).to_integral_value())


def free_minutes(promotions: Iterable) -> int:
    manual, _, bonus = _split_promotions(promotions)
    if manual is not None:
        return _hours_to_minutes(manual.free_hours or 0)
    return _hours_to_minutes(bonus.hours) if bonus else 0


def apply_overrides(base: Decimal, promotions: Iterable) -> tuple[Decimal, DiscountBreakdown]:
    manual, discount, bonus = _split_promotions(promotions)
    breakdown = DiscountBreakdown()

    if manual is not None:
        breakdown.path = "manual"
        if discount or bonus:
            msg = "manual override present alongside promotional entries; promotions ignored"
            breakdown.warnings.append(msg)
            logger.warning(msg)
        if manual.price is not None:
            final = money(manual.price)
            breakdown.manual_price = final
        elif manual.discount_percentage is not None:
            final = money(base * (HUNDRED - manual.discount_percentage) / HUNDRED)
            breakdown.discount_percentage = manual.discount_percentage
        else:
            final = base
        if manual.free_hours:
            breakdown.bonus_minutes = _hours_to_minutes(manual.free_hours)
        breakdown.discount_amount = max(ZERO, money(base - final))
        return final, breakdown

    final = base
    if discount is not None:
        breakdown.path = "promotional"
        final = money(base * (HUNDRED - discount.percentage) / HUNDRED)
        breakdown.discount_percentage = discount.percentage
        breakdown.discount_amount = money(base - final)
    if bonus is not None:
        # bonus is free time, it never changes the price
        breakdown.path = "promotional"
        breakdown.bonus_minutes = _hours_to_minutes(bonus.hours)
    return final, breakdown


def quote(db: Session, policy: EnginePolicy, category: str, scheduled_start: datetime,
          duration_minutes: int | None, person_count: int = 1, promotions: Iterable = (),
          elapsed_minutes: int | None = None) -> PriceQuote:
    promotions = list(promotions)
    kind, rules = _pick_table(db, policy, category, scheduled_start, person_count, duration_minutes)
    if not rules:
        raise NoPricingRuleFound(f"no pricing for {category} x{person_count}",
                                 category=category, person_count=person_count)

    rate = None
    if duration_minutes is None:
        rate = hourly_rate(rules)
        minutes = elapsed_minutes or 0
        # on open-ended sessions bonus time is free play off the elapsed total
        chargeable = max(0, minutes - free_minutes(promotions))
        base = money(rate * chargeable / 60)
    else:
        match = next((r for r in rules if r.duration_minutes == duration_minutes), None)
        if match is None:
            raise NoPricingRuleFound(
                f"no {duration_minutes}-minute bucket for {category} x{person_count}",
                category=category, duration_minutes=duration_minutes, person_count=person_count,
            )
        minutes = duration_minutes
        base = money(match.price)

    final, breakdown = apply_overrides(base, promotions)
    return PriceQuote(
        base_price=base,
        applied_rule_kind=kind.value,
        final_price=max(ZERO, final),
        billed_minutes=minutes if duration_minutes is None else minutes + breakdown.bonus_minutes,
        bonus_minutes=breakdown.bonus_minutes,
        hourly_rate=money(rate) if rate is not None else None,
        discount_breakdown=breakdown,
    )


# ── configuration ───────────────────────────────────────────────────────────

def add_rule(db: Session, policy: EnginePolicy, *, kind: str, category: str, duration: str,
             person_count: int, price) -> PricingRule:
    if person_count > 1 and category not in policy.multi_person_categories:
        raise InvalidPricingRule(f"only {', '.join(policy.multi_person_categories) or 'no'} "
                                 f"categories can be priced for more than one person")
    rule = PricingRule(
        kind=RuleKind(kind), category=category, duration=duration,
        duration_minutes=parse_duration(duration), person_count=person_count, price=money(price),
    )
    try:
        with db.begin_nested():
            db.add(rule)
    except IntegrityError as exc:
        raise InvalidPricingRule(f"{kind} rule for {category} {duration} x{person_count} already exists") from exc
    return rule


def list_rules(db: Session, kind: str | None = None, category: str | None = None) -> list[PricingRule]:
    q = select(PricingRule)
    if kind:
        q = q.where(PricingRule.kind == RuleKind(kind))
    if category:
        q = q.where(PricingRule.category == category)
    q = q.order_by(PricingRule.category, PricingRule.kind, PricingRule.person_count, PricingRule.duration_minutes)
    return list(db.scalars(q))


def delete_rule(db: Session, rule_id: str) -> None:
    rule = db.get(PricingRule, rule_id)
    if not rule:
        raise NotFound(f"pricing rule {rule_id} not found")
    db.delete(rule)
    db.flush()


def add_window(db: Session, *, category: str, start_time: str, end_time: str, enabled: bool = True) -> HappyHourWindow:
    w = HappyHourWindow(category=category, start_time=start_time, end_time=end_time, enabled=enabled)
    db.add(w)
    db.flush()
    return w


def update_window(db: Session, window_id: str, **changes) -> HappyHourWindow:
    w = db.get(HappyHourWindow, window_id)
    if not w:
        raise NotFound(f"happy hour window {window_id} not found")
    for k in ("start_time", "end_time", "enabled"):
        if changes.get(k) is not None:
            setattr(w, k, changes[k])
    db.flush()
    return w


def list_windows(db: Session, category: str | None = None) -> list[HappyHourWindow]:
    q = select(HappyHourWindow)
    if category:
        q = q.where(HappyHourWindow.category == category)
    return list(db.scalars(q.order_by(HappyHourWindow.category, HappyHourWindow.start_time)))


def quote_now(db: Session, policy: EnginePolicy, category: str, duration: str | None,
              person_count: int = 1, promotions: Iterable = (), scheduled_start: datetime | None = None,
              elapsed_minutes: int | None = None) -> PriceQuote:
    minutes = parse_duration(duration) if duration else None
    return quote(db, policy, category, scheduled_start or utcnow(), minutes, person_count,
                 promotions, elapsed_minutes=elapsed_minutes)
