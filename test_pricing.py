# test_pricing.py
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from lounge.config import EnginePolicy
from lounge.errors import InvalidPricingRule, InvalidPromotion, NoPricingRuleFound
from lounge.schemas.promotions import BonusHours, ManualOverride, PercentDiscount, load_promotions
from lounge.services import pricing


def at(hh, mm=0):
    return datetime(2026, 3, 10, hh, mm, tzinfo=timezone.utc)


@pytest.mark.parametrize("label,minutes", [
    ("30 mins", 30), ("1 hour", 60), ("2 hours", 120), ("1.5 hours", 90), ("45", 45), ("90 min", 90),
])
def test_parse_duration(label, minutes):
    assert pricing.parse_duration(label) == minutes


@pytest.mark.parametrize("label", ["", "forever", "0 mins", "0.25 mins"])
def test_parse_duration_rejects(label):
    with pytest.raises(InvalidPricingRule):
        pricing.parse_duration(label)


def test_happy_hour_table_wins_inside_window(seeded, policy):
    q = pricing.quote(seeded, policy, "PS5", at(15), 60)
    assert q.base_price == Decimal("150.00")
    assert q.applied_rule_kind == "happy_hour"
    assert q.final_price == Decimal("150.00")


def test_regular_table_outside_window(seeded, policy):
    q = pricing.quote(seeded, policy, "PS5", at(16), 60)  # window end is exclusive
    assert q.base_price == Decimal("200.00")
    assert q.applied_rule_kind == "regular"


def test_happy_hour_falls_back_to_regular_without_matching_bucket(seeded, policy):
    q = pricing.quote(seeded, policy, "PS5", at(15), 120)
    assert q.applied_rule_kind == "regular"
    assert q.base_price == Decimal("380.00")


def test_window_is_read_in_lounge_time_zone(seeded):
    ist = EnginePolicy(tz="Asia/Kolkata")
    # 09:00 UTC is 14:30 in Kolkata
    q = pricing.quote(seeded, ist, "PS5", at(9), 60)
    assert q.applied_rule_kind == "happy_hour"


def test_window_wrapping_midnight(seeded, policy):
    pricing.add_window(seeded, category="PC", start_time="22:00", end_time="02:00")
    pricing.add_rule(seeded, policy, kind="happy_hour", category="PC", duration="1 hour", person_count=1, price=50)
    assert pricing.quote(seeded, policy, "PC", at(23, 30), 60).applied_rule_kind == "happy_hour"
    assert pricing.quote(seeded, policy, "PC", at(1, 59), 60).applied_rule_kind == "happy_hour"
    assert pricing.quote(seeded, policy, "PC", at(2), 60).applied_rule_kind == "regular"


def test_no_rule_for_bucket_or_person_count(seeded, policy):
    with pytest.raises(NoPricingRuleFound):
        pricing.quote(seeded, policy, "PS5", at(10), 45)
    with pytest.raises(NoPricingRuleFound):
        pricing.quote(seeded, policy, "PS5", at(10), 60, person_count=3)
    with pytest.raises(NoPricingRuleFound):
        pricing.quote(seeded, policy, "VR", at(10), 60)


def test_multi_person_rule(seeded, policy):
    assert pricing.quote(seeded, policy, "PS5", at(10), 60, person_count=2).base_price == Decimal("300.00")


def test_multi_person_rules_only_for_allowed_categories(seeded, policy):
    with pytest.raises(InvalidPricingRule):
        pricing.add_rule(seeded, policy, kind="regular", category="PC", duration="1 hour", person_count=2, price=150)


def test_duplicate_rule_rejected(seeded, policy):
    with pytest.raises(InvalidPricingRule):
        pricing.add_rule(seeded, policy, kind="regular", category="PS5", duration="60 mins", person_count=1, price=210)
    # the savepoint keeps the rest of the session usable
    assert len(pricing.list_rules(seeded, kind="regular", category="PS5")) == 4


def test_open_ended_rate_from_smallest_bucket(seeded, policy):
    q = pricing.quote(seeded, policy, "PS5", at(10), None, elapsed_minutes=90)
    assert q.hourly_rate == Decimal("240.00")
    assert q.base_price == Decimal("360.00")
    assert q.billed_minutes == 90


def test_open_ended_bonus_is_free_time(seeded, policy):
    q = pricing.quote(seeded, policy, "PS5", at(10), None, promotions=[BonusHours(hours=Decimal("0.5"))],
                      elapsed_minutes=90)
    assert q.base_price == Decimal("240.00")
    assert q.bonus_minutes == 30


def test_promotional_discount_and_bonus(seeded, policy):
    q = pricing.quote(seeded, policy, "PS5", at(10), 60,
                      promotions=[PercentDiscount(percentage=10), BonusHours(hours=1)])
    assert q.final_price == Decimal("180.00")
    assert q.discount_breakdown.path == "promotional"
    assert q.discount_breakdown.discount_amount == Decimal("20.00")
    assert q.bonus_minutes == 60
    assert q.billed_minutes == 120


def test_manual_override_wins_and_warns(seeded, policy):
    q = pricing.quote(seeded, policy, "PS5", at(10), 60,
                      promotions=[PercentDiscount(percentage=50), ManualOverride(price=Decimal("99"), reason="regular")])
    assert q.final_price == Decimal("99.00")
    assert q.discount_breakdown.path == "manual"
    assert q.discount_breakdown.manual_price == Decimal("99.00")
    assert q.discount_breakdown.warnings


def test_manual_percentage_and_free_hours(seeded, policy):
    q = pricing.quote(seeded, policy, "PS5", at(10), 60,
                      promotions=[ManualOverride(discount_percentage=Decimal("25"), free_hours=Decimal("0.5"))])
    assert q.final_price == Decimal("150.00")
    assert q.bonus_minutes == 30
    assert q.discount_breakdown.warnings == []


def test_duplicate_promotion_kind_rejected(seeded, policy):
    with pytest.raises(InvalidPromotion):
        pricing.quote(seeded, policy, "PS5", at(10), 60,
                      promotions=[PercentDiscount(percentage=5), PercentDiscount(percentage=10)])


def test_quote_is_idempotent(seeded, policy):
    promos = [PercentDiscount(percentage=15)]
    first = pricing.quote(seeded, policy, "PS5", at(15), 60, promotions=promos)
    assert first == pricing.quote(seeded, policy, "PS5", at(15), 60, promotions=promos)
    assert first.final_price == Decimal("127.50")


def test_promotions_round_trip_through_json_column():
    raw = [{"kind": "discount", "percentage": "10"}, {"kind": "bonus", "hours": 1}]
    promos = load_promotions(raw)
    assert isinstance(promos[0], PercentDiscount)
    assert isinstance(promos[1], BonusHours)
    with pytest.raises(ValueError):
        load_promotions([{"kind": "manual"}])


def test_disabled_window_is_ignored(seeded, policy):
    w = pricing.list_windows(seeded, "PS5")[0]
    pricing.update_window(seeded, w.id, enabled=False)
    assert pricing.quote(seeded, policy, "PS5", at(15), 60).applied_rule_kind == "regular"
