# test_inventory.py
from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import T0
from lounge.errors import InsufficientStock, InvalidStockOperation
from lounge.models.core import ActivityLog, StockBatch
from lounge.services import inventory


def _batches(db, item_id):
    return [(b.quantity, b.cost_price) for b in inventory.batches_for(db, item_id)]


def test_fifo_drains_oldest_batch_first_with_weighted_cost(db, coke):
    used = inventory.reserve(db, coke.id, 5)
    db.commit()

    assert used.weighted_cost == Decimal("10.80")
    assert [(a.quantity, a.unit_cost) for a in used.allocations] == [(3, Decimal("10.00")), (2, Decimal("12.00"))]
    assert _batches(db, coke.id) == [(0, Decimal("10.00")), (2, Decimal("12.00"))]
    assert coke.current_stock == 2


def test_small_reservation_touches_only_oldest_batch(db, coke):
    used = inventory.reserve(db, coke.id, 2)
    assert used.weighted_cost == Decimal("10.00")
    assert len(used.allocations) == 1
    assert _batches(db, coke.id) == [(1, Decimal("10.00")), (4, Decimal("12.00"))]


def test_insufficient_stock_changes_nothing(db, coke):
    with pytest.raises(InsufficientStock) as ei:
        inventory.reserve(db, coke.id, 8)
    assert ei.value.context["available"] == 7
    db.rollback()
    assert inventory.get_item(db, coke.id).current_stock == 7
    assert _batches(db, coke.id) == [(3, Decimal("10.00")), (4, Decimal("12.00"))]


def test_stock_is_conserved_across_add_and_reserve(db, coke):
    inventory.add_batch(db, coke.id, 6, 9, purchase_date=T0)
    inventory.reserve(db, coke.id, 4)
    inventory.reserve(db, coke.id, 5)
    db.commit()

    total = sum(b.quantity for b in db.query(StockBatch).filter(StockBatch.food_item_id == coke.id))
    assert total == coke.current_stock == 3 + 4 + 6 - 4 - 5


def test_newer_batch_purchased_earlier_is_consumed_first(db, coke):
    # purchase date, not insert order, decides FIFO position
    inventory.add_batch(db, coke.id, 2, 7, purchase_date=T0 - timedelta(days=30))
    used = inventory.reserve(db, coke.id, 2)
    assert used.weighted_cost == Decimal("7.00")


def test_low_stock_flag_only_on_crossing(db, coke):
    first = inventory.reserve(db, coke.id, 4)   # 7 -> 3, min 2
    assert not first.low_stock
    second = inventory.reserve(db, coke.id, 1)  # 3 -> 2 crosses
    assert second.low_stock
    third = inventory.reserve(db, coke.id, 1)   # already low
    assert not third.low_stock


def test_untracked_items_are_never_depleted(db):
    tea = inventory.create_item(db, name="Masala Tea", price=20, cost_price=6, kind="untracked")
    used = inventory.reserve(db, tea.id, 50)
    assert used.weighted_cost == Decimal("6.00")
    assert used.allocations == []
    assert tea.current_stock == 0
    with pytest.raises(InvalidStockOperation):
        inventory.add_batch(db, tea.id, 5, 6)


def test_add_batch_rejects_non_positive_quantity(db, coke):
    with pytest.raises(InvalidStockOperation):
        inventory.add_batch(db, coke.id, 0, 10)


def test_initial_stock_opens_a_batch(db):
    chips = inventory.create_item(db, name="Chips", price=30, cost_price=15, initial_stock=12)
    assert chips.current_stock == 12
    assert _batches(db, chips.id) == [(12, Decimal("15.00"))]


def test_adjust_stock_add_and_remove(db, coke):
    inventory.adjust_stock(db, coke.id, 5, "add", notes="delivery")
    assert coke.current_stock == 12
    removed = inventory.adjust_stock(db, coke.id, 4, "remove", notes="spoiled")
    assert removed.quantity == 4
    assert coke.current_stock == 8
    with pytest.raises(InvalidStockOperation):
        inventory.adjust_stock(db, coke.id, 1, "transfer")


def test_low_stock_items_sorted_by_deficit(db, coke):
    water = inventory.create_item(db, name="Water", price=20, cost_price=5, initial_stock=1, min_stock_level=10)
    inventory.reserve(db, coke.id, 6)  # 1 left, min 2
    inventory.create_item(db, name="Juice", price=50, cost_price=20, initial_stock=40)
    low = inventory.low_stock_items(db)
    assert [i.name for i in low] == ["Water", "Coke"]
    assert low[0].id == water.id


def test_expiring_batches_window(db, coke):
    inventory.add_batch(db, coke.id, 2, 10, purchase_date=T0, expiry=T0 + timedelta(days=3))
    inventory.add_batch(db, coke.id, 2, 10, purchase_date=T0, expiry=T0 + timedelta(days=30))
    soon = inventory.expiring_batches(db, at=T0, within_days=7)
    assert [b.expiry_date for b in soon] == [T0 + timedelta(days=3)]


def test_recorded_removal_alerts_when_crossing_threshold(ctx, coke, notifier):
    inventory.record_adjustment(ctx, coke.id, 4, "remove", notes="spoiled")  # 7 -> 3
    assert notifier.types() == []
    inventory.record_adjustment(ctx, coke.id, 1, "remove", notes="spoiled")  # 3 -> 2
    assert notifier.types() == ["low_stock"]
    assert notifier.events[0]["entity_id"] == coke.id

    ctx.db.expire_all()
    assert inventory.get_item(ctx.db, coke.id).current_stock == 2
    actions = [a.action for a in ctx.db.query(ActivityLog).filter(ActivityLog.entity_id == coke.id)]
    assert actions.count("stock_remove") == 2


def test_recorded_add_sends_nothing(ctx, coke, notifier):
    batch = inventory.record_adjustment(ctx, coke.id, 5, "add", cost_price=13, supplier="Metro")
    assert batch.quantity == 5
    assert notifier.events == []
