"""Inventory ledger: FIFO-costed stock batches per food item.

The ledger functions only touch batch quantities and the ``current_stock``
aggregate and never commit. Callers run them inside a transaction while
holding ``item_locks`` for the item; ``record_adjustment`` does both itself.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from lounge.errors import InsufficientStock, InvalidStockOperation, NotFound
from lounge.models.common import utcnow
from lounge.models.core import FoodItem, FoodKind, StockBatch
from lounge.schemas.inventory import Allocation, Consumption
from lounge.services.billing import money, ZERO
from lounge.services.locks import item_locks
from lounge.services.uow import ServiceContext, run_in_transaction
from lounge.util.audit import audit
from lounge.util.notify import event

logger = logging.getLogger(__name__)


def get_item(db: Session, food_item_id: str) -> FoodItem:
    item = db.get(FoodItem, food_item_id)
    if not item:
        raise NotFound(f"food item {food_item_id} not found")
    return item


def _open_batches(db: Session, food_item_id: str) -> list[StockBatch]:
    q = (select(StockBatch)
         .where(StockBatch.food_item_id == food_item_id, StockBatch.quantity > 0)
         .order_by(StockBatch.purchase_date.asc(), StockBatch.created_at.asc(), StockBatch.id.asc())
         .with_for_update())
    return list(db.scalars(q))


def create_item(db: Session, *, name: str, price, cost_price=None, initial_stock: int = 0,
                min_stock_level: int = 10, kind: str = "trackable", supplier: str | None = None,
                expiry_date: datetime | None = None) -> FoodItem:
    item = FoodItem(
        name=name, price=money(price),
        cost_price=money(cost_price) if cost_price is not None else None,
        current_stock=0, min_stock_level=min_stock_level, kind=FoodKind(kind),
        supplier=supplier, expiry_date=expiry_date,
    )
    db.add(item)
    db.flush()
    if initial_stock and item.trackable:
        add_batch(db, item.id, initial_stock, cost_price or ZERO, supplier=supplier,
                  expiry=expiry_date, notes="opening stock")
    return item


def add_batch(db: Session, food_item_id: str, quantity: int, cost_price, supplier: str | None = None,
              expiry: datetime | None = None, purchase_date: datetime | None = None,
              notes: str | None = None) -> StockBatch:
    """Append a new lot. Lots are never merged so each keeps its cost basis."""
    if quantity <= 0:
        raise InvalidStockOperation("batch quantity must be positive")
    item = get_item(db, food_item_id)
    if not item.trackable:
        raise InvalidStockOperation(f"{item.name} is not stock-tracked")

    batch = StockBatch(
        food_item_id=item.id, quantity=quantity, initial_quantity=quantity,
        cost_price=money(cost_price), supplier=supplier,
        purchase_date=purchase_date or utcnow(), expiry_date=expiry, notes=notes,
    )
    db.add(batch)
    item.current_stock = (item.current_stock or 0) + quantity
    db.flush()
    return batch


def reserve(db: Session, food_item_id: str, quantity: int) -> Consumption:
    """Consume ``quantity`` units oldest batch first.

    Raises InsufficientStock without touching anything when the open batches
    cannot cover the request. Untracked items always succeed and are left as is.
    """
    if quantity <= 0:
        raise InvalidStockOperation("quantity must be positive")
    item = get_item(db, food_item_id)

    if not item.trackable:
        return Consumption(
            food_item_id=item.id, quantity=quantity,
            weighted_cost=money(item.cost_price or 0),
            remaining_stock=item.current_stock or 0,
        )

    batches = _open_batches(db, item.id)
    available = sum(b.quantity for b in batches)
    if available < quantity:
        raise InsufficientStock(
            f"{item.name}: requested {quantity}, only {available} in stock",
            food_item_id=item.id, requested=quantity, available=available,
        )

    was_low = item.current_stock <= item.min_stock_level
    need = quantity
    total_cost = Decimal("0")
    allocations: list[Allocation] = []
    for b in batches:
        if need == 0:
            break
        take = min(b.quantity, need)
        b.quantity -= take
        need -= take
        total_cost += Decimal(b.cost_price) * take
        allocations.append(Allocation(batch_id=b.id, quantity=take, unit_cost=money(b.cost_price)))

    item.current_stock = available - quantity
    db.flush()

    low = item.current_stock <= item.min_stock_level
    if low and not was_low:
        logger.info("food item %s (%s) dropped to %s, threshold %s",
                    item.id, item.name, item.current_stock, item.min_stock_level)
    return Consumption(
        food_item_id=item.id, quantity=quantity,
        weighted_cost=money(total_cost / quantity),
        allocations=allocations, remaining_stock=item.current_stock,
        low_stock=low and not was_low,
    )


def adjust_stock(db: Session, food_item_id: str, quantity: int, type: str, cost_price=None,
                 supplier: str | None = None, expiry: datetime | None = None,
                 notes: str | None = None) -> StockBatch | Consumption:
    if type == "add":
        item = get_item(db, food_item_id)
        if cost_price is None:
            cost_price = item.cost_price or ZERO
        return add_batch(db, food_item_id, quantity, cost_price, supplier=supplier, expiry=expiry, notes=notes)
    if type == "remove":
        item = get_item(db, food_item_id)
        if not item.trackable:
            raise InvalidStockOperation(f"{item.name} is not stock-tracked")
        return reserve(db, food_item_id, quantity)
    raise InvalidStockOperation(f"unknown adjustment type {type!r}")


def low_stock_event(item: FoodItem, used: Consumption) -> dict:
    return event("low_stock", "Low stock",
                 f"{item.name} is down to {used.remaining_stock} (min {item.min_stock_level})",
                 "food_item", item.id)


def record_adjustment(ctx: ServiceContext, food_item_id: str, quantity: int, type: str, cost_price=None,
                      supplier: str | None = None, expiry: datetime | None = None,
                      notes: str | None = None) -> StockBatch | Consumption:
    """Committed stock adjustment under the item lock, audited, low-stock alert on crossing."""
    def _adjust():
        res = adjust_stock(ctx.db, food_item_id, quantity, type, cost_price=cost_price,
                           supplier=supplier, expiry=expiry, notes=notes)
        audit(ctx.db, ctx.actor, f"stock_{type}", "food_item", food_item_id,
              details={"quantity": quantity, "notes": notes})
        if isinstance(res, Consumption) and res.low_stock:
            ctx.emit(low_stock_event(get_item(ctx.db, food_item_id), res))
        return res

    with item_locks.hold(food_item_id):
        res = run_in_transaction(ctx, _adjust, deliver=False)
    ctx.deliver()
    return res


def low_stock_items(db: Session) -> list[FoodItem]:
    """Trackable items at or below threshold, furthest below first."""
    q = select(FoodItem).where(
        FoodItem.kind == FoodKind.TRACKABLE,
        FoodItem.current_stock <= FoodItem.min_stock_level,
    )
    items = list(db.scalars(q))
    items.sort(key=lambda i: (-(i.min_stock_level - i.current_stock), i.name))
    return items


def expiring_batches(db: Session, at: datetime | None = None, within_days: int = 7) -> list[StockBatch]:
    cutoff = (at or utcnow()) + timedelta(days=within_days)
    q = (select(StockBatch)
         .where(StockBatch.quantity > 0,
                StockBatch.expiry_date.is_not(None),
                StockBatch.expiry_date <= cutoff)
         .order_by(StockBatch.expiry_date.asc()))
    return list(db.scalars(q))


def batches_for(db: Session, food_item_id: str) -> list[StockBatch]:
    get_item(db, food_item_id)
    q = (select(StockBatch)
         .where(StockBatch.food_item_id == food_item_id)
         .order_by(StockBatch.purchase_date.asc(), StockBatch.created_at.asc(), StockBatch.id.asc()))
    return list(db.scalars(q))
