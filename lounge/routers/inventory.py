# lounge/routers/inventory.py
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session
from lounge.db import get_db
from lounge.deps import get_ctx, require_actor, require_role
from lounge.models.core import FoodItem, StockBatch
from lounge.schemas.common import Actor
from lounge.schemas.inventory import (
    Consumption, FoodItemIn, FoodItemOut, LowStockOut, StockAdjustmentIn, StockBatchIn, StockBatchOut,
)
from lounge.services import inventory
from lounge.services.locks import item_locks
from lounge.services.uow import ServiceContext
from lounge.util.audit import audit

router = APIRouter(prefix="/inventory", tags=["inventory"])

def _item(i: FoodItem) -> FoodItemOut:
    return FoodItemOut(id=i.id, name=i.name, price=i.price, cost_price=i.cost_price,
                       current_stock=i.current_stock, min_stock_level=i.min_stock_level,
                       kind=i.kind.value, supplier=i.supplier, expiry_date=i.expiry_date)

def _batch(b: StockBatch) -> StockBatchOut:
    return StockBatchOut(id=b.id, food_item_id=b.food_item_id, quantity=b.quantity,
                         initial_quantity=b.initial_quantity, cost_price=b.cost_price, supplier=b.supplier,
                         purchase_date=b.purchase_date, expiry_date=b.expiry_date, notes=b.notes)

@router.post("/items", response_model=FoodItemOut)
def add_item(body: FoodItemIn, db: Session = Depends(get_db), actor: Actor = Depends(require_role("manager"))):
    i = inventory.create_item(db, **body.model_dump())
    audit(db, actor, "food_item_added", "food_item", i.id, details={"name": i.name, "stock": i.current_stock})
    db.commit()
    return _item(i)

@router.get("/items", response_model=list[FoodItemOut])
def list_items(db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    return [_item(i) for i in db.scalars(select(FoodItem).order_by(FoodItem.name))]

@router.get("/items/{item_id}", response_model=FoodItemOut)
def get_item(item_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    return _item(inventory.get_item(db, item_id))

@router.post("/items/{item_id}/batches", response_model=StockBatchOut)
def add_batch(item_id: str, body: StockBatchIn, db: Session = Depends(get_db),
              actor: Actor = Depends(require_role("manager"))):
    with item_locks.hold(item_id):
        b = inventory.add_batch(db, item_id, body.quantity, body.cost_price, supplier=body.supplier,
                                expiry=body.expiry_date, purchase_date=body.purchase_date, notes=body.notes)
        audit(db, actor, "stock_batch_added", "food_item", item_id,
              details={"batch_id": b.id, "quantity": b.quantity, "cost_price": str(b.cost_price)})
        db.commit()
    return _batch(b)

@router.get("/items/{item_id}/batches", response_model=list[StockBatchOut])
def list_batches(item_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    return [_batch(b) for b in inventory.batches_for(db, item_id)]

@router.post("/items/{item_id}/adjust")
def adjust(item_id: str, body: StockAdjustmentIn, ctx: ServiceContext = Depends(get_ctx),
           actor: Actor = Depends(require_role("manager"))):
    res = inventory.record_adjustment(ctx, item_id, body.quantity, body.type, cost_price=body.cost_price,
                                      supplier=body.supplier, expiry=body.expiry_date, notes=body.notes)
    item = inventory.get_item(ctx.db, item_id)
    out = {"item": _item(item).model_dump(mode="json")}
    if isinstance(res, Consumption):
        out["consumption"] = res.model_dump(mode="json")
    else:
        out["batch"] = _batch(res).model_dump(mode="json")
    return out

@router.get("/low_stock", response_model=list[LowStockOut])
def low_stock(db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    return [LowStockOut(food_item_id=i.id, name=i.name, current_stock=i.current_stock,
                        min_stock_level=i.min_stock_level, deficit=i.min_stock_level - i.current_stock)
            for i in inventory.low_stock_items(db)]

@router.get("/expiring", response_model=list[StockBatchOut])
def expiring(days: int = 7, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    return [_batch(b) for b in inventory.expiring_batches(db, within_days=days)]
