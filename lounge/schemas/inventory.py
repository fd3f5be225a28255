from pydantic import AwareDatetime, BaseModel, Field
from typing import Optional, Literal
from datetime import datetime
from decimal import Decimal

from lounge.schemas.common import Money

FoodKindLiteral = Literal["trackable", "untracked"]

class FoodItemIn(BaseModel):
    name: str
    price: Decimal = Field(ge=0)
    cost_price: Optional[Decimal] = Field(default=None, ge=0)
    initial_stock: int = Field(default=0, ge=0)
    min_stock_level: int = Field(default=10, ge=0)
    kind: FoodKindLiteral = "trackable"
    supplier: Optional[str] = None
    expiry_date: Optional[AwareDatetime] = None

class FoodItemOut(BaseModel):
    id: str
    name: str
    price: Money
    cost_price: Optional[Money] = None
    current_stock: int
    min_stock_level: int
    kind: FoodKindLiteral
    supplier: Optional[str] = None
    expiry_date: Optional[datetime] = None

class StockBatchIn(BaseModel):
    quantity: int = Field(gt=0)
    cost_price: Decimal = Field(ge=0)
    supplier: Optional[str] = None
    purchase_date: Optional[AwareDatetime] = None
    expiry_date: Optional[AwareDatetime] = None
    notes: Optional[str] = None

class StockBatchOut(BaseModel):
    id: str
    food_item_id: str
    quantity: int
    initial_quantity: int
    cost_price: Money
    supplier: Optional[str] = None
    purchase_date: datetime
    expiry_date: Optional[datetime] = None
    notes: Optional[str] = None

class StockAdjustmentIn(BaseModel):
    quantity: int = Field(gt=0)
    type: Literal["add", "remove"]
    cost_price: Optional[Decimal] = Field(default=None, ge=0)
    supplier: Optional[str] = None
    expiry_date: Optional[AwareDatetime] = None
    notes: Optional[str] = None

class Allocation(BaseModel):
    batch_id: str
    quantity: int
    unit_cost: Money

class Consumption(BaseModel):
    """Outcome of a FIFO reservation."""
    food_item_id: str
    quantity: int
    weighted_cost: Money
    allocations: list[Allocation] = []
    remaining_stock: int
    low_stock: bool = False

class LowStockOut(BaseModel):
    food_item_id: str
    name: str
    current_stock: int
    min_stock_level: int
    deficit: int
