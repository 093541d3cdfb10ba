import uuid
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from gastrocore.models.inventory import MovementType, TrackMode


class MovementRequest(BaseModel):
    """Body of apply_inventory_movement."""
    item_id: uuid.UUID
    business_id: uuid.UUID
    type: MovementType
    delta: Decimal = Field(..., max_digits=14, decimal_places=3, description="Signed stock change; negative for outflows.")
    reason: Optional[str] = Field(None, max_length=255)
    ref_order_id: Optional[uuid.UUID] = Field(None, description="Idempotency key for order-driven movements.")


class MovementResponse(BaseModel):
    new_stock: Decimal
    is_low: bool
    movement_id: uuid.UUID


class MovementRecord(BaseModel):
    id: uuid.UUID
    type: MovementType
    delta: Decimal
    stock_after: Decimal
    reason: Optional[str]
    actor_user_id: str
    ref_order_id: Optional[uuid.UUID]
    created_at: str


class MovementListResponse(BaseModel):
    item_id: uuid.UUID
    movements: List[MovementRecord]


class ReconciliationResponse(BaseModel):
    item_id: uuid.UUID
    stock_current: Decimal
    ledger_total: Decimal
    consistent: bool


class InventoryItemRequest(BaseModel):
    business_id: uuid.UUID
    name: str = Field(..., min_length=1, description="Name of the stock item (e.g., Tortillas).")
    unit: str = Field("pz", max_length=16)
    stock_min: Decimal = Field(Decimal("0"), ge=0, max_digits=14, decimal_places=3, description="Stock level at or below which the item is low.")
    track_mode: TrackMode = TrackMode.AUTO
    initial_stock: Decimal = Field(Decimal("0"), max_digits=14, decimal_places=3, description="Opening stock, posted as an adjustment.")


class InventoryItemResponse(BaseModel):
    id: uuid.UUID
    name: str
    unit: str
    stock_current: Decimal
    stock_min: Decimal
    track_mode: TrackMode
