from fastapi import APIRouter, Depends, status
from uuid import UUID

from gastrocore.api.deps import current_user_id
from gastrocore.schemas.inventory import (
    InventoryItemRequest,
    InventoryItemResponse,
    MovementListResponse,
    MovementRecord,
    MovementRequest,
    MovementResponse,
    ReconciliationResponse,
)
from gastrocore.schemas.response import SuccessResponse
from gastrocore.services.catalog_service import create_inventory_item
from gastrocore.services.inventory_ledger import apply_movement, list_movements, reconstruct_stock

router = APIRouter()


@router.post("/movements", response_model=SuccessResponse)
async def apply_inventory_movement(payload: MovementRequest, actor_user_id: str = Depends(current_user_id)):
    """
    Applies a stock movement. Replaying an order-referencing movement answers
    409 DUPLICATE_MOVEMENT, which callers treat as "already applied".
    """
    result = await apply_movement(
        item_id=payload.item_id,
        business_id=payload.business_id,
        type=payload.type,
        delta=payload.delta,
        reason=payload.reason,
        actor_user_id=actor_user_id,
        ref_order_id=payload.ref_order_id,
    )
    data = MovementResponse(
        new_stock=result.new_stock,
        is_low=result.is_low,
        movement_id=result.movement_id,
    ).model_dump()
    return SuccessResponse(data=data)


@router.post("/items", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def add_inventory_item(payload: InventoryItemRequest, actor_user_id: str = Depends(current_user_id)):
    """Creates a stock item; opening stock goes through the ledger."""
    item = await create_inventory_item(
        business_id=payload.business_id,
        actor_user_id=actor_user_id,
        name=payload.name,
        unit=payload.unit,
        stock_min=payload.stock_min,
        track_mode=payload.track_mode,
        initial_stock=payload.initial_stock,
    )
    data = InventoryItemResponse(
        id=item.id,
        name=item.name,
        unit=item.unit,
        stock_current=item.stock_current,
        stock_min=item.stock_min,
        track_mode=item.track_mode,
    ).model_dump()
    return SuccessResponse(data=data)


@router.get("/{item_id}/movements", response_model=SuccessResponse)
async def get_item_movements(item_id: UUID, business_id: UUID, limit: int = 200):
    """Ledger for an item, oldest first."""
    movements = await list_movements(item_id, business_id, limit=limit)
    data = MovementListResponse(
        item_id=item_id,
        movements=[
            MovementRecord(
                id=m.id,
                type=m.type,
                delta=m.delta,
                stock_after=m.stock_after,
                reason=m.reason,
                actor_user_id=m.actor_user_id,
                ref_order_id=m.ref_order_id,
                created_at=str(m.created_at),
            )
            for m in movements
        ],
    ).model_dump()
    return SuccessResponse(data=data)


@router.get("/{item_id}/reconciliation", response_model=SuccessResponse)
async def get_item_reconciliation(item_id: UUID, business_id: UUID):
    """Materialized stock against the ledger sum."""
    reconciliation = await reconstruct_stock(item_id, business_id)
    data = ReconciliationResponse(
        item_id=item_id,
        stock_current=reconciliation.stock_current,
        ledger_total=reconciliation.ledger_total,
        consistent=reconciliation.consistent,
    ).model_dump()
    return SuccessResponse(data=data)
