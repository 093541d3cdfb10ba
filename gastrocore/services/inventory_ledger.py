import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Union
from uuid import UUID

from tortoise.exceptions import IntegrityError

from gastrocore.core.db import atomic, translate_connectivity
from gastrocore.core.errors import DuplicateMovement, InvalidMovement, NotFound, Unauthorized
from gastrocore.core.permissions import DEFAULT_MOVEMENT_POLICY, MovementPolicy
from gastrocore.events.audit_utility import record_audit
from gastrocore.models.inventory import (
    InventoryItem,
    InventoryMovement,
    MovementType,
    ORDER_REFERENCING_TYPES,
    STOCK_LIMIT,
    STOCK_QUANTUM,
)
from gastrocore.services.membership import get_active_membership

log = logging.getLogger("gastrocore.inventory")


@dataclass(frozen=True)
class MovementResult:
    new_stock: Decimal
    is_low: bool
    movement_id: UUID


@dataclass(frozen=True)
class StockReconciliation:
    stock_current: Decimal
    ledger_total: Decimal

    @property
    def consistent(self) -> bool:
        return self.stock_current == self.ledger_total


def normalize_delta(delta: Union[Decimal, int, str]) -> Decimal:
    """
    Parses a movement delta and rejects values the stock columns cannot hold
    exactly (more than three decimals, too large, NaN or infinite).
    """
    try:
        value = Decimal(str(delta))
        fits = value.is_finite() and abs(value) < STOCK_LIMIT and value == value.quantize(STOCK_QUANTUM)
    except InvalidOperation:
        fits = False
    if not fits:
        raise InvalidMovement(f"Movement delta {delta} is not a valid stock quantity (at most 3 decimals).")
    return value


@translate_connectivity
async def apply_movement(
    item_id: UUID,
    business_id: UUID,
    type: Union[MovementType, str],
    delta: Union[Decimal, int, str],
    reason: Optional[str],
    actor_user_id: str,
    ref_order_id: Optional[UUID] = None,
    policy: MovementPolicy = DEFAULT_MOVEMENT_POLICY,
    conn: Any = None,
) -> MovementResult:
    """
    Applies one stock movement and appends it to the ledger.

    The duplicate check, stock read, stock write and movement insert run in a
    single transaction holding the item row lock, so movements on the same item
    serialize and none of them can overwrite another's delta. Movements on
    different items never wait on each other.

    Stock may go negative; low stock is reported through ``is_low`` only.
    Passing ``conn`` runs the movement inside the caller's transaction.
    """
    movement_type = MovementType(type)
    delta = normalize_delta(delta)

    if delta == 0:
        raise InvalidMovement("Movement delta must be non-zero.")
    if movement_type in ORDER_REFERENCING_TYPES and ref_order_id is None:
        raise InvalidMovement(f"Movements of type {movement_type.value} must reference an order.")

    async with atomic(conn) as conn:
        # CRITICAL: Lock the item row for the whole read-modify-write
        item = await InventoryItem.filter(
            id=item_id, business_id=business_id, deleted_at__isnull=True
        ).select_for_update().using_db(conn).first()
        if item is None:
            raise NotFound(f"Inventory item {item_id} not found in business {business_id}.")

        membership = await get_active_membership(business_id, actor_user_id, conn)
        if membership is None:
            raise Unauthorized(f"User {actor_user_id} is not an active member of business {business_id}.")
        if not policy.allows(membership.role, movement_type):
            raise Unauthorized(
                f"Role {membership.role.value} may not post {movement_type.value} movements.",
                {"role": membership.role.value, "type": movement_type.value},
            )

        # Idempotency: one movement per (item, order)
        if ref_order_id is not None:
            already_applied = await InventoryMovement.filter(
                item_id=item.id, ref_order_id=ref_order_id
            ).using_db(conn).exists()
            if already_applied:
                log.info(f"Duplicate {movement_type.value} for item {item.id}, order {ref_order_id}; skipped.")
                raise DuplicateMovement(item.id, ref_order_id)

        new_stock = item.stock_current + delta
        item.stock_current = new_stock
        await item.save(update_fields=['stock_current', 'updated_at'], using_db=conn)

        try:
            movement = await InventoryMovement.create(
                item_id=item.id,
                business_id=business_id,
                type=movement_type,
                delta=delta,
                stock_after=new_stock,
                reason=reason,
                actor_user_id=actor_user_id,
                ref_order_id=ref_order_id,
                using_db=conn
            )
        except IntegrityError:
            # The unique (item, ref_order_id) constraint caught a writer the
            # existence check could not see
            log.info(f"Duplicate {movement_type.value} rejected by constraint for item {item.id}, order {ref_order_id}.")
            raise DuplicateMovement(item.id, ref_order_id)

        is_low = new_stock <= item.stock_min

        await record_audit(
            business_id=business_id,
            actor_user_id=actor_user_id,
            action=movement_type.value,
            entity="inventory",
            entity_id=item.id,
            metadata={
                "movement_id": str(movement.id),
                "delta": str(delta),
                "stock_after": str(new_stock),
                "ref_order_id": str(ref_order_id) if ref_order_id else None,
            },
            conn=conn
        )

    if is_low:
        log.warning(f"Low stock for item {item.id} ({item.name}): {new_stock} <= {item.stock_min}")

    return MovementResult(new_stock=new_stock, is_low=is_low, movement_id=movement.id)


async def _get_item(item_id: UUID, business_id: UUID) -> InventoryItem:
    item = await InventoryItem.get_or_none(id=item_id, business_id=business_id)
    if item is None:
        raise NotFound(f"Inventory item {item_id} not found in business {business_id}.")
    return item


@translate_connectivity
async def list_movements(item_id: UUID, business_id: UUID, limit: int = 200) -> List[InventoryMovement]:
    """Ledger rows for an item, oldest first."""
    await _get_item(item_id, business_id)
    return await InventoryMovement.filter(item_id=item_id).order_by('created_at').limit(limit)


@translate_connectivity
async def reconstruct_stock(item_id: UUID, business_id: UUID) -> StockReconciliation:
    """Compares the materialized stock with the sum of the item's ledger."""
    item = await _get_item(item_id, business_id)
    deltas = await InventoryMovement.filter(item_id=item_id).values_list("delta", flat=True)
    ledger_total = sum((Decimal(str(d)) for d in deltas), Decimal("0"))

    reconciliation = StockReconciliation(stock_current=item.stock_current, ledger_total=ledger_total)
    if not reconciliation.consistent:
        log.error(
            f"Stock drift on item {item_id}: materialized {item.stock_current}, ledger {ledger_total}"
        )
    return reconciliation
