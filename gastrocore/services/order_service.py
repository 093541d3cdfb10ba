import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple, Union
from uuid import UUID

from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from gastrocore.core.db import translate_connectivity
from gastrocore.core.errors import DuplicateMovement, InvalidRequest, NotFound, ReasonRequired
from gastrocore.events.audit_utility import record_audit
from gastrocore.models.business import Business
from gastrocore.models.inventory import InventoryItem, MovementType, TrackMode
from gastrocore.models.order import (
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Product,
    ProductRecipe,
)
from gastrocore.services.inventory_ledger import apply_movement
from gastrocore.services.membership import require_permission
from gastrocore.services.order_state_machine import ensure_transition, requires_reason
from gastrocore.services.quota import LimitType, enforce_limit

log = logging.getLogger("gastrocore.orders")

FOLIO_ATTEMPTS = 3


@dataclass(frozen=True)
class StockDeduction:
    item_id: UUID
    delta: Decimal
    applied: bool  # False when the deduction was already on the ledger
    new_stock: Optional[Decimal] = None
    is_low: bool = False


@translate_connectivity
async def create_order(
    business_id: UUID,
    actor_user_id: str,
    items: List[Dict],
    table_number: Optional[str] = None,
    notes: Optional[str] = None,
) -> Order:
    """
    Creates an OPEN order with price/name snapshots of the ordered products.
    The daily orders quota is checked first (soft limit).
    """
    if not items:
        raise InvalidRequest("Order must contain items.")

    await require_permission(business_id, actor_user_id, "order:create")
    await enforce_limit(business_id, LimitType.ORDERS_DAY)

    # The business row lock serializes folio allocation; the unique
    # (business, folio) pair catches anything that slips past it
    for attempt in range(1, FOLIO_ATTEMPTS + 1):
        try:
            order = await _insert_order(business_id, actor_user_id, items, table_number, notes)
            break
        except IntegrityError:
            if attempt == FOLIO_ATTEMPTS:
                raise
            log.warning(f"Folio collision in business {business_id}, retrying ({attempt}/{FOLIO_ATTEMPTS}).")

    log.info(f"Order {order.folio} ({order.id}) opened in business {business_id}.")
    return order


async def _insert_order(business_id, actor_user_id, items, table_number, notes) -> Order:
    async with in_transaction() as conn:
        business = await Business.filter(
            id=business_id, deleted_at__isnull=True
        ).select_for_update().using_db(conn).first()
        if not business:
            raise NotFound(f"Business {business_id} not found.")

        product_ids = [UUID(str(it["product_id"])) for it in items]
        products = await Product.filter(
            id__in=product_ids, business_id=business_id, active=True, deleted_at__isnull=True
        ).using_db(conn)
        product_map = {str(p.id): p for p in products}

        folio_number = await Order.filter(business_id=business_id).using_db(conn).count() + 1

        # 1. Create the Order header
        order = await Order.create(
            business=business,
            folio=f"GOS-{folio_number:05d}",
            status=OrderStatus.OPEN,
            operation_mode=business.operation_mode,
            table_number=table_number,
            notes=notes,
            total_amount=Decimal("0"),
            created_by=actor_user_id,
            using_db=conn
        )

        total = Decimal("0")
        for it in items:
            pid = str(it["product_id"])
            qty = int(it["quantity"])
            product = product_map.get(pid)

            if not product:
                raise NotFound(f"Product {pid} not found or inactive.")
            if qty <= 0:
                raise InvalidRequest(f"Quantity for product {pid} must be positive.")

            line_total = product.price * qty
            total += line_total

            # 2. Create Order Item line
            await OrderItem.create(
                order=order,
                product=product,
                name_snapshot=product.name,
                price_snapshot=product.price,
                quantity=qty,
                line_total=line_total,
                using_db=conn
            )

        order.total_amount = total
        await order.save(using_db=conn)

        await record_audit(
            business_id=business_id,
            actor_user_id=actor_user_id,
            action="create",
            entity="order",
            entity_id=order.id,
            metadata={"folio": order.folio, "total": str(total)},
            conn=conn
        )

    return order


async def get_order_by_id(order_id: UUID, business_id: UUID) -> Optional[Order]:
    """Fetches an order of the business with its items."""
    return await Order.get_or_none(id=order_id, business_id=business_id).prefetch_related('items')


@translate_connectivity
async def update_order_status(
    order_id: UUID,
    business_id: UUID,
    actor_user_id: str,
    new_status: Union[OrderStatus, str],
    reason: Optional[str] = None,
) -> Order:
    """
    Moves an order along the lifecycle graph. The order row stays locked from
    the legality check until the new status is written.
    """
    new_status = OrderStatus(new_status)
    permission = "order:cancel" if new_status == OrderStatus.CANCELLED else "order:change_status"

    async with in_transaction() as conn:
        await require_permission(business_id, actor_user_id, permission, conn)

        order = await Order.filter(
            id=order_id, business_id=business_id
        ).select_for_update().using_db(conn).first()
        if not order:
            raise NotFound(f"Order {order_id} not found.")

        old_status = order.status
        ensure_transition(old_status, new_status)

        reason = reason.strip() if reason else None
        if requires_reason(old_status, new_status) and not reason:
            raise ReasonRequired(old_status.value, new_status.value)

        order.status = new_status
        update_fields = ['status', 'updated_at']
        if new_status == OrderStatus.CANCELLED:
            order.cancel_reason = reason
            update_fields.append('cancel_reason')
        await order.save(update_fields=update_fields, using_db=conn)

        await record_audit(
            business_id=business_id,
            actor_user_id=actor_user_id,
            action=f"order.{new_status.value.lower()}",
            entity="order",
            entity_id=order.id,
            metadata={"old_status": old_status.value, "new_status": new_status.value, "reason": reason},
            conn=conn
        )

    log.info(f"Order {order.id}: {old_status.value} -> {new_status.value}")
    return order


async def cancel_order(order_id: UUID, business_id: UUID, actor_user_id: str, reason: str) -> Order:
    """Cancels an order; only OPEN and IN_PREP orders can be cancelled."""
    return await update_order_status(order_id, business_id, actor_user_id, OrderStatus.CANCELLED, reason)


@translate_connectivity
async def record_payment(
    order_id: UUID,
    business_id: UUID,
    actor_user_id: str,
    amount: Union[Decimal, int, str],
    method: Union[PaymentMethod, str],
) -> Tuple[Payment, List[StockDeduction]]:
    """
    Records the order's payment, then deducts stock for it.

    Safe to retry: when the order already has a paid payment (an earlier call
    committed it and then failed while deducting), that payment is returned and
    the deduction is run again. Items deducted before come back with
    applied=False, the rest are deducted now.
    """
    await require_permission(business_id, actor_user_id, "order:create")

    async with in_transaction() as conn:
        order = await Order.filter(
            id=order_id, business_id=business_id
        ).select_for_update().using_db(conn).first()
        if not order:
            raise NotFound(f"Order {order_id} not found.")
        if order.status == OrderStatus.CANCELLED:
            raise InvalidRequest("Cannot pay a cancelled order.")

        payment = await Payment.filter(
            order_id=order.id, status=PaymentStatus.PAID, deleted_at__isnull=True
        ).using_db(conn).first()
        if payment is not None:
            log.info(f"Order {order.folio} is already paid by {payment.id}; re-running stock deduction.")
        else:
            payment = await Payment.create(
                order=order,
                business_id=business_id,
                amount=Decimal(str(amount)),
                method=PaymentMethod(method),
                status=PaymentStatus.PAID,
                paid_at=datetime.now(timezone.utc),
                created_by=actor_user_id,
                using_db=conn
            )
            await record_audit(
                business_id=business_id,
                actor_user_id=actor_user_id,
                action="payment.create",
                entity="payment",
                entity_id=payment.id,
                metadata={"order_id": str(order.id), "amount": str(payment.amount), "method": payment.method.value},
                conn=conn
            )

    deductions = await deduct_order_stock(order_id, business_id, actor_user_id)
    return payment, deductions


@translate_connectivity
async def void_payment(payment_id: UUID, business_id: UUID, actor_user_id: str, reason: str) -> Payment:
    """Annuls a payment taken by mistake. It no longer counts as a sale."""
    return await _reverse_payment(payment_id, business_id, actor_user_id, reason, PaymentStatus.VOID)


@translate_connectivity
async def refund_payment(payment_id: UUID, business_id: UUID, actor_user_id: str, reason: str) -> Payment:
    """Gives the customer their money back. It no longer counts as a sale."""
    return await _reverse_payment(payment_id, business_id, actor_user_id, reason, PaymentStatus.REFUNDED)


async def _reverse_payment(
    payment_id: UUID,
    business_id: UUID,
    actor_user_id: str,
    reason: Optional[str],
    new_status: PaymentStatus,
) -> Payment:
    # Stock already sold is not put back; returns go through an adjustment movement
    reason = reason.strip() if reason else None
    if not reason:
        raise InvalidRequest(f"A reason is required to mark a payment as {new_status.value}.")

    await require_permission(business_id, actor_user_id, "order:cancel")

    async with in_transaction() as conn:
        payment = await Payment.filter(
            id=payment_id, business_id=business_id, deleted_at__isnull=True
        ).select_for_update().using_db(conn).first()
        if not payment:
            raise NotFound(f"Payment {payment_id} not found.")
        if payment.status != PaymentStatus.PAID:
            raise InvalidRequest(
                f"Payment {payment_id} is {payment.status.value}; only paid payments can be marked {new_status.value}."
            )

        payment.status = new_status
        payment.reversal_reason = reason
        payment.reversed_by = actor_user_id
        payment.reversed_at = datetime.now(timezone.utc)
        await payment.save(
            update_fields=['status', 'reversal_reason', 'reversed_by', 'reversed_at'], using_db=conn
        )

        await record_audit(
            business_id=business_id,
            actor_user_id=actor_user_id,
            action=f"payment.{new_status.value}",
            entity="payment",
            entity_id=payment.id,
            metadata={"order_id": str(payment.order_id), "amount": str(payment.amount), "reason": reason},
            conn=conn
        )

    log.info(f"Payment {payment.id} marked {new_status.value} by {actor_user_id}.")
    return payment


async def _consumption_per_unit(product_ids: Iterable[UUID]) -> Dict[UUID, List[Tuple[InventoryItem, Decimal]]]:
    """
    Inventory consumed by one unit of each product: its recipe lines when it
    has any, otherwise one unit of its linked item.
    """
    product_ids = list(product_ids)
    consumption: Dict[UUID, List[Tuple[InventoryItem, Decimal]]] = defaultdict(list)

    recipe_lines = await ProductRecipe.filter(product_id__in=product_ids).prefetch_related('inventory_item')
    for line in recipe_lines:
        consumption[line.product_id].append((line.inventory_item, line.quantity))

    without_recipe = [pid for pid in product_ids if pid not in consumption]
    linked = await Product.filter(
        id__in=without_recipe, inventory_item_id__isnull=False
    ).prefetch_related('inventory_item')
    for product in linked:
        consumption[product.id].append((product.inventory_item, Decimal("1")))

    return consumption


@translate_connectivity
async def deduct_order_stock(order_id: UUID, business_id: UUID, actor_user_id: str) -> List[StockDeduction]:
    """
    Posts one auto_sale movement per auto-tracked inventory item of the order.

    Consumption of all lines sharing an item is summed, because the ledger
    accepts a single movement per (item, order). Re-running is harmless: items
    already deducted come back with applied=False.
    """
    order = await Order.get_or_none(id=order_id, business_id=business_id).prefetch_related('items')
    if not order:
        raise NotFound(f"Order {order_id} not found.")

    consumption = await _consumption_per_unit(
        {line.product_id for line in order.items if line.product_id is not None}
    )

    quantities: Dict[UUID, Decimal] = {}
    for line in order.items:
        for item, per_unit in consumption.get(line.product_id, []):
            if item.track_mode != TrackMode.AUTO or item.deleted_at is not None:
                continue
            quantities[item.id] = quantities.get(item.id, Decimal("0")) + per_unit * line.quantity

    deductions = []
    for item_id in sorted(quantities, key=str):
        delta = -quantities[item_id]
        try:
            result = await apply_movement(
                item_id=item_id,
                business_id=business_id,
                type=MovementType.AUTO_SALE,
                delta=delta,
                reason=f"Sale {order.folio}",
                actor_user_id=actor_user_id,
                ref_order_id=order.id,
            )
        except DuplicateMovement:
            # Already applied by an earlier attempt
            deductions.append(StockDeduction(item_id=item_id, delta=delta, applied=False))
            continue
        deductions.append(StockDeduction(
            item_id=item_id, delta=delta, applied=True, new_stock=result.new_stock, is_low=result.is_low
        ))

    return deductions
