import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from tortoise.exceptions import IntegrityError

from gastrocore.core.errors import (
    ConnectivityError,
    InvalidRequest,
    InvalidTransition,
    LimitExceeded,
    NotFound,
    ReasonRequired,
    Unauthorized,
)
from gastrocore.models.audit import AuditLog
from gastrocore.models.business import Role
from gastrocore.models.inventory import InventoryMovement, TrackMode
from gastrocore.models.order import Order, OrderStatus, Payment, PaymentStatus, Product, ProductRecipe
from gastrocore.services.inventory_ledger import apply_movement
from gastrocore.services.order_service import (
    cancel_order,
    create_order,
    deduct_order_stock,
    record_payment,
    refund_payment,
    update_order_status,
    void_payment,
)
from gastrocore.services.quota import check_limit

from factories import add_member, make_business, make_item


async def _menu(business):
    tortillas = await make_item(business, stock_current=20, stock_min=5, name="Tortillas")
    napkins = await make_item(business, stock_current=100, stock_min=0, track_mode=TrackMode.MANUAL, name="Napkins")
    taco = await Product.create(business=business, name="Taco", price=Decimal("25.00"), inventory_item=tortillas)
    gringa = await Product.create(business=business, name="Gringa", price=Decimal("60.00"), inventory_item=tortillas)
    soda = await Product.create(business=business, name="Soda", price=Decimal("30.00"), inventory_item=napkins)
    return tortillas, napkins, taco, gringa, soda


@pytest.mark.asyncio
async def test_create_order_opens_with_snapshots(db):
    business = await make_business()
    _, _, taco, _, soda = await _menu(business)

    order = await create_order(business.id, "owner-1", [
        {"product_id": str(taco.id), "quantity": 3},
        {"product_id": soda.id, "quantity": 1},
    ], table_number="4")

    assert order.status == OrderStatus.OPEN
    assert order.total_amount == Decimal("105.00")
    assert order.folio == "GOS-00001"
    await order.fetch_related("items")
    assert sorted(i.name_snapshot for i in order.items) == ["Soda", "Taco"]


@pytest.mark.asyncio
async def test_create_order_rejects_foreign_products_and_empty_orders(db):
    business = await make_business()
    other = await make_business(owner_id="owner-2")
    _, _, foreign_taco, _, _ = await _menu(other)

    with pytest.raises(NotFound):
        await create_order(business.id, "owner-1", [{"product_id": foreign_taco.id, "quantity": 1}])
    with pytest.raises(InvalidRequest):
        await create_order(business.id, "owner-1", [])


@pytest.mark.asyncio
async def test_create_order_stops_at_daily_limit(db):
    business = await make_business(limits_orders_day=0)
    _, _, taco, _, _ = await _menu(business)

    with pytest.raises(LimitExceeded):
        await create_order(business.id, "owner-1", [{"product_id": taco.id, "quantity": 1}])


@pytest.mark.asyncio
async def test_full_lifecycle_in_restaurant_mode(db):
    business = await make_business()
    await add_member(business, "cook-1", Role.KITCHEN)
    _, _, taco, _, _ = await _menu(business)
    order = await create_order(business.id, "owner-1", [{"product_id": taco.id, "quantity": 1}])

    for status in (OrderStatus.IN_PREP, OrderStatus.READY, OrderStatus.DELIVERED, OrderStatus.CLOSED):
        order = await update_order_status(order.id, business.id, "cook-1", status)
        assert order.status == status

    assert await AuditLog.filter(entity="order", entity_id=order.id).count() == 5


@pytest.mark.asyncio
async def test_illegal_transitions_are_rejected(db):
    business = await make_business()
    _, _, taco, _, _ = await _menu(business)
    order = await create_order(business.id, "owner-1", [{"product_id": taco.id, "quantity": 1}])

    with pytest.raises(InvalidTransition):
        await update_order_status(order.id, business.id, "owner-1", OrderStatus.READY)

    await update_order_status(order.id, business.id, "owner-1", "IN_PREP")
    await update_order_status(order.id, business.id, "owner-1", "READY")
    await update_order_status(order.id, business.id, "owner-1", "CLOSED")

    # Terminal: nothing moves a CLOSED order, not even cancellation
    with pytest.raises(InvalidTransition):
        await update_order_status(order.id, business.id, "owner-1", OrderStatus.CANCELLED, "Too late")


@pytest.mark.asyncio
async def test_cancellation_requires_reason_and_permission(db):
    business = await make_business()
    await add_member(business, "cook-1", Role.KITCHEN)
    _, _, taco, _, _ = await _menu(business)
    order = await create_order(business.id, "owner-1", [{"product_id": taco.id, "quantity": 1}])

    with pytest.raises(ReasonRequired):
        await cancel_order(order.id, business.id, "owner-1", "   ")
    with pytest.raises(Unauthorized):
        await cancel_order(order.id, business.id, "cook-1", "Customer left")

    order = await cancel_order(order.id, business.id, "owner-1", " Customer left ")
    assert order.status == OrderStatus.CANCELLED
    assert order.cancel_reason == "Customer left"


@pytest.mark.asyncio
async def test_unknown_order_is_not_found(db):
    business = await make_business()

    with pytest.raises(NotFound):
        await update_order_status(uuid4(), business.id, "owner-1", OrderStatus.IN_PREP)


@pytest.mark.asyncio
async def test_payment_deducts_auto_tracked_stock_once(db):
    business = await make_business()
    tortillas, napkins, taco, gringa, soda = await _menu(business)
    order = await create_order(business.id, "owner-1", [
        {"product_id": taco.id, "quantity": 3},
        {"product_id": gringa.id, "quantity": 2},
        {"product_id": soda.id, "quantity": 1},
    ])

    payment, deductions = await record_payment(order.id, business.id, "owner-1", "225.00", "cash")

    assert payment.amount == Decimal("225.00")
    # Both tortilla lines collapse into one movement; manual napkins are untouched
    assert len(deductions) == 1
    assert deductions[0].item_id == tortillas.id
    assert deductions[0].delta == Decimal("-5")
    assert deductions[0].applied
    assert deductions[0].new_stock == Decimal("15")

    replay = await deduct_order_stock(order.id, business.id, "owner-1")
    assert [d.applied for d in replay] == [False]

    await tortillas.refresh_from_db()
    await napkins.refresh_from_db()
    assert tortillas.stock_current == Decimal("15")
    assert napkins.stock_current == Decimal("100")
    assert await InventoryMovement.filter(ref_order_id=order.id).count() == 1


@pytest.mark.asyncio
async def test_payment_rules(db):
    business = await make_business()
    _, _, taco, _, _ = await _menu(business)
    cancelled = await create_order(business.id, "owner-1", [{"product_id": taco.id, "quantity": 1}])
    await cancel_order(cancelled.id, business.id, "owner-1", "Wrong order")

    with pytest.raises(InvalidRequest):
        await record_payment(cancelled.id, business.id, "owner-1", "25.00", "cash")
    with pytest.raises(NotFound):
        await record_payment(uuid4(), business.id, "owner-1", "25.00", "cash")

    assert await Payment.filter(order_id=cancelled.id).count() == 0


@pytest.mark.asyncio
async def test_paying_twice_returns_the_first_payment(db):
    business = await make_business()
    tortillas, _, taco, _, _ = await _menu(business)
    order = await create_order(business.id, "owner-1", [{"product_id": taco.id, "quantity": 1}])

    first, _ = await record_payment(order.id, business.id, "owner-1", "25.00", "card")
    second, deductions = await record_payment(order.id, business.id, "owner-1", "25.00", "card")

    assert second.id == first.id
    assert [d.applied for d in deductions] == [False]
    assert await Payment.filter(order_id=order.id).count() == 1
    await tortillas.refresh_from_db()
    assert tortillas.stock_current == Decimal("19")


@pytest.mark.asyncio
async def test_retry_after_failed_deduction_finishes_it(db):
    business = await make_business()
    tortillas, _, taco, _, _ = await _menu(business)
    order = await create_order(business.id, "owner-1", [{"product_id": taco.id, "quantity": 2}])
    calls = []

    async def unreachable_once(**kwargs):
        calls.append(kwargs["item_id"])
        if len(calls) == 1:
            raise ConnectivityError("Persistence layer is unreachable. Retry the request.")
        return await apply_movement(**kwargs)

    with patch("gastrocore.services.order_service.apply_movement", new=unreachable_once):
        with pytest.raises(ConnectivityError):
            await record_payment(order.id, business.id, "owner-1", "50.00", "cash")
        payment, deductions = await record_payment(order.id, business.id, "owner-1", "50.00", "cash")

    assert payment.status == PaymentStatus.PAID
    assert [(d.item_id, d.applied) for d in deductions] == [(tortillas.id, True)]
    await tortillas.refresh_from_db()
    assert tortillas.stock_current == Decimal("18")
    assert await InventoryMovement.filter(ref_order_id=order.id).count() == 1
    assert await Payment.filter(order_id=order.id).count() == 1


@pytest.mark.asyncio
async def test_recipes_drive_stock_deduction(db):
    business = await make_business()
    tortillas = await make_item(business, stock_current=100, stock_min=10, name="Tortillas")
    pastor = await make_item(business, stock_current=10, stock_min=2, name="Carne al pastor")
    onion = await make_item(business, stock_current=5, stock_min=0, track_mode=TrackMode.MANUAL, name="Cebolla")
    taco = await Product.create(business=business, name="Taco al pastor", price=Decimal("25.00"))
    # The recipe wins over the directly linked item
    plate = await Product.create(
        business=business, name="Orden de pastor", price=Decimal("120.00"), inventory_item=pastor
    )
    for product, item, quantity in [
        (taco, tortillas, "1"), (taco, pastor, "0.080"), (taco, onion, "0.010"),
        (plate, tortillas, "5"), (plate, pastor, "0.400"),
    ]:
        await ProductRecipe.create(business=business, product=product, inventory_item=item, quantity=Decimal(quantity))
    order = await create_order(business.id, "owner-1", [
        {"product_id": taco.id, "quantity": 3},
        {"product_id": plate.id, "quantity": 2},
    ])

    _, deductions = await record_payment(order.id, business.id, "owner-1", "315.00", "cash")

    assert {d.item_id: d.delta for d in deductions} == {
        tortillas.id: Decimal("-13"),
        pastor.id: Decimal("-1.040"),
    }
    await pastor.refresh_from_db()
    await onion.refresh_from_db()
    assert pastor.stock_current == Decimal("8.960")
    assert onion.stock_current == Decimal("5")


@pytest.mark.asyncio
async def test_void_and_refund_take_payments_out_of_daily_count(db):
    business = await make_business()
    await add_member(business, "cashier-1", Role.CASHIER)
    _, _, taco, _, _ = await _menu(business)
    voided_order = await create_order(business.id, "owner-1", [{"product_id": taco.id, "quantity": 1}])
    refunded_order = await create_order(business.id, "owner-1", [{"product_id": taco.id, "quantity": 1}])
    to_void, _ = await record_payment(voided_order.id, business.id, "owner-1", "25.00", "cash")
    to_refund, _ = await record_payment(refunded_order.id, business.id, "owner-1", "25.00", "card")
    later = datetime.now(timezone.utc) + timedelta(seconds=1)

    assert (await check_limit(business.id, "orders_day", now=later)).current == 2

    with pytest.raises(InvalidRequest):
        await void_payment(to_void.id, business.id, "owner-1", "  ")
    with pytest.raises(Unauthorized):
        await void_payment(to_void.id, business.id, "cashier-1", "Wrong amount")

    voided = await void_payment(to_void.id, business.id, "owner-1", " Wrong amount ")
    refunded = await refund_payment(to_refund.id, business.id, "owner-1", "Cold food")

    assert voided.status == PaymentStatus.VOID
    assert voided.reversal_reason == "Wrong amount"
    assert refunded.status == PaymentStatus.REFUNDED
    assert refunded.reversed_by == "owner-1"
    assert (await check_limit(business.id, "orders_day", now=later)).current == 0
    assert await AuditLog.filter(action="payment.void", entity_id=to_void.id).count() == 1

    # Only paid payments can be reversed
    with pytest.raises(InvalidRequest):
        await refund_payment(to_void.id, business.id, "owner-1", "Again")
    with pytest.raises(NotFound):
        await void_payment(uuid4(), business.id, "owner-1", "Missing")


@pytest.mark.asyncio
async def test_concurrent_orders_get_distinct_folios(db):
    business = await make_business()
    _, _, taco, _, _ = await _menu(business)

    orders = await asyncio.gather(*[
        create_order(business.id, "owner-1", [{"product_id": taco.id, "quantity": 1}]) for _ in range(4)
    ])

    assert sorted(o.folio for o in orders) == ["GOS-00001", "GOS-00002", "GOS-00003", "GOS-00004"]

    with pytest.raises(IntegrityError):
        await Order.create(business=business, folio="GOS-00001", created_by="owner-1")
