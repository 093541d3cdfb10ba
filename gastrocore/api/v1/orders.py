import logging
from fastapi import APIRouter, Depends, HTTPException, status
from uuid import UUID

from gastrocore.api.deps import current_user_id
from gastrocore.schemas.order import (
    OrderCancelRequest,
    OrderDetailResponse,
    OrderRequest,
    OrderStatusUpdate,
    OrderSummaryResponse,
    PaymentRequest,
    PaymentResponse,
    PaymentReversalRequest,
    PaymentReversalResponse,
    StockDeductionResponse,
)
from gastrocore.schemas.response import SuccessResponse
from gastrocore.services.order_service import (
    cancel_order,
    create_order,
    get_order_by_id,
    record_payment,
    refund_payment,
    update_order_status,
    void_payment,
)
from gastrocore.services.order_state_machine import can_skip_delivered, next_states

router = APIRouter()
log = logging.getLogger("gastrocore.api")


def _summary(order, message: str) -> dict:
    return OrderSummaryResponse(
        order_id=order.id,
        folio=order.folio,
        status=order.status,
        total_amount=order.total_amount,
        message=message,
    ).model_dump()


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_order_endpoint(request_data: OrderRequest, actor_user_id: str = Depends(current_user_id)):
    """Opens a new order. Rejected with 429 once the daily orders quota is reached."""
    if not request_data.items:
        raise HTTPException(status_code=400, detail="Order must contain items.")

    items_data = [
        {"product_id": str(item.product_id), "quantity": item.quantity}
        for item in request_data.items
    ]
    order = await create_order(
        business_id=request_data.business_id,
        actor_user_id=actor_user_id,
        items=items_data,
        table_number=request_data.table_number,
        notes=request_data.notes,
    )
    log.info(f"Order {order.id} opened by {actor_user_id}.")
    return SuccessResponse(data=_summary(order, "Order opened."))


@router.get("/{order_id}", response_model=SuccessResponse)
async def get_order_endpoint(order_id: UUID, business_id: UUID):
    """Fetches an order with its items and the statuses it may move to."""
    order = await get_order_by_id(order_id, business_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    items = [
        {"name": i.name_snapshot, "quantity": i.quantity, "price": str(i.price_snapshot)}
        for i in order.items
    ]
    data = OrderDetailResponse(
        id=order.id,
        folio=order.folio,
        status=order.status,
        next_states=sorted(next_states(order.status), key=lambda s: s.value),
        can_skip_delivered=can_skip_delivered(order.operation_mode),
        total_amount=order.total_amount,
        cancel_reason=order.cancel_reason,
        items=items,
        created_at=str(order.created_at),
    ).model_dump()
    return SuccessResponse(data=data)


@router.patch("/{order_id}/status", response_model=SuccessResponse)
async def update_status_endpoint(order_id: UUID, payload: OrderStatusUpdate, actor_user_id: str = Depends(current_user_id)):
    """
    Moves the order to another status (e.g. 'IN_PREP', 'READY', 'CLOSED').
    Illegal moves answer 409 INVALID_TRANSITION.
    """
    order = await update_order_status(
        order_id, payload.business_id, actor_user_id, payload.status, payload.reason
    )
    return SuccessResponse(data=_summary(order, f"Order status updated to {order.status.value}"))


@router.post("/{order_id}/cancel", response_model=SuccessResponse)
async def cancel_order_endpoint(order_id: UUID, payload: OrderCancelRequest, actor_user_id: str = Depends(current_user_id)):
    """Cancels the order; a non-blank reason is mandatory."""
    order = await cancel_order(order_id, payload.business_id, actor_user_id, payload.reason)
    return SuccessResponse(data=_summary(order, "Order cancelled."))


@router.post("/{order_id}/payments", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def pay_order_endpoint(order_id: UUID, payload: PaymentRequest, actor_user_id: str = Depends(current_user_id)):
    """
    Records the payment and deducts stock for the order's auto-tracked items.
    Retrying after a failed deduction returns the existing payment and finishes it.
    """
    payment, deductions = await record_payment(
        order_id, payload.business_id, actor_user_id, payload.amount, payload.method
    )
    data = PaymentResponse(
        payment_id=payment.id,
        order_id=order_id,
        amount=payment.amount,
        method=payment.method,
        deductions=[
            StockDeductionResponse(
                item_id=d.item_id,
                delta=d.delta,
                applied=d.applied,
                new_stock=d.new_stock,
                is_low=d.is_low,
            )
            for d in deductions
        ],
    ).model_dump()
    return SuccessResponse(data=data)


def _reversal(payment) -> dict:
    return PaymentReversalResponse(
        payment_id=payment.id,
        order_id=payment.order_id,
        status=payment.status,
        amount=payment.amount,
        reason=payment.reversal_reason,
    ).model_dump()


@router.post("/payments/{payment_id}/void", response_model=SuccessResponse)
async def void_payment_endpoint(payment_id: UUID, payload: PaymentReversalRequest, actor_user_id: str = Depends(current_user_id)):
    """Annuls a paid payment; the reason is mandatory."""
    payment = await void_payment(payment_id, payload.business_id, actor_user_id, payload.reason)
    return SuccessResponse(data=_reversal(payment))


@router.post("/payments/{payment_id}/refund", response_model=SuccessResponse)
async def refund_payment_endpoint(payment_id: UUID, payload: PaymentReversalRequest, actor_user_id: str = Depends(current_user_id)):
    """Refunds a paid payment; the reason is mandatory."""
    payment = await refund_payment(payment_id, payload.business_id, actor_user_id, payload.reason)
    return SuccessResponse(data=_reversal(payment))
