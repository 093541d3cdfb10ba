from pydantic import BaseModel, Field
from typing import List, Optional
import uuid
from decimal import Decimal

from gastrocore.models.order import OrderStatus, PaymentMethod, PaymentStatus


class OrderItemRequest(BaseModel):
    """Schema for a single item in the order request."""
    product_id: uuid.UUID
    quantity: int = Field(..., gt=0)


class OrderRequest(BaseModel):
    """Schema for the full order creation request body."""
    business_id: uuid.UUID
    items: List[OrderItemRequest]
    table_number: Optional[str] = None
    notes: Optional[str] = None


class OrderSummaryResponse(BaseModel):
    """Response schema after an order is created or changes status."""
    order_id: uuid.UUID
    folio: str
    status: OrderStatus
    total_amount: Decimal
    message: str


class OrderStatusUpdate(BaseModel):
    """Schema for updating an order status."""
    business_id: uuid.UUID
    status: OrderStatus
    reason: Optional[str] = Field(None, max_length=255)


class OrderCancelRequest(BaseModel):
    business_id: uuid.UUID
    reason: str = Field(..., description="Operator supplied cancellation reason.")


class OrderItemResponse(BaseModel):
    """Schema for an item inside the detailed order response."""
    name: str
    quantity: int
    price: str  # Use string for Decimal type serialization


class OrderDetailResponse(BaseModel):
    """Schema for fetching detailed order information."""
    id: uuid.UUID
    folio: str
    status: OrderStatus
    next_states: List[OrderStatus]
    can_skip_delivered: bool
    total_amount: Decimal
    cancel_reason: Optional[str]
    items: List[OrderItemResponse]
    created_at: str


class PaymentRequest(BaseModel):
    business_id: uuid.UUID
    amount: Decimal = Field(..., ge=0)
    method: PaymentMethod


class StockDeductionResponse(BaseModel):
    item_id: uuid.UUID
    delta: Decimal
    applied: bool
    new_stock: Optional[Decimal] = None
    is_low: bool = False


class PaymentResponse(BaseModel):
    payment_id: uuid.UUID
    order_id: uuid.UUID
    amount: Decimal
    method: PaymentMethod
    deductions: List[StockDeductionResponse]


class PaymentReversalRequest(BaseModel):
    business_id: uuid.UUID
    reason: str = Field(..., max_length=255, description="Why the payment is voided or refunded.")


class PaymentReversalResponse(BaseModel):
    payment_id: uuid.UUID
    order_id: uuid.UUID
    status: PaymentStatus
    amount: Decimal
    reason: Optional[str]
