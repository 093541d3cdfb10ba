# gastrocore/models/__init__.py
from .audit import AuditLog
from .business import Business, BusinessMembership, BusinessType, MembershipStatus, OperationMode, Role
from .inventory import InventoryItem, InventoryMovement, MovementType, TrackMode
from .order import Order, OrderItem, OrderStatus, Payment, PaymentMethod, PaymentStatus, Product, ProductRecipe

# Export all models
__all__ = [
    "AuditLog",
    "Business",
    "BusinessMembership",
    "BusinessType",
    "InventoryItem",
    "InventoryMovement",
    "MembershipStatus",
    "MovementType",
    "OperationMode",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Product",
    "ProductRecipe",
    "Role",
    "TrackMode",
]
