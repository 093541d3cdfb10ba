from enum import Enum
from tortoise import fields, models
import uuid

from gastrocore.models.business import OperationMode


class OrderStatus(str, Enum):
    OPEN = "OPEN"
    IN_PREP = "IN_PREP"
    READY = "READY"
    DELIVERED = "DELIVERED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    VOID = "void"


class Product(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    business = fields.ForeignKeyField("models.Business", related_name="products")
    name = fields.CharField(max_length=255)
    price = fields.DecimalField(max_digits=12, decimal_places=2)
    # Stock source deducted one unit per product sold, unless the product has a recipe
    inventory_item = fields.ForeignKeyField(
        "models.InventoryItem", related_name="products", null=True
    )
    active = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    deleted_at = fields.DatetimeField(null=True)

    class Meta:
        table = "products"
        indexes = [
            ("business_id",),
            ("business_id", "deleted_at"),  # Products quota count
        ]


class ProductRecipe(models.Model):
    """One ingredient of a product: ``quantity`` units of the item per product sold."""
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    business = fields.ForeignKeyField("models.Business", related_name="product_recipes")
    product = fields.ForeignKeyField("models.Product", related_name="recipe")
    inventory_item = fields.ForeignKeyField("models.InventoryItem", related_name="recipe_lines")
    quantity = fields.DecimalField(max_digits=14, decimal_places=3)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "product_recipes"
        unique_together = (("product", "inventory_item"),)


class Order(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    business = fields.ForeignKeyField("models.Business", related_name="orders")
    folio = fields.CharField(max_length=32)
    status = fields.CharEnumField(OrderStatus, default=OrderStatus.OPEN)
    operation_mode = fields.CharEnumField(OperationMode, default=OperationMode.COUNTER)
    table_number = fields.CharField(max_length=16, null=True)
    notes = fields.TextField(null=True)
    total_amount = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    cancel_reason = fields.CharField(max_length=255, null=True)
    created_by = fields.CharField(max_length=64)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "orders"
        unique_together = (("business", "folio"),)
        indexes = [
            ("business_id",),
            ("status",),
            ("business_id", "created_at"),
        ]


class OrderItem(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    order = fields.ForeignKeyField("models.Order", related_name="items")
    product = fields.ForeignKeyField("models.Product", related_name="order_items", null=True)
    name_snapshot = fields.CharField(max_length=255)
    price_snapshot = fields.DecimalField(max_digits=12, decimal_places=2)
    quantity = fields.IntField()
    line_total = fields.DecimalField(max_digits=14, decimal_places=2)

    class Meta:
        table = "order_items"
        indexes = [
            ("order_id",),
        ]


class Payment(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    order = fields.ForeignKeyField("models.Order", related_name="payments")
    business = fields.ForeignKeyField("models.Business", related_name="payments")
    amount = fields.DecimalField(max_digits=14, decimal_places=2)
    method = fields.CharEnumField(PaymentMethod)
    status = fields.CharEnumField(PaymentStatus, default=PaymentStatus.PENDING)
    paid_at = fields.DatetimeField(null=True)
    created_by = fields.CharField(max_length=64)
    # Set when a paid payment is voided or refunded
    reversal_reason = fields.CharField(max_length=255, null=True)
    reversed_by = fields.CharField(max_length=64, null=True)
    reversed_at = fields.DatetimeField(null=True)
    deleted_at = fields.DatetimeField(null=True)

    class Meta:
        table = "payments"
        indexes = [
            ("business_id", "status", "paid_at"),  # Daily orders quota count
        ]
