from decimal import Decimal
from enum import Enum
from tortoise import fields, models
import uuid

# Stock columns are DECIMAL(14, 3)
STOCK_QUANTUM = Decimal("0.001")
STOCK_LIMIT = Decimal("1e11")


class TrackMode(str, Enum):
    AUTO = "auto"  # Deducted by sales
    MANUAL = "manual"  # Only counted and adjusted by hand


class MovementType(str, Enum):
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"
    AUTO_SALE = "auto_sale"
    WASTE = "waste"


# Types that must reference an order and are deduplicated per (item, order)
ORDER_REFERENCING_TYPES = frozenset({MovementType.AUTO_SALE})


class InventoryItem(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    business = fields.ForeignKeyField("models.Business", related_name="inventory_items")
    name = fields.CharField(max_length=255)
    unit = fields.CharField(max_length=16, default="pz")
    # Materialized running total of all movement deltas; may go negative
    stock_current = fields.DecimalField(max_digits=14, decimal_places=3, default=0)
    stock_min = fields.DecimalField(max_digits=14, decimal_places=3, default=0)
    track_mode = fields.CharEnumField(TrackMode, default=TrackMode.AUTO)
    active = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)
    deleted_at = fields.DatetimeField(null=True)

    class Meta:
        table = "inventory_items"
        indexes = [
            ("business_id",),
        ]


class InventoryMovement(models.Model):
    """
    Append-only ledger row. Never updated or deleted once written.

    The unique (item_id, ref_order_id) pair is the idempotency key for
    order-driven deductions; rows without an order reference never collide
    because NULLs are distinct.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    item = fields.ForeignKeyField("models.InventoryItem", related_name="movements")
    business = fields.ForeignKeyField("models.Business", related_name="inventory_movements")
    type = fields.CharEnumField(MovementType)
    delta = fields.DecimalField(max_digits=14, decimal_places=3)
    stock_after = fields.DecimalField(max_digits=14, decimal_places=3)
    reason = fields.CharField(max_length=255, null=True)
    actor_user_id = fields.CharField(max_length=64)
    ref_order_id = fields.UUIDField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "inventory_movements"
        unique_together = (("item", "ref_order_id"),)
        indexes = [
            ("item_id", "created_at"),  # Audit trail and stock reconstruction
            ("business_id",),
        ]
