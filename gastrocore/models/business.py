from enum import Enum
from tortoise import fields, models
import uuid


class Role(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    CASHIER = "CASHIER"
    KITCHEN = "KITCHEN"
    INVENTORY = "INVENTORY"


class MembershipStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class BusinessType(str, Enum):
    TAQUERIA = "taqueria"
    PIZZERIA = "pizzeria"
    CAFETERIA = "cafeteria"
    FAST_FOOD = "fast_food"
    OTHER = "other"


class OperationMode(str, Enum):
    COUNTER = "counter"  # Food truck / counter service, no tables
    RESTAURANT = "restaurant"  # Table service


class Business(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    type = fields.CharEnumField(BusinessType, default=BusinessType.OTHER)
    operation_mode = fields.CharEnumField(OperationMode, default=OperationMode.COUNTER)
    # Null means the configured default applies
    limits_products = fields.IntField(null=True)
    limits_orders_day = fields.IntField(null=True)
    limits_users = fields.IntField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    deleted_at = fields.DatetimeField(null=True)

    class Meta:
        table = "businesses"


class BusinessMembership(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    business = fields.ForeignKeyField("models.Business", related_name="memberships")
    # Unique: a user belongs to at most one business, which also makes
    # "one business per owner" a data-layer guarantee
    user_id = fields.CharField(max_length=64, unique=True)
    role = fields.CharEnumField(Role)
    status = fields.CharEnumField(MembershipStatus, default=MembershipStatus.ACTIVE)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "business_memberships"
        indexes = [
            ("business_id",),  # Team listing and the users quota
        ]
