from tortoise import fields, models
import uuid


class AuditLog(models.Model):
    """
    Audit rows are written with the same connection (transaction) as the
    change they describe, so an audit entry exists iff the change committed.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    business_id = fields.UUIDField(null=True)
    actor_user_id = fields.CharField(max_length=64)
    action = fields.CharField(max_length=64)  # e.g. 'auto_sale', 'order.cancel'
    entity = fields.CharField(max_length=32)  # e.g. 'inventory', 'order'
    entity_id = fields.UUIDField(null=True)
    metadata = fields.JSONField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "audit_logs"
        indexes = [
            ("business_id", "created_at"),
        ]
