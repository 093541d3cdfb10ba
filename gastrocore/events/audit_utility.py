from typing import Dict, Any, Optional
from uuid import UUID

from gastrocore.models.audit import AuditLog


async def record_audit(
    business_id: Optional[UUID],
    actor_user_id: str,
    action: str,
    entity: str,
    entity_id: Optional[UUID],
    metadata: Optional[Dict[str, Any]] = None,
    conn: Any = None
) -> AuditLog:
    """
    Appends an audit row using the provided database connection (transaction).

    CRITICAL: Passing 'conn' ties the audit row to the business change it
    describes; both commit or neither does.
    """
    return await AuditLog.create(
        business_id=business_id,
        actor_user_id=actor_user_id,
        action=action,
        entity=entity,
        entity_id=entity_id,
        metadata=metadata,
        using_db=conn
    )
