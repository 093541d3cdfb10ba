from typing import Any, List, Optional, Tuple
from uuid import UUID

from gastrocore.core.errors import Unauthorized
from gastrocore.core.permissions import get_all_permissions, has_permission
from gastrocore.models.business import BusinessMembership, MembershipStatus, Role


async def get_active_membership(business_id: UUID, user_id: str, conn: Any = None) -> Optional[BusinessMembership]:
    return await BusinessMembership.filter(
        business_id=business_id, user_id=user_id, status=MembershipStatus.ACTIVE
    ).using_db(conn).first()


async def require_permission(business_id: UUID, user_id: str, permission: str, conn: Any = None) -> BusinessMembership:
    """Returns the actor's active membership or raises Unauthorized."""
    membership = await get_active_membership(business_id, user_id, conn)
    if membership is None:
        raise Unauthorized(f"User {user_id} is not an active member of business {business_id}.")
    if not has_permission(membership.role, permission):
        raise Unauthorized(
            f"Role {membership.role.value} lacks permission '{permission}'.",
            {"role": membership.role.value, "permission": permission},
        )
    return membership


async def get_member_permissions(business_id: UUID, user_id: str) -> Tuple[Role, List[str]]:
    """Role and granted permission codes of an active member, for clients that gate their UI."""
    membership = await get_active_membership(business_id, user_id)
    if membership is None:
        raise Unauthorized(f"User {user_id} is not an active member of business {business_id}.")
    return membership.role, get_all_permissions(membership.role)
