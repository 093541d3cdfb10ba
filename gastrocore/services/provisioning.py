import logging
from dataclasses import dataclass
from typing import Optional, Union
from uuid import UUID

from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from gastrocore.core.db import translate_connectivity
from gastrocore.core.errors import AccountBlocked, AlreadyHasBusiness, CoreError, InvalidRequest
from gastrocore.events.audit_utility import record_audit
from gastrocore.models.business import (
    Business,
    BusinessMembership,
    BusinessType,
    MembershipStatus,
    OperationMode,
    Role,
)
from gastrocore.services.gatekeeping import AccountGate, ConfiguredAccountGate
from gastrocore.services.membership import require_permission
from gastrocore.services.quota import LimitType, enforce_limit

log = logging.getLogger("gastrocore.provisioning")


@dataclass(frozen=True)
class ProvisionResult:
    success: bool
    business_id: Optional[UUID] = None
    code: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def failure(cls, error: CoreError) -> "ProvisionResult":
        return cls(success=False, code=error.code, message=error.message)


@translate_connectivity
async def create_business_and_owner_membership(
    actor_user_id: str,
    name: str,
    type: Union[BusinessType, str],
    operation_mode: Union[OperationMode, str],
    gate: Optional[AccountGate] = None,
) -> ProvisionResult:
    """
    Creates a business and its OWNER membership in one transaction.

    Failures come back as result codes rather than exceptions. The unique
    membership user_id closes the race between two concurrent onboarding
    requests from the same actor: the loser's insert fails and its business
    row is rolled back with it.
    """
    gate = gate or ConfiguredAccountGate()

    if await gate.is_user_blocked(actor_user_id):
        log.warning(f"Blocked user {actor_user_id} attempted to create a business.")
        return ProvisionResult.failure(AccountBlocked("This account is blocked."))

    if not name or not name.strip():
        return ProvisionResult.failure(InvalidRequest("Business name is required."))

    already = AlreadyHasBusiness("User already belongs to a business.")
    try:
        async with in_transaction() as conn:
            if await BusinessMembership.filter(user_id=actor_user_id).using_db(conn).exists():
                raise already

            business = await Business.create(
                name=name.strip(),
                type=BusinessType(type),
                operation_mode=OperationMode(operation_mode),
                using_db=conn
            )
            await BusinessMembership.create(
                business=business,
                user_id=actor_user_id,
                role=Role.OWNER,
                status=MembershipStatus.ACTIVE,
                using_db=conn
            )
            await record_audit(
                business_id=business.id,
                actor_user_id=actor_user_id,
                action="business.create",
                entity="business",
                entity_id=business.id,
                metadata={"name": business.name, "operation_mode": business.operation_mode.value},
                conn=conn
            )
    except AlreadyHasBusiness as exc:
        log.info(f"User {actor_user_id} already has a business; provisioning skipped.")
        return ProvisionResult.failure(exc)
    except IntegrityError:
        log.info(f"Concurrent provisioning for user {actor_user_id} lost the membership race.")
        return ProvisionResult.failure(already)

    log.info(f"Business {business.id} created for owner {actor_user_id}.")
    return ProvisionResult(success=True, business_id=business.id)


@translate_connectivity
async def add_team_member(
    business_id: UUID,
    actor_user_id: str,
    user_id: str,
    role: Union[Role, str],
) -> BusinessMembership:
    """Adds a staff member, subject to the users quota (soft limit)."""
    role = Role(role)
    if role == Role.OWNER:
        raise InvalidRequest("A business has exactly one owner; pick another role.")

    await require_permission(business_id, actor_user_id, "user:create")
    await enforce_limit(business_id, LimitType.USERS)

    try:
        async with in_transaction() as conn:
            membership = await BusinessMembership.create(
                business_id=business_id,
                user_id=user_id,
                role=role,
                status=MembershipStatus.ACTIVE,
                using_db=conn
            )
            await record_audit(
                business_id=business_id,
                actor_user_id=actor_user_id,
                action="member.create",
                entity="membership",
                entity_id=membership.id,
                metadata={"user_id": user_id, "role": role.value},
                conn=conn
            )
    except IntegrityError:
        raise AlreadyHasBusiness(f"User {user_id} already belongs to a business.")

    log.info(f"User {user_id} joined business {business_id} as {role.value}.")
    return membership
