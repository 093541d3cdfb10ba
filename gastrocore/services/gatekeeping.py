"""
Account moderation and billing lookups.

Both belong to external collaborators; the core only consults them. Deployments
plug in their own AccountGate. ConfiguredAccountGate covers local setups.
"""
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional
from uuid import UUID

from gastrocore.core import config


@dataclass(frozen=True)
class SubscriptionStatus:
    status: str
    is_active: bool
    notes: Optional[str] = None


class AccountGate:
    async def is_user_blocked(self, actor_user_id: str) -> bool:
        raise NotImplementedError

    async def get_subscription_status(self, business_id: UUID) -> SubscriptionStatus:
        raise NotImplementedError


class ConfiguredAccountGate(AccountGate):
    """Blocked users come from BLOCKED_USER_IDS; every subscription is active."""

    def __init__(self, blocked_user_ids: Optional[Iterable[str]] = None):
        self.blocked_user_ids: FrozenSet[str] = frozenset(
            config.BLOCKED_USER_IDS if blocked_user_ids is None else blocked_user_ids
        )

    async def is_user_blocked(self, actor_user_id: str) -> bool:
        return actor_user_id in self.blocked_user_ids

    async def get_subscription_status(self, business_id: UUID) -> SubscriptionStatus:
        return SubscriptionStatus(status="active", is_active=True)
