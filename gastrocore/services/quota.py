"""
Per-business quota checks.

These are soft limits: the count and the creation that follows it are not
one atomic step, so concurrent creations from the same business can each pass
the check and overshoot the limit by a small, bounded amount. That overshoot is
accepted; no locking is attempted here.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple
from uuid import UUID
from zoneinfo import ZoneInfo

from gastrocore.core import config
from gastrocore.core.db import translate_connectivity
from gastrocore.core.errors import LimitExceeded
from gastrocore.models.business import Business, BusinessMembership
from gastrocore.models.order import Payment, PaymentStatus, Product

log = logging.getLogger("gastrocore.quota")


class LimitType(str, Enum):
    PRODUCTS = "products"
    ORDERS_DAY = "orders_day"
    USERS = "users"


@dataclass(frozen=True)
class LimitResult:
    allowed: bool
    current: int
    limit: int


def default_limit(limit_type: LimitType) -> int:
    return {
        LimitType.PRODUCTS: config.DEFAULT_LIMIT_PRODUCTS,
        LimitType.ORDERS_DAY: config.DEFAULT_LIMIT_ORDERS_DAY,
        LimitType.USERS: config.DEFAULT_LIMIT_USERS,
    }[limit_type]


def resolve_limit(business: Business, limit_type: LimitType) -> int:
    configured = {
        LimitType.PRODUCTS: business.limits_products,
        LimitType.ORDERS_DAY: business.limits_orders_day,
        LimitType.USERS: business.limits_users,
    }[limit_type]
    return configured if configured is not None else default_limit(limit_type)


def day_window(now: Optional[datetime] = None, tz_name: Optional[str] = None) -> Tuple[datetime, datetime]:
    """[start_of_today, now) in the business timezone, returned in UTC."""
    tz = ZoneInfo(tz_name or config.BUSINESS_TIMEZONE)
    now = (now or datetime.now(timezone.utc)).astimezone(tz)
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start.astimezone(timezone.utc), now.astimezone(timezone.utc)


async def count_usage(business_id: UUID, limit_type: LimitType, now: Optional[datetime] = None) -> int:
    if limit_type == LimitType.PRODUCTS:
        return await Product.filter(business_id=business_id, deleted_at__isnull=True).count()

    if limit_type == LimitType.ORDERS_DAY:
        start, end = day_window(now)
        return await Payment.filter(
            business_id=business_id,
            status=PaymentStatus.PAID,
            deleted_at__isnull=True,
            paid_at__gte=start,
            paid_at__lt=end,
        ).count()

    return await BusinessMembership.filter(business_id=business_id).count()


@translate_connectivity
async def check_limit(business_id: UUID, limit_type, now: Optional[datetime] = None) -> LimitResult:
    """
    Compares live usage against the business limit. ``allowed`` is strict:
    sitting exactly at the limit blocks one more creation.
    """
    limit_type = LimitType(limit_type)

    business = await Business.get_or_none(id=business_id)
    if business is None:
        return LimitResult(allowed=False, current=0, limit=0)

    limit = resolve_limit(business, limit_type)
    current = await count_usage(business_id, limit_type, now)
    return LimitResult(allowed=current < limit, current=current, limit=limit)


async def enforce_limit(business_id: UUID, limit_type, now: Optional[datetime] = None) -> LimitResult:
    """check_limit that raises LimitExceeded instead of returning allowed=False."""
    limit_type = LimitType(limit_type)
    result = await check_limit(business_id, limit_type, now)
    if not result.allowed:
        log.warning(
            f"Limit reached for business {business_id}: {limit_type.value} {result.current}/{result.limit}"
        )
        raise LimitExceeded(limit_type.value, result.current, result.limit)
    return result
