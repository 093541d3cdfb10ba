import asyncio

import pytest

from gastrocore.core.errors import AlreadyHasBusiness, InvalidRequest, LimitExceeded, Unauthorized
from gastrocore.core.permissions import get_all_permissions
from gastrocore.models.business import Business, BusinessMembership, Role
from gastrocore.services.gatekeeping import ConfiguredAccountGate
from gastrocore.services.membership import get_member_permissions
from gastrocore.services.provisioning import add_team_member, create_business_and_owner_membership

OPEN_GATE = ConfiguredAccountGate(blocked_user_ids=())


@pytest.mark.asyncio
async def test_creates_business_with_single_owner_membership(db):
    result = await create_business_and_owner_membership("user-1", "  Tacos Don Pepe ", "taqueria", "counter", OPEN_GATE)

    assert result.success
    business = await Business.get(id=result.business_id)
    assert business.name == "Tacos Don Pepe"
    memberships = await BusinessMembership.filter(business_id=business.id)
    assert len(memberships) == 1
    assert memberships[0].user_id == "user-1"
    assert memberships[0].role == Role.OWNER


@pytest.mark.asyncio
async def test_second_call_reports_already_has_business_and_creates_nothing(db):
    first = await create_business_and_owner_membership("user-1", "Tacos", "taqueria", "counter", OPEN_GATE)
    second = await create_business_and_owner_membership("user-1", "More Tacos", "taqueria", "restaurant", OPEN_GATE)

    assert first.success
    assert not second.success
    assert second.code == "ALREADY_HAS_BUSINESS"
    assert second.business_id is None
    assert await Business.all().count() == 1
    assert await BusinessMembership.all().count() == 1


@pytest.mark.asyncio
async def test_blocked_actor_is_rejected_before_creation(db):
    gate = ConfiguredAccountGate(blocked_user_ids={"user-9"})

    result = await create_business_and_owner_membership("user-9", "Pizzeria", "pizzeria", "restaurant", gate)

    assert not result.success
    assert result.code == "ACCOUNT_BLOCKED"
    assert await Business.all().count() == 0


@pytest.mark.asyncio
async def test_blank_name_is_rejected(db):
    result = await create_business_and_owner_membership("user-1", "   ", "other", "counter", OPEN_GATE)

    assert result.code == InvalidRequest.code
    assert await Business.all().count() == 0


@pytest.mark.asyncio
async def test_concurrent_onboarding_leaves_one_business(db):
    results = await asyncio.gather(*[
        create_business_and_owner_membership("user-1", f"Cafe {i}", "cafeteria", "counter", OPEN_GATE)
        for i in range(3)
    ])

    assert sum(r.success for r in results) == 1
    assert {r.code for r in results if not r.success} == {"ALREADY_HAS_BUSINESS"}
    assert await Business.all().count() == 1


@pytest.mark.asyncio
async def test_add_team_member_respects_users_limit(db):
    result = await create_business_and_owner_membership("owner-1", "Tacos", "taqueria", "counter", OPEN_GATE)
    business_id = result.business_id

    await add_team_member(business_id, "owner-1", "cashier-1", Role.CASHIER)
    await add_team_member(business_id, "owner-1", "cook-1", "KITCHEN")

    with pytest.raises(LimitExceeded):
        await add_team_member(business_id, "owner-1", "cook-2", Role.KITCHEN)
    assert await BusinessMembership.filter(business_id=business_id).count() == 3


@pytest.mark.asyncio
async def test_add_team_member_rules(db):
    owner = await create_business_and_owner_membership("owner-1", "Tacos", "taqueria", "counter", OPEN_GATE)
    other = await create_business_and_owner_membership("owner-2", "Pizza", "pizzeria", "counter", OPEN_GATE)
    await add_team_member(owner.business_id, "owner-1", "cashier-1", Role.CASHIER)

    with pytest.raises(InvalidRequest):
        await add_team_member(owner.business_id, "owner-1", "boss-2", Role.OWNER)
    with pytest.raises(Unauthorized):
        await add_team_member(owner.business_id, "cashier-1", "cook-1", Role.KITCHEN)
    with pytest.raises(AlreadyHasBusiness):
        await add_team_member(other.business_id, "owner-2", "cashier-1", Role.CASHIER)


def test_permission_listing_follows_the_role_table():
    assert get_all_permissions(Role.KITCHEN) == ["order:change_status"]
    assert "recipe:edit" in get_all_permissions(Role.INVENTORY)
    assert "user:create" not in get_all_permissions(Role.ADMIN)


@pytest.mark.asyncio
async def test_member_permissions_reflect_the_membership_role(db):
    result = await create_business_and_owner_membership("owner-1", "Tacos", "taqueria", "counter", OPEN_GATE)
    await add_team_member(result.business_id, "owner-1", "cashier-1", Role.CASHIER)

    role, permissions = await get_member_permissions(result.business_id, "cashier-1")

    assert role == Role.CASHIER
    assert "order:create" in permissions
    assert "user:create" not in permissions
    with pytest.raises(Unauthorized):
        await get_member_permissions(result.business_id, "stranger")
