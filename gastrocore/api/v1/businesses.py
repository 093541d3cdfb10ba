import logging
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from uuid import UUID

from gastrocore.api.deps import current_user_id, get_account_gate
from gastrocore.core import errors
from gastrocore.schemas.business import (
    BusinessCreateRequest,
    LimitResponse,
    MemberPermissionsResponse,
    ProductRequest,
    ProductResponse,
    ProvisionResponse,
    RecipeIngredientRequest,
    RecipeIngredientResponse,
    RecipeResponse,
    SubscriptionResponse,
    TeamMemberRequest,
    TeamMemberResponse,
)
from gastrocore.schemas.response import SuccessResponse
from gastrocore.services.catalog_service import (
    create_product,
    get_product_recipe,
    remove_recipe_ingredient,
    set_recipe_ingredient,
)
from gastrocore.services.gatekeeping import AccountGate
from gastrocore.services.membership import get_member_permissions
from gastrocore.services.provisioning import add_team_member, create_business_and_owner_membership
from gastrocore.services.quota import LimitType, check_limit

log = logging.getLogger("gastrocore.api")

router = APIRouter()

# HTTP status for each provisioning failure code
_PROVISION_STATUS = {
    errors.AlreadyHasBusiness.code: errors.AlreadyHasBusiness.status_code,
    errors.AccountBlocked.code: errors.AccountBlocked.status_code,
    errors.InvalidRequest.code: errors.InvalidRequest.status_code,
}


@router.post("", response_model=ProvisionResponse)
async def create_business(
    payload: BusinessCreateRequest,
    actor_user_id: str = Depends(current_user_id),
    gate: AccountGate = Depends(get_account_gate),
):
    """
    Onboarding: creates the business and the caller's OWNER membership.
    Answers with a flat {success, business_id | code, message} body.
    """
    result = await create_business_and_owner_membership(
        actor_user_id=actor_user_id,
        name=payload.name,
        type=payload.type,
        operation_mode=payload.operation_mode,
        gate=gate,
    )
    body = ProvisionResponse(
        success=result.success,
        business_id=result.business_id,
        code=result.code,
        message=result.message,
    )
    if result.success:
        return JSONResponse(status_code=status.HTTP_201_CREATED, content=body.model_dump(mode="json"))
    return JSONResponse(status_code=_PROVISION_STATUS.get(result.code, 400), content=body.model_dump(mode="json"))


@router.get("/{business_id}/limits/{limit_type}", response_model=SuccessResponse)
async def get_limit(business_id: UUID, limit_type: LimitType):
    """Advisory quota check; call right before the creation it guards."""
    result = await check_limit(business_id, limit_type)
    data = LimitResponse(
        limit_type=limit_type,
        allowed=result.allowed,
        current=result.current,
        limit=result.limit,
    ).model_dump()
    return SuccessResponse(data=data)


@router.get("/{business_id}/subscription", response_model=SuccessResponse)
async def get_subscription(business_id: UUID, gate: AccountGate = Depends(get_account_gate)):
    """Billing status, as reported by the account gate."""
    subscription = await gate.get_subscription_status(business_id)
    data = SubscriptionResponse(
        business_id=business_id,
        status=subscription.status,
        is_active=subscription.is_active,
        notes=subscription.notes,
    ).model_dump()
    return SuccessResponse(data=data)


@router.post("/{business_id}/members", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_member(business_id: UUID, payload: TeamMemberRequest, actor_user_id: str = Depends(current_user_id)):
    """Adds a staff member (OWNER only, bounded by the users quota)."""
    membership = await add_team_member(business_id, actor_user_id, payload.user_id, payload.role)
    data = TeamMemberResponse(id=membership.id, user_id=membership.user_id, role=membership.role).model_dump()
    return SuccessResponse(data=data)


@router.post("/{business_id}/products", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def add_product(business_id: UUID, payload: ProductRequest, actor_user_id: str = Depends(current_user_id)):
    """Adds a menu product, bounded by the products quota."""
    product = await create_product(
        business_id=business_id,
        actor_user_id=actor_user_id,
        name=payload.name,
        price=payload.price,
        inventory_item_id=payload.inventory_item_id,
    )
    log.info(f"Product {product.id} added to business {business_id}.")
    data = ProductResponse(
        id=product.id,
        name=product.name,
        price=product.price,
        inventory_item_id=payload.inventory_item_id,
    ).model_dump()
    return SuccessResponse(data=data)


@router.get("/{business_id}/permissions", response_model=SuccessResponse)
async def get_my_permissions(business_id: UUID, actor_user_id: str = Depends(current_user_id)):
    """Role and permission codes of the caller, so clients can hide what they cannot do."""
    role, permissions = await get_member_permissions(business_id, actor_user_id)
    data = MemberPermissionsResponse(user_id=actor_user_id, role=role, permissions=permissions).model_dump()
    return SuccessResponse(data=data)


@router.get("/{business_id}/products/{product_id}/recipe", response_model=SuccessResponse)
async def get_recipe(business_id: UUID, product_id: UUID):
    lines = await get_product_recipe(business_id, product_id)
    data = RecipeResponse(
        product_id=product_id,
        ingredients=[
            RecipeIngredientResponse(
                inventory_item_id=line.inventory_item_id,
                name=line.inventory_item.name,
                quantity=line.quantity,
            )
            for line in lines
        ],
    ).model_dump()
    return SuccessResponse(data=data)


@router.put("/{business_id}/products/{product_id}/recipe/{inventory_item_id}", response_model=SuccessResponse)
async def put_recipe_ingredient(
    business_id: UUID,
    product_id: UUID,
    inventory_item_id: UUID,
    payload: RecipeIngredientRequest,
    actor_user_id: str = Depends(current_user_id),
):
    """Adds the item to the product's recipe or changes its per-unit quantity."""
    line = await set_recipe_ingredient(business_id, actor_user_id, product_id, inventory_item_id, payload.quantity)
    data = RecipeIngredientResponse(inventory_item_id=inventory_item_id, quantity=line.quantity).model_dump()
    return SuccessResponse(data=data)


@router.delete("/{business_id}/products/{product_id}/recipe/{inventory_item_id}", response_model=SuccessResponse)
async def delete_recipe_ingredient(
    business_id: UUID,
    product_id: UUID,
    inventory_item_id: UUID,
    actor_user_id: str = Depends(current_user_id),
):
    await remove_recipe_ingredient(business_id, actor_user_id, product_id, inventory_item_id)
    return SuccessResponse(data={"product_id": str(product_id), "inventory_item_id": str(inventory_item_id)})
