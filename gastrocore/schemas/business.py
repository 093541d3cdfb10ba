import uuid
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from gastrocore.models.business import BusinessType, OperationMode, Role
from gastrocore.services.quota import LimitType


class BusinessCreateRequest(BaseModel):
    name: str = Field(..., description="Display name of the business.")
    type: BusinessType = BusinessType.OTHER
    operation_mode: OperationMode = OperationMode.COUNTER


class ProvisionResponse(BaseModel):
    """Flat result of create_business_and_owner_membership."""
    success: bool
    business_id: Optional[uuid.UUID] = None
    code: Optional[str] = None
    message: Optional[str] = None


class LimitResponse(BaseModel):
    limit_type: LimitType
    allowed: bool
    current: int
    limit: int


class SubscriptionResponse(BaseModel):
    business_id: uuid.UUID
    status: str
    is_active: bool
    notes: Optional[str] = None


class TeamMemberRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    role: Role


class TeamMemberResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    role: Role


class ProductRequest(BaseModel):
    name: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0)
    inventory_item_id: Optional[uuid.UUID] = None


class ProductResponse(BaseModel):
    id: uuid.UUID
    name: str
    price: Decimal
    inventory_item_id: Optional[uuid.UUID] = None


class RecipeIngredientRequest(BaseModel):
    quantity: Decimal = Field(..., gt=0, max_digits=14, decimal_places=3, description="Units of the item per product sold.")


class RecipeIngredientResponse(BaseModel):
    inventory_item_id: uuid.UUID
    name: Optional[str] = None
    quantity: Decimal


class RecipeResponse(BaseModel):
    product_id: uuid.UUID
    ingredients: List[RecipeIngredientResponse]


class MemberPermissionsResponse(BaseModel):
    user_id: str
    role: Role
    permissions: List[str]
