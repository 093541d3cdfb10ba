"""
Role based permission table.

Roles map onto permission codes; movement types map onto permission codes
through an injectable MovementPolicy so new movement types only need a
table entry.
"""
from typing import Dict, FrozenSet, List, Mapping, Optional

from gastrocore.models.business import Role
from gastrocore.models.inventory import MovementType


PERMISSIONS: Dict[str, FrozenSet[Role]] = {
    # Products
    "product:create": frozenset({Role.OWNER, Role.ADMIN}),
    "product:edit": frozenset({Role.OWNER, Role.ADMIN}),
    "product:delete": frozenset({Role.OWNER, Role.ADMIN}),

    # Orders
    "order:create": frozenset({Role.OWNER, Role.ADMIN, Role.CASHIER}),
    "order:cancel": frozenset({Role.OWNER, Role.ADMIN}),
    "order:discount": frozenset({Role.OWNER, Role.ADMIN}),

    # Kitchen
    "order:change_status": frozenset({Role.OWNER, Role.ADMIN, Role.KITCHEN}),

    # Inventory
    "inventory:adjust": frozenset({Role.OWNER, Role.ADMIN, Role.INVENTORY}),
    "inventory:waste": frozenset({Role.OWNER, Role.ADMIN, Role.INVENTORY}),
    "inventory:sale": frozenset({Role.OWNER, Role.ADMIN, Role.CASHIER}),
    "recipe:edit": frozenset({Role.OWNER, Role.ADMIN, Role.INVENTORY}),
    "purchase:register": frozenset({Role.OWNER, Role.ADMIN, Role.INVENTORY}),

    # Reports
    "report:sales": frozenset({Role.OWNER, Role.ADMIN}),
    "report:inventory": frozenset({Role.OWNER, Role.ADMIN, Role.INVENTORY}),

    # Users and configuration
    "user:create": frozenset({Role.OWNER}),
    "user:edit_role": frozenset({Role.OWNER}),
    "business:config": frozenset({Role.OWNER}),
}


def has_permission(role: Role, permission: str) -> bool:
    """Unknown permission codes are denied."""
    return role in PERMISSIONS.get(permission, frozenset())


def get_all_permissions(role: Role) -> List[str]:
    """Permission codes granted to the role, in table order."""
    return [code for code, roles in PERMISSIONS.items() if role in roles]


class MovementPolicy:
    """Decides which roles may post which inventory movement types."""

    def __init__(self, type_permissions: Mapping[MovementType, str],
                 permissions: Optional[Mapping[str, FrozenSet[Role]]] = None):
        self.type_permissions = dict(type_permissions)
        self.permissions = dict(permissions) if permissions is not None else PERMISSIONS

    def permission_for(self, movement_type: MovementType) -> Optional[str]:
        return self.type_permissions.get(movement_type)

    def allows(self, role: Role, movement_type: MovementType) -> bool:
        permission = self.permission_for(movement_type)
        if permission is None:
            return False
        return role in self.permissions.get(permission, frozenset())


DEFAULT_MOVEMENT_POLICY = MovementPolicy({
    MovementType.PURCHASE: "purchase:register",
    MovementType.ADJUSTMENT: "inventory:adjust",
    MovementType.WASTE: "inventory:waste",
    MovementType.AUTO_SALE: "inventory:sale",
})
