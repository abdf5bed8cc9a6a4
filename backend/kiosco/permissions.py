"""
Role -> permission map and the authorization context handed to services.

WHY: Catalog stock edits and product deletion used to hinge on a shared
password typed into the UI. Services now receive an AuthContext built from
the logged-in operator and check capabilities on it instead.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Admin has all permissions
- Cashier can sell, run the cash desk and receive stock, but cannot
  rewrite stock levels or delete products
"""
from __future__ import annotations

from dataclasses import dataclass, field

from .errors import PermissionDeniedError


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# (code, description)
PERMISSION_DEFINITIONS = [
    ("VIEW_INVENTORY", "View products, stock levels and inventory movements"),
    ("MANAGE_PRODUCTS", "Create and edit products (except stock)"),
    ("ADJUST_STOCK", "Change a product's stock directly"),
    ("DELETE_PRODUCT", "Delete products from the catalog"),
    ("RECEIVE_INVENTORY", "Record stock income from providers"),
    ("CREATE_SALE", "Settle sales at the POS"),
    ("MANAGE_SHIFT", "Open and close cash-drawer shifts"),
    ("MANAGE_CASH", "Record manual cash income and expenses"),
    ("VIEW_REPORTS", "View cash listings, exports and the dashboard"),
    ("MANAGE_SETTINGS", "Change business configuration"),
]

ALL_PERMISSIONS = frozenset(code for code, _ in PERMISSION_DEFINITIONS)

ADJUST_STOCK = "ADJUST_STOCK"
DELETE_PRODUCT = "DELETE_PRODUCT"


# =============================================================================
# DEFAULT ROLE MAPPINGS
# =============================================================================

ROLE_PERMISSIONS = {
    "admin": ALL_PERMISSIONS,
    "cashier": frozenset({
        "VIEW_INVENTORY",
        "MANAGE_PRODUCTS",
        "RECEIVE_INVENTORY",
        "CREATE_SALE",
        "MANAGE_SHIFT",
        "MANAGE_CASH",
        "VIEW_REPORTS",
    }),
}


def permissions_for_role(role: str | None) -> frozenset[str]:
    return ROLE_PERMISSIONS.get(role or "", frozenset())


@dataclass(frozen=True)
class AuthContext:
    """Who is acting and what they may do."""
    user_id: int | None
    user_name: str
    permissions: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def for_user(cls, user) -> "AuthContext":
        return cls(
            user_id=user.id,
            user_name=user.display_name,
            permissions=permissions_for_role(user.role),
        )

    def has(self, permission_code: str) -> bool:
        return permission_code in self.permissions

    def require(self, permission_code: str) -> None:
        if not self.has(permission_code):
            raise PermissionDeniedError(
                "Permission denied",
                details={"required_permission": permission_code},
            )
