"""
Permission constants and the static role -> permission mapping.

Roles are a fixed set stored on User.role; there are no role tables.
Each endpoint names one permission code and the access gate checks it
against the role captured on the caller's session token.
"""

# =============================================================================
# PERMISSION CATEGORIES
# =============================================================================

class PermissionCategory:
    """Permission categories for organization."""
    MATERIALS = "MATERIALS"
    PRODUCTS = "PRODUCTS"
    PRODUCTION = "PRODUCTION"
    REPORTS = "REPORTS"
    USERS = "USERS"


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    ("VIEW_MATERIALS", "View Materials", "List materials, stock levels and movements", PermissionCategory.MATERIALS),
    ("MANAGE_MATERIALS", "Manage Materials", "Create and edit material records", PermissionCategory.MATERIALS),
    ("DELETE_MATERIALS", "Delete Materials", "Deactivate or remove material records", PermissionCategory.MATERIALS),
    ("RESTOCK_MATERIALS", "Restock Materials", "Record incoming material stock", PermissionCategory.MATERIALS),
    ("CONSUME_MATERIALS", "Consume Materials", "Record direct material consumption", PermissionCategory.MATERIALS),

    ("VIEW_PRODUCTS", "View Products", "List products and their production history", PermissionCategory.PRODUCTS),
    ("MANAGE_PRODUCTS", "Manage Products", "Create, edit, delete products and change status", PermissionCategory.PRODUCTS),

    ("RECORD_PRODUCTION", "Record Production", "Submit production logs", PermissionCategory.PRODUCTION),
    ("CORRECT_PRODUCTION", "Correct Production", "Edit or delete stored production logs", PermissionCategory.PRODUCTION),

    ("VIEW_REPORTS", "View Reports", "Daily, weekly, monthly and performance reports", PermissionCategory.REPORTS),

    ("MANAGE_USERS", "Manage Users", "Create, edit and deactivate user accounts", PermissionCategory.USERS),
]


# =============================================================================
# DEFAULT ROLE MAPPINGS
# =============================================================================

_ALL = {code for code, _, _, _ in PERMISSION_DEFINITIONS}

ROLE_PERMISSIONS = {
    "admin": set(_ALL),
    "manager": _ALL - {"DELETE_MATERIALS", "MANAGE_USERS"},
    "operator": {
        "VIEW_MATERIALS",
        "RESTOCK_MATERIALS",
        "CONSUME_MATERIALS",
        "VIEW_PRODUCTS",
        "MANAGE_PRODUCTS",
        "RECORD_PRODUCTION",
        "VIEW_REPORTS",
    },
}


def get_all_permission_codes() -> list[str]:
    return [code for code, _, _, _ in PERMISSION_DEFINITIONS]


def permissions_for_role(role: str | None) -> set[str]:
    """Unknown or missing roles get nothing (fail closed)."""
    return set(ROLE_PERMISSIONS.get(role or "", set()))
