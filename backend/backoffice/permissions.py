"""
Permission System Constants and Definitions

All permission codes and default role mappings are defined here.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Categories group related permissions for display
- Default role mappings follow principle of least privilege
- Admin has all permissions by default
"""

# =============================================================================
# PERMISSION CATEGORIES
# =============================================================================

class PermissionCategory:
    """Permission categories for organization."""
    INVENTORY = "INVENTORY"
    FINANCE = "FINANCE"
    SYSTEM = "SYSTEM"



# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    # INVENTORY PERMISSIONS
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View catalog items, stock levels and adjustments",
        PermissionCategory.INVENTORY
    ),
    (
        "ADJUST_INVENTORY",
        "Record Adjustments",
        "Record returns, damages, losses, expiries and corrections (pending review)",
        PermissionCategory.INVENTORY
    ),
    (
        "APPROVE_ADJUSTMENTS",
        "Approve Adjustments",
        "Approve or reject pending inventory adjustments",
        PermissionCategory.INVENTORY
    ),

    # FINANCE PERMISSIONS
    (
        "VIEW_CASH_BOOK",
        "View Cash Book",
        "View and export the cash book",
        PermissionCategory.FINANCE
    ),
    (
        "RECORD_TRANSACTIONS",
        "Record Transactions",
        "Record cash sales, expenses and payment receipts",
        PermissionCategory.FINANCE
    ),

    # SYSTEM PERMISSIONS
    (
        "VIEW_AUDIT_LOG",
        "View Audit Log",
        "Access the stock and adjustment audit trail",
        PermissionCategory.SYSTEM
    ),
    (
        "SYSTEM_ADMIN",
        "System Administration",
        "Full system access (admin only)",
        PermissionCategory.SYSTEM
    ),
]


# =============================================================================
# DEFAULT ROLE PERMISSION MAPPINGS
# =============================================================================

# - ADMIN: Full access to everything
# - MANAGER: Everything except system administration
# - CASHIER: Front-counter work; records adjustments but cannot approve them

DEFAULT_ROLE_PERMISSIONS = {
    "admin": [
        "VIEW_INVENTORY",
        "ADJUST_INVENTORY",
        "APPROVE_ADJUSTMENTS",
        "VIEW_CASH_BOOK",
        "RECORD_TRANSACTIONS",
        "VIEW_AUDIT_LOG",
        "SYSTEM_ADMIN",
    ],

    "manager": [
        "VIEW_INVENTORY",
        "ADJUST_INVENTORY",
        "APPROVE_ADJUSTMENTS",
        "VIEW_CASH_BOOK",
        "RECORD_TRANSACTIONS",
        "VIEW_AUDIT_LOG",
    ],

    "cashier": [
        "VIEW_INVENTORY",
        "ADJUST_INVENTORY",
        "RECORD_TRANSACTIONS",
    ],
}

DEFAULT_ROLES = [
    ("admin", "Full system access"),
    ("manager", "Approvals, cash book and audit"),
    ("cashier", "Front counter: sales, returns and damage reports"),
]


# =============================================================================
# PERMISSION HELPERS
# =============================================================================

def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def validate_permission_code(code):
    """Check if a permission code is valid."""
    return code in get_all_permission_codes()
