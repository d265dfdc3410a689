from .tenancy import Organization
from .auth import User, Role, UserRole, Permission, RolePermission, SessionToken
from .security import SecurityEvent
from .inventory import InventoryItem, InventoryAdjustment
from .finance import SalesTransaction, Expense, PaymentReceipt
from .audit import AuditEvent

__all__ = [
    'Organization',
    'User', 'Role', 'UserRole', 'Permission', 'RolePermission', 'SessionToken',
    'SecurityEvent',
    'InventoryItem', 'InventoryAdjustment',
    'SalesTransaction', 'Expense', 'PaymentReceipt',
    'AuditEvent',
]
