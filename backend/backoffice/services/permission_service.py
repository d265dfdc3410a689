# Overview: Role-based permission checks and security event logging.

"""
Permission Checking and Security Event Logging

WHY: Enforce role-based access control and keep an audit trail of denials.
This is the identity/role resolver the adjustment workflow asks
"is this actor an approver?".

DESIGN PRINCIPLES:
- Fail closed: deny by default, require explicit permission grant
- Log denials only: permission grants are not logged
- Tenant isolation: security events carry org_id
"""

from ..extensions import db
from ..models import User, UserRole, Role, RolePermission, Permission, SecurityEvent
from ..permissions import PERMISSION_DEFINITIONS, DEFAULT_ROLE_PERMISSIONS
from backoffice.time_utils import utcnow


APPROVER_PERMISSION = "APPROVE_ADJUSTMENTS"


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    org_id: int | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    Committed on its own: a denial is recorded even when the request that
    triggered it writes nothing else.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGOUT
    - TENANT_CONTEXT_MISSING
    """
    event = SecurityEvent(
        user_id=user_id,
        org_id=org_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    return event


def get_user_permissions(user_id: int) -> set[str]:
    """
    Get all permission codes for a user (union over all of the user's roles).

    Inactive users have no permissions.
    """
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        return set()

    rows = (
        db.session.query(Permission.code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(UserRole, UserRole.role_id == RolePermission.role_id)
        .filter(UserRole.user_id == user_id)
        .all()
    )
    return {code for (code,) in rows}


def user_has_permission(user_id: int, permission_code: str) -> bool:
    """Core permission check function. Used by decorators and services."""
    return permission_code in get_user_permissions(user_id)


def is_approver(user_id: int) -> bool:
    """Boolean approver gate used by the adjustment workflow."""
    return user_has_permission(user_id, APPROVER_PERMISSION)


def require_permission(
    user_id: int,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    org_id: int | None = None,
) -> None:
    """
    Require user to have permission, raise PermissionDeniedError if not.

    Denials are logged to security_events.
    """
    if not user_has_permission(user_id, permission_code):
        log_security_event(
            user_id=user_id,
            event_type="PERMISSION_DENIED",
            success=False,
            resource=resource,
            action=permission_code,
            reason=f"Missing permission: {permission_code}",
            ip_address=ip_address,
            user_agent=user_agent,
            org_id=org_id,
        )
        raise PermissionDeniedError(f"Permission denied: {permission_code}")


def get_user_role_names(user_id: int) -> list[str]:
    """Get list of role names for a user."""
    rows = (
        db.session.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .order_by(Role.name)
        .all()
    )
    return [name for (name,) in rows]


def initialize_permissions():
    """
    Initialize all permission definitions in database.

    Idempotent: Safe to run multiple times.
    """
    created_count = 0

    for code, name, description, category in PERMISSION_DEFINITIONS:
        existing = db.session.query(Permission).filter_by(code=code).first()

        if not existing:
            permission = Permission(
                code=code,
                name=name,
                description=description,
                category=category
            )
            db.session.add(permission)
            created_count += 1

    db.session.commit()
    return created_count


def assign_default_role_permissions():
    """
    Link every org's default roles to their default permissions.

    Idempotent: Safe to run multiple times (skips existing).
    """
    created_count = 0

    for role_name, permission_codes in DEFAULT_ROLE_PERMISSIONS.items():
        roles = db.session.query(Role).filter_by(name=role_name).all()

        for role in roles:
            for permission_code in permission_codes:
                permission = db.session.query(Permission).filter_by(code=permission_code).first()

                if not permission:
                    continue  # Permission doesn't exist, skip

                existing = db.session.query(RolePermission).filter_by(
                    role_id=role.id,
                    permission_id=permission.id
                ).first()

                if not existing:
                    db.session.add(RolePermission(role_id=role.id, permission_id=permission.id))
                    created_count += 1

    db.session.commit()
    return created_count
