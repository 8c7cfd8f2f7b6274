# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Permission Checking and Security Event Logging

WHY: Enforce role-based access control and keep an audit trail of denials.

DESIGN PRINCIPLES:
- Fail closed: unknown roles have no permissions
- Log denials only: permission grants are not logged
- The role is read from the session claim, not re-queried per request
"""

from ..extensions import db
from ..models import SecurityEvent
from ..permissions import permissions_for_role
from paintello.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when the caller's role lacks the required permission."""
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
) -> SecurityEvent:
    """
    Append a security event to the audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGIN
    - LOGOUT
    - USER_CREATED
    - PASSWORD_CHANGED
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    return event


def get_role_permissions(role: str | None) -> set[str]:
    return permissions_for_role(role)


def role_has_permission(role: str | None, permission_code: str) -> bool:
    return permission_code in permissions_for_role(role)


def require_permission(
    user_id: int,
    role: str | None,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Raise PermissionDeniedError (after logging a PERMISSION_DENIED event)
    when `role` does not carry `permission_code`.
    """
    if role_has_permission(role, permission_code):
        return

    log_security_event(
        user_id=user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=permission_code,
        reason=f"Missing permission: {permission_code}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise PermissionDeniedError(f"Permission denied: {permission_code}")
