# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import g, request

from .responses import fail
from .services import permission_service, session_service
from .services.permission_service import PermissionDeniedError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'role')


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.role: The role claim captured on the session token
    - g.session_context: The full SessionContext object
    - g.token: The plaintext bearer token (for logout)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return fail("Access denied. No token provided.", 401)

        context = session_service.validate_session(token)
        if not context:
            return fail("Invalid or expired token", 401)

        g.current_user = context.user
        g.role = context.role
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require the session role to carry `permission_code`; use under @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return fail("Authentication required", 401)

            try:
                permission_service.require_permission(
                    user_id=g.current_user.id,
                    role=g.role,
                    permission_code=permission_code,
                    resource=request.path,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
            except PermissionDeniedError:
                return fail(
                    "Access denied. Insufficient permissions.",
                    403,
                    requiredPermission=permission_code,
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator
