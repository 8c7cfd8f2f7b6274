# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/paintello/routes/auth.py
"""
Authentication API routes

- Self-registration creates operator accounts only
- Login returns a bearer token for the Authorization header
- Password change and deactivation revoke existing sessions
- User administration requires MANAGE_USERS (admin)
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..errors import PaintelloError
from ..permissions import permissions_for_role
from ..responses import fail, fail_from, ok
from ..services import auth_service, permission_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _client():
    return request.headers.get("User-Agent"), request.remote_addr


def _login_payload(user, session, token, status=200, message="Login successful"):
    return ok(
        {
            "user": user.to_dict(),
            "permissions": sorted(permissions_for_role(session.role)),
            "token": token,
            "session": session.to_dict(),
        },
        status,
        message,
        token=token,
    )


@auth_bp.post("/register")
def register_route():
    """Create an operator account and log it in."""
    data = request.get_json(silent=True) or {}
    user_agent, ip_address = _client()

    try:
        user = auth_service.create_user(
            data.get("username"),
            data.get("email"),
            data.get("password"),
            role="operator",
            full_name=data.get("fullName"),
            phone=data.get("phone"),
        )
        session, token = session_service.create_session(user.id, user_agent, ip_address)
    except PaintelloError as e:
        return fail_from(e)

    permission_service.log_security_event(
        user_id=user.id,
        event_type="USER_CREATED",
        success=True,
        resource=request.path,
        action="REGISTER",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    current_app.logger.info("Registered operator %s", user.username)
    return _login_payload(user, session, token, 201, "User registered successfully")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by username or email and create a session token.
    Failed attempts are recorded as LOGIN_FAILED security events.
    """
    data = request.get_json(silent=True) or {}
    identity = data.get("username") or data.get("email")
    password = data.get("password")

    if not identity or not password:
        return fail("username/email and password required", 400)

    user_agent, ip_address = _client()
    user = auth_service.authenticate(identity, password)

    if not user:
        permission_service.log_security_event(
            user_id=None,
            event_type="LOGIN_FAILED",
            success=False,
            resource=request.path,
            action="LOGIN",
            reason=f"Invalid credentials for {str(identity)[:64]}",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return fail("Invalid credentials", 401)

    session, token = session_service.create_session(user.id, user_agent, ip_address)
    return _login_payload(user, session, token)


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.token, reason="User logout")
    return ok(message="Logged out")


@auth_bp.get("/me")
@require_auth
def me_route():
    return ok({
        "user": g.current_user.to_dict(),
        "role": g.role,
        "permissions": sorted(permissions_for_role(g.role)),
    })


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    """Users may edit their own name, phone and email; never their role."""
    try:
        user = auth_service.update_user(g.current_user, request.get_json(silent=True) or {})
    except PaintelloError as e:
        return fail_from(e)
    return ok(user.to_dict(), message="Profile updated successfully")


@auth_bp.put("/password")
@require_auth
def update_password_route():
    data = request.get_json(silent=True) or {}
    current = data.get("currentPassword")
    new = data.get("newPassword")
    if not current or not new:
        return fail("currentPassword and newPassword are required", 400)

    try:
        auth_service.change_password(g.current_user, current, new)
    except PaintelloError as e:
        return fail_from(e)

    session_service.revoke_all_user_sessions(g.current_user.id, reason="Password changed")
    user_agent, ip_address = _client()
    session, token = session_service.create_session(g.current_user.id, user_agent, ip_address)
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="PASSWORD_CHANGED",
        success=True,
        resource=request.path,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return ok({"token": token, "session": session.to_dict()}, message="Password updated successfully")


# ---------------------------------------------------------------------------
# User administration
# ---------------------------------------------------------------------------

@auth_bp.get("/users")
@require_auth
@require_permission("MANAGE_USERS")
def list_users_route():
    users = auth_service.list_users()
    return ok([u.to_dict() for u in users], count=len(users))


@auth_bp.post("/users")
@require_auth
@require_permission("MANAGE_USERS")
def create_user_route():
    """Admin-created accounts may carry any role."""
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            data.get("username"),
            data.get("email"),
            data.get("password"),
            role=data.get("role") or "operator",
            full_name=data.get("fullName"),
            phone=data.get("phone"),
        )
    except PaintelloError as e:
        return fail_from(e)

    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="USER_CREATED",
        success=True,
        resource=request.path,
        action=f"CREATE:{user.username}",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return ok(user.to_dict(), 201, "User created successfully")


@auth_bp.get("/users/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def get_user_route(user_id: int):
    try:
        user = auth_service.get_user(user_id)
    except PaintelloError as e:
        return fail_from(e)
    return ok(user.to_dict())


@auth_bp.put("/users/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def update_user_route(user_id: int):
    """Role or activation changes revoke the user's sessions."""
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.get_user(user_id)
        previous = (user.role, user.is_active)
        user = auth_service.update_user(user, data, allowed=auth_service.ADMIN_FIELDS)
    except PaintelloError as e:
        return fail_from(e)

    if (user.role, user.is_active) != previous:
        session_service.revoke_all_user_sessions(user.id, reason="Role or status changed")
    return ok(user.to_dict(), message="User updated successfully")


@auth_bp.delete("/users/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def delete_user_route(user_id: int):
    """Deactivates the account; production history keeps its operator reference."""
    if user_id == g.current_user.id:
        return fail("You cannot deactivate your own account", 400)
    try:
        user = auth_service.deactivate_user(auth_service.get_user(user_id))
    except PaintelloError as e:
        return fail_from(e)

    session_service.revoke_all_user_sessions(user.id, reason="User deactivated")
    return ok(message="User deactivated successfully")
