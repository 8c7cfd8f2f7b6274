"""
Authorization tests for the Paintello API.

Verifies:
- Unauthenticated requests return 401
- Operator role denied administrative operations (403)
- Denials are recorded as security events
- Session lifecycle: login, logout, password change, deactivation
"""

from datetime import timedelta

import pytest

from conftest import PASSWORD, auth_headers, get_auth_token
from paintello.extensions import db
from paintello.models import SecurityEvent, SessionToken, User
from paintello.permissions import ROLE_PERMISSIONS, get_all_permission_codes, permissions_for_role
from paintello.services import session_service
from paintello.services.auth_service import PasswordValidationError, validate_password_strength
from paintello.time_utils import utcnow


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/materials"),
            ("POST", "/api/materials/use"),
            ("GET", "/api/products"),
            ("PATCH", "/api/products/1/status"),
            ("POST", "/api/production"),
            ("GET", "/api/production/daily"),
            ("GET", "/api/reports/weekly"),
            ("GET", "/api/auth/me"),
            ("GET", "/api/auth/users"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.json == {"success": False, "error": "Access denied. No token provided."}

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/materials", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid or expired token"

    def test_public_endpoints(self, client, db_session):
        assert client.get("/health").status_code == 200
        resp = client.get("/api/version")
        assert resp.status_code == 200
        assert resp.json["api_version"]


# =============================================================================
# OPERATOR DENIED ADMINISTRATIVE OPERATIONS - 403
# =============================================================================


class TestOperatorDenied:
    """Operator role records production but cannot administer."""

    def test_cannot_list_users(self, client, operator_headers):
        resp = client.get("/api/auth/users", headers=operator_headers)
        assert resp.status_code == 403
        assert resp.json["error"] == "Access denied. Insufficient permissions."
        assert resp.json["requiredPermission"] == "MANAGE_USERS"

    def test_cannot_create_material(self, client, operator_headers):
        resp = client.post(
            "/api/materials",
            json={"materialCode": "X-1", "name": "X", "type": "cement", "unit": "kg"},
            headers=operator_headers,
        )
        assert resp.status_code == 403

    def test_cannot_delete_material(self, client, operator_headers, cement):
        resp = client.delete(f"/api/materials/{cement.id}", headers=operator_headers)
        assert resp.status_code == 403

    def test_manager_cannot_delete_material(self, client, manager_headers, cement):
        resp = client.delete(f"/api/materials/{cement.id}", headers=manager_headers)
        assert resp.status_code == 403

    def test_denial_logged(self, client, operator_user, operator_headers):
        client.get("/api/auth/users", headers=operator_headers)
        event = db.session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").one()
        assert event.user_id == operator_user.id
        assert event.action == "MANAGE_USERS"
        assert event.resource == "/api/auth/users"
        assert event.success is False

    def test_operator_can_record_and_view(self, client, operator_headers, venus):
        resp = client.post(
            "/api/production",
            json={"products": [{"productCode": "STATUE-VENUS-45", "action": "painted"}]},
            headers=operator_headers,
        )
        assert resp.status_code == 201
        assert client.get("/api/materials", headers=operator_headers).status_code == 200
        assert client.get("/api/reports/daily", headers=operator_headers).status_code == 200


class TestRolePermissions:

    def test_admin_has_everything(self):
        assert ROLE_PERMISSIONS["admin"] == set(get_all_permission_codes())

    def test_manager_lacks_user_admin(self):
        perms = permissions_for_role("manager")
        assert "MANAGE_USERS" not in perms
        assert "DELETE_MATERIALS" not in perms
        assert "CORRECT_PRODUCTION" in perms

    def test_unknown_role_has_nothing(self):
        assert permissions_for_role("visitor") == set()
        assert permissions_for_role(None) == set()


# =============================================================================
# ACCOUNTS AND SESSIONS
# =============================================================================


class TestAccounts:

    def test_register_creates_operator(self, client, db_session):
        resp = client.post(
            "/api/auth/register",
            json={
                "username": "newbie",
                "email": "newbie@paintello.test",
                "password": "Painting42",
                "role": "admin",
            },
        )
        assert resp.status_code == 201
        assert resp.json["data"]["user"]["role"] == "operator"
        assert resp.json["token"]

        me = client.get("/api/auth/me", headers=auth_headers(resp.json["token"]))
        assert me.json["data"]["role"] == "operator"

    @pytest.mark.parametrize("password", ["short1A", "alllowercase1", "ALLUPPER123", "NoDigitsHere"])
    def test_weak_passwords(self, password):
        with pytest.raises(PasswordValidationError):
            validate_password_strength(password)

    def test_duplicate_username(self, client, operator_user):
        resp = client.post(
            "/api/auth/register",
            json={"username": "operator", "email": "other@paintello.test", "password": PASSWORD},
        )
        assert resp.status_code == 409

    def test_login_by_email(self, client, manager_user):
        resp = client.post("/api/auth/login", json={"email": manager_user.email, "password": PASSWORD})
        assert resp.status_code == 200
        assert "RECORD_PRODUCTION" in resp.json["data"]["permissions"]

    def test_failed_login_logged(self, client, operator_user):
        resp = client.post("/api/auth/login", json={"username": "operator", "password": "Wrong1234"})
        assert resp.status_code == 401
        assert db.session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").count() == 1

    def test_admin_creates_manager(self, client, admin_headers):
        resp = client.post(
            "/api/auth/users",
            json={"username": "shiftlead", "email": "lead@paintello.test", "password": "Shiftlead1", "role": "manager"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json["data"]["role"] == "manager"

    def test_admin_cannot_deactivate_self(self, client, admin_user, admin_headers):
        resp = client.delete(f"/api/auth/users/{admin_user.id}", headers=admin_headers)
        assert resp.status_code == 400


class TestSessions:

    def test_logout_revokes_token(self, client, operator_headers):
        assert client.post("/api/auth/logout", headers=operator_headers).status_code == 200
        resp = client.get("/api/auth/me", headers=operator_headers)
        assert resp.status_code == 401

    def test_token_stored_hashed(self, client, operator_user):
        token = get_auth_token(client, "operator")
        stored = db.session.query(SessionToken).filter_by(user_id=operator_user.id).one()
        assert stored.token_hash == session_service.hash_token(token)
        assert stored.token_hash != token
        assert stored.role == "operator"

    def test_password_change_revokes_old_sessions(self, client, operator_headers):
        resp = client.put(
            "/api/auth/password",
            json={"currentPassword": PASSWORD, "newPassword": "Brushwork99"},
            headers=operator_headers,
        )
        assert resp.status_code == 200
        fresh = resp.json["data"]["token"]

        assert client.get("/api/auth/me", headers=operator_headers).status_code == 401
        assert client.get("/api/auth/me", headers=auth_headers(fresh)).status_code == 200

    def test_deactivation_revokes_sessions(self, client, admin_headers, operator_user, operator_headers):
        resp = client.delete(f"/api/auth/users/{operator_user.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=operator_headers).status_code == 401
        assert db.session.get(User, operator_user.id).is_active is False

    def test_role_claim_survives_until_relogin(self, client, operator_user, operator_headers):
        operator_user.role = "admin"
        db.session.commit()
        resp = client.get("/api/auth/users", headers=operator_headers)
        assert resp.status_code == 403

    def test_idle_session_expires(self, client, operator_user, operator_headers):
        stored = db.session.query(SessionToken).filter_by(user_id=operator_user.id).one()
        stored.last_used_at = utcnow() - timedelta(hours=13)
        db.session.commit()

        resp = client.get("/api/auth/me", headers=operator_headers)
        assert resp.status_code == 401
        db.session.refresh(stored)
        assert stored.is_revoked is True
        assert stored.revoked_reason == "Idle timeout"

    def test_cleanup_removes_old_revoked(self, db_session, operator_user):
        session, _ = session_service.create_session(operator_user.id)
        session.created_at = utcnow() - timedelta(days=40)
        session.is_revoked = True
        db.session.commit()

        assert session_service.cleanup_expired_sessions(older_than_days=30) == 1
