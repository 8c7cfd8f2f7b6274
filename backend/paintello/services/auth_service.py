# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every production log, restock and product is attributable to the user
who recorded it. Uses bcrypt for password hashing and validates password
strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost from BCRYPT_LOG_ROUNDS, default 12)
- Minimum 8 characters, upper, lower and a digit required
- Session tokens managed separately (see session_service.py)
- Public registration only ever creates operators
"""

import re

import bcrypt
from flask import current_app

from ..errors import ConflictError, NotFound, ValidationError
from ..extensions import db
from ..models import ROLES, User
from paintello.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt at the configured cost."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    A malformed stored hash counts as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _clean_identity(username, email) -> tuple[str, str]:
    username = str(username or "").strip()
    email = str(email or "").strip().lower()
    if len(username) < 3:
        raise ValidationError("Username must be at least 3 characters long")
    if len(username) > 64:
        raise ValidationError("Username exceeds max length 64")
    if not _EMAIL_RE.match(email):
        raise ValidationError("A valid email is required")
    return username, email


def create_user(
    username: str,
    email: str,
    password: str,
    *,
    role: str = "operator",
    full_name: str | None = None,
    phone: str | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: bad username/email/role or weak password
        ConflictError: username or email already taken
    """
    username, email = _clean_identity(username, email)
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
        full_name=full_name,
        phone=phone,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate by username or email.

    Returns the User and stamps last_login_at on success, None otherwise.
    Deactivated accounts never authenticate.
    """
    identity = str(username or "").strip()
    if not identity:
        return None

    user = db.session.query(User).filter(
        db.or_(User.username == identity, User.email == identity.lower()),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username.asc()).all()


PROFILE_FIELDS = {"fullName": "full_name", "phone": "phone", "email": "email"}
ADMIN_FIELDS = {**PROFILE_FIELDS, "role": "role", "isActive": "is_active"}


def update_user(user: User, payload: dict, *, allowed: dict = PROFILE_FIELDS) -> User:
    """Apply a camelCase patch restricted to `allowed` keys."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    for key in payload:
        if key not in allowed:
            raise ValidationError(f"Field not allowed: {key}")

    if "email" in payload:
        _, email = _clean_identity(user.username, payload["email"])
        taken = db.session.query(User).filter(User.email == email, User.id != user.id).first()
        if taken:
            raise ConflictError("Email already in use")
        user.email = email
    if "fullName" in payload:
        user.full_name = (str(payload["fullName"]).strip() or None) if payload["fullName"] is not None else None
    if "phone" in payload:
        user.phone = (str(payload["phone"]).strip() or None) if payload["phone"] is not None else None
    if "role" in payload:
        if payload["role"] not in ROLES:
            raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
        user.role = payload["role"]
    if "isActive" in payload:
        if not isinstance(payload["isActive"], bool):
            raise ValidationError("isActive must be a boolean")
        user.is_active = payload["isActive"]

    db.session.commit()
    return user


def change_password(user: User, current_password: str, new_password: str) -> User:
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    db.session.commit()
    return user


def deactivate_user(user: User) -> User:
    """Soft delete. History rows keep pointing at the account."""
    user.is_active = False
    db.session.commit()
    return user
