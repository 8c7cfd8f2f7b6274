from __future__ import annotations
from datetime import datetime
from paintello.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Float, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError, ConflictError  # noqa: F401  (re-exported)
from .quantities import Quantity, to_quantity


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - fields: JSON key -> model column key, for the keys clients may send
      (security boundary; anything else is rejected)
    - required_on_create: JSON keys required for POST
    - choices: JSON key -> allowed values (fixed enumerations)
    - minimums: JSON key -> (lower bound, inclusive?) for numeric columns
    """
    fields: dict[str, str]
    required_on_create: set[str] = field(default_factory=set)
    choices: dict[str, tuple] = field(default_factory=dict)
    minimums: dict[str, tuple[float, bool]] = field(default_factory=dict)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_number(name: str, value: Any, *, integer: bool = False):
    """
    Strict numeric coercion shared by policies and request schemas.

    Accepts numbers and numeric strings. Rejects booleans, blanks,
    NaN/inf and, for integers, anything with a fractional part.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{name} must be a number")

    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be a number")
        try:
            value = float(stripped) if not integer or "." in stripped or "e" in stripped.lower() else int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be a number")

    if isinstance(value, int):
        return value if integer else float(value)

    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            raise ValidationError(f"{name} must be a finite number")
        if integer:
            if not value.is_integer():
                raise ValidationError(f"{name} must be an integer")
            return int(value)
        return value

    raise ValidationError(f"{name} must be a number")


def _coerce_value(name: str, col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Quantity):
        return to_quantity(coerce_number(name, value))

    if isinstance(coltype, Integer):
        return coerce_number(name, value, integer=True)

    if isinstance(coltype, Float):
        return coerce_number(name, value)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ValidationError(f"{name} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{name} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{name} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{name} must be a datetime")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{name} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - the policy allowlist, enumerations and numeric lower bounds
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by model column names.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.fields:
            raise ValidationError(f"Field not allowed: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col_key = policy.fields[k]
        col = cols[col_key]

        # NULL handling
        if raw is None or (raw == "" and col.nullable and not isinstance(col.type, (String, Text))):
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[col_key] = None
            continue

        val = _coerce_value(k, col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        allowed = policy.choices.get(k)
        if allowed is not None and val not in allowed:
            raise ValidationError(f"{k} must be one of: {', '.join(allowed)}")

        bound = policy.minimums.get(k)
        if bound is not None and val is not None:
            minimum, inclusive = bound
            if val < minimum or (not inclusive and val == minimum):
                op = ">=" if inclusive else ">"
                raise ValidationError(f"{k} must be {op} {minimum:g}")

        patch[col_key] = val

    return patch


def require_positive_quantity(value: Any, name: str = "quantity", *, integer: bool = False):
    """Quantity guard used by restock / use / status-adjacent endpoints."""
    if value is None or value == "":
        raise ValidationError(f"{name} is required")
    qty = coerce_number(name, value, integer=integer)
    if not integer:
        qty = to_quantity(qty)
    if qty <= 0:
        raise ValidationError(f"{name} must be > 0")
    return qty
