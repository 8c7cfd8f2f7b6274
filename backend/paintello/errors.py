# Overview: Domain error taxonomy shared by services and routes.

"""
Every error a service raises on purpose derives from PaintelloError and
carries the HTTP status the API boundary reports it with. Routes convert
them into the {"success": false, "error": "..."} envelope.
"""

from __future__ import annotations


class PaintelloError(Exception):
    """Base class for expected, caller-facing failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(PaintelloError, ValueError):
    """400-level input problem (malformed or missing field)."""


class ReferenceNotFound(PaintelloError):
    """A business code referenced by a request does not resolve."""

    def __init__(self, kind: str, code: str):
        self.kind = kind
        self.code = code
        super().__init__(f"{kind} not found: {code}")


class NotFound(PaintelloError):
    """Single-resource lookup miss."""

    status_code = 404


class InsufficientStock(PaintelloError):
    """Requested quantity exceeds the material's current stock."""

    def __init__(self, code: str, available: float, requested: float, unit: str | None = None):
        self.code = code
        self.available = available
        self.requested = requested
        self.unit = unit
        suffix = unit or ""
        super().__init__(
            f"Insufficient stock for {code}. "
            f"Available: {_fmt(available)}{suffix}, Requested: {_fmt(requested)}{suffix}"
        )


class ConflictError(PaintelloError, ValueError):
    """409-level business rule conflict (duplicate code, stale revision)."""

    status_code = 409


class Unauthorized(PaintelloError):
    status_code = 401


class Forbidden(PaintelloError):
    status_code = 403


class StorageError(PaintelloError):
    """Backing-store failure; fatal for the current request."""

    status_code = 500


def _fmt(value: float) -> str:
    as_float = float(value)
    if as_float.is_integer():
        return str(int(as_float))
    return f"{as_float:g}"
