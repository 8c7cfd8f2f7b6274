# Overview: JSON envelope helpers and application-wide error handlers.

from __future__ import annotations

from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException

from .errors import PaintelloError


def ok(data=None, status: int = 200, message: str | None = None, **extra):
    """Success envelope: {"success": true, "data": ..., ...extra}."""
    body = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    if message:
        body["message"] = message
    return jsonify(body), status


def fail(message: str, status: int = 400, **extra):
    """Failure envelope: {"success": false, "error": "..."}."""
    body = {"success": False, "error": message}
    body.update(extra)
    return jsonify(body), status


def fail_from(exc: PaintelloError, status: int | None = None):
    """Convert a domain error, optionally overriding its default status."""
    return fail(exc.message, status or exc.status_code)


def register_error_handlers(app):
    """Keep framework-level errors inside the same envelope as route errors."""

    @app.errorhandler(PaintelloError)
    def handle_domain_error(exc: PaintelloError):
        return fail_from(exc)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return fail(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        current_app.logger.exception("Unhandled error")
        return fail("Server error", 500)


def pagination_args(args) -> tuple[int, int]:
    """Read ?page=&limit= (limit alias per_page) bounded by the configured page sizes."""
    default = current_app.config.get("DEFAULT_PAGE_SIZE", 50)
    maximum = current_app.config.get("MAX_PAGE_SIZE", 200)
    page = args.get("page", 1, type=int) or 1
    per_page = args.get("limit", type=int) or args.get("per_page", type=int) or default
    return max(page, 1), min(max(per_page, 1), maximum)


def paginated(items, total: int, page: int, per_page: int):
    """List envelope with the counters the dashboard expects."""
    return ok(
        [item.to_dict() for item in items],
        count=len(items),
        total=total,
        page=page,
        pages=(total + per_page - 1) // per_page if per_page else 0,
    )
