# Overview: Flask API routes for production operations; parses input and returns JSON responses.

# backend/paintello/routes/production.py
"""
Production log routes.

POST /api/production is the core write path: one call records a shift's
work, moves product statuses and draws down material stock, all or
nothing. Corrections (PUT/DELETE) only touch the stored log.

SECURITY: All routes require authentication.
- Submitting requires RECORD_PRODUCTION
- Reading requires VIEW_REPORTS
- Correcting or deleting requires CORRECT_PRODUCTION
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..errors import PaintelloError, ValidationError
from ..models import SHIFTS
from ..responses import fail, fail_from, ok, paginated, pagination_args
from ..schemas import parse_log_correction, parse_production_submission
from ..services import production_service, reporting_service
from paintello.time_utils import day_bounds, parse_iso_date, utcnow

production_bp = Blueprint("production", __name__, url_prefix="/api/production")


def _date_arg(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"{name} must be YYYY-MM-DD")


@production_bp.post("")
@production_bp.post("/log")
@require_auth
@require_permission("RECORD_PRODUCTION")
def create_log_route():
    """
    Body: {shift, workstation, products: [{productCode, action, quantity, timeSpent}],
           materialsUsed: [{materialCode, quantity, productCode?}], defects?, efficiency?, notes}

    201 with the persisted log, or 400 with nothing persisted.
    """
    payload = request.get_json(silent=True)
    try:
        submission = parse_production_submission(payload)
        log = production_service.submit_production_log(
            operator_id=g.current_user.id,
            submission=submission,
        )
    except PaintelloError as e:
        if e.status_code < 500:
            current_app.logger.warning(
                "Rejected production log from %s: %s", g.current_user.username, e.message
            )
        return fail_from(e)

    current_app.logger.info(
        "Production log %s recorded by %s (%d entries, %d materials)",
        log.id, g.current_user.username, len(log.entries), len(log.materials_used),
    )
    return ok(log.to_dict(), 201, "Production log created successfully")


@production_bp.get("")
@production_bp.get("/logs")
@require_auth
@require_permission("VIEW_REPORTS")
def list_logs_route():
    """
    Query params:
    - startDate, endDate: YYYY-MM-DD, inclusive
    - shift, operatorId, productCode: optional filters
    - page, limit: pagination
    """
    page, per_page = pagination_args(request.args)
    try:
        start_day = _date_arg("startDate")
        end_day = _date_arg("endDate")
        shift = request.args.get("shift") or None
        if shift is not None and shift not in SHIFTS:
            raise ValidationError(f"shift must be one of: {', '.join(SHIFTS)}")

        items, total = production_service.list_logs(
            start=day_bounds(start_day)[0] if start_day else None,
            end=day_bounds(end_day)[1] if end_day else None,
            shift=shift,
            operator_id=request.args.get("operatorId", type=int),
            product_code=request.args.get("productCode") or None,
            page=page,
            per_page=per_page,
        )
    except PaintelloError as e:
        return fail_from(e)
    return paginated(items, total, page, per_page)


@production_bp.get("/stats")
@require_auth
@require_permission("VIEW_REPORTS")
def production_stats_route():
    try:
        stats = reporting_service.production_stats(request.args.get("days", 30, type=int))
    except PaintelloError as e:
        return fail_from(e)
    return ok(stats)


@production_bp.get("/daily")
@require_auth
@require_permission("VIEW_REPORTS")
def daily_production_route():
    """Summary for ?date=YYYY-MM-DD (UTC), today when omitted."""
    try:
        day = _date_arg("date") or utcnow().date()
        summary = reporting_service.daily_summary(day)
    except PaintelloError as e:
        return fail_from(e)
    return ok(summary)


@production_bp.get("/performance")
@require_auth
@require_permission("VIEW_REPORTS")
def performance_route():
    """?period=day|week|month (default week)."""
    try:
        data = reporting_service.performance(request.args.get("period", "week"))
    except PaintelloError as e:
        return fail_from(e)
    return ok(data)


@production_bp.get("/search")
@require_auth
@require_permission("VIEW_REPORTS")
def search_logs_route():
    try:
        logs = production_service.search_logs(request.args.get("q", ""))
    except PaintelloError as e:
        return fail_from(e)
    return ok([log.to_dict() for log in logs], count=len(logs))


@production_bp.get("/<int:log_id>")
@require_auth
@require_permission("VIEW_REPORTS")
def get_log_route(log_id: int):
    try:
        log = production_service.get_log(log_id)
    except PaintelloError as e:
        return fail_from(e)
    return ok(log.to_dict())


@production_bp.put("/<int:log_id>")
@require_auth
@require_permission("CORRECT_PRODUCTION")
def update_log_route(log_id: int):
    """Edits shift, workstation, notes, efficiency and defects only. Stock is not recomputed."""
    payload = request.get_json(silent=True)
    try:
        patch = parse_log_correction(payload)
        if not patch:
            return fail("No fields to update", 400)
        log = production_service.update_log(log_id=log_id, patch=patch)
    except PaintelloError as e:
        return fail_from(e)
    return ok(log.to_dict(), message="Production log updated successfully")


@production_bp.delete("/<int:log_id>")
@require_auth
@require_permission("CORRECT_PRODUCTION")
def delete_log_route(log_id: int):
    """Removes the record only; stock drawn and statuses set by it stay as they are."""
    try:
        production_service.delete_log(log_id=log_id)
    except PaintelloError as e:
        return fail_from(e)
    current_app.logger.info("Production log %s deleted by %s", log_id, g.current_user.username)
    return ok(message="Production log deleted successfully")
