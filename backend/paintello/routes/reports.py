# Overview: Flask API routes for reports operations; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..errors import PaintelloError, ValidationError
from ..responses import fail_from, ok
from ..services import reporting_service
from paintello.time_utils import parse_iso_date

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _date_arg(name: str):
    try:
        return parse_iso_date(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be YYYY-MM-DD")


@reports_bp.get("/daily")
@require_auth
@require_permission("VIEW_REPORTS")
def daily_report_route():
    try:
        report = reporting_service.daily_report(_date_arg("date"))
    except PaintelloError as e:
        return fail_from(e)
    return ok(report)


@reports_bp.get("/weekly")
@require_auth
@require_permission("VIEW_REPORTS")
def weekly_report_route():
    """Sunday-started week containing ?date= (default today)."""
    try:
        report = reporting_service.weekly_report(_date_arg("date"))
    except PaintelloError as e:
        return fail_from(e)
    return ok(report)


@reports_bp.get("/monthly")
@require_auth
@require_permission("VIEW_REPORTS")
def monthly_report_route():
    try:
        report = reporting_service.monthly_report(_date_arg("date"))
    except PaintelloError as e:
        return fail_from(e)
    return ok(report)


@reports_bp.get("/material-consumption")
@require_auth
@require_permission("VIEW_REPORTS")
def material_consumption_route():
    """?startDate=&endDate= inclusive; trailing 30 days by default."""
    try:
        report = reporting_service.material_consumption_report(
            _date_arg("startDate"),
            _date_arg("endDate"),
        )
    except PaintelloError as e:
        return fail_from(e)
    return ok(report)


@reports_bp.get("/productivity")
@require_auth
@require_permission("VIEW_REPORTS")
def productivity_route():
    try:
        report = reporting_service.productivity_report(
            request.args.get("period", "week"),
            _date_arg("date"),
        )
    except PaintelloError as e:
        return fail_from(e)
    return ok(report)
