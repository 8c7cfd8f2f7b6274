# Overview: Service-layer operations for reporting; read-only aggregation over production logs.

from __future__ import annotations

from datetime import date, datetime, timedelta

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import (
    Material,
    MaterialMovement,
    Product,
    ProductionLog,
    ProductionLogEntry,
    User,
)
from ..models.materials import MOVEMENT_CONSUME, MOVEMENT_PRODUCTION
from paintello.quantities import ZERO, quantity_json, sum_quantities, to_quantity
from paintello.time_utils import day_bounds, month_bounds, to_utc_z, utcnow, week_bounds
from .material_service import list_low_stock
from .production_service import logs_between

"""
Every figure here is recomputed from the stored logs on each call. Nothing
is cached. Any ratio whose denominator is zero is reported as 0.
"""

PERIODS = ("day", "week", "month")


def _pct(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0
    return round(numerator / denominator * 100, 2)


def _avg(values) -> float:
    values = [v for v in values if v is not None]
    if not values:
        return 0
    return round(sum(values) / len(values), 2)


def period_bounds(period: str, day: date | None = None) -> tuple[datetime, datetime]:
    day = day or utcnow().date()
    if period == "day":
        return day_bounds(day)
    if period == "week":
        return week_bounds(day)
    if period == "month":
        return month_bounds(day)
    raise ValidationError(f"period must be one of: {', '.join(PERIODS)}")


def _entries(logs):
    for log in logs:
        yield from log.entries


def _low_stock_rows() -> list[dict]:
    return [
        {
            "materialCode": m.material_code,
            "name": m.name,
            "currentStock": quantity_json(m.current_stock),
            "minThreshold": quantity_json(m.min_threshold),
            "unit": m.unit,
        }
        for m in list_low_stock()
    ]


def daily_summary(day: date | None = None) -> dict:
    """
    Aggregate one calendar day (UTC) of production logs.

    totalProducts counts distinct product codes touched; finished and byStatus
    count entries. Piece counts are reported separately as totalQuantity and
    finishedQuantity.
    """
    day = day or utcnow().date()
    start, end = day_bounds(day)
    logs = logs_between(start, end)
    entries = list(_entries(logs))

    by_status: dict[str, int] = {}
    for entry in entries:
        by_status[entry.action] = by_status.get(entry.action, 0) + 1

    materials_used: dict[str, dict] = {}
    for log in logs:
        for usage in log.materials_used:
            key = usage.material_name or usage.material_code
            bucket = materials_used.setdefault(key, {"quantity": ZERO, "unit": usage.unit})
            bucket["quantity"] += to_quantity(usage.quantity)
    for bucket in materials_used.values():
        bucket["quantity"] = quantity_json(bucket["quantity"])

    return {
        "date": day.isoformat(),
        "totalLogs": len(logs),
        "summary": {
            "totalProducts": len({e.product_code for e in entries}),
            "finished": by_status.get("finished", 0),
            "byStatus": by_status,
            "totalQuantity": sum(e.quantity for e in entries),
            "finishedQuantity": sum(e.quantity for e in entries if e.action == "finished"),
            "materialsUsed": materials_used,
            "lowStock": _low_stock_rows(),
        },
        "logs": [log.to_dict() for log in logs],
    }


def performance(period: str = "week", day: date | None = None) -> dict:
    """
    Completion rate, efficiency and time spent over a period.

    completionRate = finished entries / distinct products worked * 100.
    """
    start, end = period_bounds(period, day)
    logs = logs_between(start, end)
    entries = list(_entries(logs))

    distinct_products = {e.product_code for e in entries}
    finished_entries = sum(1 for e in entries if e.action == "finished")

    by_operator: dict[int, dict] = {}
    by_shift: dict[str, dict] = {}
    for log in logs:
        op = by_operator.setdefault(log.operator_id, {
            "operatorId": log.operator_id,
            "username": log.operator.username if log.operator else None,
            "logs": 0,
            "entries": 0,
            "finished": 0,
            "timeSpent": 0.0,
            "_efficiency": [],
        })
        sh = by_shift.setdefault(log.shift, {"shift": log.shift, "logs": 0, "entries": 0, "finished": 0})
        op["logs"] += 1
        sh["logs"] += 1
        op["_efficiency"].append(log.efficiency)
        for entry in log.entries:
            op["entries"] += 1
            sh["entries"] += 1
            op["timeSpent"] += entry.time_spent or 0
            if entry.action == "finished":
                op["finished"] += 1
                sh["finished"] += 1

    operators = []
    for row in by_operator.values():
        row["averageEfficiency"] = _avg(row.pop("_efficiency"))
        row["timeSpent"] = round(row["timeSpent"], 2)
        operators.append(row)

    return {
        "period": {"name": period, "start": start.date().isoformat(), "end": (end - timedelta(days=1)).date().isoformat()},
        "totalLogs": len(logs),
        "totalEntries": len(entries),
        "distinctProducts": len(distinct_products),
        "finished": finished_entries,
        "completionRate": _pct(finished_entries, len(distinct_products)),
        "averageEfficiency": _avg(log.efficiency for log in logs),
        "totalTimeSpent": round(sum(e.time_spent or 0 for e in entries), 2),
        "byOperator": sorted(operators, key=lambda r: -r["entries"]),
        "byShift": sorted(by_shift.values(), key=lambda r: r["shift"]),
    }


def production_stats(days: int = 30) -> dict:
    """Counts of logs and entries per action over the trailing `days` window."""
    if days < 1:
        raise ValidationError("days must be >= 1")
    since = utcnow() - timedelta(days=days)

    total_logs = db.session.query(func.count(ProductionLog.id)).filter(
        ProductionLog.date >= since,
    ).scalar() or 0

    rows = db.session.query(
        ProductionLogEntry.action,
        func.count(ProductionLogEntry.id),
        func.coalesce(func.sum(ProductionLogEntry.quantity), 0),
    ).join(
        ProductionLog, ProductionLog.id == ProductionLogEntry.log_id
    ).filter(
        ProductionLog.date >= since,
    ).group_by(ProductionLogEntry.action).all()

    by_action = {action: {"entries": int(c), "quantity": int(q)} for action, c, q in rows}
    return {
        "days": days,
        "totalLogs": int(total_logs),
        "totalEntries": sum(v["entries"] for v in by_action.values()),
        "byAction": by_action,
    }


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

def daily_report(day: date | None = None) -> dict:
    summary = daily_summary(day)
    summary.pop("logs")
    return summary


def _bucket_days(start: datetime, end: datetime, logs) -> list[dict]:
    """Per-day distinct products touched, finished entries and log count."""
    buckets = {}
    touched: dict[date, set] = {}
    cursor = start.date()
    while cursor < end.date():
        buckets[cursor] = {"date": cursor.isoformat(), "products": 0, "finished": 0, "logs": 0}
        touched[cursor] = set()
        cursor += timedelta(days=1)
    for log in logs:
        day = log.date.date()
        bucket = buckets.get(day)
        if bucket is None:
            continue
        bucket["logs"] += 1
        for entry in log.entries:
            touched[day].add(entry.product_code)
            if entry.action == "finished":
                bucket["finished"] += 1
    for day, bucket in buckets.items():
        bucket["products"] = len(touched[day])
    return list(buckets.values())


def _period_report(start: datetime, end: datetime) -> dict:
    logs = logs_between(start, end)
    daily = _bucket_days(start, end, logs)
    return {
        "period": {"start": start.date().isoformat(), "end": (end - timedelta(days=1)).date().isoformat()},
        "summary": {
            "totalProducts": len({e.product_code for e in _entries(logs)}),
            "finishedProducts": sum(d["finished"] for d in daily),
            "lowStockMaterials": len(list_low_stock()),
            "totalLogs": len(logs),
        },
        "dailyData": daily,
    }


def weekly_report(day: date | None = None) -> dict:
    start, end = week_bounds(day or utcnow().date())
    return _period_report(start, end)


def monthly_report(day: date | None = None) -> dict:
    start, end = month_bounds(day or utcnow().date())
    report = _period_report(start, end)
    report["period"]["month"] = start.strftime("%B %Y")
    report["summary"]["productsCreated"] = db.session.query(func.count(Product.id)).filter(
        Product.created_at >= start,
        Product.created_at < end,
    ).scalar() or 0
    return report


def material_consumption_report(start: date | None = None, end: date | None = None) -> dict:
    """
    Consumption per material between two dates (inclusive), from the movement
    ledger. Defaults to the trailing 30 days. Cost uses the unit cost recorded
    on each movement.
    """
    end = end or utcnow().date()
    start = start or (end - timedelta(days=30))
    if start > end:
        raise ValidationError("startDate must be on or before endDate")
    start_dt, _ = day_bounds(start)
    _, end_dt = day_bounds(end)

    rows = db.session.query(MaterialMovement, Material).join(
        Material, MaterialMovement.material_id == Material.id
    ).filter(
        MaterialMovement.movement_type.in_((MOVEMENT_CONSUME, MOVEMENT_PRODUCTION)),
        MaterialMovement.quantity_delta < 0,
        MaterialMovement.occurred_at >= start_dt,
        MaterialMovement.occurred_at < end_dt,
    ).order_by(Material.material_code.asc(), MaterialMovement.id.asc()).all()

    by_code: dict[str, dict] = {}
    for movement, material in rows:
        used = -to_quantity(movement.quantity_delta)
        row = by_code.setdefault(material.material_code, {
            "materialCode": material.material_code,
            "name": material.name,
            "unit": material.unit,
            "quantity": ZERO,
            "cost": 0.0,
            "movements": 0,
        })
        row["quantity"] += used
        row["cost"] += float(used) * (movement.unit_cost or 0)
        row["movements"] += 1

    total_quantity = sum_quantities(row["quantity"] for row in by_code.values())
    consumption = []
    for row in by_code.values():
        row["quantity"] = quantity_json(row["quantity"])
        row["cost"] = round(row["cost"], 2)
        consumption.append(row)

    return {
        "period": {"start": start.isoformat(), "end": end.isoformat()},
        "totalMaterialsUsed": len(consumption),
        "totalQuantity": quantity_json(total_quantity),
        "totalCost": round(sum(c["cost"] for c in consumption), 2),
        "consumption": consumption,
    }


def productivity_report(period: str = "week", day: date | None = None) -> dict:
    start, end = period_bounds(period, day)
    perf = performance(period, day)

    created = db.session.query(func.count(Product.id)).filter(
        Product.created_at >= start,
        Product.created_at < end,
    ).scalar() or 0

    active_operators = db.session.query(func.count(User.id)).filter(
        User.is_active.is_(True),
        User.role == "operator",
    ).scalar() or 0

    return {
        "period": perf["period"],
        "generatedAt": to_utc_z(utcnow()),
        "totalOperators": int(active_operators),
        "totalLogs": perf["totalLogs"],
        "totalProductsCreated": int(created),
        "totalProductsFinished": perf["finished"],
        "overallEfficiency": perf["averageEfficiency"],
        "operatorProductivity": perf["byOperator"],
    }
