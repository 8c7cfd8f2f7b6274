# Overview: Service-layer operations for production logs; the submission pipeline and log administration.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_

from ..errors import InsufficientStock, NotFound, ReferenceNotFound, ValidationError
from ..extensions import db
from ..models import (
    ProductionDefect,
    ProductionLog,
    ProductionLogEntry,
    ProductionMaterialUsage,
    User,
)
from ..models.materials import MOVEMENT_PRODUCTION
from ..schemas import ProductionSubmission
from paintello.time_utils import utcnow
from .concurrency import run_with_retry
from .material_service import decrement_stock, find_material_by_code
from .product_service import adjust_quantity_on_finish, find_products_by_codes

"""
Submission Pipeline (authoritative)

A production log is recorded in four passes. Nothing is written until the
first three have succeeded, and the fourth runs in ONE transaction:

1. shape      - schemas.parse_production_submission (before this module)
2. existence  - every distinct product code resolves to a Product
3. stock      - every material code resolves to an active Material whose
                current_stock covers the quantity summed across the request
4. commit     - log + entries + usages + defects, product status/quantity,
                conditional stock decrements and PRODUCTION movements

Pass 3 is advisory. The conditional UPDATE in pass 4 is the real guard: if
another submission drained the stock in between, the decrement affects zero
rows, InsufficientStock is raised and the whole transaction is rolled back.

Later corrections and deletes of a log never replay or reverse these side
effects.
"""


# Which product status an action leaves the product in. None = unchanged.
ACTION_TO_STATUS = {
    "started": "molding",
    "demolded": "demolded",
    "dried": "ready_to_paint",
    "primed": "painting",
    "painted": "painting",
    "finished": "finished",
    "packaged": "packaged",
    "quality_check": None,
}


def status_for_action(action: str) -> str | None:
    if action not in ACTION_TO_STATUS:
        raise ValidationError(f"Unknown action: {action}")
    return ACTION_TO_STATUS[action]


def _existence_pass(submission: ProductionSubmission) -> dict:
    products = find_products_by_codes(submission.product_codes())
    for code in submission.product_codes():
        if code not in products:
            raise ReferenceNotFound("Product", code)
    return products


def _stock_pass(submission: ProductionSubmission) -> dict:
    materials = {}
    for code, requested in submission.material_totals().items():
        material = find_material_by_code(code)
        if material is None:
            raise ReferenceNotFound("Material", code)
        if material.current_stock < requested:
            raise InsufficientStock(code, material.current_stock, requested, material.unit)
        materials[code] = material
    return materials


def _finish_pass(submission: ProductionSubmission, products: dict) -> None:
    for code, finished in submission.finished_totals().items():
        product = products[code]
        if product.quantity < finished:
            raise ValidationError(
                f"Cannot finish {finished} of {code}; only {product.quantity} in progress"
            )


def _defect_rows(defects) -> list[ProductionDefect]:
    return [
        ProductionDefect(
            product_code=d.product_code,
            defect_type=d.defect_type,
            description=d.description,
            resolved=d.resolved,
            resolution_notes=d.resolution_notes,
        )
        for d in defects
    ]


def submit_production_log(*, operator_id: int, submission: ProductionSubmission) -> ProductionLog:
    """
    Record one shift submission and apply its side effects atomically.

    Raises ReferenceNotFound / InsufficientStock / ValidationError with
    nothing persisted.
    """
    def _op():
        products = _existence_pass(submission)
        materials = _stock_pass(submission)
        _finish_pass(submission, products)

        now = utcnow()
        log = ProductionLog(
            date=now,
            operator_id=operator_id,
            shift=submission.shift,
            efficiency=submission.efficiency,
            notes=submission.notes,
            workstation=submission.workstation,
        )
        for position, entry in enumerate(submission.products):
            log.entries.append(ProductionLogEntry(
                position=position,
                product_code=entry.product_code,
                action=entry.action,
                quantity=entry.quantity,
                time_spent=entry.time_spent,
                notes=entry.notes,
            ))
        for usage in submission.materials_used:
            material = materials[usage.material_code]
            log.materials_used.append(ProductionMaterialUsage(
                material_code=usage.material_code,
                material_name=material.name,
                quantity=usage.quantity,
                product_code=usage.product_code,
                unit=material.unit,
            ))
        log.defects.extend(_defect_rows(submission.defects))

        db.session.add(log)
        db.session.flush()

        # Entries apply in order; the last status-bearing entry wins.
        for entry in submission.products:
            product = products[entry.product_code]
            new_status = status_for_action(entry.action)
            if new_status is not None:
                product.status = new_status
            if entry.action == "finished":
                adjust_quantity_on_finish(product, entry.quantity)
            product.last_updated = now

        for code, requested in submission.material_totals().items():
            linked = {u.product_code for u in submission.materials_used if u.material_code == code}
            decrement_stock(
                materials[code],
                requested,
                movement_type=MOVEMENT_PRODUCTION,
                actor_user_id=operator_id,
                production_log_id=log.id,
                product_code=linked.pop() if len(linked) == 1 else None,
            )

        db.session.commit()
        return log

    return run_with_retry(_op)


# ---------------------------------------------------------------------------
# Log administration (no side effects)
# ---------------------------------------------------------------------------

def get_log(log_id: int) -> ProductionLog:
    log = db.session.get(ProductionLog, log_id)
    if log is None:
        raise NotFound("Production log not found")
    return log


def list_logs(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    shift: str | None = None,
    operator_id: int | None = None,
    product_code: str | None = None,
    page: int = 1,
    per_page: int = 50,
):
    """Newest first, half-open [start, end). Returns (items, total)."""
    q = db.session.query(ProductionLog)
    if start is not None:
        q = q.filter(ProductionLog.date >= start)
    if end is not None:
        q = q.filter(ProductionLog.date < end)
    if shift:
        q = q.filter(ProductionLog.shift == shift)
    if operator_id is not None:
        q = q.filter(ProductionLog.operator_id == operator_id)
    if product_code:
        q = q.filter(ProductionLog.entries.any(ProductionLogEntry.product_code == product_code))

    total = q.count()
    items = q.order_by(ProductionLog.date.desc(), ProductionLog.id.desc()).offset(
        (page - 1) * per_page
    ).limit(per_page).all()
    return items, total


def logs_between(start: datetime, end: datetime) -> list[ProductionLog]:
    return db.session.query(ProductionLog).filter(
        ProductionLog.date >= start,
        ProductionLog.date < end,
    ).order_by(ProductionLog.date.asc(), ProductionLog.id.asc()).all()


def search_logs(term: str, *, limit: int = 50) -> list[ProductionLog]:
    """Case-insensitive match on notes, workstation, product codes and operator username."""
    term = (term or "").strip()
    if not term:
        raise ValidationError("Search query is required")
    like = f"%{term}%"
    return db.session.query(ProductionLog).outerjoin(
        User, User.id == ProductionLog.operator_id
    ).filter(
        or_(
            ProductionLog.notes.ilike(like),
            ProductionLog.workstation.ilike(like),
            ProductionLog.entries.any(ProductionLogEntry.product_code.ilike(like)),
            User.username.ilike(like),
        )
    ).order_by(ProductionLog.date.desc()).limit(limit).all()


def update_log(*, log_id: int, patch: dict) -> ProductionLog:
    """Administrative correction of descriptive fields; stock and statuses are untouched."""
    def _op():
        log = get_log(log_id)
        for key, value in patch.items():
            if key == "defects":
                log.defects = _defect_rows(value or ())
            else:
                setattr(log, key, value)
        db.session.commit()
        return log

    return run_with_retry(_op)


def delete_log(*, log_id: int) -> None:
    def _op():
        log = get_log(log_id)
        db.session.delete(log)
        db.session.commit()

    run_with_retry(_op)
