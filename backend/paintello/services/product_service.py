# Overview: Service-layer operations for products; lifecycle status and CRUD.

from __future__ import annotations

import time
from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFound, ValidationError
from ..extensions import db
from ..models import Product, ProductionLog, ProductionLogEntry, PRODUCT_CATEGORIES, PRODUCT_STATUSES
from paintello.time_utils import utcnow
from .concurrency import run_with_retry


def generate_product_code() -> str:
    """P + last six digits of the epoch-millisecond clock, suffixed on collision."""
    base = f"P{str(int(time.time() * 1000))[-6:]}"
    code = base
    suffix = 1
    while db.session.query(Product.id).filter_by(product_code=code).first() is not None:
        code = f"{base}-{suffix}"
        suffix += 1
    return code


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found")
    return product


def find_products_by_codes(codes) -> dict[str, Product]:
    codes = list(codes)
    if not codes:
        return {}
    rows = db.session.query(Product).filter(Product.product_code.in_(codes)).all()
    return {p.product_code: p for p in rows}


def _require_status(status) -> str:
    if status not in PRODUCT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(PRODUCT_STATUSES)}")
    return status


def create_product(*, patch: dict, created_by_user_id: int | None = None) -> Product:
    def _op():
        code = patch.get("product_code") or generate_product_code()
        if db.session.query(Product.id).filter_by(product_code=code).first() is not None:
            raise ConflictError(f"Product code already exists: {code}")

        product = Product(**{**patch, "product_code": code})
        product.created_by_user_id = created_by_user_id
        product.last_updated = utcnow()
        db.session.add(product)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Product code already exists: {code}") from exc
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(*, product_id: int, patch: dict) -> Product:
    """Field update; product_code stays fixed once logs may reference it."""
    if "product_code" in patch:
        raise ValidationError("productCode cannot be changed")

    def _op():
        product = get_product(product_id)
        for key, value in patch.items():
            setattr(product, key, value)
        product.last_updated = utcnow()
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(*, product_id: int) -> None:
    def _op():
        product = get_product(product_id)
        db.session.delete(product)
        db.session.commit()

    run_with_retry(_op)


def set_status(*, product_id: int, status: str, expected_version: int | None = None) -> Product:
    """
    Overwrite the status with any enumeration value.

    No transition rules apply. With expected_version the write is refused
    (ConflictError) when the stored revision has moved on.
    """
    _require_status(status)

    def _op():
        product = get_product(product_id)
        if expected_version is not None and product.version_id != expected_version:
            raise ConflictError(
                f"Product was modified by another request (expected version {expected_version}, "
                f"current {product.version_id})"
            )
        product.status = status
        product.last_updated = utcnow()
        db.session.commit()
        return product

    return run_with_retry(_op)


def batch_set_status(*, product_ids: list[int], status: str) -> int:
    """Set one status on many products; unknown ids are ignored. Returns rows changed."""
    _require_status(status)
    if not product_ids:
        raise ValidationError("productIds must be a non-empty list")

    def _op():
        products = db.session.query(Product).filter(Product.id.in_(product_ids)).all()
        now = utcnow()
        for product in products:
            product.status = status
            product.last_updated = now
        db.session.commit()
        return len(products)

    return run_with_retry(_op)


def adjust_quantity_on_finish(product: Product, delta: int) -> Product:
    """Move `delta` finished pieces out of the product record (caller commits)."""
    if delta <= 0:
        return product
    if product.quantity < delta:
        raise ValidationError(
            f"Cannot finish {delta} of {product.product_code}; only {product.quantity} in progress"
        )
    product.quantity -= delta
    return product


def list_products(*, status: str | None = None, category: str | None = None, page: int = 1, per_page: int = 50):
    """Newest first. Returns (items, total)."""
    q = db.session.query(Product)
    if status:
        q = q.filter(Product.status == _require_status(status))
    if category:
        if category not in PRODUCT_CATEGORIES:
            raise ValidationError(f"category must be one of: {', '.join(PRODUCT_CATEGORIES)}")
        q = q.filter(Product.category == category)

    total = q.count()
    items = q.order_by(Product.created_at.desc(), Product.id.desc()).offset(
        (page - 1) * per_page
    ).limit(per_page).all()
    return items, total


def list_by_status(status: str) -> list[Product]:
    _require_status(status)
    return db.session.query(Product).filter_by(status=status).order_by(Product.last_updated.desc()).all()


def production_history(product_code: str) -> list[ProductionLog]:
    return db.session.query(ProductionLog).join(
        ProductionLogEntry, ProductionLogEntry.log_id == ProductionLog.id
    ).filter(
        ProductionLogEntry.product_code == product_code,
    ).distinct().order_by(ProductionLog.date.desc()).all()


def product_stats() -> dict:
    rows = db.session.query(
        Product.status,
        func.count(Product.id),
        func.coalesce(func.sum(Product.quantity), 0),
    ).group_by(Product.status).all()

    order = {s: i for i, s in enumerate(PRODUCT_STATUSES)}
    by_status = sorted(
        ({"status": s, "count": int(c), "quantity": int(q)} for s, c, q in rows),
        key=lambda r: order.get(r["status"], len(order)),
    )

    week_ago = utcnow() - timedelta(days=7)
    finished_this_week = db.session.query(func.count(ProductionLogEntry.id)).join(
        ProductionLog, ProductionLog.id == ProductionLogEntry.log_id
    ).filter(
        ProductionLog.date >= week_ago,
        ProductionLogEntry.action == "finished",
    ).scalar() or 0

    return {
        "totalProducts": sum(r["count"] for r in by_status),
        "byStatus": by_status,
        "finishedThisWeek": int(finished_this_week),
    }
