# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/paintello/routes/products.py
"""
Product lifecycle routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS
- Write operations (including status changes) require MANAGE_PRODUCTS

Status may be set to any pipeline value; there is no transition table.
PATCH /<id>/status accepts an optional versionId and answers 409 when the
product changed since the caller read it.
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..errors import PaintelloError, ValidationError
from ..models import PRODUCT_CATEGORIES, PRODUCT_STATUSES, Product
from ..responses import fail, fail_from, ok, paginated, pagination_args
from ..services import product_service
from ..validation import ModelValidationPolicy, coerce_number, validate_payload


_PRODUCT_FIELDS = {
    "name": "name",
    "category": "category",
    "status": "status",
    "quantity": "quantity",
    "height": "height",
    "width": "width",
    "depth": "depth",
    "weight": "weight",
    "location": "location",
    "notes": "notes",
    "targetDate": "target_date",
}
_PRODUCT_CHOICES = {"category": PRODUCT_CATEGORIES, "status": PRODUCT_STATUSES}
_DIMENSION_MINIMUMS = {
    "height": (0, False),
    "width": (0, False),
    "depth": (0, False),
    "weight": (0.1, True),
}

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    fields={**_PRODUCT_FIELDS, "productCode": "product_code"},
    required_on_create={"name", "height", "width", "depth"},
    choices=_PRODUCT_CHOICES,
    minimums={**_DIMENSION_MINIMUMS, "quantity": (1, True)},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    fields=_PRODUCT_FIELDS,
    choices=_PRODUCT_CHOICES,
    minimums={**_DIMENSION_MINIMUMS, "quantity": (0, True)},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _flatten_dimensions(payload):
    """Accept the dashboard's nested {dimensions: {height, width, depth}} shape."""
    if not isinstance(payload, dict) or "dimensions" not in payload:
        return payload
    dims = payload.get("dimensions")
    if not isinstance(dims, dict):
        raise ValidationError("dimensions must be an object")
    flat = {k: v for k, v in payload.items() if k != "dimensions"}
    for key in ("height", "width", "depth"):
        if key in dims:
            flat[key] = dims[key]
    unknown = set(dims) - {"height", "width", "depth"}
    if unknown:
        raise ValidationError(f"Field not allowed: dimensions.{sorted(unknown)[0]}")
    return flat


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """Create a product; productCode is generated when omitted."""
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(
            model=Product,
            payload=_flatten_dimensions(payload),
            policy=PRODUCT_CREATE_POLICY,
            partial=False,
        )
        product = product_service.create_product(patch=patch, created_by_user_id=g.current_user.id)
    except PaintelloError as e:
        return fail_from(e)
    return ok(product.to_dict(), 201, "Product created successfully")


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products_route():
    """
    Query params:
    - status, category: optional filters
    - page (1-indexed), limit: pagination
    """
    page, per_page = pagination_args(request.args)
    try:
        items, total = product_service.list_products(
            status=request.args.get("status") or None,
            category=request.args.get("category") or None,
            page=page,
            per_page=per_page,
        )
    except PaintelloError as e:
        return fail_from(e)
    return paginated(items, total, page, per_page)


@products_bp.get("/stats")
@require_auth
@require_permission("VIEW_PRODUCTS")
def product_stats_route():
    return ok(product_service.product_stats())


@products_bp.get("/status/<string:status>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def products_by_status_route(status: str):
    try:
        products = product_service.list_by_status(status)
    except PaintelloError as e:
        return fail_from(e)
    return ok([p.to_dict() for p in products], count=len(products))


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product_route(product_id: int):
    """Product plus every production log that references its code, newest first."""
    try:
        product = product_service.get_product(product_id)
    except PaintelloError as e:
        return fail_from(e)
    data = product.to_dict()
    data["history"] = [log.to_dict() for log in product_service.production_history(product.product_code)]
    return ok(data)


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(
            model=Product,
            payload=_flatten_dimensions(payload),
            policy=PRODUCT_UPDATE_POLICY,
            partial=True,
        )
        product = product_service.update_product(product_id=product_id, patch=patch)
    except PaintelloError as e:
        return fail_from(e)
    return ok(product.to_dict(), message="Product updated successfully")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    try:
        product_service.delete_product(product_id=product_id)
    except PaintelloError as e:
        return fail_from(e)
    return ok(message="Product deleted successfully")


@products_bp.patch("/<int:product_id>/status")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_status_route(product_id: int):
    """Body: {status, versionId?}"""
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not status:
        return fail("Status is required", 400)

    try:
        expected = None
        if payload.get("versionId") not in (None, ""):
            expected = coerce_number("versionId", payload["versionId"], integer=True)
        product = product_service.set_status(product_id=product_id, status=status, expected_version=expected)
    except PaintelloError as e:
        return fail_from(e)

    current_app.logger.info("Product %s status set to %s", product.product_code, status)
    return ok(product.to_dict(), message=f"Product status updated to {status}")


@products_bp.post("/batch/status")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def batch_status_route():
    """Body: {productIds: [...], status}"""
    payload = request.get_json(silent=True) or {}
    ids = payload.get("productIds")
    if not isinstance(ids, list) or not ids:
        return fail("productIds must be a non-empty list", 400)

    try:
        product_ids = [coerce_number("productIds[]", v, integer=True) for v in ids]
        updated = product_service.batch_set_status(product_ids=product_ids, status=payload.get("status"))
    except PaintelloError as e:
        return fail_from(e)
    return ok({"updated": updated}, message=f"Updated {updated} products")
