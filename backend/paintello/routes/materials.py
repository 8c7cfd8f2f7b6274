# Overview: Flask API routes for materials operations; parses input and returns JSON responses.

# backend/paintello/routes/materials.py
"""
Material ledger routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_MATERIALS
- Create/update require MANAGE_MATERIALS, delete requires DELETE_MATERIALS
- Restock requires RESTOCK_MATERIALS, direct use requires CONSUME_MATERIALS

Stock is never writable through PUT; it changes only through restock,
use and production submissions.
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..errors import PaintelloError
from ..models import MATERIAL_TYPES, MATERIAL_UNITS, Material
from ..quantities import quantity_json
from ..responses import fail, fail_from, ok
from ..services import material_service
from ..validation import ModelValidationPolicy, require_positive_quantity, validate_payload, coerce_number


_MATERIAL_FIELDS = {
    "name": "name",
    "type": "type",
    "brand": "brand",
    "unit": "unit",
    "minThreshold": "min_threshold",
    "unitCost": "unit_cost",
    "supplier": "supplier",
    "location": "location",
    "notes": "notes",
    "nextRestock": "next_restock",
}
_MATERIAL_CHOICES = {"type": MATERIAL_TYPES, "unit": MATERIAL_UNITS}
_MATERIAL_MINIMUMS = {
    "currentStock": (0, True),
    "minThreshold": (0, True),
    "unitCost": (0, True),
}

MATERIAL_CREATE_POLICY = ModelValidationPolicy(
    fields={**_MATERIAL_FIELDS, "materialCode": "material_code", "currentStock": "current_stock"},
    required_on_create={"materialCode", "name", "type", "unit"},
    choices=_MATERIAL_CHOICES,
    minimums=_MATERIAL_MINIMUMS,
)

MATERIAL_UPDATE_POLICY = ModelValidationPolicy(
    fields={**_MATERIAL_FIELDS, "isActive": "is_active"},
    choices=_MATERIAL_CHOICES,
    minimums=_MATERIAL_MINIMUMS,
)

materials_bp = Blueprint("materials", __name__, url_prefix="/api/materials")


def _optional_text(value) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


@materials_bp.post("")
@require_auth
@require_permission("MANAGE_MATERIALS")
def create_material_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Material, payload=payload, policy=MATERIAL_CREATE_POLICY, partial=False)
        material = material_service.create_material(patch=patch, actor_user_id=g.current_user.id)
    except PaintelloError as e:
        return fail_from(e)
    return ok(material.to_dict(), 201, "Material created successfully")


@materials_bp.get("")
@require_auth
@require_permission("VIEW_MATERIALS")
def list_materials_route():
    """Active materials by name, with the total stock value. ?includeInactive=true lists all."""
    include_inactive = request.args.get("includeInactive", "").lower() == "true"
    materials = material_service.list_materials(include_inactive=include_inactive)
    return ok(
        [m.to_dict() for m in materials],
        count=len(materials),
        totalValue=material_service.total_stock_value(materials),
    )


@materials_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_MATERIALS")
def low_stock_route():
    materials = material_service.list_low_stock()
    return ok([m.to_dict() for m in materials], count=len(materials))


@materials_bp.get("/stats")
@require_auth
@require_permission("VIEW_MATERIALS")
def material_stats_route():
    return ok(material_service.material_stats())


@materials_bp.get("/type/<string:material_type>")
@require_auth
@require_permission("VIEW_MATERIALS")
def materials_by_type_route(material_type: str):
    try:
        materials = material_service.list_materials(material_type=material_type)
    except PaintelloError as e:
        return fail_from(e)
    return ok([m.to_dict() for m in materials], count=len(materials))


@materials_bp.get("/<int:material_id>")
@require_auth
@require_permission("VIEW_MATERIALS")
def get_material_route(material_id: int):
    try:
        material = material_service.get_material(material_id)
    except PaintelloError as e:
        return fail_from(e)
    return ok(material.to_dict())


@materials_bp.put("/<int:material_id>")
@require_auth
@require_permission("MANAGE_MATERIALS")
def update_material_route(material_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Material, payload=payload, policy=MATERIAL_UPDATE_POLICY, partial=True)
        material = material_service.update_material(material_id=material_id, patch=patch)
    except PaintelloError as e:
        return fail_from(e)
    return ok(material.to_dict(), message="Material updated successfully")


@materials_bp.delete("/<int:material_id>")
@require_auth
@require_permission("DELETE_MATERIALS")
def delete_material_route(material_id: int):
    """Soft delete by default; ?hard=true removes the row and its movements."""
    hard = request.args.get("hard", "").lower() == "true"
    try:
        material_service.delete_material(material_id=material_id, hard=hard)
    except PaintelloError as e:
        return fail_from(e)
    return ok(message="Material deleted successfully" if hard else "Material deactivated successfully")


@materials_bp.post("/<int:material_id>/restock")
@require_auth
@require_permission("RESTOCK_MATERIALS")
def restock_material_route(material_id: int):
    """
    Body: {quantity, unitCost?, supplier?, notes?}

    Adds stock, stamps lastRestock and records a RESTOCK movement.
    """
    payload = request.get_json(silent=True) or {}
    try:
        quantity = require_positive_quantity(payload.get("quantity"))
        unit_cost = None
        if payload.get("unitCost") not in (None, ""):
            unit_cost = coerce_number("unitCost", payload["unitCost"])
        material = material_service.get_material(material_id)
        material = material_service.restock(
            material_code=material.material_code,
            quantity=quantity,
            unit_cost=unit_cost,
            supplier=_optional_text(payload.get("supplier")),
            note=_optional_text(payload.get("notes")),
            actor_user_id=g.current_user.id,
        )
    except PaintelloError as e:
        return fail_from(e)

    current_app.logger.info(
        "Restocked %s by %s%s (now %s)",
        material.material_code, quantity_json(quantity), material.unit, quantity_json(material.current_stock),
    )
    return ok(material.to_dict(), message=f"Material restocked by {quantity_json(quantity)}{material.unit}")


@materials_bp.post("/use")
@require_auth
@require_permission("CONSUME_MATERIALS")
def use_material_route():
    """
    Body: {materialCode, quantity, productCode?}

    All-or-nothing: insufficient stock leaves the material untouched.
    """
    payload = request.get_json(silent=True) or {}
    code = _optional_text(payload.get("materialCode"))
    if not code:
        return fail("materialCode is required", 400)

    try:
        quantity = require_positive_quantity(payload.get("quantity"))
        material = material_service.consume(
            material_code=code,
            quantity=quantity,
            product_code=_optional_text(payload.get("productCode")),
            actor_user_id=g.current_user.id,
        )
    except PaintelloError as e:
        if e.status_code == 400:
            current_app.logger.warning("Rejected material use for %s: %s", code, e.message)
        return fail_from(e)

    return ok(material.to_dict(), message=f"Used {quantity_json(quantity)}{material.unit} of {material.name}")


@materials_bp.get("/<int:material_id>/movements")
@require_auth
@require_permission("VIEW_MATERIALS")
def material_movements_route(material_id: int):
    limit = min(request.args.get("limit", 200, type=int) or 200, current_app.config.get("MAX_PAGE_SIZE", 200))
    try:
        movements = material_service.list_movements(material_id=material_id, limit=limit)
    except PaintelloError as e:
        return fail_from(e)
    return ok([m.to_dict() for m in movements], count=len(movements))
