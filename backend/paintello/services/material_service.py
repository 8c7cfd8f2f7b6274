# Overview: Service-layer operations for materials; the stock ledger and its CRUD surface.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, InsufficientStock, NotFound, ReferenceNotFound, ValidationError
from ..extensions import db
from ..models import Material, MaterialMovement
from ..models.materials import (
    MATERIAL_TYPES,
    MOVEMENT_CONSUME,
    MOVEMENT_RESTOCK,
    normalize_material_code,
)
from paintello.quantities import ZERO, quantity_json, to_quantity
from paintello.time_utils import utcnow
from .concurrency import run_with_retry
"""
Material Ledger Invariants (authoritative)

- current_stock >= 0 after every committed operation.
- Stock only changes through restock (add) and consume / production (subtract).
  Metadata updates (PUT) never touch current_stock.
- Every stock change appends a MaterialMovement in the same DB transaction, so
      current_stock == SUM(MaterialMovement.quantity_delta)
  for any material created through this service.
- Decrements are a single conditional UPDATE:
      UPDATE materials SET current_stock = current_stock - :q
      WHERE id = :id AND current_stock >= :q
  Zero affected rows means the stock was short at commit time, whatever an
  earlier read said. This closes the check-then-act window between
  concurrent submissions.
- Quantities are exact to 0.001 (Decimal in Python, integer thousandths in
  the database), so a consume of exactly the remaining stock always succeeds.
- Low stock is current_stock < min_threshold, per material, everywhere.
"""


def get_material(material_id: int) -> Material:
    material = db.session.get(Material, material_id)
    if material is None:
        raise NotFound("Material not found")
    return material


def find_material_by_code(material_code: str, *, active_only: bool = True) -> Material | None:
    code = normalize_material_code(material_code)
    q = db.session.query(Material).filter(Material.material_code == code)
    if active_only:
        q = q.filter(Material.is_active.is_(True))
    return q.first()


def _require_material_by_code(material_code: str) -> Material:
    material = find_material_by_code(material_code)
    if material is None:
        raise ReferenceNotFound("Material", normalize_material_code(material_code))
    return material


def _append_movement(
    *,
    material: Material,
    movement_type: str,
    quantity_delta: Decimal,
    actor_user_id: int | None = None,
    production_log_id: int | None = None,
    product_code: str | None = None,
    unit_cost: float | None = None,
    note: str | None = None,
) -> MaterialMovement:
    movement = MaterialMovement(
        material_id=material.id,
        movement_type=movement_type,
        quantity_delta=quantity_delta,
        balance_after=material.current_stock,
        unit_cost=unit_cost if unit_cost is not None else material.unit_cost,
        production_log_id=production_log_id,
        product_code=product_code,
        actor_user_id=actor_user_id,
        note=note,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    return movement


def decrement_stock(
    material: Material,
    quantity: Decimal,
    *,
    movement_type: str,
    actor_user_id: int | None = None,
    production_log_id: int | None = None,
    product_code: str | None = None,
    note: str | None = None,
) -> Material:
    """
    Conditional atomic decrement inside the caller's transaction (no commit).

    Raises InsufficientStock when fewer than `quantity` units remain at the
    moment the UPDATE runs. The caller owns rollback.
    """
    quantity = to_quantity(quantity)
    updated = db.session.query(Material).filter(
        Material.id == material.id,
        Material.current_stock >= quantity,
    ).update(
        {
            Material.current_stock: Material.current_stock - quantity,
            Material.version_id: Material.version_id + 1,
            Material.updated_at: utcnow(),
        },
        synchronize_session=False,
    )

    db.session.refresh(material)

    if updated == 0:
        raise InsufficientStock(material.material_code, material.current_stock, quantity, material.unit)

    _append_movement(
        material=material,
        movement_type=movement_type,
        quantity_delta=-quantity,
        actor_user_id=actor_user_id,
        production_log_id=production_log_id,
        product_code=product_code,
        note=note,
    )
    return material


def restock(
    *,
    material_code: str,
    quantity: Decimal,
    unit_cost: float | None = None,
    supplier: str | None = None,
    note: str | None = None,
    actor_user_id: int | None = None,
) -> Material:
    """
    Increase stock by `quantity`.

    Optionally overwrites unit_cost / supplier and always stamps last_restock.
    The increment is applied in SQL so that a concurrent decrement is never
    overwritten by a stale in-memory value.
    """
    quantity = to_quantity(quantity)
    if quantity is None or quantity <= 0:
        raise ValidationError("Valid quantity is required")
    if unit_cost is not None and unit_cost < 0:
        raise ValidationError("unitCost must be >= 0")

    def _op():
        material = find_material_by_code(material_code, active_only=False)
        if material is None:
            raise NotFound("Material not found")

        values = {
            Material.current_stock: Material.current_stock + quantity,
            Material.version_id: Material.version_id + 1,
            Material.last_restock: utcnow(),
            Material.updated_at: utcnow(),
        }
        if unit_cost is not None:
            values[Material.unit_cost] = unit_cost
        if supplier:
            values[Material.supplier] = supplier

        db.session.query(Material).filter(Material.id == material.id).update(
            values, synchronize_session=False
        )
        db.session.refresh(material)

        _append_movement(
            material=material,
            movement_type=MOVEMENT_RESTOCK,
            quantity_delta=quantity,
            actor_user_id=actor_user_id,
            unit_cost=unit_cost,
            note=note,
        )
        db.session.commit()
        return material

    return run_with_retry(_op)


def consume(
    *,
    material_code: str,
    quantity: Decimal,
    product_code: str | None = None,
    actor_user_id: int | None = None,
) -> Material:
    """
    Direct consumption outside a production-log submission.

    All-or-nothing: on InsufficientStock the stock is left unchanged.
    """
    quantity = to_quantity(quantity)
    if quantity is None or quantity <= 0:
        raise ValidationError("quantity must be > 0")

    def _op():
        material = find_material_by_code(material_code)
        if material is None:
            raise NotFound("Material not found")

        decrement_stock(
            material,
            quantity,
            movement_type=MOVEMENT_CONSUME,
            actor_user_id=actor_user_id,
            product_code=product_code,
        )
        db.session.commit()
        return material

    return run_with_retry(_op)


def is_low_stock(material: Material) -> bool:
    return material.is_low_stock


def low_stock_query():
    return db.session.query(Material).filter(
        Material.is_active.is_(True),
        Material.current_stock < Material.min_threshold,
    )


def list_low_stock() -> list[Material]:
    return low_stock_query().order_by(Material.current_stock.asc(), Material.name.asc()).all()


# ---------------------------------------------------------------------------
# CRUD surface
# ---------------------------------------------------------------------------

def create_material(*, patch: dict, actor_user_id: int | None = None) -> Material:
    code = normalize_material_code(patch.get("material_code"))
    if not code:
        raise ValidationError("materialCode is required")

    def _op():
        if db.session.query(Material).filter_by(material_code=code).first():
            raise ConflictError(f"Material code already exists: {code}")

        opening_stock = to_quantity(patch.get("current_stock") or 0)
        material = Material(**{**patch, "material_code": code, "current_stock": opening_stock})
        db.session.add(material)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Material code already exists: {code}") from exc

        if opening_stock:
            _append_movement(
                material=material,
                movement_type=MOVEMENT_RESTOCK,
                quantity_delta=opening_stock,
                actor_user_id=actor_user_id,
                note="Opening stock",
            )
        db.session.commit()
        return material

    return run_with_retry(_op)


def update_material(*, material_id: int, patch: dict) -> Material:
    """Metadata update. Code and stock are not writable here."""
    if "material_code" in patch or "current_stock" in patch:
        raise ValidationError("materialCode and currentStock cannot be changed here")

    def _op():
        material = get_material(material_id)
        for key, value in patch.items():
            setattr(material, key, value)
        db.session.commit()
        return material

    return run_with_retry(_op)


def delete_material(*, material_id: int, hard: bool = False) -> Material | None:
    """Soft delete (is_active=False) by default; hard delete removes movements too."""
    def _op():
        material = get_material(material_id)
        if hard:
            db.session.delete(material)
            db.session.commit()
            return None
        material.is_active = False
        db.session.commit()
        return material

    return run_with_retry(_op)


def list_materials(*, include_inactive: bool = False, material_type: str | None = None) -> list[Material]:
    q = db.session.query(Material)
    if not include_inactive:
        q = q.filter(Material.is_active.is_(True))
    if material_type is not None:
        if material_type not in MATERIAL_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(MATERIAL_TYPES)}")
        q = q.filter(Material.type == material_type)
    return q.order_by(Material.name.asc()).all()


def total_stock_value(materials) -> float:
    return round(sum(m.stock_value for m in materials), 2)


def list_movements(*, material_id: int, limit: int = 200) -> list[MaterialMovement]:
    get_material(material_id)
    return db.session.query(MaterialMovement).filter_by(
        material_id=material_id,
    ).order_by(
        MaterialMovement.occurred_at.desc(),
        MaterialMovement.id.desc(),
    ).limit(limit).all()


def material_stats() -> dict:
    materials = list_materials()
    by_type: dict[str, dict] = {}
    for m in materials:
        bucket = by_type.setdefault(m.type, {"type": m.type, "count": 0, "totalStock": ZERO, "totalValue": 0.0})
        bucket["count"] += 1
        bucket["totalStock"] += to_quantity(m.current_stock or 0)
        bucket["totalValue"] += m.stock_value

    for bucket in by_type.values():
        bucket["totalStock"] = quantity_json(bucket["totalStock"])
        bucket["totalValue"] = round(bucket["totalValue"], 2)

    return {
        "totalMaterials": len(materials),
        "totalValue": total_stock_value(materials),
        "lowStockCount": sum(1 for m in materials if m.is_low_stock),
        "byType": sorted(by_type.values(), key=lambda b: b["type"]),
    }


def reconcile_stock(*, fix: bool = False) -> list[dict]:
    """
    Compare each material's current_stock with its movement ledger.

    Returns one row per mismatch. With fix=True an adjusting RESTOCK or
    CONSUME movement is appended so the ledger matches the stored stock.
    """
    sums = dict(
        db.session.query(
            MaterialMovement.material_id,
            func.coalesce(func.sum(MaterialMovement.quantity_delta), 0),
        ).group_by(MaterialMovement.material_id).all()
    )

    mismatches = []
    for material in db.session.query(Material).order_by(Material.id).all():
        ledger_total = to_quantity(sums.get(material.id) or 0)
        diff = to_quantity(material.current_stock or 0) - ledger_total
        if diff == 0:
            continue
        mismatches.append({
            "materialCode": material.material_code,
            "currentStock": quantity_json(material.current_stock),
            "ledgerTotal": quantity_json(ledger_total),
            "difference": quantity_json(diff),
        })
        if fix:
            _append_movement(
                material=material,
                movement_type=MOVEMENT_RESTOCK if diff > 0 else MOVEMENT_CONSUME,
                quantity_delta=diff,
                note="Ledger reconciliation",
            )

    if fix and mismatches:
        db.session.commit()
    return mismatches
