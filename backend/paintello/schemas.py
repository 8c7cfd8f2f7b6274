# Overview: Typed request schemas for production-log submissions and material usage.

"""
Request bodies arrive as loosely-shaped JSON. Everything that feeds the
production recorder is parsed here into frozen dataclasses first, so the
service layer only ever sees known actions, known shifts and positive,
finite quantities.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from .errors import ValidationError
from .models import LOG_ACTIONS, SHIFTS
from .models.materials import normalize_material_code
from .quantities import ZERO, to_quantity
from .validation import coerce_number


def _text(value: Any, name: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise ValidationError(f"{name} must be a string")
    text = str(value).strip()
    if not text:
        return None
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{name} exceeds max length {max_length}")
    return text


def _require_list(value: Any, name: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{name} must be a list")
    return value


@dataclass(frozen=True)
class ProductEntry:
    product_code: str
    action: str
    quantity: int = 1
    time_spent: float | None = None
    notes: str | None = None


@dataclass(frozen=True)
class MaterialUsage:
    material_code: str
    quantity: Decimal
    product_code: str | None = None


@dataclass(frozen=True)
class DefectRecord:
    product_code: str | None = None
    defect_type: str | None = None
    description: str | None = None
    resolved: bool = False
    resolution_notes: str | None = None


@dataclass(frozen=True)
class ProductionSubmission:
    shift: str
    products: tuple[ProductEntry, ...]
    materials_used: tuple[MaterialUsage, ...] = ()
    defects: tuple[DefectRecord, ...] = ()
    workstation: str | None = None
    notes: str | None = None
    efficiency: float | None = None

    def product_codes(self) -> list[str]:
        """Distinct product codes, in first-seen order."""
        return list(dict.fromkeys(e.product_code for e in self.products))

    def material_totals(self) -> dict[str, Decimal]:
        """Requested quantity per material code, summed across entries."""
        totals: dict[str, Decimal] = {}
        for usage in self.materials_used:
            totals[usage.material_code] = totals.get(usage.material_code, ZERO) + usage.quantity
        return totals

    def finished_totals(self) -> dict[str, int]:
        totals: dict[str, int] = {}
        for entry in self.products:
            if entry.action == "finished":
                totals[entry.product_code] = totals.get(entry.product_code, 0) + entry.quantity
        return totals


def parse_product_entry(raw: Any, index: int) -> ProductEntry:
    label = f"products[{index}]"
    if not isinstance(raw, dict):
        raise ValidationError(f"{label} must be an object")

    code = _text(raw.get("productCode"), f"{label}.productCode", max_length=64)
    if not code:
        raise ValidationError(f"{label}.productCode is required")

    action = _text(raw.get("action"), f"{label}.action")
    if action not in LOG_ACTIONS:
        raise ValidationError(f"{label}.action must be one of: {', '.join(LOG_ACTIONS)}")

    quantity = 1
    if raw.get("quantity") not in (None, ""):
        quantity = coerce_number(f"{label}.quantity", raw["quantity"], integer=True)
        if quantity < 1:
            raise ValidationError(f"{label}.quantity must be >= 1")

    time_spent = None
    if raw.get("timeSpent") not in (None, ""):
        time_spent = coerce_number(f"{label}.timeSpent", raw["timeSpent"])
        if time_spent < 0:
            raise ValidationError(f"{label}.timeSpent must be >= 0")

    return ProductEntry(
        product_code=code,
        action=action,
        quantity=quantity,
        time_spent=time_spent,
        notes=_text(raw.get("notes"), f"{label}.notes"),
    )


def parse_material_usage(raw: Any, label: str = "materialsUsed") -> MaterialUsage:
    if not isinstance(raw, dict):
        raise ValidationError(f"{label} must be an object")

    code = normalize_material_code(_text(raw.get("materialCode"), f"{label}.materialCode", max_length=64))
    if not code:
        raise ValidationError(f"{label}.materialCode is required")

    if raw.get("quantity") in (None, ""):
        raise ValidationError(f"{label}.quantity is required")
    quantity = to_quantity(coerce_number(f"{label}.quantity", raw["quantity"]))
    if quantity <= 0:
        raise ValidationError(f"{label}.quantity must be > 0")

    return MaterialUsage(
        material_code=code,
        quantity=quantity,
        product_code=_text(raw.get("productCode"), f"{label}.productCode", max_length=64),
    )


def parse_defect(raw: Any, index: int) -> DefectRecord:
    label = f"defects[{index}]"
    if not isinstance(raw, dict):
        raise ValidationError(f"{label} must be an object")
    resolved = raw.get("resolved", False)
    if not isinstance(resolved, bool):
        raise ValidationError(f"{label}.resolved must be a boolean")
    return DefectRecord(
        product_code=_text(raw.get("productCode"), f"{label}.productCode", max_length=64),
        defect_type=_text(raw.get("defectType"), f"{label}.defectType", max_length=128),
        description=_text(raw.get("description"), f"{label}.description"),
        resolved=resolved,
        resolution_notes=_text(raw.get("resolutionNotes"), f"{label}.resolutionNotes"),
    )


def parse_defects(raw: Any) -> tuple[DefectRecord, ...]:
    return tuple(parse_defect(item, i) for i, item in enumerate(_require_list(raw, "defects")))


def parse_shift(raw: Any) -> str:
    shift = _text(raw, "shift") or "morning"
    if shift not in SHIFTS:
        raise ValidationError(f"shift must be one of: {', '.join(SHIFTS)}")
    return shift


def parse_efficiency(raw: Any) -> float | None:
    if raw in (None, ""):
        return None
    efficiency = coerce_number("efficiency", raw)
    if efficiency < 0 or efficiency > 100:
        raise ValidationError("efficiency must be between 0 and 100")
    return efficiency


def parse_production_submission(payload: Any) -> ProductionSubmission:
    """Shape validation for POST /api/production."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    raw_products = _require_list(payload.get("products"), "products")
    if not raw_products:
        raise ValidationError("At least one product entry is required")

    products = tuple(parse_product_entry(item, i) for i, item in enumerate(raw_products))

    raw_materials = _require_list(payload.get("materialsUsed"), "materialsUsed")
    materials = tuple(
        parse_material_usage(item, f"materialsUsed[{i}]")
        for i, item in enumerate(raw_materials)
        # The dashboard form always posts one blank material row
        if not (isinstance(item, dict) and not _text(item.get("materialCode"), "materialCode"))
    )

    return ProductionSubmission(
        shift=parse_shift(payload.get("shift")),
        products=products,
        materials_used=materials,
        defects=parse_defects(payload.get("defects")),
        workstation=_text(payload.get("workstation"), "workstation", max_length=128),
        notes=_text(payload.get("notes"), "notes"),
        efficiency=parse_efficiency(payload.get("efficiency")),
    )


LOG_CORRECTION_FIELDS = {"shift", "workstation", "notes", "efficiency", "defects"}


def parse_log_correction(payload: Any) -> dict:
    """
    Administrative edit of a stored log. Only descriptive fields may change;
    product entries and material usage are fixed once their side effects
    have been applied.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    for key in payload:
        if key not in LOG_CORRECTION_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

    patch: dict = {}
    if "shift" in payload:
        patch["shift"] = parse_shift(payload["shift"])
    if "workstation" in payload:
        patch["workstation"] = _text(payload["workstation"], "workstation", max_length=128)
    if "notes" in payload:
        patch["notes"] = _text(payload["notes"], "notes")
    if "efficiency" in payload:
        patch["efficiency"] = parse_efficiency(payload["efficiency"])
    if "defects" in payload:
        patch["defects"] = parse_defects(payload["defects"])
    return patch
