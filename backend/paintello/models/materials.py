from __future__ import annotations

from ..extensions import db
from paintello.quantities import Quantity, quantity_json
from paintello.time_utils import to_utc_z


MATERIAL_TYPES = ("cement", "gypsum", "additive", "color", "primer", "finish", "tool", "other")
MATERIAL_UNITS = ("kg", "L", "bag", "tube", "bottle", "piece", "roll", "m²")

MOVEMENT_RESTOCK = "RESTOCK"
MOVEMENT_CONSUME = "CONSUME"
MOVEMENT_PRODUCTION = "PRODUCTION"
MOVEMENT_TYPES = (MOVEMENT_RESTOCK, MOVEMENT_CONSUME, MOVEMENT_PRODUCTION)


def normalize_material_code(value) -> str:
    return str(value or "").strip().upper()


class Material(db.Model):
    """
    Raw or consumable input tracked by stock quantity.

    STOCK INVARIANT:
    current_stock is never negative after a committed operation. Writes that
    reduce stock go through material_service, which decrements with a single
    conditional UPDATE (current_stock >= requested) instead of read-then-write.
    The CHECK constraint is the last line of defence.

    QUANTITIES:
    current_stock and min_threshold are Quantity columns: Decimal to 0.001 in
    Python, integer thousandths in the database.

    CODE:
    material_code is uppercased and trimmed on write, and immutable after
    creation. Production logs reference materials by this code.

    LOW STOCK:
    current_stock < min_threshold. Derived on read, never stored, never
    enforced as a floor.
    """
    __tablename__ = "materials"
    __table_args__ = (
        db.CheckConstraint("current_stock >= 0", name="ck_materials_stock_non_negative"),
        db.CheckConstraint("min_threshold >= 0", name="ck_materials_threshold_non_negative"),
        db.Index("ix_materials_stock_threshold", "current_stock", "min_threshold"),
        db.Index("ix_materials_type_active", "type", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    material_code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(32), nullable=False)
    brand = db.Column(db.String(128), nullable=True)

    current_stock = db.Column(Quantity, nullable=False, default=0)
    unit = db.Column(db.String(16), nullable=False)
    min_threshold = db.Column(Quantity, nullable=False, default=10)
    unit_cost = db.Column(db.Float, nullable=True)

    supplier = db.Column(db.String(255), nullable=True)
    location = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    last_restock = db.Column(db.DateTime(timezone=True), nullable=True)
    next_restock = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return (self.current_stock or 0) < (self.min_threshold or 0)

    @property
    def stock_value(self) -> float:
        return float(self.current_stock or 0) * (self.unit_cost or 0)

    def __repr__(self) -> str:
        return f"<Material id={self.id} code={self.material_code!r} stock={self.current_stock}{self.unit}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "materialCode": self.material_code,
            "name": self.name,
            "type": self.type,
            "brand": self.brand,
            "currentStock": quantity_json(self.current_stock),
            "unit": self.unit,
            "minThreshold": quantity_json(self.min_threshold),
            "unitCost": self.unit_cost,
            "supplier": self.supplier,
            "location": self.location,
            "notes": self.notes,
            "lastRestock": to_utc_z(self.last_restock),
            "nextRestock": to_utc_z(self.next_restock),
            "isActive": self.is_active,
            "isLowStock": self.is_low_stock,
            "versionId": self.version_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class MaterialMovement(db.Model):
    """
    Append-only stock ledger.

    One row per committed stock change, written in the same DB transaction
    as the change itself. For every material:
        current_stock == SUM(quantity_delta)   (given an opening RESTOCK row)
    `flask materials reconcile` checks this.
    """
    __tablename__ = "material_movements"
    __table_args__ = (
        db.Index("ix_material_movements_material_occurred", "material_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    material_id = db.Column(db.Integer, db.ForeignKey("materials.id", ondelete="CASCADE"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity_delta = db.Column(Quantity, nullable=False)
    balance_after = db.Column(Quantity, nullable=False)
    unit_cost = db.Column(db.Float, nullable=True)

    production_log_id = db.Column(
        db.Integer, db.ForeignKey("production_logs.id", ondelete="SET NULL"), nullable=True, index=True
    )
    product_code = db.Column(db.String(64), nullable=True)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    material = db.relationship(
        "Material",
        backref=db.backref("movements", lazy=True, cascade="all, delete-orphan", passive_deletes=True),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "materialId": self.material_id,
            "movementType": self.movement_type,
            "quantityDelta": quantity_json(self.quantity_delta),
            "balanceAfter": quantity_json(self.balance_after),
            "unitCost": self.unit_cost,
            "productionLogId": self.production_log_id,
            "productCode": self.product_code,
            "actorUserId": self.actor_user_id,
            "note": self.note,
            "occurredAt": to_utc_z(self.occurred_at),
        }
