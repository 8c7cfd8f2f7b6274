from __future__ import annotations

from ..extensions import db
from paintello.quantities import Quantity, quantity_json
from paintello.time_utils import to_utc_z


SHIFTS = ("morning", "afternoon", "night")

LOG_ACTIONS = (
    "started",
    "demolded",
    "dried",
    "primed",
    "painted",
    "finished",
    "packaged",
    "quality_check",
)


class ProductionLog(db.Model):
    """
    One operator's submission for one shift.

    Created atomically by production_service.submit_production_log together
    with the product status changes and stock decrements it implies. Later
    administrative edits and deletes touch only this record and its
    children; they never replay or reverse stock/status side effects.
    """
    __tablename__ = "production_logs"
    __table_args__ = (
        db.Index("ix_production_logs_date_operator", "date", "operator_id"),
        db.CheckConstraint(
            "efficiency IS NULL OR (efficiency >= 0 AND efficiency <= 100)",
            name="ck_production_logs_efficiency_range",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Server-assigned business time of the submission
    date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    shift = db.Column(db.String(16), nullable=False, default="morning")

    efficiency = db.Column(db.Float, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    workstation = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    operator = db.relationship("User", foreign_keys=[operator_id])

    entries = db.relationship(
        "ProductionLogEntry",
        back_populates="log",
        order_by="ProductionLogEntry.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    materials_used = db.relationship(
        "ProductionMaterialUsage",
        back_populates="log",
        order_by="ProductionMaterialUsage.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    defects = db.relationship(
        "ProductionDefect",
        back_populates="log",
        order_by="ProductionDefect.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_utc_z(self.date),
            "operator": self.operator.to_summary() if self.operator else None,
            "shift": self.shift,
            "products": [e.to_dict() for e in self.entries],
            "materialsUsed": [m.to_dict() for m in self.materials_used],
            "defects": [d.to_dict() for d in self.defects],
            "efficiency": self.efficiency,
            "notes": self.notes,
            "workstation": self.workstation,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class ProductionLogEntry(db.Model):
    """Product-work line: which product, what was done, how many, how long."""
    __tablename__ = "production_log_entries"
    __table_args__ = (
        db.UniqueConstraint("log_id", "position", name="uq_production_log_entries_position"),
        db.Index("ix_production_log_entries_code_action", "product_code", "action"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    log_id = db.Column(db.Integer, db.ForeignKey("production_logs.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_code = db.Column(db.String(64), nullable=False, index=True)
    action = db.Column(db.String(32), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    time_spent = db.Column(db.Float, nullable=True)  # minutes
    notes = db.Column(db.Text, nullable=True)

    log = db.relationship("ProductionLog", back_populates="entries")

    def to_dict(self) -> dict:
        return {
            "productCode": self.product_code,
            "action": self.action,
            "quantity": self.quantity,
            "timeSpent": self.time_spent,
            "notes": self.notes,
        }


class ProductionMaterialUsage(db.Model):
    """Material consumed by a submission. Name and unit are snapshots."""
    __tablename__ = "production_material_usages"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    log_id = db.Column(db.Integer, db.ForeignKey("production_logs.id", ondelete="CASCADE"), nullable=False, index=True)

    material_code = db.Column(db.String(64), nullable=False, index=True)
    material_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(Quantity, nullable=False)
    product_code = db.Column(db.String(64), nullable=True)
    unit = db.Column(db.String(16), nullable=True)

    log = db.relationship("ProductionLog", back_populates="materials_used")

    def to_dict(self) -> dict:
        return {
            "materialCode": self.material_code,
            "materialName": self.material_name,
            "quantity": quantity_json(self.quantity),
            "productCode": self.product_code,
            "unit": self.unit,
        }


class ProductionDefect(db.Model):
    __tablename__ = "production_defects"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    log_id = db.Column(db.Integer, db.ForeignKey("production_logs.id", ondelete="CASCADE"), nullable=False, index=True)

    product_code = db.Column(db.String(64), nullable=True)
    defect_type = db.Column(db.String(128), nullable=True)
    description = db.Column(db.Text, nullable=True)
    resolved = db.Column(db.Boolean, nullable=False, default=False)
    resolution_notes = db.Column(db.Text, nullable=True)

    log = db.relationship("ProductionLog", back_populates="defects")

    def to_dict(self) -> dict:
        return {
            "productCode": self.product_code,
            "defectType": self.defect_type,
            "description": self.description,
            "resolved": self.resolved,
            "resolutionNotes": self.resolution_notes,
        }
