from __future__ import annotations

from ..extensions import db
from paintello.time_utils import to_utc_z


PRODUCT_CATEGORIES = ("statue", "relief", "ornament", "custom", "decoration")

# Ordered manufacturing pipeline. Transitions are not enforced; any status
# may follow any status.
PRODUCT_STATUSES = (
    "molding",
    "demolded",
    "drying",
    "ready_to_paint",
    "painting",
    "finished",
    "packaged",
    "shipped",
)


class Product(db.Model):
    """
    A unit, or batch of units, moving through the workshop pipeline.

    product_code is the business key production logs refer to. It is
    generated (P + six digits) when the caller does not supply one.

    quantity counts the physical pieces this record represents. A
    production entry with action "finished" moves pieces out of this
    record, so quantity can reach 0 but never goes below it.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.Index("ix_products_status_category_created", "status", "category", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(32), nullable=False, default="statue")
    status = db.Column(db.String(32), nullable=False, default="molding", index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)

    # Dimensions in cm, weight in kg
    height = db.Column(db.Float, nullable=False)
    width = db.Column(db.Float, nullable=False)
    depth = db.Column(db.Float, nullable=False)
    weight = db.Column(db.Float, nullable=True)

    location = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    target_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    created_by = db.relationship("User", foreign_keys=[created_by_user_id])

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.product_code!r} status={self.status!r} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productCode": self.product_code,
            "name": self.name,
            "category": self.category,
            "status": self.status,
            "quantity": self.quantity,
            "dimensions": {
                "height": self.height,
                "width": self.width,
                "depth": self.depth,
            },
            "weight": self.weight,
            "location": self.location,
            "notes": self.notes,
            "targetDate": to_utc_z(self.target_date),
            "createdBy": self.created_by.to_summary() if self.created_by else None,
            "versionId": self.version_id,
            "creationDate": to_utc_z(self.created_at),
            "lastUpdated": to_utc_z(self.last_updated),
        }
