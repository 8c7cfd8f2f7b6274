# Overview: Sample workshop data loaded by `flask system seed`.

from __future__ import annotations

from .extensions import db
from .models import Material, Product, User
from .services import material_service, product_service

DEFAULT_USERS = [
    # (username, email, role, password, full name)
    ("admin", "admin@paintello.local", "admin", "Admin123!", "System Administrator"),
    ("manager", "manager@paintello.local", "manager", "Manager123!", "Workshop Manager"),
    ("operator", "operator@paintello.local", "operator", "Operator123!", "Production Operator"),
]

SEED_MATERIALS = [
    {
        "material_code": "CEMENT-WHITE",
        "name": "Premium White Cement",
        "type": "cement",
        "current_stock": 1000.0,
        "unit": "kg",
        "min_threshold": 100.0,
        "unit_cost": 0.45,
        "supplier": "Cimentex Morocco",
        "location": "Storage Zone A1",
    },
    {
        "material_code": "GYPSUM-POP",
        "name": "Plaster of Paris Gypsum",
        "type": "gypsum",
        "current_stock": 500.0,
        "unit": "kg",
        "min_threshold": 50.0,
        "unit_cost": 0.30,
        "supplier": "GypsumPro Casablanca",
        "location": "Storage Zone B2",
    },
    {
        "material_code": "SIKALATEX",
        "name": "Sikalatex Additive",
        "type": "additive",
        "current_stock": 100.0,
        "unit": "L",
        "min_threshold": 10.0,
        "unit_cost": 12.50,
        "supplier": "Sika Morocco",
        "location": "Chemical Storage",
    },
    {
        "material_code": "PIGMENT-WHITE",
        "name": "White Pigment Powder",
        "type": "color",
        "current_stock": 50.0,
        "unit": "kg",
        "min_threshold": 5.0,
        "unit_cost": 8.75,
        "supplier": "ColorMax Maroc",
        "location": "Color Storage",
    },
    {
        "material_code": "PRIMER-ACRYLIC",
        "name": "Acrylic Primer",
        "type": "primer",
        "current_stock": 200.0,
        "unit": "L",
        "min_threshold": 20.0,
        "unit_cost": 15.00,
        "supplier": "PaintPro Rabat",
        "location": "Primer Storage",
    },
    {
        "material_code": "VARNISH-MATTE",
        "name": "Matte Varnish Finish",
        "type": "finish",
        "current_stock": 150.0,
        "unit": "L",
        "min_threshold": 15.0,
        "unit_cost": 18.50,
        "supplier": "FinishMaster Casablanca",
        "location": "Finishing Storage",
    },
]

SEED_PRODUCTS = [
    {
        "product_code": "STATUE-VENUS-45",
        "name": "Venus Statue 45cm",
        "category": "statue",
        "status": "ready_to_paint",
        "quantity": 15,
        "height": 45.0, "width": 15.0, "depth": 15.0,
        "weight": 3.2,
        "location": "Shelf A3",
        "notes": "Classical statue, requires careful painting",
    },
    {
        "product_code": "STATUE-DAVID-60",
        "name": "David Statue 60cm",
        "category": "statue",
        "status": "molding",
        "quantity": 8,
        "height": 60.0, "width": 20.0, "depth": 20.0,
        "weight": 5.5,
        "location": "Molding Area 2",
        "notes": "Large statue, requires 48h drying time",
    },
    {
        "product_code": "RELIEF-FLORAL-60x40",
        "name": "Floral Wall Relief 60x40cm",
        "category": "relief",
        "status": "finished",
        "quantity": 6,
        "height": 60.0, "width": 40.0, "depth": 5.0,
        "weight": 2.0,
        "location": "Finished Goods Area",
        "notes": "Ready for shipping",
    },
    {
        "product_code": "ORN-CORINTHIAN",
        "name": "Corinthian Column Ornament",
        "category": "ornament",
        "status": "painting",
        "quantity": 12,
        "height": 30.0, "width": 10.0, "depth": 10.0,
        "weight": 1.8,
        "location": "Painting Station 1",
        "notes": "Gold leaf finish required",
    },
    {
        "product_code": "CUSTOM-LOGO-30",
        "name": "Custom Logo Plaque 30cm",
        "category": "custom",
        "status": "demolded",
        "quantity": 5,
        "height": 30.0, "width": 30.0, "depth": 3.0,
        "weight": 1.2,
        "location": "Drying Rack 3",
        "notes": "Client: ABC Company, deliver by Friday",
    },
]


def seed_catalog(*, created_by: User | None = None) -> tuple[int, int]:
    """
    Insert the sample materials and products that are missing.

    Existing codes are left alone. Returns (materials_created, products_created).
    Opening stock goes through the ledger so movements reconcile.
    """
    materials = 0
    for row in SEED_MATERIALS:
        if db.session.query(Material.id).filter_by(material_code=row["material_code"]).first():
            continue
        material_service.create_material(patch=dict(row), actor_user_id=created_by.id if created_by else None)
        materials += 1

    products = 0
    for row in SEED_PRODUCTS:
        if db.session.query(Product.id).filter_by(product_code=row["product_code"]).first():
            continue
        product_service.create_product(patch=dict(row), created_by_user_id=created_by.id if created_by else None)
        products += 1

    return materials, products
