"""
Product lifecycle tests: creation, validation, status changes, history.
"""

import re

import pytest

from paintello.errors import ConflictError, ValidationError
from paintello.extensions import db
from paintello.models import Product
from paintello.services import product_service


def _create(client, headers, **overrides):
    body = {
        "name": "Angel Relief",
        "category": "relief",
        "dimensions": {"height": 30, "width": 20, "depth": 4},
        "weight": 1.5,
    }
    body.update(overrides)
    return client.post("/api/products", json=body, headers=headers)


class TestProductCreation:

    def test_generated_code(self, client, manager_headers):
        resp = _create(client, manager_headers)
        assert resp.status_code == 201
        data = resp.json["data"]
        assert re.fullmatch(r"P\d{6}(-\d+)?", data["productCode"])
        assert data["status"] == "molding"
        assert data["quantity"] == 1
        assert data["dimensions"] == {"height": 30, "width": 20, "depth": 4}
        assert data["createdBy"]["username"] == "manager"

    def test_generated_codes_do_not_collide(self, db_session):
        first = product_service.create_product(patch={"name": "A", "height": 1, "width": 1, "depth": 1})
        second = product_service.create_product(patch={"name": "B", "height": 1, "width": 1, "depth": 1})
        assert first.product_code != second.product_code

    def test_explicit_code_must_be_unique(self, client, manager_headers, venus):
        resp = _create(client, manager_headers, productCode="STATUE-VENUS-45")
        assert resp.status_code == 409

    @pytest.mark.parametrize("overrides,message", [
        ({"dimensions": {"height": 0, "width": 20, "depth": 4}}, "height must be >"),
        ({"weight": 0.05}, "weight must be >= 0.1"),
        ({"quantity": 0}, "quantity must be >= 1"),
        ({"category": "vase"}, "category must be one of"),
        ({"status": "melted"}, "status must be one of"),
        ({"dimensions": {"height": 1, "width": 1, "depth": 1, "radius": 2}}, "dimensions.radius"),
    ])
    def test_validation(self, client, manager_headers, overrides, message):
        resp = _create(client, manager_headers, **overrides)
        assert resp.status_code == 400
        assert message in resp.json["error"]

    def test_missing_required_fields(self, client, manager_headers):
        resp = client.post("/api/products", json={"name": "Bare"}, headers=manager_headers)
        assert resp.status_code == 400
        assert resp.json["error"].startswith("Missing required fields")

    def test_code_is_immutable(self, db_session, venus):
        with pytest.raises(ValidationError):
            product_service.update_product(product_id=venus.id, patch={"product_code": "OTHER"})

        product = product_service.update_product(product_id=venus.id, patch={"name": "Venus Statue 45cm (gold)"})
        assert product.product_code == "STATUE-VENUS-45"


class TestProductStatus:

    def test_any_status_may_follow_any_status(self, client, manager_headers, venus):
        for status in ("shipped", "molding", "painting"):
            resp = client.patch(
                f"/api/products/{venus.id}/status", json={"status": status}, headers=manager_headers
            )
            assert resp.status_code == 200
            assert resp.json["data"]["status"] == status

    def test_unknown_status_rejected(self, client, manager_headers, venus):
        resp = client.patch(
            f"/api/products/{venus.id}/status", json={"status": "melted"}, headers=manager_headers
        )
        assert resp.status_code == 400

    def test_missing_status(self, client, manager_headers, venus):
        resp = client.patch(f"/api/products/{venus.id}/status", json={}, headers=manager_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Status is required"

    def test_stale_version_conflicts(self, db_session, venus):
        version = venus.version_id
        product_service.set_status(product_id=venus.id, status="painting", expected_version=version)

        with pytest.raises(ConflictError):
            product_service.set_status(product_id=venus.id, status="finished", expected_version=version)

        db.session.expire_all()
        assert db.session.get(Product, venus.id).status == "painting"

    def test_stale_version_route_returns_409(self, client, manager_headers, venus):
        stale = venus.version_id
        client.patch(f"/api/products/{venus.id}/status", json={"status": "painting"}, headers=manager_headers)
        resp = client.patch(
            f"/api/products/{venus.id}/status",
            json={"status": "finished", "versionId": stale},
            headers=manager_headers,
        )
        assert resp.status_code == 409

    def test_batch_status(self, client, manager_headers, venus, david):
        resp = client.post(
            "/api/products/batch/status",
            json={"productIds": [venus.id, david.id, 9999], "status": "packaged"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json["data"]["updated"] == 2

        listing = client.get("/api/products/status/packaged", headers=manager_headers)
        assert listing.json["count"] == 2

    def test_batch_requires_ids(self, client, manager_headers):
        resp = client.post(
            "/api/products/batch/status", json={"productIds": [], "status": "packaged"}, headers=manager_headers
        )
        assert resp.status_code == 400


class TestProductQueries:

    def test_list_filters_and_pagination(self, client, operator_headers, venus, david):
        resp = client.get("/api/products?status=molding", headers=operator_headers)
        assert resp.status_code == 200
        assert [p["productCode"] for p in resp.json["data"]] == ["STATUE-DAVID-60"]

        resp = client.get("/api/products?limit=1&page=2", headers=operator_headers)
        assert resp.json["total"] == 2
        assert resp.json["pages"] == 2
        assert resp.json["count"] == 1

    def test_list_rejects_unknown_category(self, client, operator_headers, venus, david):
        resp = client.get("/api/products?category=vase", headers=operator_headers)
        assert resp.status_code == 400
        assert resp.json["error"].startswith("category must be one of: statue")

        resp = client.get("/api/products?category=statue", headers=operator_headers)
        assert resp.status_code == 200
        assert resp.json["total"] == 2

    def test_stats(self, db_session, venus, david):
        stats = product_service.product_stats()
        assert stats["totalProducts"] == 2
        assert [row["status"] for row in stats["byStatus"]] == ["molding", "ready_to_paint"]
        assert stats["finishedThisWeek"] == 0

    def test_detail_includes_history(self, client, operator_headers, venus):
        client.post(
            "/api/production",
            json={"products": [{"productCode": "STATUE-VENUS-45", "action": "primed"}]},
            headers=operator_headers,
        )
        resp = client.get(f"/api/products/{venus.id}", headers=operator_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["status"] == "painting"
        assert len(resp.json["data"]["history"]) == 1

    def test_missing_product_is_404(self, client, operator_headers):
        resp = client.get("/api/products/424242", headers=operator_headers)
        assert resp.status_code == 404

    def test_operator_may_delete_with_manage_products(self, client, operator_headers, venus):
        resp = client.delete(f"/api/products/{venus.id}", headers=operator_headers)
        assert resp.status_code == 200
