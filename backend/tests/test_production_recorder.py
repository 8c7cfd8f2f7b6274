"""
Production log submission tests.

Verifies:
- A valid submission decrements stock exactly and moves product statuses
- Unknown products/materials and short stock persist nothing
- Quantities are aggregated per material code before the stock check
- "finished" entries move pieces out of the product record
- Corrections and deletes never replay or reverse side effects
"""

from decimal import Decimal

import pytest

from conftest import stock_of
from paintello.errors import InsufficientStock, ReferenceNotFound, ValidationError
from paintello.extensions import db
from paintello.models import MaterialMovement, Product, ProductionLog
from paintello.schemas import parse_production_submission
from paintello.services import material_service, production_service
from paintello.services.material_service import find_material_by_code
from paintello.services.production_service import ACTION_TO_STATUS, submit_production_log


def _submit(operator, products, materials=None, **extra):
    payload = {"shift": "morning", "products": products, "materialsUsed": materials or [], **extra}
    return submit_production_log(operator_id=operator.id, submission=parse_production_submission(payload))


def _log_count() -> int:
    return db.session.query(ProductionLog).count()


def _status(code: str) -> str:
    db.session.expire_all()
    return db.session.query(Product).filter_by(product_code=code).one().status


class TestSubmissionScenarios:

    def test_cement_white_short_then_ok(self, db_session, operator_user, cement, venus):
        with pytest.raises(InsufficientStock):
            _submit(
                operator_user,
                [{"productCode": "STATUE-VENUS-45", "action": "painted"}],
                [{"materialCode": "CEMENT-WHITE", "quantity": 1200}],
            )
        assert stock_of("CEMENT-WHITE") == 1000
        assert _log_count() == 0

        log = _submit(
            operator_user,
            [{"productCode": "STATUE-VENUS-45", "action": "painted"}],
            [{"materialCode": "CEMENT-WHITE", "quantity": 200}],
        )
        assert log.id is not None
        assert stock_of("CEMENT-WHITE") == 800

    def test_venus_painted_moves_to_painting(self, db_session, operator_user, venus):
        _submit(operator_user, [{"productCode": "STATUE-VENUS-45", "action": "painted", "quantity": 1}])
        assert _status("STATUE-VENUS-45") == "painting"

    @pytest.mark.parametrize("action,expected", sorted(ACTION_TO_STATUS.items()))
    def test_action_mapping(self, db_session, operator_user, venus, action, expected):
        _submit(operator_user, [{"productCode": "STATUE-VENUS-45", "action": action}])
        assert _status("STATUE-VENUS-45") == (expected or "ready_to_paint")


class TestAtomicity:

    def test_unknown_product_persists_nothing(self, db_session, operator_user, cement, venus):
        with pytest.raises(ReferenceNotFound) as exc:
            _submit(
                operator_user,
                [
                    {"productCode": "STATUE-VENUS-45", "action": "painted"},
                    {"productCode": "GHOST-1", "action": "painted"},
                ],
                [{"materialCode": "CEMENT-WHITE", "quantity": 10}],
            )
        assert str(exc.value) == "Product not found: GHOST-1"
        assert _log_count() == 0
        assert stock_of("CEMENT-WHITE") == 1000
        assert _status("STATUE-VENUS-45") == "ready_to_paint"

    def test_unknown_material(self, db_session, operator_user, venus):
        with pytest.raises(ReferenceNotFound) as exc:
            _submit(
                operator_user,
                [{"productCode": "STATUE-VENUS-45", "action": "primed"}],
                [{"materialCode": "unobtainium", "quantity": 1}],
            )
        assert str(exc.value) == "Material not found: UNOBTAINIUM"
        assert _log_count() == 0

    def test_inactive_material_counts_as_missing(self, db_session, operator_user, cement, venus):
        material_service.delete_material(material_id=cement.id)
        with pytest.raises(ReferenceNotFound):
            _submit(
                operator_user,
                [{"productCode": "STATUE-VENUS-45", "action": "primed"}],
                [{"materialCode": "CEMENT-WHITE", "quantity": 1}],
            )

    def test_split_usage_is_checked_in_total(self, db_session, operator_user, cement, venus, david):
        """Two 600kg rows for the same code must not pass a 1000kg stock check."""
        with pytest.raises(InsufficientStock) as exc:
            _submit(
                operator_user,
                [
                    {"productCode": "STATUE-VENUS-45", "action": "primed"},
                    {"productCode": "STATUE-DAVID-60", "action": "started"},
                ],
                [
                    {"materialCode": "CEMENT-WHITE", "quantity": 600, "productCode": "STATUE-VENUS-45"},
                    {"materialCode": "CEMENT-WHITE", "quantity": 600, "productCode": "STATUE-DAVID-60"},
                ],
            )
        assert exc.value.requested == 1200
        assert stock_of("CEMENT-WHITE") == 1000

    def test_decrement_failure_rolls_back_whole_log(self, db_session, operator_user, cement, venus, monkeypatch):
        """Stock drained after the advisory check: the conditional decrement undoes everything."""
        def _unchecked_stock_pass(submission):
            return {code: find_material_by_code(code) for code in submission.material_totals()}

        monkeypatch.setattr(production_service, "_stock_pass", _unchecked_stock_pass)

        with pytest.raises(InsufficientStock) as exc:
            _submit(
                operator_user,
                [{"productCode": "STATUE-VENUS-45", "action": "painted"}],
                [{"materialCode": "CEMENT-WHITE", "quantity": 5000}],
            )
        assert exc.value.requested == 5000
        assert _log_count() == 0
        assert _status("STATUE-VENUS-45") == "ready_to_paint"
        assert stock_of("CEMENT-WHITE") == 1000
        assert db.session.query(MaterialMovement).filter_by(movement_type="PRODUCTION").count() == 0

    def test_multi_material_decrements_and_movements(self, db_session, operator_user, cement, primer, venus):
        log = _submit(
            operator_user,
            [{"productCode": "STATUE-VENUS-45", "action": "primed", "timeSpent": 45}],
            [
                {"materialCode": "CEMENT-WHITE", "quantity": 12.5},
                {"materialCode": "PRIMER-ACRYLIC", "quantity": 3},
            ],
        )
        assert stock_of("CEMENT-WHITE") == Decimal("987.5")
        assert stock_of("PRIMER-ACRYLIC") == 197

        movements = db.session.query(MaterialMovement).filter_by(production_log_id=log.id).all()
        assert sorted(m.quantity_delta for m in movements) == [-12.5, -3]
        assert {m.movement_type for m in movements} == {"PRODUCTION"}

    def test_usage_snapshots_name_and_unit(self, db_session, operator_user, cement, venus):
        log = _submit(
            operator_user,
            [{"productCode": "STATUE-VENUS-45", "action": "primed"}],
            [{"materialCode": "CEMENT-WHITE", "quantity": 5}],
        )
        usage = log.to_dict()["materialsUsed"][0]
        assert usage["materialName"] == "Premium White Cement"
        assert usage["unit"] == "kg"


class TestEntryOrderingAndFinish:

    def test_last_entry_wins(self, db_session, operator_user, venus):
        _submit(
            operator_user,
            [
                {"productCode": "STATUE-VENUS-45", "action": "painted"},
                {"productCode": "STATUE-VENUS-45", "action": "packaged"},
                {"productCode": "STATUE-VENUS-45", "action": "quality_check"},
            ],
        )
        assert _status("STATUE-VENUS-45") == "packaged"

    def test_finished_reduces_quantity(self, db_session, operator_user, venus):
        _submit(operator_user, [{"productCode": "STATUE-VENUS-45", "action": "finished", "quantity": 4}])
        db.session.expire_all()
        product = db.session.query(Product).filter_by(product_code="STATUE-VENUS-45").one()
        assert product.quantity == 11
        assert product.status == "finished"

    def test_cannot_finish_more_than_in_progress(self, db_session, operator_user, cement, venus):
        with pytest.raises(ValidationError):
            _submit(
                operator_user,
                [
                    {"productCode": "STATUE-VENUS-45", "action": "finished", "quantity": 10},
                    {"productCode": "STATUE-VENUS-45", "action": "finished", "quantity": 10},
                ],
                [{"materialCode": "CEMENT-WHITE", "quantity": 1}],
            )
        assert stock_of("CEMENT-WHITE") == 1000
        assert _log_count() == 0


class TestProductionRoutes:

    def test_post_returns_201_with_log(self, client, operator_headers, cement, venus):
        resp = client.post(
            "/api/production",
            json={
                "shift": "afternoon",
                "workstation": "Painting Station 1",
                "products": [{"productCode": "STATUE-VENUS-45", "action": "painted", "quantity": 1, "timeSpent": 30}],
                "materialsUsed": [
                    {"materialCode": "CEMENT-WHITE", "quantity": 200},
                    {"materialCode": "", "quantity": ""},
                ],
                "notes": "Base coat",
            },
            headers=operator_headers,
        )
        assert resp.status_code == 201
        body = resp.json
        assert body["success"] is True
        assert body["data"]["shift"] == "afternoon"
        assert body["data"]["operator"]["username"] == "operator"
        assert len(body["data"]["materialsUsed"]) == 1
        assert stock_of("CEMENT-WHITE") == 800

    def test_log_alias_route(self, client, operator_headers, venus):
        resp = client.post(
            "/api/production/log",
            json={"products": [{"productCode": "STATUE-VENUS-45", "action": "dried"}]},
            headers=operator_headers,
        )
        assert resp.status_code == 201
        assert resp.json["data"]["shift"] == "morning"

    @pytest.mark.parametrize("payload,message", [
        ({"products": []}, "At least one product entry is required"),
        ({"products": [{"productCode": "STATUE-VENUS-45", "action": "glazed"}]}, "action must be one of"),
        ({"products": [{"productCode": "STATUE-VENUS-45", "action": "painted", "quantity": 0}]}, "quantity must be >= 1"),
        ({"products": [{"productCode": "STATUE-VENUS-45", "action": "painted", "quantity": 1.5}]}, "must be an integer"),
        ({"shift": "evening", "products": [{"productCode": "STATUE-VENUS-45", "action": "painted"}]}, "shift must be one of"),
        ({"efficiency": 120, "products": [{"productCode": "STATUE-VENUS-45", "action": "painted"}]}, "efficiency must be between"),
    ])
    def test_shape_errors(self, client, operator_headers, venus, payload, message):
        resp = client.post("/api/production", json=payload, headers=operator_headers)
        assert resp.status_code == 400
        assert resp.json["success"] is False
        assert message in resp.json["error"]
        assert _log_count() == 0

    def test_unknown_product_is_400(self, client, operator_headers):
        resp = client.post(
            "/api/production",
            json={"products": [{"productCode": "GHOST-1", "action": "painted"}]},
            headers=operator_headers,
        )
        assert resp.status_code == 400
        assert resp.json == {"success": False, "error": "Product not found: GHOST-1"}

    def test_correction_has_no_side_effects(self, client, operator_headers, manager_headers, cement, venus):
        created = client.post(
            "/api/production",
            json={
                "products": [{"productCode": "STATUE-VENUS-45", "action": "finished", "quantity": 2}],
                "materialsUsed": [{"materialCode": "CEMENT-WHITE", "quantity": 100}],
            },
            headers=operator_headers,
        ).json["data"]

        resp = client.put(
            f"/api/production/{created['id']}",
            json={"notes": "Recount", "defects": [{"productCode": "STATUE-VENUS-45", "defectType": "crack"}]},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json["data"]["notes"] == "Recount"
        assert resp.json["data"]["defects"][0]["defectType"] == "crack"

        resp = client.put(
            f"/api/production/{created['id']}",
            json={"materialsUsed": []},
            headers=manager_headers,
        )
        assert resp.status_code == 400

        resp = client.delete(f"/api/production/{created['id']}", headers=manager_headers)
        assert resp.status_code == 200
        assert stock_of("CEMENT-WHITE") == 900
        assert _status("STATUE-VENUS-45") == "finished"

    def test_operator_cannot_correct(self, client, operator_headers, venus):
        created = client.post(
            "/api/production",
            json={"products": [{"productCode": "STATUE-VENUS-45", "action": "painted"}]},
            headers=operator_headers,
        ).json["data"]
        resp = client.delete(f"/api/production/{created['id']}", headers=operator_headers)
        assert resp.status_code == 403

    def test_list_and_search(self, client, operator_headers, venus, david):
        client.post(
            "/api/production",
            json={"products": [{"productCode": "STATUE-VENUS-45", "action": "painted"}], "workstation": "Bench 7"},
            headers=operator_headers,
        )
        client.post(
            "/api/production",
            json={"products": [{"productCode": "STATUE-DAVID-60", "action": "demolded"}], "shift": "night"},
            headers=operator_headers,
        )

        listing = client.get("/api/production?shift=night", headers=operator_headers)
        assert listing.status_code == 200
        assert listing.json["total"] == 1
        assert listing.json["data"][0]["products"][0]["productCode"] == "STATUE-DAVID-60"

        by_product = client.get("/api/production/logs?productCode=STATUE-VENUS-45", headers=operator_headers)
        assert by_product.json["total"] == 1

        found = client.get("/api/production/search?q=bench", headers=operator_headers)
        assert found.json["count"] == 1

        missing_q = client.get("/api/production/search", headers=operator_headers)
        assert missing_q.status_code == 400

    def test_get_missing_log_is_404(self, client, operator_headers):
        resp = client.get("/api/production/999", headers=operator_headers)
        assert resp.status_code == 404
