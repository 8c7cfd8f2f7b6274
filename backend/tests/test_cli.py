"""
Flask CLI command tests (system / users / materials / maintenance groups).
"""

from datetime import timedelta

from conftest import overwrite_stock
from paintello.extensions import db
from paintello.models import Material, MaterialMovement, Product, SecurityEvent, User
from paintello.seed import SEED_MATERIALS, SEED_PRODUCTS
from paintello.time_utils import utcnow


def test_seed_is_idempotent(app, db_session, admin_user):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "seed"])
    assert result.exit_code == 0, result.output
    assert f"Seeded {len(SEED_MATERIALS)} materials and {len(SEED_PRODUCTS)} products" in result.output
    assert db.session.query(Material).count() == len(SEED_MATERIALS)
    assert db.session.query(Product).filter_by(created_by_user_id=admin_user.id).count() == len(SEED_PRODUCTS)

    # Opening stock is recorded as one movement per material
    assert db.session.query(MaterialMovement).count() == len(SEED_MATERIALS)

    again = runner.invoke(args=["system", "seed"])
    assert "Seeded 0 materials and 0 products" in again.output


def test_init_creates_default_users(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["system", "init"])
    assert result.exit_code == 0, result.output
    assert {u.role for u in db.session.query(User).all()} == {"admin", "manager", "operator"}

    again = runner.invoke(args=["system", "init"])
    assert "already exists" in again.output


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create",
        "--username", "painter",
        "--email", "painter@paintello.test",
        "--password", "Painter123",
        "--role", "operator",
    ])
    assert result.exit_code == 0, result.output
    assert "Created user: painter" in result.output

    listing = runner.invoke(args=["users", "list"])
    assert "painter@paintello.test" in listing.output


def test_users_create_rejects_weak_password(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create",
        "--username", "weak",
        "--email", "weak@paintello.test",
        "--password", "weak",
        "--role", "operator",
    ])
    assert result.exit_code != 0
    assert "at least 8 characters" in result.output


def test_low_stock_and_reconcile(app, db_session, cement):
    runner = app.test_cli_runner()

    assert "No materials below threshold." in runner.invoke(args=["materials", "low-stock"]).output
    assert "PASS" in runner.invoke(args=["materials", "reconcile"]).output

    overwrite_stock(cement.id, 50)

    assert "CEMENT-WHITE" in runner.invoke(args=["materials", "low-stock"]).output

    drift = runner.invoke(args=["materials", "reconcile"])
    assert "MISMATCH CEMENT-WHITE" in drift.output
    assert "diff=-950" in drift.output

    fixed = runner.invoke(args=["materials", "reconcile", "--fix"])
    assert "FIXED CEMENT-WHITE" in fixed.output
    assert "PASS" in runner.invoke(args=["materials", "reconcile"]).output


def test_cleanup_security_events(app, db_session):
    db.session.add_all([
        SecurityEvent(event_type="LOGIN_FAILED", success=False, occurred_at=utcnow() - timedelta(days=120)),
        SecurityEvent(event_type="LOGIN_FAILED", success=False, occurred_at=utcnow()),
    ])
    db.session.commit()

    result = app.test_cli_runner().invoke(args=["maintenance", "cleanup-security-events", "--retention-days", "90"])
    assert "Deleted 1 security events" in result.output
    assert db.session.query(SecurityEvent).count() == 1
