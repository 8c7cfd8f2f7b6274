"""
Pytest fixtures for Paintello backend tests.

Provides test database setup, role-scoped users, seeded catalog and test client.
"""

from decimal import Decimal

import pytest
from sqlalchemy import update

from paintello import create_app
from paintello.extensions import db
from paintello.models import Material, Product, User
from paintello.services.auth_service import hash_password


PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_LOG_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(session, username: str, role: str) -> User:
    user = User(
        username=username,
        email=f"{username}@paintello.test",
        password_hash=hash_password(PASSWORD),
        role=role,
        full_name=username.title(),
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "admin", "admin")


@pytest.fixture(scope='function')
def manager_user(db_session):
    return _make_user(db_session, "manager", "manager")


@pytest.fixture(scope='function')
def operator_user(db_session):
    return _make_user(db_session, "operator", "operator")


@pytest.fixture(scope='function')
def cement(db_session):
    """CEMENT-WHITE with 1000kg on hand, created through the ledger."""
    from paintello.services import material_service
    return material_service.create_material(patch={
        "material_code": "CEMENT-WHITE",
        "name": "Premium White Cement",
        "type": "cement",
        "current_stock": 1000.0,
        "unit": "kg",
        "min_threshold": 100.0,
        "unit_cost": 0.45,
    })


@pytest.fixture(scope='function')
def primer(db_session):
    from paintello.services import material_service
    return material_service.create_material(patch={
        "material_code": "PRIMER-ACRYLIC",
        "name": "Acrylic Primer",
        "type": "primer",
        "current_stock": 200.0,
        "unit": "L",
        "min_threshold": 20.0,
        "unit_cost": 15.0,
    })


@pytest.fixture(scope='function')
def venus(db_session):
    """STATUE-VENUS-45, 15 pieces waiting for paint."""
    product = Product(
        product_code="STATUE-VENUS-45",
        name="Venus Statue 45cm",
        category="statue",
        status="ready_to_paint",
        quantity=15,
        height=45.0,
        width=15.0,
        depth=15.0,
        weight=3.2,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def david(db_session):
    product = Product(
        product_code="STATUE-DAVID-60",
        name="David Statue 60cm",
        category="statue",
        status="molding",
        quantity=8,
        height=60.0,
        width=20.0,
        depth=20.0,
    )
    db_session.add(product)
    db_session.commit()
    return product


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture(scope='function')
def manager_headers(client, manager_user):
    return auth_headers(get_auth_token(client, manager_user.username))


@pytest.fixture(scope='function')
def operator_headers(client, operator_user):
    return auth_headers(get_auth_token(client, operator_user.username))


def stock_of(code: str) -> Decimal:
    db.session.expire_all()
    return db.session.query(Material).filter_by(material_code=code).one().current_stock


def overwrite_stock(material_id: int, quantity) -> None:
    """Change stock behind the service layer, the way a concurrent writer would."""
    db.session.execute(
        update(Material).where(Material.id == material_id).values(current_stock=quantity)
    )
    db.session.commit()
