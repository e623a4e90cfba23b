"""
Pytest fixtures for the billing backend tests.

Provides the test app (in-memory SQLite), per-test table wipe, owners with
business profiles, stocked products and auth header helpers.
"""

import pytest
from vyapaar import create_app
from vyapaar.config import TestConfig
from vyapaar.extensions import db
from vyapaar.models import BusinessProfile, Product
from vyapaar.services.auth_service import create_user
from vyapaar.services.session_service import create_session

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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


def make_owner(db_session, email: str, business: str, timezone: str = "UTC"):
    user = create_user(email, PASSWORD, rounds=4)
    db_session.add(BusinessProfile(owner_id=user.id, name=business, phone="98450 00000", timezone=timezone))
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner(db_session):
    """Owner with a business profile named "Sharma Stores"."""
    return make_owner(db_session, "owner@sharma.test", "Sharma Stores")


@pytest.fixture(scope='function')
def other_owner(db_session):
    """Second owner; nothing of theirs may leak to `owner`."""
    return make_owner(db_session, "owner@verma.test", "Verma Traders")


def make_product(db_session, owner_id: int, name: str, stock: int, price_cents: int = 10000, **kwargs):
    product = Product(
        owner_id=owner_id,
        name=name,
        price_cents=price_cents,
        cost_price_cents=kwargs.pop("cost_price_cents", price_cents // 2),
        quantity_in_stock=stock,
        **kwargs,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product(db_session, owner):
    """Product with 3 units in stock at 100.00."""
    return make_product(db_session, owner.id, "Rice 5kg", 3, category="Grocery", sku="RICE-5")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def owner_headers(owner):
    _, token = create_session(owner.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def other_headers(other_owner):
    _, token = create_session(other_owner.id)
    return auth_headers(token)
