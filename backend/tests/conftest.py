"""
Pytest fixtures for shopcore tests.

Provides the test app (in-memory SQLite), a per-test clean database, and
two isolated shops with a customer and a vendor each.
"""

import pytest

from shopcore import create_app
from shopcore.extensions import db
from shopcore.models import PARTY_CUSTOMER, PARTY_VENDOR
from shopcore.services import party_service, shop_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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


@pytest.fixture(autouse=True)
def reset_app_state(app):
    """Tests may register audit sinks or flip config; undo that afterwards."""
    saved = dict(app.config)
    yield
    app.extensions.pop('shopcore.audit_sinks', None)
    app.config.clear()
    app.config.update(saved)


@pytest.fixture(scope='function')
def shop_a(db_session):
    """Create Shop A (first tenant)."""
    return shop_service.create_shop("Shop A - Lakshmi Jewellers", state_code="29")


@pytest.fixture(scope='function')
def shop_b(db_session):
    """Create Shop B (second tenant)."""
    return shop_service.create_shop("Shop B - Meena Gold", state_code="33")


@pytest.fixture(scope='function')
def customer_a(db_session, shop_a):
    """Create a customer in Shop A."""
    return party_service.create_party(shop_a.id, PARTY_CUSTOMER, {
        "name": "Ravi Kumar",
        "phone": "9876543210",
        "address": {"line1": "12 MG Road", "city": "Bengaluru"},
    })


@pytest.fixture(scope='function')
def customer_b(db_session, shop_b):
    """Create a customer in Shop B."""
    return party_service.create_party(shop_b.id, PARTY_CUSTOMER, {"name": "Anita Rao"})


@pytest.fixture(scope='function')
def vendor_a(db_session, shop_a):
    """Create a vendor in Shop A."""
    return party_service.create_party(shop_a.id, PARTY_VENDOR, {"name": "Bullion Traders"})


def invoice_payload(customer=None, /, **overrides) -> dict:
    """Helper to build a minimal valid invoice payload."""
    payload = {
        "type": "INVOICE",
        "date": "2026-10-19",
        "customerId": customer.id if customer is not None else None,
        "customer": {
            "name": customer.name if customer is not None else "Walk-in",
            "phone": "9876543210",
        },
        "items": [
            {"description": "Gold ring", "quantity": 2, "rate": 500.00, "taxRate": 3},
        ],
    }
    payload.update(overrides)
    return payload
