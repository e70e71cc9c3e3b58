"""
Pytest fixtures for Haulbook backend tests.

Provides the app on an in-memory database, a per-test table wipe, the test
client, and small factories for the records most tests start from.
"""

import pytest

from haulbook import create_app
from haulbook.extensions import db
from haulbook.models import Customer, Driver, Product, TransferAccount
from haulbook.services import invoice_service, shipment_service
from haulbook.validation import LineItemInput


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


@pytest.fixture(scope='function')
def customer(db_session):
    record = Customer(name="Ferreteria Lopez", phone="5215550001", address="Av. Reforma 12")
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture(scope='function')
def driver(db_session):
    record = Driver(name="Juan Perez", phone="5215550002", is_active=True)
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture(scope='function')
def transfer_account(db_session):
    record = TransferAccount(name="Main checking")
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(name="Cement", number=..., category=...)."""
    counter = {"n": 0}

    def _make(name="Cement 50kg", number=None, category="Construction"):
        counter["n"] += 1
        record = Product(number=number or f"P-{counter['n']:03d}", category=category, name=name)
        db_session.add(record)
        db_session.commit()
        return record

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    return make_product()


@pytest.fixture(scope='function')
def make_shipment(db_session, driver):
    """Factory: make_shipment([(product, quantity, unit_price_cents), ...])."""
    def _make(lines, **kwargs):
        items = [
            LineItemInput(product_id=prod.id, quantity=quantity, price_cents=price)
            for prod, quantity, price in lines
        ]
        return shipment_service.create_shipment(driver.id, items, **kwargs)

    return _make


@pytest.fixture(scope='function')
def shipment(make_shipment, product):
    """Shipment carrying 10 units of `product` at 10.00 each."""
    return make_shipment([(product, 10, 1000)])


@pytest.fixture(scope='function')
def make_invoice(db_session, customer):
    """Factory: make_invoice(shipment, [(product, quantity, sale_price_cents or None), ...])."""
    def _make(shipment, lines, customer_id=None):
        items = [
            LineItemInput(product_id=prod.id, quantity=quantity, price_cents=price)
            for prod, quantity, price in lines
        ]
        return invoice_service.create_invoice(customer_id or customer.id, shipment.id, items)

    return _make
