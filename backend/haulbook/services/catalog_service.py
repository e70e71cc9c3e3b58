# backend/haulbook/services/catalog_service.py
"""
Reference data: customers, drivers, products and transfer accounts.

These are flat records with no derived state. The only rule beyond field
validation is referential: a record that shipments or invoices point at
cannot be deleted.
"""
from __future__ import annotations

from sqlalchemy import func

from ..errors import IllegalStateError, NotFoundError
from ..extensions import db
from ..models import (
    Customer,
    Driver,
    Invoice,
    InvoiceLine,
    Product,
    Shipment,
    ShipmentLine,
    TransferAccount,
)
from .entity_store import EntityStore

CUSTOMER_MUTABLE_FIELDS = {"name", "phone", "address"}
DRIVER_MUTABLE_FIELDS = {"name", "phone", "address", "is_active"}
PRODUCT_MUTABLE_FIELDS = {"number", "category", "name"}
TRANSFER_ACCOUNT_MUTABLE_FIELDS = {"name"}

customers = EntityStore(Customer, mutable_fields=CUSTOMER_MUTABLE_FIELDS)
drivers = EntityStore(Driver, mutable_fields=DRIVER_MUTABLE_FIELDS)
products = EntityStore(Product, mutable_fields=PRODUCT_MUTABLE_FIELDS)
transfer_accounts = EntityStore(TransferAccount, mutable_fields=TRANSFER_ACCOUNT_MUTABLE_FIELDS)

# Label used in "<label> not found" messages
LABELS = {
    Customer: "Customer",
    Driver: "Driver",
    Product: "Product",
    TransferAccount: "Transfer account",
}


def _label(store: EntityStore) -> str:
    return LABELS.get(store.model, store.model.__name__)


def get_record(store: EntityStore, record_id: int):
    record = store.find_by_id(record_id)
    if record is None:
        raise NotFoundError(f"{_label(store)} not found")
    return record


def list_records(store: EntityStore, filters: dict | None = None) -> list:
    return store.find(filters)


def create_record(store: EntityStore, fields: dict):
    record = store.create(fields)
    db.session.commit()
    return record


def update_record(store: EntityStore, record_id: int, patch: dict):
    record = store.update_by_id(record_id, patch)
    if record is None:
        raise NotFoundError(f"{_label(store)} not found")
    db.session.commit()
    return record


invoices = EntityStore(Invoice)
invoice_lines = EntityStore(InvoiceLine)
shipments = EntityStore(Shipment)
shipment_lines = EntityStore(ShipmentLine)

# (referencing store, foreign key, holder name) per reference model
REFERENCES = {
    Customer: [(invoices, "customer_id", "invoices")],
    Driver: [(shipments, "driver_id", "shipments")],
    Product: [
        (shipment_lines, "product_id", "shipments"),
        (invoice_lines, "product_id", "invoices"),
    ],
}


def _referenced_by(store: EntityStore, record_id: int) -> str | None:
    """Name of the documents that still point at the record, if any."""
    for holder_store, key, holder in REFERENCES.get(store.model, ()):
        if holder_store.exists({key: record_id}):
            return holder
    return None


def delete_record(store: EntityStore, record_id: int) -> None:
    if store.find_by_id(record_id) is None:
        raise NotFoundError(f"{_label(store)} not found")

    holder = _referenced_by(store, record_id)
    if holder:
        raise IllegalStateError(f"Cannot delete {_label(store).lower()} referenced by {holder}")

    store.delete_by_id(record_id)
    db.session.commit()


def list_drivers(active_only: bool = False) -> list[Driver]:
    return drivers.find({"is_active": True} if active_only else None)


def toggle_driver_status(driver_id: int) -> Driver:
    driver = get_record(drivers, driver_id)
    driver.is_active = not driver.is_active
    db.session.commit()
    return driver


def list_products(category: str | None = None) -> list[Product]:
    """Products, optionally filtered by a case-insensitive category substring."""
    query = db.session.query(Product)
    if category:
        query = query.filter(func.lower(Product.category).contains(category.lower()))
    return query.order_by(Product.id.desc()).all()
