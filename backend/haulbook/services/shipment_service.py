# Overview: Service-layer operations for shipments (cargo loads and their product lines).

"""
Shipment Service

A shipment is created with an explicit product list; every line copies the
product's number/category/name and starts with stock == quantity. Later
edits keep existing snapshots, may not cut a product's quantity below what
invoices reserve, and finish with a stock recompute.
"""

from __future__ import annotations

from flask import current_app

from ..errors import IllegalStateError, InsufficientStockError, InvalidReferenceError, NotFoundError
from ..extensions import db
from ..models import Driver, Invoice, Product, Shipment, ShipmentLine, SHIPMENT_STATUSES
from ..time_utils import coerce_datetime
from ..validation import LineItemInput, ValidationError
from .concurrency import lock_for_update, run_with_retry
from .entity_store import EntityStore
from .numbering_service import next_document_number
from .stock_service import (
    available_stock,
    compute_reserved,
    recompute_and_persist,
    validate_quantity_reduction,
)

SHIPMENT_DOCUMENT_TYPE = "SHIPMENT"
SHIPMENT_HEADER_FIELDS = {
    "driver_id",
    "date_shipment",
    "delivery_expenses_cents",
    "products_expenses_cents",
    "status",
}

drivers = EntityStore(Driver)
products = EntityStore(Product)
invoices = EntityStore(Invoice)
shipments = EntityStore(Shipment)


def _latest_shipment_number() -> str | None:
    latest = shipments.find_one()
    return latest.shipment_number if latest else None


def _require_driver(driver_id: int) -> Driver:
    driver = drivers.find_by_id(driver_id)
    if driver is None:
        raise InvalidReferenceError("Driver not found")
    return driver


def _resolve_products(items: list[LineItemInput]) -> dict[int, Product]:
    if not items:
        raise ValidationError("Driver and products are required")

    product_ids = [item.product_id for item in items]
    if len(set(product_ids)) != len(product_ids):
        raise ValidationError("Each product may appear only once in a shipment")

    found = {product.id: product for product in products.find({"id": product_ids})}
    if len(found) != len(product_ids):
        raise InvalidReferenceError("One or more products not found")
    return found


def _validate_status(status: str) -> None:
    if status not in SHIPMENT_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(SHIPMENT_STATUSES)}")


def _new_line(product: Product, item: LineItemInput, position: int) -> ShipmentLine:
    return ShipmentLine(
        product_id=product.id,
        position=position,
        number=product.number,
        category=product.category,
        name=product.name,
        quantity=item.quantity,
        unit_price_cents=item.price_cents,
        subtotal_cents=item.quantity * item.price_cents,
        stock=item.quantity,
    )


def create_shipment(
    driver_id: int,
    lines: list[LineItemInput],
    *,
    delivery_expenses_cents: int = 0,
    products_expenses_cents: int = 0,
    date_shipment=None,
    status: str = "pending",
) -> Shipment:
    """
    Create a shipment. The server assigns shipment_number and stock.

    Raises:
        ValidationError: no lines, a repeated product, or an unknown status
        InvalidReferenceError: driver or a product does not exist
    """
    _validate_status(status)

    def _op():
        _require_driver(driver_id)
        found = _resolve_products(lines)

        shipment_lines = [
            _new_line(found[item.product_id], item, position)
            for position, item in enumerate(lines)
        ]
        shipment_number = next_document_number(
            document_type=SHIPMENT_DOCUMENT_TYPE,
            prefix=current_app.config["SHIPMENT_NUMBER_PREFIX"],
            latest_number=_latest_shipment_number,
            pad=current_app.config["DOCUMENT_NUMBER_PAD"],
        )

        shipment = Shipment(
            shipment_number=shipment_number,
            driver_id=driver_id,
            date_shipment=coerce_datetime(date_shipment),
            delivery_expenses_cents=delivery_expenses_cents,
            products_expenses_cents=products_expenses_cents,
            status=status,
            lines=shipment_lines,
        )
        db.session.add(shipment)
        db.session.commit()
        return shipment

    return run_with_retry(_op)


def _replace_lines(shipment: Shipment, items: list[LineItemInput], found: dict[int, Product]) -> None:
    """
    Apply a new line set in place: matching products are updated (their
    snapshot kept), new products appended, missing ones removed.
    """
    reserved = compute_reserved(shipment.id)
    current = {line.product_id: line for line in shipment.lines}
    wanted = {item.product_id for item in items}

    for line in list(shipment.lines):
        if line.product_id not in wanted:
            shipment.lines.remove(line)

    for position, item in enumerate(items):
        line = current.get(item.product_id)
        if line is None:
            line = _new_line(found[item.product_id], item, position)
            shipment.lines.append(line)
        else:
            line.position = position
            line.quantity = item.quantity
            line.unit_price_cents = item.price_cents
            line.subtotal_cents = item.quantity * item.price_cents
        line.stock = available_stock(line, reserved)


def update_shipment(shipment_id: int, patch: dict) -> Shipment:
    """
    Edit shipment header fields and/or replace its lines.

    Raises:
        NotFoundError: shipment does not exist
        InvalidReferenceError: driver or a product does not exist
        InsufficientStockError: a line would drop below invoiced quantities
    """
    unknown = set(patch) - SHIPMENT_HEADER_FIELDS - {"lines"}
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")
    if "status" in patch:
        _validate_status(patch["status"])

    def _op():
        shipment = lock_for_update(db.session.query(Shipment).filter_by(id=shipment_id)).first()
        if shipment is None:
            raise NotFoundError("Shipment not found")

        if "driver_id" in patch:
            _require_driver(patch["driver_id"])

        found = None
        if "lines" in patch:
            found = _resolve_products(patch["lines"])
            errors = validate_quantity_reduction(shipment.id, patch["lines"])
            if errors:
                raise InsufficientStockError(
                    errors, message="Shipment quantities are below invoiced quantities"
                )

        for key in SHIPMENT_HEADER_FIELDS & set(patch):
            value = patch[key]
            if key == "date_shipment":
                value = coerce_datetime(value)
            setattr(shipment, key, value)

        if found is not None:
            _replace_lines(shipment, patch["lines"], found)
            db.session.flush()
            recompute_and_persist(shipment.id)

        db.session.commit()
        return shipment

    return run_with_retry(_op)


def update_shipment_status(shipment_id: int, status: str) -> Shipment:
    if not status:
        raise ValidationError("Status is required")
    return update_shipment(shipment_id, {"status": status})


def delete_shipment(shipment_id: int) -> None:
    """Delete a shipment that no invoice draws from."""
    def _op():
        shipment = lock_for_update(db.session.query(Shipment).filter_by(id=shipment_id)).first()
        if shipment is None:
            raise NotFoundError("Shipment not found")

        invoice_count = invoices.count({"shipment_id": shipment_id})
        if invoice_count:
            raise IllegalStateError(
                "Cannot delete shipment with invoices. Delete invoices first.",
                details={"invoices": invoice_count},
            )

        db.session.delete(shipment)
        db.session.commit()

    run_with_retry(_op)


def recalculate_stock(shipment_id: int) -> Shipment:
    """Rebuild a shipment's stock from its invoices and commit."""
    def _op():
        shipment = recompute_and_persist(shipment_id)
        db.session.commit()
        return shipment

    return run_with_retry(_op)


def get_shipment(shipment_id: int) -> Shipment:
    shipment = shipments.find_by_id(shipment_id)
    if shipment is None:
        raise NotFoundError("Shipment not found")
    return shipment


def list_shipments(status: str | None = None, driver_id: int | None = None) -> list[Shipment]:
    filters = {}
    if status:
        filters["status"] = status
    if driver_id:
        filters["driver_id"] = driver_id
    return shipments.find(filters)
