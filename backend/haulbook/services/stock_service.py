# Overview: Stock ledger for shipments; derives reserved and available quantities from invoices.

"""
Shipment Stock Ledger

Invariants:
- A shipment line's stock is never decremented or incremented in place. It is
  recomputed as quantity - SUM(invoice line quantities) over every current
  invoice against the shipment, for that product.
- Recomputing twice with no invoice change in between yields the same stock.
- 0 <= stock <= quantity on every persisted line. The database enforces this
  with a CHECK constraint; the services keep it by validating reservations
  before writing them.

Reserved quantities are aggregated in SQL, so the cost of a recompute grows
with the number of invoice lines on the shipment, not with the database.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import func

from ..errors import NotFoundError
from ..extensions import db
from ..models import Invoice, InvoiceLine, Shipment, ShipmentLine
from ..validation import LineItemInput
from .concurrency import lock_for_update
from .entity_store import EntityStore

logger = logging.getLogger(__name__)

shipments = EntityStore(Shipment)


def get_shipment(shipment_id: int, *, lock: bool = False) -> Shipment:
    query = db.session.query(Shipment).filter_by(id=shipment_id)
    if lock:
        query = lock_for_update(query)
    shipment = query.first()
    if shipment is None:
        raise NotFoundError("Shipment not found")
    return shipment


def compute_reserved(shipment_id: int, exclude_invoice_id: int | None = None) -> dict[int, int]:
    """
    Quantity reserved per product by the invoices against a shipment.

    exclude_invoice_id leaves one invoice out, which is how an invoice being
    edited is checked without its current lines counting against itself.
    """
    query = (
        db.session.query(
            InvoiceLine.product_id,
            func.coalesce(func.sum(InvoiceLine.quantity), 0),
        )
        .join(Invoice, Invoice.id == InvoiceLine.invoice_id)
        .filter(Invoice.shipment_id == shipment_id)
    )
    if exclude_invoice_id is not None:
        query = query.filter(Invoice.id != exclude_invoice_id)

    rows = query.group_by(InvoiceLine.product_id).all()
    return {product_id: int(total) for product_id, total in rows}


def available_stock(line: ShipmentLine, reserved: dict[int, int]) -> int:
    """Shipped quantity minus reservations. Negative means over-reserved."""
    return line.quantity - reserved.get(line.product_id, 0)


def recompute_and_persist(shipment_id: int) -> Shipment:
    """
    Rewrite every line's stock from the current invoices and flush.

    Must run after the invoice change it reflects has been flushed, so the
    aggregation sees it. The caller commits.
    """
    shipment = get_shipment(shipment_id)
    reserved = compute_reserved(shipment_id)

    for line in shipment.lines:
        line.stock = available_stock(line, reserved)

    shipments.save(shipment)
    logger.debug("Recomputed stock for shipment %s: %s", shipment.shipment_number, reserved)
    return shipment


def calculate_available_stock(shipment_id: int) -> dict[int, int]:
    """Read-only view of available quantity per product on a shipment."""
    shipment = get_shipment(shipment_id)
    reserved = compute_reserved(shipment_id)
    return {line.product_id: available_stock(line, reserved) for line in shipment.lines}


def validate_quantity_reduction(shipment_id: int, new_lines: Iterable[LineItemInput]) -> list[str]:
    """
    Check a replacement line set for a shipment against current reservations.

    A product's shipped quantity may not drop below what invoices already
    reserve, and a reserved product may not be removed from the shipment.
    Returns every violation found.
    """
    reserved = compute_reserved(shipment_id)
    if not reserved:
        return []

    existing = {line.product_id: line for line in get_shipment(shipment_id).lines}
    requested = {item.product_id: item for item in new_lines}
    errors: list[str] = []

    for product_id, used in reserved.items():
        if used <= 0:
            continue
        current = existing.get(product_id)
        label = current.name if current else str(product_id)
        item = requested.get(product_id)
        if item is None:
            errors.append(
                f"Cannot remove {label} from the shipment. "
                f"Used in invoices: {used}. Please delete related invoices first."
            )
        elif item.quantity < used:
            errors.append(
                f"Cannot reduce stock for {label}. "
                f"Used in invoices: {used}, New quantity: {item.quantity}. "
                f"Please delete related invoices first."
            )

    return errors


def get_invoices_using_products(shipment_id: int, product_ids: Iterable[int] | None = None) -> list[Invoice]:
    """Invoices against a shipment, optionally only those holding given products."""
    get_shipment(shipment_id)
    query = db.session.query(Invoice).filter(Invoice.shipment_id == shipment_id)

    product_ids = list(product_ids or [])
    if product_ids:
        holding = (
            db.session.query(InvoiceLine.invoice_id)
            .filter(InvoiceLine.product_id.in_(product_ids))
        )
        query = query.filter(Invoice.id.in_(holding))

    return query.order_by(Invoice.date.desc(), Invoice.id.desc()).all()
