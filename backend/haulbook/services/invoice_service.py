# Overview: Invoice lifecycle; reserves shipment stock and guards edits and deletes.

"""
Invoice Lifecycle Service

WHY: An invoice sells part of a shipment. Creating, editing or deleting it
changes how much of each shipped product is still free, so every mutation
is checked against the stock ledger first and followed by a stock
recompute of the shipment.

RULES:
- Requested quantities are checked against shipped quantity minus what the
  other invoices on the shipment reserve; all violations are reported.
- The invoice total is the sum of line subtotals, computed here.
- Paid invoices cannot be edited; invoices with payments cannot be deleted.
- An edit may not bring the total below what has already been approved.
- The invoice is flushed before the stock recompute and everything commits
  together, so a failed create leaves nothing behind.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..errors import (
    IllegalTransitionError,
    InsufficientStockError,
    InvalidAmountError,
    InvalidReferenceError,
    NotFoundError,
)
from ..extensions import db
from ..models import Customer, Invoice, InvoiceLine, Payment, Product, Shipment
from ..time_utils import coerce_datetime
from ..validation import LineItemInput, ValidationError
from . import payment_service
from .concurrency import lock_for_update, run_with_retry
from .entity_store import EntityStore
from .numbering_service import next_document_number
from .stock_service import compute_reserved, recompute_and_persist

INVOICE_DOCUMENT_TYPE = "INVOICE"
INVOICE_MUTABLE_FIELDS = {"customer_id", "date", "lines"}

customers = EntityStore(Customer)
invoices = EntityStore(Invoice)
payments = EntityStore(Payment)


@dataclass(frozen=True)
class StockCheck:
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Verdict:
    can: bool
    reason: str | None = None


# =============================================================================
# STOCK VALIDATION
# =============================================================================

def _requested_by_product(lines: list[LineItemInput]) -> dict[int, int]:
    requested: dict[int, int] = {}
    for item in lines:
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
    return requested


def validate_stock(
    shipment_id: int,
    requested_lines: list[LineItemInput],
    exclude_invoice_id: int | None = None,
) -> StockCheck:
    """
    Check requested quantities against what the shipment still has free.

    exclude_invoice_id is the invoice being edited; its own lines do not
    count as reserved. Lines repeating a product are summed first.
    """
    shipment = db.session.get(Shipment, shipment_id)
    if shipment is None:
        return StockCheck(valid=False, errors=["Shipment not found"])

    reserved = compute_reserved(shipment_id, exclude_invoice_id=exclude_invoice_id)
    errors: list[str] = []

    for product_id, quantity in _requested_by_product(requested_lines).items():
        line = shipment.line_for(product_id)
        if line is None:
            product = db.session.get(Product, product_id)
            label = product.name if product else product_id
            errors.append(f"Product {label} not found in shipment")
            continue

        available = line.quantity - reserved.get(product_id, 0)
        if quantity > available:
            errors.append(
                f"Insufficient stock for {line.name}. Available: {available}, Requested: {quantity}"
            )

    return StockCheck(valid=not errors, errors=errors)


def _build_lines(shipment: Shipment, items: list[LineItemInput]) -> list[InvoiceLine]:
    lines = []
    for position, item in enumerate(items):
        source = shipment.line_for(item.product_id)
        price = item.price_cents if item.price_cents is not None else source.unit_price_cents
        lines.append(
            InvoiceLine(
                product_id=item.product_id,
                position=position,
                number=source.number,
                category=source.category,
                name=source.name,
                quantity=item.quantity,
                sale_price_cents=price,
                subtotal_cents=item.quantity * price,
            )
        )
    return lines


def _latest_invoice_number() -> str | None:
    latest = invoices.find_one()
    return latest.invoice_number if latest else None


# =============================================================================
# LEGALITY CHECKS
# =============================================================================

def can_edit_invoice(invoice_id: int) -> Verdict:
    invoice = invoices.find_by_id(invoice_id)
    if invoice is None:
        return Verdict(False, "Invoice not found")
    if invoice.status == payment_service.INVOICE_STATUS_PAID:
        return Verdict(False, "Cannot edit fully paid invoices")
    return Verdict(True)


def can_delete_invoice(invoice_id: int) -> Verdict:
    invoice = invoices.find_by_id(invoice_id)
    if invoice is None:
        return Verdict(False, "Invoice not found")
    if payments.exists({"invoice_id": invoice_id}):
        return Verdict(False, "Cannot delete invoice with payments. Delete payments first.")
    return Verdict(True)


def get_total_paid(invoice_id: int) -> int:
    return payment_service.total_paid_for_invoice(invoice_id)


# =============================================================================
# LIFECYCLE
# =============================================================================

def create_invoice(customer_id: int, shipment_id: int, lines: list[LineItemInput], date=None) -> Invoice:
    """
    Create an invoice against a shipment and reserve its quantities.

    Raises:
        ValidationError: no lines
        InvalidReferenceError: customer or shipment does not exist
        InsufficientStockError: one or more lines exceed available stock
    """
    if not lines:
        raise ValidationError("Customer, shipment, and products are required")

    def _op():
        customer = customers.find_by_id(customer_id)
        if customer is None:
            raise InvalidReferenceError("Customer not found")

        shipment = lock_for_update(db.session.query(Shipment).filter_by(id=shipment_id)).first()
        if shipment is None:
            raise InvalidReferenceError("Shipment not found")

        check = validate_stock(shipment_id, lines)
        if not check.valid:
            raise InsufficientStockError(check.errors)

        invoice_lines = _build_lines(shipment, lines)
        invoice_number = next_document_number(
            document_type=INVOICE_DOCUMENT_TYPE,
            prefix=current_app.config["INVOICE_NUMBER_PREFIX"],
            latest_number=_latest_invoice_number,
            pad=current_app.config["DOCUMENT_NUMBER_PAD"],
        )

        invoice = Invoice(
            invoice_number=invoice_number,
            customer_id=customer.id,
            customer_name=customer.name,
            shipment_id=shipment_id,
            date=coerce_datetime(date),
            lines=invoice_lines,
            total_cents=sum(line.subtotal_cents for line in invoice_lines),
            status=payment_service.INVOICE_STATUS_UNPAID,
        )
        db.session.add(invoice)
        db.session.flush()

        recompute_and_persist(shipment_id)

        db.session.commit()
        return invoice

    return run_with_retry(_op)


def update_invoice(invoice_id: int, patch: dict) -> Invoice:
    """
    Edit an invoice's customer, date and/or lines.

    Raises:
        NotFoundError: invoice does not exist
        IllegalTransitionError: invoice is fully paid
        InvalidReferenceError: new customer does not exist
        InsufficientStockError: new lines exceed available stock
        InvalidAmountError: new total is below the approved payments
    """
    unknown = set(patch) - INVOICE_MUTABLE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")
    if "lines" in patch and not patch["lines"]:
        raise ValidationError("lines must be a non-empty list")

    def _op():
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if invoice is None:
            raise NotFoundError("Invoice not found")

        verdict = can_edit_invoice(invoice_id)
        if not verdict.can:
            raise IllegalTransitionError(verdict.reason)

        customer = None
        if "customer_id" in patch:
            customer = customers.find_by_id(patch["customer_id"])
            if customer is None:
                raise InvalidReferenceError("Customer not found")

        new_lines = None
        if "lines" in patch:
            shipment = lock_for_update(db.session.query(Shipment).filter_by(id=invoice.shipment_id)).first()
            if shipment is None:
                raise InvalidReferenceError("Shipment not found")

            check = validate_stock(invoice.shipment_id, patch["lines"], exclude_invoice_id=invoice.id)
            if not check.valid:
                raise InsufficientStockError(check.errors)

            new_lines = _build_lines(shipment, patch["lines"])
            new_total = sum(line.subtotal_cents for line in new_lines)
            paid = get_total_paid(invoice.id)
            if new_total < paid:
                raise InvalidAmountError(
                    "Invoice total cannot be lower than its approved payments",
                    details={"total_cents": new_total, "total_paid_cents": paid},
                )

        if customer is not None:
            invoice.customer_id = customer.id
            invoice.customer_name = customer.name
        if "date" in patch:
            invoice.date = coerce_datetime(patch["date"])
        if new_lines is not None:
            invoice.lines = new_lines
            invoice.total_cents = sum(line.subtotal_cents for line in new_lines)

        db.session.flush()
        recompute_and_persist(invoice.shipment_id)
        payment_service.apply_invoice_status(invoice)

        db.session.commit()
        return invoice

    return run_with_retry(_op)


def delete_invoice(invoice_id: int) -> None:
    """Delete an invoice without payments and release its reservations."""
    def _op():
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if invoice is None:
            raise NotFoundError("Invoice not found")

        verdict = can_delete_invoice(invoice_id)
        if not verdict.can:
            raise IllegalTransitionError(verdict.reason)

        shipment_id = invoice.shipment_id
        db.session.delete(invoice)
        db.session.flush()

        recompute_and_persist(shipment_id)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_invoice(invoice_id: int) -> Invoice:
    invoice = invoices.find_by_id(invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


def list_invoices(
    status: str | None = None,
    customer_id: int | None = None,
    shipment_id: int | None = None,
) -> list[Invoice]:
    filters = {}
    if status:
        filters["status"] = status
    if customer_id:
        filters["customer_id"] = customer_id
    if shipment_id:
        filters["shipment_id"] = shipment_id
    return invoices.find(filters)


def serialize_invoices(rows: list[Invoice]) -> list[dict]:
    """Invoices as dicts, each with its approved total."""
    paid = payment_service.totals_paid_for_invoices([invoice.id for invoice in rows])
    return [invoice.to_dict(total_paid_cents=paid.get(invoice.id, 0)) for invoice in rows]
