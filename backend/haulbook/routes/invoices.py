# Overview: Flask API routes for invoices; parses input and returns JSON responses.

"""
Invoice API Routes

WHY: Invoices sell part of a shipment to a customer. Every write goes
through invoice_service, which checks the shipment's free stock and keeps
it recomputed.

Request lines: [{product_id, quantity, sale_price_cents?}]. A missing
sale_price_cents takes the shipment line's unit price. total_cents and
status are never read from the request.
"""

from __future__ import annotations

from flask import Blueprint, request

from ..errors import DomainError
from ..models import Invoice
from ..responses import domain_failure, failure, server_error, success
from ..services import invoice_service
from ..validation import ModelValidationPolicy, ValidationError, parse_line_items, validate_payload

INVOICE_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"customer_id", "shipment_id", "date"},
    required_on_create={"customer_id", "shipment_id"},
)

# shipment_id is fixed once the invoice exists
INVOICE_UPDATE_POLICY = ModelValidationPolicy(writable_fields={"customer_id", "date"})

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _split_payload() -> tuple[dict, object]:
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    header = {key: value for key, value in payload.items() if key != "lines"}
    return header, payload.get("lines")


def _serialize(invoice) -> dict:
    return invoice.to_dict(total_paid_cents=invoice_service.get_total_paid(invoice.id))


@invoices_bp.get("")
def list_invoices_route():
    """
    List invoices, newest first, each with its approved total.

    Query params:
    - status: unpaid | partial | paid
    - customer: customer id
    - shipment: shipment id
    """
    try:
        rows = invoice_service.list_invoices(
            status=request.args.get("status"),
            customer_id=request.args.get("customer", type=int),
            shipment_id=request.args.get("shipment", type=int),
        )
        return success(invoice_service.serialize_invoices(rows), count=len(rows), total=len(rows))
    except Exception:
        return server_error("Failed to list invoices")


@invoices_bp.get("/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    try:
        return success(_serialize(invoice_service.get_invoice(invoice_id)))
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to load invoice")


@invoices_bp.post("")
def create_invoice_route():
    """
    Create an invoice against a shipment.

    Returns:
        201: invoice created, shipment stock recomputed
        400: invalid input, unknown customer/shipment, or insufficient stock
             (details.errors lists every offending line)
    """
    try:
        header, raw_lines = _split_payload()
        patch = validate_payload(model=Invoice, payload=header, policy=INVOICE_CREATE_POLICY, partial=False)
        if not raw_lines:
            raise ValidationError("Customer, shipment, and products are required")
        lines = parse_line_items(raw_lines, price_field="sale_price_cents", require_price=False)

        invoice = invoice_service.create_invoice(
            patch["customer_id"],
            patch["shipment_id"],
            lines,
            date=patch.get("date"),
        )
        return success(_serialize(invoice), 201)
    except ValidationError as e:
        return failure(str(e), 400)
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to create invoice")


@invoices_bp.put("/<int:invoice_id>")
def update_invoice_route(invoice_id: int):
    """Edit customer, date and/or lines of an invoice that is not fully paid."""
    try:
        header, raw_lines = _split_payload()
        patch = validate_payload(model=Invoice, payload=header, policy=INVOICE_UPDATE_POLICY, partial=True)
        if raw_lines is not None:
            patch["lines"] = parse_line_items(raw_lines, price_field="sale_price_cents", require_price=False)

        invoice = invoice_service.update_invoice(invoice_id, patch)
        return success(_serialize(invoice))
    except ValidationError as e:
        return failure(str(e), 400)
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to update invoice")


@invoices_bp.delete("/<int:invoice_id>")
def delete_invoice_route(invoice_id: int):
    try:
        invoice_service.delete_invoice(invoice_id)
        return success({"id": invoice_id})
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to delete invoice")
