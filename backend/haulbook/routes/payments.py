# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

"""
Payment API Routes

WHY: Record what customers pay against invoices. A payment only counts once
approved; every change here re-derives the invoice's unpaid/partial/paid
status through payment_service.

DESIGN:
- amount_cents may not exceed the invoice total
- Approved payments are read-only
- /invoice/<id> returns an invoice's payments plus its approved total
"""

from flask import Blueprint, request

from ..errors import DomainError
from ..models import Payment
from ..responses import domain_failure, failure, server_error, success
from ..services import payment_service
from ..validation import ModelValidationPolicy, ValidationError, validate_payload

PAYMENT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"invoice_id", "amount_cents", "type", "date", "account_for_transfer", "notes", "approved"},
    required_on_create={"invoice_id", "amount_cents", "type"},
)

# invoice_id is fixed once the payment exists
PAYMENT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"amount_cents", "type", "date", "account_for_transfer", "notes", "approved"},
)

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _payload() -> dict:
    return request.get_json(silent=True) or {}


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("")
def list_payments_route():
    """
    List payments, newest first.

    Query params:
    - approved: true | false
    - type: cash | transfer
    """
    try:
        approved_arg = request.args.get("approved")
        approved = None
        if approved_arg is not None:
            if approved_arg.lower() not in {"true", "false"}:
                return failure("approved must be true or false", 400)
            approved = approved_arg.lower() == "true"

        rows = payment_service.list_payments(approved=approved, payment_type=request.args.get("type"))
        return success([row.to_dict() for row in rows], count=len(rows), total=len(rows))
    except Exception:
        return server_error("Failed to list payments")


@payments_bp.get("/<int:payment_id>")
def get_payment_route(payment_id: int):
    try:
        return success(payment_service.get_payment(payment_id).to_dict())
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to load payment")


@payments_bp.get("/invoice/<int:invoice_id>")
def invoice_payments_route(invoice_id: int):
    """All payments of an invoice; "total" is the approved sum in cents."""
    try:
        payments, total_paid = payment_service.payments_for_invoice(invoice_id)
        return success(
            [payment.to_dict() for payment in payments],
            count=len(payments),
            total=total_paid,
        )
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to load invoice payments")


# =============================================================================
# PAYMENT CREATION / CHANGES
# =============================================================================

@payments_bp.post("")
def create_payment_route():
    """
    Record a payment.

    Request body:
    {
        "invoice_id": 12,
        "amount_cents": 6000,
        "type": "transfer",
        "account_for_transfer": "Main checking",   (optional)
        "notes": "first instalment",               (optional)
        "date": "2026-03-04",                      (optional)
        "approved": false                          (optional)
    }

    Returns:
        201: payment created
        400: invalid input, invoice already paid, or amount above invoice total
        404: invoice not found
    """
    try:
        patch = validate_payload(model=Payment, payload=_payload(), policy=PAYMENT_CREATE_POLICY, partial=False)
        payment = payment_service.create_payment(
            patch["invoice_id"],
            patch["amount_cents"],
            patch["type"],
            date=patch.get("date"),
            account_for_transfer=patch.get("account_for_transfer"),
            notes=patch.get("notes"),
            approved=bool(patch.get("approved")),
        )
        return success(payment.to_dict(), 201)
    except ValidationError as e:
        return failure(str(e), 400)
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to create payment")


@payments_bp.put("/<int:payment_id>")
def update_payment_route(payment_id: int):
    try:
        patch = validate_payload(model=Payment, payload=_payload(), policy=PAYMENT_UPDATE_POLICY, partial=True)
        payment = payment_service.update_payment(payment_id, patch)
        return success(payment.to_dict())
    except ValidationError as e:
        return failure(str(e), 400)
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to update payment")


@payments_bp.post("/<int:payment_id>/approve")
def approve_payment_route(payment_id: int):
    try:
        payment = payment_service.approve_payment(payment_id)
        return success(payment.to_dict())
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to approve payment")


@payments_bp.delete("/<int:payment_id>")
def delete_payment_route(payment_id: int):
    try:
        payment_service.delete_payment(payment_id)
        return success({"id": payment_id})
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to delete payment")
