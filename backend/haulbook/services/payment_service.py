# Overview: Service-layer operations for payments; derives invoice settlement status.

"""
Payment Settlement Service

WHY: Invoices are paid in one or more instalments (cash or bank transfer).
A payment only counts once an operator approves it, and the invoice's
unpaid/partial/paid status is derived from the approved total.

DESIGN PRINCIPLES:
- recompute_invoice_status is the single authority for invoice status
- Every payment mutation (create, update, approve, delete) recomputes it
- Approved payments are frozen: no edits, no deletes
- A payment may not exceed the invoice total, and approving one may not
  push the approved total past it

PAYMENT STATUS:
- unpaid: approved total == 0
- paid: approved total >= invoice total
- partial: anything in between
"""

from __future__ import annotations

from sqlalchemy import func

from ..errors import IllegalStateError, InvalidAmountError, NotFoundError
from ..extensions import db
from ..models import Invoice, Payment, PAYMENT_TYPES
from ..time_utils import coerce_datetime
from ..validation import ValidationError
from .concurrency import lock_for_update, run_with_retry


# =============================================================================
# PAYMENT STATUS (CONSTANTS)
# =============================================================================

INVOICE_STATUS_UNPAID = "unpaid"
INVOICE_STATUS_PARTIAL = "partial"
INVOICE_STATUS_PAID = "paid"

PAYMENT_MUTABLE_FIELDS = {"amount_cents", "type", "date", "account_for_transfer", "notes", "approved"}


# =============================================================================
# SETTLEMENT
# =============================================================================

def derive_invoice_status(total_paid_cents: int, total_cents: int) -> str:
    """
    Status for an approved total against an invoice total.

    Nothing approved is always unpaid, even for a zero-total invoice.
    """
    if total_paid_cents == 0:
        return INVOICE_STATUS_UNPAID
    if total_paid_cents >= total_cents:
        return INVOICE_STATUS_PAID
    return INVOICE_STATUS_PARTIAL


def total_paid_for_invoice(invoice_id: int) -> int:
    """Sum of approved payment amounts for an invoice (cents)."""
    total = db.session.query(
        func.coalesce(func.sum(Payment.amount_cents), 0)
    ).filter(
        Payment.invoice_id == invoice_id,
        Payment.approved.is_(True),
    ).scalar()
    return int(total or 0)


def totals_paid_for_invoices(invoice_ids: list[int]) -> dict[int, int]:
    """Approved totals for many invoices in one query; missing ids are 0."""
    if not invoice_ids:
        return {}
    rows = (
        db.session.query(Payment.invoice_id, func.sum(Payment.amount_cents))
        .filter(Payment.invoice_id.in_(invoice_ids), Payment.approved.is_(True))
        .group_by(Payment.invoice_id)
        .all()
    )
    totals = {invoice_id: 0 for invoice_id in invoice_ids}
    totals.update({invoice_id: int(total or 0) for invoice_id, total in rows})
    return totals


def apply_invoice_status(invoice: Invoice) -> Invoice:
    """Recalculate status from approved payments; flushes, does not commit."""
    db.session.flush()
    invoice.status = derive_invoice_status(total_paid_for_invoice(invoice.id), invoice.total_cents)
    db.session.flush()
    return invoice


def recompute_invoice_status(invoice_id: int) -> Invoice:
    """Recompute and persist an invoice's status from its approved payments."""
    def _op():
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFoundError("Invoice not found")
        apply_invoice_status(invoice)
        db.session.commit()
        return invoice

    return run_with_retry(_op)


# =============================================================================
# PAYMENT CREATION / CHANGES
# =============================================================================

def _validate_type(payment_type: str) -> None:
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(PAYMENT_TYPES)}")


def _validate_amount(amount_cents: int, invoice: Invoice) -> None:
    if amount_cents is None or amount_cents < 0:
        raise InvalidAmountError("Amount cannot be negative")
    if amount_cents > invoice.total_cents:
        raise InvalidAmountError(
            "Payment amount cannot exceed invoice total",
            details={"amount_cents": amount_cents, "total_cents": invoice.total_cents},
        )


def _validate_approval(amount_cents: int, invoice: Invoice) -> None:
    paid = total_paid_for_invoice(invoice.id)
    if paid + amount_cents > invoice.total_cents:
        raise InvalidAmountError(
            "Approving this payment would exceed the invoice total",
            details={
                "amount_cents": amount_cents,
                "total_paid_cents": paid,
                "total_cents": invoice.total_cents,
            },
        )


def _lock_invoice(invoice_id: int) -> Invoice:
    invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


def _lock_payment(payment_id: int) -> Payment:
    payment = lock_for_update(db.session.query(Payment).filter_by(id=payment_id)).first()
    if not payment:
        raise NotFoundError("Payment not found")
    return payment


def create_payment(
    invoice_id: int,
    amount_cents: int,
    payment_type: str,
    date=None,
    account_for_transfer: str | None = None,
    notes: str | None = None,
    approved: bool = False,
) -> Payment:
    """
    Record a payment against an invoice.

    Raises:
        NotFoundError: invoice does not exist
        IllegalStateError: invoice is already paid
        InvalidAmountError: amount is negative or exceeds the invoice total
    """
    _validate_type(payment_type)

    def _op():
        invoice = _lock_invoice(invoice_id)

        if invoice.status == INVOICE_STATUS_PAID:
            raise IllegalStateError("Invoice is already paid")

        _validate_amount(amount_cents, invoice)
        if approved:
            _validate_approval(amount_cents, invoice)

        payment = Payment(
            invoice_id=invoice.id,
            amount_cents=amount_cents,
            type=payment_type,
            account_for_transfer=account_for_transfer,
            notes=notes,
            approved=bool(approved),
            date=coerce_datetime(date),
        )
        db.session.add(payment)
        apply_invoice_status(invoice)

        db.session.commit()
        return payment

    return run_with_retry(_op)


def update_payment(payment_id: int, patch: dict) -> Payment:
    """
    Edit an unapproved payment. Setting approved=True in the same patch
    approves it after the other changes are applied.
    """
    unknown = set(patch) - PAYMENT_MUTABLE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")
    if "type" in patch:
        _validate_type(patch["type"])

    def _op():
        payment = _lock_payment(payment_id)
        if payment.approved:
            raise IllegalStateError("Cannot modify approved payment")

        invoice = _lock_invoice(payment.invoice_id)
        amount = patch.get("amount_cents", payment.amount_cents)
        if "amount_cents" in patch:
            _validate_amount(amount, invoice)
        if patch.get("approved"):
            _validate_approval(amount, invoice)

        for key, value in patch.items():
            if key == "date":
                value = coerce_datetime(value)
            elif key == "approved":
                value = bool(value)
            setattr(payment, key, value)

        apply_invoice_status(invoice)
        db.session.commit()
        return payment

    return run_with_retry(_op)


def approve_payment(payment_id: int) -> Payment:
    """Approve a payment so it counts toward the invoice, then settle the invoice."""
    def _op():
        payment = _lock_payment(payment_id)
        if payment.approved:
            raise IllegalStateError("Payment is already approved")

        invoice = _lock_invoice(payment.invoice_id)
        _validate_approval(payment.amount_cents, invoice)

        payment.approved = True
        apply_invoice_status(invoice)
        db.session.commit()
        return payment

    return run_with_retry(_op)


def delete_payment(payment_id: int) -> None:
    def _op():
        payment = _lock_payment(payment_id)
        if payment.approved:
            raise IllegalStateError("Cannot modify approved payment")

        invoice = _lock_invoice(payment.invoice_id)
        db.session.delete(payment)
        apply_invoice_status(invoice)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError("Payment not found")
    return payment


def list_payments(approved: bool | None = None, payment_type: str | None = None) -> list[Payment]:
    query = db.session.query(Payment)
    if approved is not None:
        query = query.filter(Payment.approved.is_(approved))
    if payment_type:
        query = query.filter(Payment.type == payment_type)
    return query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()


def payments_for_invoice(invoice_id: int) -> tuple[list[Payment], int]:
    """All payments of an invoice (newest date first) and its approved total."""
    if db.session.get(Invoice, invoice_id) is None:
        raise NotFoundError("Invoice not found")
    payments = (
        db.session.query(Payment)
        .filter_by(invoice_id=invoice_id)
        .order_by(Payment.date.desc(), Payment.id.desc())
        .all()
    )
    return payments, total_paid_for_invoice(invoice_id)
