# Overview: Pytest coverage for payment settlement and invoice status derivation.

"""
Payment Settlement Tests

Invoice status is derived only from approved payments:
unpaid when nothing is approved, paid once the approved total reaches the
invoice total, partial in between.
"""

import pytest

from haulbook.errors import IllegalStateError, InvalidAmountError, NotFoundError
from haulbook.models import Invoice, Payment
from haulbook.services import invoice_service, payment_service
from haulbook.validation import LineItemInput, ValidationError


@pytest.fixture
def invoice(product, shipment, make_invoice):
    """Invoice with total_cents == 100."""
    return make_invoice(shipment, [(product, 1, 100)])


@pytest.mark.parametrize(
    "paid,total,expected",
    [
        (0, 100, "unpaid"),
        (1, 100, "partial"),
        (99, 100, "partial"),
        (100, 100, "paid"),
        (150, 100, "paid"),
        (0, 0, "unpaid"),
    ],
)
def test_derive_invoice_status(paid, total, expected):
    assert payment_service.derive_invoice_status(paid, total) == expected


class TestSettlementLifecycle:
    def test_status_follows_approvals(self, db_session, invoice, product):
        """60 pending keeps it unpaid; approving makes it partial; +40 approved pays it off."""
        first = payment_service.create_payment(invoice.id, 60, "cash")
        assert first.approved is False
        assert invoice.status == "unpaid"

        payment_service.approve_payment(first.id)
        assert invoice.status == "partial"
        assert payment_service.total_paid_for_invoice(invoice.id) == 60

        payment_service.create_payment(invoice.id, 40, "transfer", account_for_transfer="Main checking", approved=True)
        assert invoice.status == "paid"

        with pytest.raises(IllegalStateError):
            invoice_service.update_invoice(
                invoice.id, {"lines": [LineItemInput(product_id=product.id, quantity=2, price_cents=100)]}
            )

    def test_unapproved_payments_do_not_count(self, db_session, invoice):
        payment_service.create_payment(invoice.id, 100, "cash")
        assert payment_service.total_paid_for_invoice(invoice.id) == 0
        assert invoice.status == "unpaid"


class TestCreatePayment:
    def test_amount_above_total(self, db_session, invoice):
        with pytest.raises(InvalidAmountError):
            payment_service.create_payment(invoice.id, 150, "cash")
        db_session.rollback()
        assert db_session.query(Payment).count() == 0

    def test_negative_amount(self, db_session, invoice):
        with pytest.raises(InvalidAmountError):
            payment_service.create_payment(invoice.id, -1, "cash")

    def test_unknown_type(self, db_session, invoice):
        with pytest.raises(ValidationError):
            payment_service.create_payment(invoice.id, 10, "cheque")

    def test_unknown_invoice(self, db_session):
        with pytest.raises(NotFoundError):
            payment_service.create_payment(99999, 10, "cash")

    def test_paid_invoice_rejects_payments(self, db_session, invoice):
        payment_service.create_payment(invoice.id, 100, "cash", approved=True)
        with pytest.raises(IllegalStateError) as exc:
            payment_service.create_payment(invoice.id, 1, "cash")
        assert exc.value.message == "Invoice is already paid"

    def test_approved_on_create_cannot_overpay(self, db_session, invoice):
        payment_service.create_payment(invoice.id, 70, "cash", approved=True)
        with pytest.raises(InvalidAmountError):
            payment_service.create_payment(invoice.id, 40, "cash", approved=True)


class TestChangePayment:
    def test_update_amount_recomputes_status(self, db_session, invoice):
        payment = payment_service.create_payment(invoice.id, 30, "cash")
        payment_service.update_payment(payment.id, {"amount_cents": 100, "approved": True})
        assert invoice.status == "paid"

    def test_update_amount_above_total(self, db_session, invoice):
        payment = payment_service.create_payment(invoice.id, 30, "cash")
        with pytest.raises(InvalidAmountError):
            payment_service.update_payment(payment.id, {"amount_cents": 101})

    def test_approved_payment_is_frozen(self, db_session, invoice):
        payment = payment_service.create_payment(invoice.id, 30, "cash", approved=True)

        with pytest.raises(IllegalStateError):
            payment_service.update_payment(payment.id, {"notes": "changed"})
        with pytest.raises(IllegalStateError):
            payment_service.delete_payment(payment.id)
        with pytest.raises(IllegalStateError):
            payment_service.approve_payment(payment.id)

    def test_unknown_field(self, db_session, invoice):
        payment = payment_service.create_payment(invoice.id, 30, "cash")
        with pytest.raises(ValidationError):
            payment_service.update_payment(payment.id, {"invoice_id": invoice.id})

    def test_approval_cannot_push_past_total(self, db_session, invoice):
        payment_service.create_payment(invoice.id, 80, "cash", approved=True)
        pending = payment_service.create_payment(invoice.id, 30, "cash")
        with pytest.raises(InvalidAmountError):
            payment_service.approve_payment(pending.id)

    def test_delete_pending_payment(self, db_session, invoice):
        payment = payment_service.create_payment(invoice.id, 30, "cash")
        payment_service.delete_payment(payment.id)

        assert db_session.get(Payment, payment.id) is None
        assert invoice_service.can_delete_invoice(invoice.id).can


class TestPaymentQueries:
    def test_payments_for_invoice(self, db_session, invoice):
        payment_service.create_payment(invoice.id, 20, "cash", date="2026-01-01", approved=True)
        payment_service.create_payment(invoice.id, 30, "cash", date="2026-02-01")

        payments, total = payment_service.payments_for_invoice(invoice.id)

        assert [p.amount_cents for p in payments] == [30, 20]
        assert total == 20

    def test_payments_for_missing_invoice(self, db_session):
        with pytest.raises(NotFoundError):
            payment_service.payments_for_invoice(99999)

    def test_list_filters(self, db_session, invoice):
        payment_service.create_payment(invoice.id, 20, "cash", approved=True)
        payment_service.create_payment(invoice.id, 30, "transfer")

        assert [p.amount_cents for p in payment_service.list_payments(approved=True)] == [20]
        assert [p.amount_cents for p in payment_service.list_payments(payment_type="transfer")] == [30]
        assert len(payment_service.list_payments()) == 2

    def test_recompute_invoice_status(self, db_session, invoice):
        payment_service.create_payment(invoice.id, 100, "cash", approved=True)
        db_session.query(Invoice).filter_by(id=invoice.id).update({"status": "unpaid"})
        db_session.commit()

        assert payment_service.recompute_invoice_status(invoice.id).status == "paid"
