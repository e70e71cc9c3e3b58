from __future__ import annotations

from ..extensions import db
from haulbook.time_utils import to_utc_z

PAYMENT_TYPES = ("cash", "transfer")


class Payment(db.Model):
    """
    Payment recorded against an invoice.

    Only approved payments count toward the invoice's paid amount. Once
    approved a payment is frozen: it can no longer be edited or deleted.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_invoice_approved", "invoice_id", "approved"),
        db.CheckConstraint("amount_cents >= 0", name="ck_payments_amount"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)

    # cash, transfer
    type = db.Column(db.String(16), nullable=False, index=True)

    # Free-text label of the receiving account (transfers)
    account_for_transfer = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    approved = db.Column(db.Boolean, nullable=False, default=False, index=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    invoice = db.relationship("Invoice", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "invoice_number": self.invoice.invoice_number if self.invoice else None,
            "customer_name": self.invoice.customer_name if self.invoice else None,
            "amount_cents": self.amount_cents,
            "type": self.type,
            "account_for_transfer": self.account_for_transfer,
            "notes": self.notes,
            "approved": self.approved,
            "date": to_utc_z(self.date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
