from __future__ import annotations

from ..extensions import db
from haulbook.time_utils import to_utc_z

INVOICE_STATUSES = ("unpaid", "partial", "paid")


class Invoice(db.Model):
    """
    Invoice drawn against exactly one shipment.

    total_cents is always the sum of line subtotals and status is always
    derived from approved payments; neither is accepted from clients.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_number"),
        db.Index("ix_invoices_shipment_created", "shipment_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(100), nullable=False)

    shipment_id = db.Column(db.Integer, db.ForeignKey("shipments.id"), nullable=False, index=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    # unpaid, partial, paid
    status = db.Column(db.String(16), nullable=False, default="unpaid", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    shipment = db.relationship("Shipment", backref=db.backref("invoices", lazy=True))
    lines = db.relationship(
        "InvoiceLine",
        backref="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.position",
        lazy=True,
    )

    def to_dict(self, total_paid_cents: int | None = None) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "shipment_id": self.shipment_id,
            "shipment_number": self.shipment.shipment_number if self.shipment else None,
            "date": to_utc_z(self.date),
            "total_cents": self.total_cents,
            "status": self.status,
            "lines": [line.to_dict() for line in self.lines],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if total_paid_cents is not None:
            data["total_paid_cents"] = total_paid_cents
        return data


class InvoiceLine(db.Model):
    """Quantity of a shipment product reserved by an invoice."""
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_invoice_lines_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    # Copied from the shipment line when the invoice line is written
    number = db.Column(db.String(64), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    sale_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "number": self.number,
            "category": self.category,
            "name": self.name,
            "quantity": self.quantity,
            "sale_price_cents": self.sale_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }
