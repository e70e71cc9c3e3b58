from __future__ import annotations

from ..extensions import db
from haulbook.time_utils import to_utc_z

SHIPMENT_STATUSES = ("pending", "in_transit", "delivered", "cancelled")


class Shipment(db.Model):
    """
    A cargo load assigned to one driver.

    Each line's quantity is the shipped amount of that product; its stock is
    what invoices have not reserved yet. Stock is rewritten from the current
    invoices every time one of them changes (see stock_service).
    """
    __tablename__ = "shipments"
    __table_args__ = (
        db.UniqueConstraint("shipment_number", name="uq_shipments_number"),
        db.Index("ix_shipments_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "CARGA-007")
    shipment_number = db.Column(db.String(32), nullable=False)

    driver_id = db.Column(db.Integer, db.ForeignKey("drivers.id"), nullable=False, index=True)
    date_shipment = db.Column(db.DateTime(timezone=True), nullable=False)

    delivery_expenses_cents = db.Column(db.Integer, nullable=False, default=0)
    products_expenses_cents = db.Column(db.Integer, nullable=False, default=0)

    # pending, in_transit, delivered, cancelled
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    driver = db.relationship("Driver", backref=db.backref("shipments", lazy=True))
    lines = db.relationship(
        "ShipmentLine",
        backref="shipment",
        cascade="all, delete-orphan",
        order_by="ShipmentLine.position",
        lazy=True,
    )

    def line_for(self, product_id: int) -> "ShipmentLine | None":
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    @property
    def quantity_products(self) -> int:
        return len(self.lines)

    @property
    def total_stock(self) -> int:
        return sum(line.stock for line in self.lines)

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "shipment_number": self.shipment_number,
            "driver_id": self.driver_id,
            "driver_name": self.driver.name if self.driver else None,
            "date_shipment": to_utc_z(self.date_shipment),
            "delivery_expenses_cents": self.delivery_expenses_cents,
            "products_expenses_cents": self.products_expenses_cents,
            "status": self.status,
            "quantity_products": self.quantity_products,
            "total_stock": self.total_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class ShipmentLine(db.Model):
    """Shipped quantity of one product, with a snapshot of its descriptive fields."""
    __tablename__ = "shipment_lines"
    __table_args__ = (
        db.UniqueConstraint("shipment_id", "product_id", name="uq_shipment_lines_product"),
        db.CheckConstraint("quantity >= 1", name="ck_shipment_lines_quantity"),
        db.CheckConstraint("stock >= 0 AND stock <= quantity", name="ck_shipment_lines_stock"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shipment_id = db.Column(db.Integer, db.ForeignKey("shipments.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    # Snapshot of the product at line-creation time
    number = db.Column(db.String(64), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    # quantity minus everything current invoices reserve
    stock = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "number": self.number,
            "category": self.category,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
            "stock": self.stock,
        }
