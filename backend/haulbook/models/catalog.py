from __future__ import annotations

from ..extensions import db
from haulbook.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data.

    Shipment and invoice lines copy number/category/name from here when the
    line is written. Later edits to a Product do not touch those copies.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(64), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} number={self.number!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "category": self.category,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
