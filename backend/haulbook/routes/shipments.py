# Overview: Flask API routes for shipments; parses input and returns JSON responses.

"""
Shipment API Routes

WHY: Operators load a shipment with products for a driver and then sell
from it through invoices. These routes expose the shipment itself plus the
stock views the invoicing screens need.

DESIGN:
- shipment_number and line stock are assigned by the server, never read
  from the request
- Product lines are sent as "lines": [{product_id, quantity, unit_price_cents}]
- Stock can be rebuilt on demand from the current invoices
"""

from __future__ import annotations

from flask import Blueprint, request

from ..errors import DomainError
from ..models import SHIPMENT_STATUSES, Shipment
from ..responses import domain_failure, failure, server_error, success
from ..services import shipment_service, stock_service
from ..services.invoice_service import serialize_invoices
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_choice,
    enforce_money_fields,
    parse_line_items,
    validate_payload,
)

SHIPMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "driver_id",
        "date_shipment",
        "delivery_expenses_cents",
        "products_expenses_cents",
        "status",
    },
    required_on_create={"driver_id"},
)

shipments_bp = Blueprint("shipments", __name__, url_prefix="/api/shipments")


def _parse_shipment_payload(partial: bool) -> tuple[dict, list | None]:
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    header = {key: value for key, value in payload.items() if key != "lines"}
    patch = validate_payload(model=Shipment, payload=header, policy=SHIPMENT_POLICY, partial=partial)
    enforce_money_fields(patch, "delivery_expenses_cents", "products_expenses_cents")
    enforce_choice(patch, "status", SHIPMENT_STATUSES)

    lines = None
    if "lines" in payload or not partial:
        if not payload.get("lines"):
            raise ValidationError("Driver and products are required")
        lines = parse_line_items(payload["lines"], price_field="unit_price_cents")
    return patch, lines


# =============================================================================
# SHIPMENT CRUD
# =============================================================================

@shipments_bp.get("")
def list_shipments_route():
    """
    List shipments, newest first.

    Query params:
    - status: pending | in_transit | delivered | cancelled
    - driver: driver id
    """
    try:
        rows = shipment_service.list_shipments(
            status=request.args.get("status"),
            driver_id=request.args.get("driver", type=int),
        )
        return success([row.to_dict() for row in rows], count=len(rows))
    except Exception:
        return server_error("Failed to list shipments")


@shipments_bp.get("/<int:shipment_id>")
def get_shipment_route(shipment_id: int):
    try:
        return success(shipment_service.get_shipment(shipment_id).to_dict())
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to load shipment")


@shipments_bp.post("")
def create_shipment_route():
    """
    Create a shipment.

    Request body:
    {
        "driver_id": 3,
        "date_shipment": "2026-03-01",          (optional, defaults to now)
        "delivery_expenses_cents": 15000,       (optional)
        "products_expenses_cents": 0,           (optional)
        "status": "pending",                    (optional)
        "lines": [{"product_id": 7, "quantity": 40, "unit_price_cents": 2500}]
    }
    """
    try:
        patch, lines = _parse_shipment_payload(partial=False)
        shipment = shipment_service.create_shipment(
            patch["driver_id"],
            lines,
            delivery_expenses_cents=patch.get("delivery_expenses_cents") or 0,
            products_expenses_cents=patch.get("products_expenses_cents") or 0,
            date_shipment=patch.get("date_shipment"),
            status=patch.get("status") or "pending",
        )
        return success(shipment.to_dict(), 201)
    except ValidationError as e:
        return failure(str(e), 400)
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to create shipment")


@shipments_bp.put("/<int:shipment_id>")
def update_shipment_route(shipment_id: int):
    """
    Edit a shipment. Sending "lines" replaces the whole line set; a product's
    quantity may not drop below what invoices already reserve.
    """
    try:
        patch, lines = _parse_shipment_payload(partial=True)
        if lines is not None:
            patch["lines"] = lines
        shipment = shipment_service.update_shipment(shipment_id, patch)
        return success(shipment.to_dict())
    except ValidationError as e:
        return failure(str(e), 400)
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to update shipment")


@shipments_bp.delete("/<int:shipment_id>")
def delete_shipment_route(shipment_id: int):
    try:
        shipment_service.delete_shipment(shipment_id)
        return success({"id": shipment_id})
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to delete shipment")


@shipments_bp.patch("/<int:shipment_id>/status")
def update_shipment_status_route(shipment_id: int):
    """Body: {"status": "in_transit"}"""
    try:
        payload = request.get_json(silent=True) or {}
        shipment = shipment_service.update_shipment_status(shipment_id, payload.get("status"))
        return success(shipment.to_dict())
    except ValidationError as e:
        return failure(str(e), 400)
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to update shipment status")


# =============================================================================
# STOCK
# =============================================================================

@shipments_bp.get("/<int:shipment_id>/available-stock")
def available_stock_route(shipment_id: int):
    """Per-product shipped, reserved and available quantities."""
    try:
        shipment = shipment_service.get_shipment(shipment_id)
        available = stock_service.calculate_available_stock(shipment_id)
        data = [
            {
                "product_id": line.product_id,
                "name": line.name,
                "quantity": line.quantity,
                "reserved": line.quantity - available[line.product_id],
                "available": available[line.product_id],
            }
            for line in shipment.lines
        ]
        return success(data, count=len(data))
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to compute available stock")


@shipments_bp.get("/<int:shipment_id>/invoices")
def shipment_invoices_route(shipment_id: int):
    """
    Invoices drawing from the shipment.

    Query params:
    - product_id: repeatable; only invoices holding one of these products
    """
    try:
        rows = stock_service.get_invoices_using_products(
            shipment_id, request.args.getlist("product_id", type=int)
        )
        return success(serialize_invoices(rows), count=len(rows))
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to list shipment invoices")


@shipments_bp.post("/<int:shipment_id>/recalculate-stock")
def recalculate_stock_route(shipment_id: int):
    try:
        shipment = shipment_service.recalculate_stock(shipment_id)
        return success(shipment.to_dict())
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to recalculate shipment stock")
