# Overview: Flask API routes for drivers, including the active-flag toggle.

from flask import request

from ..errors import DomainError
from ..responses import domain_failure, server_error, success
from ..services import catalog_service
from ..validation import ModelValidationPolicy, enforce_phone
from .reference import crud_blueprint

DRIVER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "address", "is_active"},
    required_on_create={"name"},
)


def _list_drivers():
    """?active=true restricts the list to active drivers."""
    active_only = request.args.get("active", "false").lower() == "true"
    return catalog_service.list_drivers(active_only=active_only)


drivers_bp = crud_blueprint(
    "drivers",
    "/api/drivers",
    catalog_service.drivers,
    DRIVER_POLICY,
    rules=enforce_phone,
    lister=_list_drivers,
)


@drivers_bp.patch("/<int:driver_id>/toggle-status")
def toggle_driver_status_route(driver_id: int):
    try:
        driver = catalog_service.toggle_driver_status(driver_id)
        return success(driver.to_dict())
    except DomainError as e:
        return domain_failure(e)
    except Exception:
        return server_error("Failed to toggle driver status")
