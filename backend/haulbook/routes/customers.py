# Overview: Flask API routes for customers.

from ..services.catalog_service import customers
from ..validation import ModelValidationPolicy, enforce_phone
from .reference import crud_blueprint

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "address"},
    required_on_create={"name"},
)

customers_bp = crud_blueprint(
    "customers",
    "/api/customers",
    customers,
    CUSTOMER_POLICY,
    rules=enforce_phone,
)
