# Overview: Flask API routes for products.

from flask import request

from ..services import catalog_service
from ..validation import ModelValidationPolicy
from .reference import crud_blueprint

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"number", "category", "name"},
    required_on_create={"number", "category", "name"},
)


def _list_products():
    """?category= matches any part of the category, ignoring case."""
    return catalog_service.list_products(category=request.args.get("category"))


products_bp = crud_blueprint(
    "products",
    "/api/products",
    catalog_service.products,
    PRODUCT_POLICY,
    lister=_list_products,
)
