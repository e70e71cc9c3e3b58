# Overview: Flask API routes for the bank accounts transfer payments are credited to.

from ..services.catalog_service import transfer_accounts
from ..validation import ModelValidationPolicy
from .reference import crud_blueprint

TRANSFER_ACCOUNT_POLICY = ModelValidationPolicy(
    writable_fields={"name"},
    required_on_create={"name"},
)

accounts_bp = crud_blueprint(
    "accounts",
    "/api/accounts-for-transfer",
    transfer_accounts,
    TRANSFER_ACCOUNT_POLICY,
)
