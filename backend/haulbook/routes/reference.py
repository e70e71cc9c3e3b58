# Overview: Shared list/get/create/update/delete routes for reference-data blueprints.

"""
Customers, drivers, products and transfer accounts all expose the same five
routes. crud_blueprint builds them from an EntityStore and a validation
policy; the per-resource modules add their own extra endpoints on top.
"""

from __future__ import annotations

from typing import Callable

from flask import Blueprint, request

from ..errors import DomainError
from ..responses import domain_failure, failure, server_error, success
from ..services import catalog_service
from ..services.entity_store import EntityStore
from ..validation import ModelValidationPolicy, ValidationError, validate_payload


def crud_blueprint(
    name: str,
    url_prefix: str,
    store: EntityStore,
    policy: ModelValidationPolicy,
    *,
    rules: Callable[[dict], None] | None = None,
    lister: Callable[[], list] | None = None,
) -> Blueprint:
    """
    rules runs after validate_payload on create and update payloads.
    lister replaces the default unfiltered list; it reads request.args itself.
    """
    bp = Blueprint(name, __name__, url_prefix=url_prefix)
    label = catalog_service.LABELS.get(store.model, store.model.__name__).lower()

    def _clean(partial: bool) -> dict:
        patch = validate_payload(
            model=store.model,
            payload=request.get_json(silent=True) or {},
            policy=policy,
            partial=partial,
        )
        if rules is not None:
            rules(patch)
        return patch

    @bp.get("")
    def list_records():
        try:
            rows = lister() if lister else catalog_service.list_records(store)
            return success([row.to_dict() for row in rows], count=len(rows))
        except ValidationError as e:
            return failure(str(e), 400)
        except Exception:
            return server_error(f"Failed to list {label} records")

    @bp.get("/<int:record_id>")
    def get_record(record_id: int):
        try:
            return success(catalog_service.get_record(store, record_id).to_dict())
        except DomainError as e:
            return domain_failure(e)
        except Exception:
            return server_error(f"Failed to load {label}")

    @bp.post("")
    def create_record():
        try:
            record = catalog_service.create_record(store, _clean(partial=False))
            return success(record.to_dict(), 201)
        except ValidationError as e:
            return failure(str(e), 400)
        except DomainError as e:
            return domain_failure(e)
        except Exception:
            return server_error(f"Failed to create {label}")

    @bp.put("/<int:record_id>")
    def update_record(record_id: int):
        try:
            record = catalog_service.update_record(store, record_id, _clean(partial=True))
            return success(record.to_dict())
        except ValidationError as e:
            return failure(str(e), 400)
        except DomainError as e:
            return domain_failure(e)
        except Exception:
            return server_error(f"Failed to update {label}")

    @bp.delete("/<int:record_id>")
    def delete_record(record_id: int):
        try:
            catalog_service.delete_record(store, record_id)
            return success({"id": record_id})
        except DomainError as e:
            return domain_failure(e)
        except Exception:
            return server_error(f"Failed to delete {label}")

    return bp
