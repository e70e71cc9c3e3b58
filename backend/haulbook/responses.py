# Overview: JSON envelope helpers shared by every blueprint.

"""
Every API answer has the shape

    {"success": bool, "data"?, "error"?, "details"?, "count"?, "total"?}

Routes build it through these helpers so the error translation
(ValidationError and DomainError to 4xx, anything else to 500) lives in one place.
"""

from __future__ import annotations

from flask import current_app, jsonify

from .errors import DomainError
from .extensions import db


def success(data=None, status: int = 200, **extra):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status


def failure(message: str, status: int = 400, details: dict | None = None):
    body = {"success": False, "error": message}
    if details:
        body["details"] = details
    return jsonify(body), status


def domain_failure(exc: DomainError):
    db.session.rollback()
    return failure(exc.message, exc.status_code, exc.details)


def server_error(log_message: str):
    current_app.logger.exception(log_message)
    db.session.rollback()
    return failure("Internal server error", 500)
