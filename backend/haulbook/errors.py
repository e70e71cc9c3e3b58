# Overview: Business-rule failures raised by the service layer.

"""
Domain errors.

Every error carries a user-facing message plus optional structured details
and the HTTP status the API layer should answer with. Input-shape problems
are not domain errors; they raise validation.ValidationError instead.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for expected, user-visible business failures."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(DomainError):
    """Referenced entity does not exist."""

    status_code = 404


class InvalidReferenceError(DomainError):
    """A foreign key in the request does not resolve."""


class InsufficientStockError(DomainError):
    """Requested quantities exceed what the shipment still has available."""

    def __init__(self, errors: list[str], message: str = "Insufficient stock"):
        super().__init__(message, details={"errors": list(errors)})
        self.errors = list(errors)


class InvalidAmountError(DomainError):
    """Payment amount is not acceptable for the invoice."""


class IllegalStateError(DomainError):
    """The record's current state forbids the requested change."""


class IllegalTransitionError(IllegalStateError):
    """An invoice edit or delete is not allowed in its current state."""
