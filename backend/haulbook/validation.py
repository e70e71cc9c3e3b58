from __future__ import annotations
import re
from datetime import datetime
from haulbook.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum money amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999
MAX_LINE_QUANTITY = 1_000_000


class ValidationError(ValueError):
    """400-level input problem."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


@dataclass(frozen=True)
class LineItemInput:
    """One requested product line, already type-checked."""
    product_id: int
    quantity: int
    price_cents: int | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return value.strip().lower() == "true"
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_money_fields(patch: dict, *fields: str) -> None:
    """Money columns are whole cents between 0 and MAX_AMOUNT_CENTS."""
    for field in fields:
        if field not in patch or patch[field] is None:
            continue
        value = patch[field]
        if value < 0:
            raise ValidationError(f"{field} must be >= 0")
        if value > MAX_AMOUNT_CENTS:
            raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")


def enforce_choice(patch: dict, field: str, choices) -> None:
    if field in patch and patch[field] not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")


def parse_line_items(raw: Any, *, price_field: str, require_price: bool = True) -> list[LineItemInput]:
    """
    Parse the "lines" array of a shipment or invoice request.

    Each entry needs product_id and quantity (>= 1). The price is read from
    price_field; when require_price is False a missing price is left as None
    for the service to fill in.
    """
    if not isinstance(raw, list) or not raw:
        raise ValidationError("lines must be a non-empty list")

    items: list[LineItemInput] = []
    for idx, entry in enumerate(raw, start=1):
        if not isinstance(entry, dict):
            raise ValidationError(f"lines[{idx}] must be an object")

        if entry.get("product_id") is None:
            raise ValidationError(f"lines[{idx}].product_id is required")
        product_id = _coerce_int(f"lines[{idx}].product_id", entry["product_id"])

        if entry.get("quantity") is None:
            raise ValidationError(f"lines[{idx}].quantity is required")
        quantity = _coerce_int(f"lines[{idx}].quantity", entry["quantity"])
        if quantity < 1:
            raise ValidationError(f"lines[{idx}].quantity must be at least 1")
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"lines[{idx}].quantity cannot exceed {MAX_LINE_QUANTITY}")

        price = entry.get(price_field)
        if price is None:
            if require_price:
                raise ValidationError(f"lines[{idx}].{price_field} is required")
        else:
            price = _coerce_int(f"lines[{idx}].{price_field}", price)
            if price < 0:
                raise ValidationError(f"lines[{idx}].{price_field} must be >= 0")
            if price > MAX_AMOUNT_CENTS:
                raise ValidationError(f"lines[{idx}].{price_field} cannot exceed {MAX_AMOUNT_CENTS}")

        items.append(LineItemInput(product_id=product_id, quantity=quantity, price_cents=price))

    return items


# Digits with an optional leading "+"; no spaces or punctuation
PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")


def enforce_phone(patch: dict, field: str = "phone") -> None:
    value = patch.get(field)
    if value and not PHONE_RE.match(value):
        raise ValidationError(f"{field} must contain only digits with an optional leading +")
