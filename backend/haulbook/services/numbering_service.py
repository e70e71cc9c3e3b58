# Overview: Human-readable document numbers (CARGA-001, FACT-001) from atomic sequences.

"""
Numbering Authority

Numbers come from one DocumentSequence row per document type, advanced with
an atomic UPDATE ... SET next_number = next_number + 1. The first time a type
is used its row is seeded from the newest existing record of that kind, so a
database that already holds CARGA-041 continues at CARGA-042.

If the sequence cannot be read or advanced, the number falls back to the
prefix plus the last six digits of the current millisecond timestamp. Those
numbers are not monotonic; the fallback is logged so it can be noticed.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import DocumentSequence

logger = logging.getLogger(__name__)

LatestNumberLookup = Callable[[], "str | None"]


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def format_document_number(prefix: str, number: int, pad: int = 3) -> str:
    return f"{prefix}-{number:0{pad}d}"


def parse_number_suffix(value: str | None, prefix: str) -> int:
    """
    Numeric part after "PREFIX-". Anything unparsable counts as 0.

    >>> parse_number_suffix("CARGA-041", "CARGA")
    41
    """
    if not value:
        return 0
    head, sep, tail = value.partition("-")
    if not sep or head != prefix:
        return 0
    try:
        return int(tail)
    except ValueError:
        return 0


def fallback_document_number(prefix: str, pad: int = 3) -> str:
    millis = str(int(time.time() * 1000))
    return f"{prefix}-{millis[-6:].zfill(pad)}"


def _advance(document_type: str) -> int | None:
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    db.session.flush()
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )
    return current - 1


def _seed_value(latest_number: LatestNumberLookup | None, prefix: str) -> int:
    if latest_number is None:
        return 0
    try:
        latest = latest_number()
    except Exception as exc:
        raise DocumentSequenceError("latest number lookup failed") from exc
    return parse_number_suffix(latest, prefix)


def _allocate(document_type: str, prefix: str, latest_number: LatestNumberLookup | None) -> int:
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    allocated = _advance(document_type)
    if allocated is not None:
        return allocated

    first = _seed_value(latest_number, prefix) + 1
    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(document_type=document_type, next_number=first + 1))
    except IntegrityError:
        # Another request created the row first; take the next value from it.
        allocated = _advance(document_type)
        if allocated is None:
            raise DocumentSequenceError(f"sequence {document_type} vanished")
        return allocated
    return first


def next_document_number(
    *,
    document_type: str,
    prefix: str,
    latest_number: LatestNumberLookup | None = None,
    pad: int = 3,
) -> str:
    """
    Allocate the next number for a document type, formatted PREFIX-NNN.

    latest_number returns the number of the most recently created record of
    this kind (or None); it is only consulted when the sequence row does not
    exist yet. Call once per record, before the record is first flushed.

    Allocation runs in a SAVEPOINT: a failure undoes only the sequence work,
    and the caller's transaction (its row locks and pending changes) stays.
    """
    try:
        with db.session.begin_nested():
            number = _allocate(document_type, prefix, latest_number)
    except (SQLAlchemyError, DocumentSequenceError):
        fallback = fallback_document_number(prefix, pad)
        logger.warning(
            "Document sequence %s unavailable, using fallback number %s",
            document_type,
            fallback,
            exc_info=True,
        )
        return fallback
    return format_document_number(prefix, number, pad)
