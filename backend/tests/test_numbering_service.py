# Overview: Pytest coverage for document numbering (sequence allocation and fallback).

import re

import pytest
from sqlalchemy.exc import OperationalError

from haulbook.models import Customer, DocumentSequence
from haulbook.services import numbering_service
from haulbook.services.numbering_service import (
    fallback_document_number,
    format_document_number,
    next_document_number,
    parse_number_suffix,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("CARGA-041", 41),
        ("CARGA-1000", 1000),
        ("CARGA-", 0),
        ("CARGA-12a", 0),
        ("FACT-007", 0),
        ("garbage", 0),
        (None, 0),
    ],
)
def test_parse_number_suffix(value, expected):
    assert parse_number_suffix(value, "CARGA") == expected


def test_format_document_number():
    assert format_document_number("CARGA", 7) == "CARGA-007"
    assert format_document_number("CARGA", 1234) == "CARGA-1234"


def test_fallback_pattern():
    assert re.fullmatch(r"FACT-\d{6}", fallback_document_number("FACT"))


class TestNextDocumentNumber:
    def test_first_and_second(self, db_session):
        first = next_document_number(document_type="TEST", prefix="TST", latest_number=lambda: None)
        second = next_document_number(document_type="TEST", prefix="TST", latest_number=lambda: None)
        assert (first, second) == ("TST-001", "TST-002")

    def test_types_are_independent(self, db_session):
        next_document_number(document_type="A", prefix="AAA")
        assert next_document_number(document_type="B", prefix="BBB") == "BBB-001"

    def test_seeded_from_latest_existing_number(self, db_session):
        number = next_document_number(document_type="TEST", prefix="CARGA", latest_number=lambda: "CARGA-041")
        assert number == "CARGA-042"

    def test_seed_is_read_only_once(self, db_session):
        calls = []

        def lookup():
            calls.append(1)
            return "TST-010"

        next_document_number(document_type="TEST", prefix="TST", latest_number=lookup)
        assert next_document_number(document_type="TEST", prefix="TST", latest_number=lookup) == "TST-012"
        assert len(calls) == 1

    def test_failed_lookup_falls_back(self, db_session, caplog):
        def boom():
            raise RuntimeError("lookup failed")

        number = next_document_number(document_type="TEST", prefix="TST", latest_number=boom)

        assert re.fullmatch(r"TST-\d{3,}", number)
        assert db_session.query(DocumentSequence).count() == 0
        assert "using fallback number" in caplog.text

    def test_broken_sequence_falls_back(self, db_session, monkeypatch):
        def broken(document_type):
            raise numbering_service.DocumentSequenceError("unavailable")

        monkeypatch.setattr(numbering_service, "_advance", broken)
        number = next_document_number(document_type="TEST", prefix="TST")
        assert re.fullmatch(r"TST-\d{6}", number)

    def test_fallback_keeps_callers_pending_work(self, db_session, monkeypatch):
        def locked(document_type):
            raise OperationalError("UPDATE document_sequences", {}, Exception("database is locked"))

        db_session.add(Customer(name="Pending customer"))
        db_session.flush()
        monkeypatch.setattr(numbering_service, "_advance", locked)

        number = next_document_number(document_type="TEST", prefix="TST")
        db_session.commit()

        assert re.fullmatch(r"TST-\d{6}", number)
        assert db_session.query(Customer).filter_by(name="Pending customer").count() == 1

    def test_seed_collision_takes_next_value(self, db_session, monkeypatch):
        db_session.add(DocumentSequence(document_type="TEST", next_number=5))
        db_session.commit()

        calls = []
        real_advance = numbering_service._advance

        def first_miss(document_type):
            # Report the row as absent once, as if another request created it meanwhile
            calls.append(document_type)
            if len(calls) == 1:
                return None
            return real_advance(document_type)

        monkeypatch.setattr(numbering_service, "_advance", first_miss)

        assert next_document_number(document_type="TEST", prefix="TST") == "TST-005"
        assert db_session.query(DocumentSequence).filter_by(document_type="TEST").one().next_number == 6

    def test_shipments_use_configured_prefix(self, db_session, make_shipment, product):
        first = make_shipment([(product, 1, 100)])
        second = make_shipment([(product, 1, 100)])
        assert (first.shipment_number, second.shipment_number) == ("CARGA-001", "CARGA-002")
