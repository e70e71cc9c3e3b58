# Overview: Pytest coverage for the shipment stock ledger.

"""
Stock Ledger Tests

Stock is never adjusted incrementally; these tests check that it always
equals shipped quantity minus what the current invoices reserve.
"""

import pytest

from haulbook.errors import NotFoundError
from haulbook.extensions import db
from haulbook.models import ShipmentLine
from haulbook.services import stock_service
from haulbook.validation import LineItemInput


class TestComputeReserved:
    def test_no_invoices_reserves_nothing(self, db_session, shipment):
        assert stock_service.compute_reserved(shipment.id) == {}

    def test_sums_quantities_across_invoices(self, db_session, make_product, make_shipment, make_invoice):
        cement = make_product("Cement")
        rebar = make_product("Rebar")
        load = make_shipment([(cement, 20, 500), (rebar, 8, 900)])

        make_invoice(load, [(cement, 5, None), (rebar, 2, None)])
        make_invoice(load, [(cement, 7, None)])

        assert stock_service.compute_reserved(load.id) == {cement.id: 12, rebar.id: 2}

    def test_excluding_an_invoice(self, db_session, product, shipment, make_invoice):
        first = make_invoice(shipment, [(product, 3, None)])
        make_invoice(shipment, [(product, 4, None)])

        reserved = stock_service.compute_reserved(shipment.id, exclude_invoice_id=first.id)
        assert reserved == {product.id: 4}

    def test_other_shipments_do_not_count(self, db_session, product, make_shipment, make_invoice):
        load_a = make_shipment([(product, 10, 100)])
        load_b = make_shipment([(product, 10, 100)])
        make_invoice(load_b, [(product, 9, None)])

        assert stock_service.compute_reserved(load_a.id) == {}


class TestRecomputeAndPersist:
    def test_stock_matches_quantity_minus_reserved(self, db_session, product, shipment, make_invoice):
        make_invoice(shipment, [(product, 6, None)])

        stock_service.recompute_and_persist(shipment.id)
        db.session.commit()

        line = db_session.query(ShipmentLine).filter_by(shipment_id=shipment.id).one()
        assert line.stock == 4

    def test_recompute_is_idempotent(self, db_session, product, shipment, make_invoice):
        make_invoice(shipment, [(product, 6, None)])

        first = [line.stock for line in stock_service.recompute_and_persist(shipment.id).lines]
        second = [line.stock for line in stock_service.recompute_and_persist(shipment.id).lines]
        assert first == second == [4]

    def test_repairs_drifted_stock(self, db_session, product, shipment, make_invoice):
        """A stock value edited behind the ledger's back is rebuilt from invoices."""
        make_invoice(shipment, [(product, 2, None)])
        db_session.query(ShipmentLine).filter_by(shipment_id=shipment.id).update({"stock": 10})
        db_session.commit()

        stock_service.recompute_and_persist(shipment.id)
        db_session.commit()
        assert shipment.lines[0].stock == 8

    def test_missing_shipment(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.recompute_and_persist(424242)


class TestAvailableStock:
    def test_calculate_available_stock(self, db_session, make_product, make_shipment, make_invoice):
        cement = make_product("Cement")
        rebar = make_product("Rebar")
        load = make_shipment([(cement, 10, 500), (rebar, 3, 900)])
        make_invoice(load, [(cement, 4, None)])

        assert stock_service.calculate_available_stock(load.id) == {cement.id: 6, rebar.id: 3}


class TestValidateQuantityReduction:
    def test_reduction_above_reserved_is_allowed(self, db_session, product, shipment, make_invoice):
        make_invoice(shipment, [(product, 6, None)])
        errors = stock_service.validate_quantity_reduction(
            shipment.id, [LineItemInput(product_id=product.id, quantity=6, price_cents=1000)]
        )
        assert errors == []

    def test_reduction_below_reserved_is_reported(self, db_session, product, shipment, make_invoice):
        make_invoice(shipment, [(product, 6, None)])
        errors = stock_service.validate_quantity_reduction(
            shipment.id, [LineItemInput(product_id=product.id, quantity=5, price_cents=1000)]
        )
        assert len(errors) == 1
        assert "Used in invoices: 6, New quantity: 5" in errors[0]

    def test_removing_reserved_product_is_reported(self, db_session, make_product, make_shipment, make_invoice):
        cement = make_product("Cement")
        rebar = make_product("Rebar")
        load = make_shipment([(cement, 10, 500), (rebar, 3, 900)])
        make_invoice(load, [(rebar, 1, None)])

        errors = stock_service.validate_quantity_reduction(
            load.id, [LineItemInput(product_id=cement.id, quantity=10, price_cents=500)]
        )
        assert errors == [
            "Cannot remove Rebar from the shipment. Used in invoices: 1. Please delete related invoices first."
        ]


class TestInvoicesUsingProducts:
    def test_filters_by_product(self, db_session, make_product, make_shipment, make_invoice):
        cement = make_product("Cement")
        rebar = make_product("Rebar")
        load = make_shipment([(cement, 10, 500), (rebar, 5, 900)])
        with_cement = make_invoice(load, [(cement, 1, None)])
        with_rebar = make_invoice(load, [(rebar, 1, None)])

        all_ids = {inv.id for inv in stock_service.get_invoices_using_products(load.id)}
        rebar_ids = {inv.id for inv in stock_service.get_invoices_using_products(load.id, [rebar.id])}

        assert all_ids == {with_cement.id, with_rebar.id}
        assert rebar_ids == {with_rebar.id}
