from datetime import timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from orderboard.errors import (
    InventoryUnitUnavailable,
    OrderNotFound,
    OrderStatusError,
    RemoteWriteError,
    SaleCompletionError,
)
from orderboard.extensions import db
from orderboard.models import DisplayNumberSequence, InventoryUnit, Order, OrderLine, OrderPayment
from orderboard.services import order_store
from orderboard.services.order_types import DraftAddress, DraftItem

from conftest import FIXED_NOW


def _complete(draft):
    return order_store.complete_sale(**draft.to_rpc())


def _counts():
    return (
        db.session.query(Order).count(),
        db.session.query(OrderLine).count(),
        db.session.query(OrderPayment).count(),
    )


class TestCompleteSale:

    def test_creates_header_lines_and_payments(self, make_draft):
        receipt = _complete(make_draft(payments=[("pix", 5000)]))

        order = db.session.get(Order, receipt.order_id)
        assert receipt.display_number == 1
        assert order.status == "received"
        assert order.total_cents == 5990 + 2 * 1200
        assert order.change_cents == 0
        assert order.scheduled_at == FIXED_NOW + timedelta(hours=2)
        assert [(line.name, line.quantity, line.line_total_cents) for line in order.lines] == [
            ("Frango Assado", 1, 5990),
            ("Farofa", 2, 2400),
        ]
        assert [(p.method, p.amount_cents) for p in order.payments] == [("pix", 5000)]

    def test_display_numbers_are_sequential(self, make_draft):
        first = _complete(make_draft())
        second = _complete(make_draft())
        third = _complete(make_draft())
        assert [first.display_number, second.display_number, third.display_number] == [1, 2, 3]
        assert db.session.get(DisplayNumberSequence, order_store.DISPLAY_SEQUENCE).next_number == 4

    def test_sequence_seeds_past_existing_numbers(self, make_draft):
        db.session.add(Order(display_number=41, status="delivered", total_cents=100))
        db.session.commit()

        receipt = _complete(make_draft())
        assert receipt.display_number == 42

    def test_failure_after_header_leaves_no_trace(self, make_draft, monkeypatch):
        def broken_insert(order, payments):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(order_store, "_insert_payments", broken_insert)

        with pytest.raises(RemoteWriteError):
            _complete(make_draft(payments=[("cash", 10000)]))

        assert _counts() == (0, 0, 0)
        assert db.session.query(DisplayNumberSequence).count() == 0

        monkeypatch.undo()
        receipt = _complete(make_draft())
        assert receipt.display_number == 1

    def test_domain_error_inside_transaction_rolls_back(self, make_draft, monkeypatch):
        def broken_insert(order, payments):
            raise SaleCompletionError("payment gateway rejected")

        monkeypatch.setattr(order_store, "_insert_payments", broken_insert)

        with pytest.raises(SaleCompletionError):
            _complete(make_draft(payments=[("pix", 100)]))
        assert _counts() == (0, 0, 0)

    def test_rejects_empty_items(self, make_draft):
        draft = make_draft()
        draft.items = []
        with pytest.raises(SaleCompletionError):
            _complete(draft)
        assert _counts() == (0, 0, 0)

    def test_rejects_mismatched_total(self, make_draft):
        rpc = make_draft().to_rpc()
        rpc["sale"]["total_cents"] += 1
        with pytest.raises(SaleCompletionError) as exc:
            order_store.complete_sale(**rpc)
        assert exc.value.details["field"] == "total_cents"
        assert _counts() == (0, 0, 0)

    def test_rejects_unknown_product(self, make_draft):
        rpc = make_draft().to_rpc()
        rpc["items"][0]["catalog_product_id"] = 9999
        with pytest.raises(SaleCompletionError):
            order_store.complete_sale(**rpc)


class TestPayments:

    def test_cash_overpayment_becomes_change(self, make_draft):
        receipt = _complete(make_draft(payments=[("pix", 4000), ("cash", 5000)]))
        order = db.session.get(Order, receipt.order_id)
        assert order.change_cents == 9000 - 8390

    def test_overpayment_without_cash_rejected(self, make_draft):
        with pytest.raises(SaleCompletionError) as exc:
            _complete(make_draft(payments=[("card_credit", 9000)]))
        assert exc.value.details["field"] == "payments"
        assert _counts() == (0, 0, 0)

    def test_partial_payment_allowed(self, make_draft):
        receipt = _complete(make_draft(payments=[("pix", 1000)]))
        order = db.session.get(Order, receipt.order_id)
        assert sum(p.amount_cents for p in order.payments) == 1000

    def test_unknown_method_rejected(self, make_draft):
        with pytest.raises(SaleCompletionError):
            _complete(make_draft(payments=[("voucher", 1000)]))


class TestDelivery:

    def test_fee_added_to_total_with_saved_address(self, make_draft, customer):
        draft = make_draft(
            is_delivery=True,
            delivery_fee_cents=800,
            delivery_address_id=customer.addresses[0].id,
            client_id=customer.id,
        )
        order = db.session.get(Order, _complete(draft).order_id)
        assert order.total_cents == 8390 + 800
        assert order.delivery_address_id == customer.addresses[0].id

    def test_manual_address_is_stored(self, make_draft):
        draft = make_draft(
            is_delivery=True,
            address=DraftAddress(street="Av. Brasil", number="55", neighborhood="Jardins"),
        )
        order = db.session.get(Order, _complete(draft).order_id)
        assert (order.delivery_street, order.delivery_number, order.delivery_neighborhood) == (
            "Av. Brasil", "55", "Jardins",
        )

    def test_incomplete_manual_address_rejected(self, make_draft):
        draft = make_draft(is_delivery=True, address=DraftAddress(street="Av. Brasil"))
        with pytest.raises(SaleCompletionError) as exc:
            _complete(draft)
        assert exc.value.details["missing"] == ["number", "neighborhood"]

    def test_pickup_ignores_fee(self, make_draft):
        order = db.session.get(Order, _complete(make_draft(delivery_fee_cents=800)).order_id)
        assert order.total_cents == 8390
        assert order.delivery_fee_cents == 0


class TestPreboundUnits:

    def test_unit_is_claimed_by_the_sale(self, make_draft, units):
        unit = units["chicken"][0]
        draft = make_draft()
        draft.items[0].inventory_unit_id = unit.id

        receipt = _complete(draft)

        unit = db.session.get(InventoryUnit, unit.id)
        assert unit.status == "sold"
        assert unit.order_id == receipt.order_id

    def test_sold_unit_rejects_whole_sale(self, make_draft, units):
        unit = units["chicken"][0]
        first = make_draft()
        first.items[0].inventory_unit_id = unit.id
        _complete(first)

        second = make_draft()
        second.items[0].inventory_unit_id = unit.id
        with pytest.raises(InventoryUnitUnavailable):
            _complete(second)
        assert _counts()[0] == 1


class TestUpdateOrderStatus:

    def test_sets_status(self, make_draft):
        receipt = _complete(make_draft())
        order = order_store.update_order_status(receipt.order_id, "preparing")
        assert order.status == "preparing"

    def test_same_status_is_a_noop(self, make_draft):
        receipt = _complete(make_draft())
        order_store.update_order_status(receipt.order_id, "delivered")
        order = order_store.update_order_status(receipt.order_id, "delivered")
        assert order.status == "delivered"

    def test_terminal_status_is_final(self, make_draft):
        receipt = _complete(make_draft())
        order_store.update_order_status(receipt.order_id, "cancelled")
        with pytest.raises(OrderStatusError):
            order_store.update_order_status(receipt.order_id, "received")
        assert db.session.get(Order, receipt.order_id).status == "cancelled"

    def test_unknown_status_rejected(self, make_draft):
        receipt = _complete(make_draft())
        with pytest.raises(OrderStatusError):
            order_store.update_order_status(receipt.order_id, "shipped")

    def test_unknown_order(self, db_session):
        with pytest.raises(OrderNotFound):
            order_store.update_order_status("missing", "ready")


class TestCheckAndSetReady:

    def test_false_while_internal_line_unlinked(self, make_draft):
        receipt = _complete(make_draft())
        assert order_store.check_and_set_ready(receipt.order_id) is False
        assert db.session.get(Order, receipt.order_id).status == "received"

    def test_true_when_all_internal_lines_linked(self, make_draft, units):
        draft = make_draft()
        draft.items[0].inventory_unit_id = units["chicken"][0].id
        receipt = _complete(draft)

        assert order_store.check_and_set_ready(receipt.order_id) is True
        assert db.session.get(Order, receipt.order_id).status == "ready"

    def test_false_without_internal_lines(self, make_draft, products):
        draft = make_draft()
        draft.items = [DraftItem(catalog_product_id=products["farofa"].id, name="Farofa", unit_price_cents=1200)]
        receipt = _complete(draft)
        assert order_store.check_and_set_ready(receipt.order_id) is False

    def test_never_moves_past_ready(self, make_draft, units):
        draft = make_draft()
        draft.items[0].inventory_unit_id = units["chicken"][0].id
        receipt = _complete(draft)
        order_store.update_order_status(receipt.order_id, "delivered")

        assert order_store.check_and_set_ready(receipt.order_id) is False
        assert db.session.get(Order, receipt.order_id).status == "delivered"


class TestUpdateOrder:

    def test_replaces_lines_and_recomputes_total(self, make_draft, products, units):
        draft = make_draft(payments=[("cash", 10000)])
        draft.items[0].inventory_unit_id = units["chicken"][0].id
        receipt = _complete(draft)

        edit = make_draft(scheduled_at=FIXED_NOW + timedelta(hours=5), notes="sem sal")
        edit.items = [
            DraftItem(
                catalog_product_id=products["chicken"].id,
                name="Frango Assado",
                unit_price_cents=5990,
                inventory_unit_id=units["chicken"][1].id,
            ),
            DraftItem(catalog_product_id=products["ribs"].id, name="Costela Assada", unit_price_cents=8990),
        ]
        rpc = edit.to_rpc()
        order = order_store.update_order(receipt.order_id, rpc["sale"], rpc["items"])

        assert [line.name for line in order.lines] == ["Frango Assado", "Costela Assada"]
        assert order.total_cents == 5990 + 8990
        assert order.notes == "sem sal"
        assert order.scheduled_at == FIXED_NOW + timedelta(hours=5)
        # Payments untouched, change follows the new total
        assert [(p.method, p.amount_cents) for p in order.payments] == [("cash", 10000)]
        assert order.change_cents == 0

        released = db.session.get(InventoryUnit, units["chicken"][0].id)
        claimed = db.session.get(InventoryUnit, units["chicken"][1].id)
        assert released.status == "available" and released.order_id is None
        assert claimed.status == "sold" and claimed.order_id == receipt.order_id

    def test_kept_unit_stays_bound(self, make_draft, units):
        draft = make_draft()
        draft.items[0].inventory_unit_id = units["chicken"][0].id
        receipt = _complete(draft)

        rpc = draft.to_rpc()
        rpc["items"][1]["quantity"] = 3
        rpc["items"][1]["line_total_cents"] = 3600
        order = order_store.update_order(receipt.order_id, rpc["sale"], rpc["items"])

        assert order.lines[0].inventory_unit_id == units["chicken"][0].id
        assert db.session.get(InventoryUnit, units["chicken"][0].id).status == "sold"
        assert order.total_cents == 5990 + 3600

    def test_switch_to_manual_delivery(self, make_draft):
        receipt = _complete(make_draft())
        edit = make_draft(
            is_delivery=True,
            delivery_fee_cents=500,
            address=DraftAddress(street="Rua A", number="1", neighborhood="Centro"),
        )
        rpc = edit.to_rpc()
        order = order_store.update_order(receipt.order_id, rpc["sale"], rpc["items"])
        assert order.is_delivery is True
        assert order.delivery_street == "Rua A"
        assert order.total_cents == 8390 + 500

    def test_terminal_order_cannot_be_edited(self, make_draft):
        receipt = _complete(make_draft())
        order_store.update_order_status(receipt.order_id, "delivered")
        rpc = make_draft().to_rpc()
        with pytest.raises(OrderStatusError):
            order_store.update_order(receipt.order_id, rpc["sale"], rpc["items"])

    def test_unknown_order(self, make_draft):
        rpc = make_draft().to_rpc()
        with pytest.raises(OrderNotFound):
            order_store.update_order("missing", rpc["sale"], rpc["items"])

    def test_rejected_edit_leaves_order_untouched(self, make_draft):
        receipt = _complete(make_draft())
        edit = make_draft(is_delivery=True, delivery_address_id=9999)
        edit.items = edit.items[:1]
        rpc = edit.to_rpc()

        with pytest.raises(SaleCompletionError):
            order_store.update_order(receipt.order_id, rpc["sale"], rpc["items"])

        db.session.expire_all()
        order = db.session.get(Order, receipt.order_id)
        assert [line.name for line in order.lines] == ["Frango Assado", "Farofa"]
        assert order.total_cents == 8390
        assert order.total_cents == sum(line.line_total_cents for line in order.lines)

    def test_unknown_client_rejected_before_lines_change(self, make_draft):
        receipt = _complete(make_draft())
        rpc = make_draft().to_rpc()
        rpc["sale"]["client_id"] = 424242
        rpc["items"] = rpc["items"][1:]

        with pytest.raises(SaleCompletionError):
            order_store.update_order(receipt.order_id, rpc["sale"], rpc["items"])

        db.session.expire_all()
        assert db.session.query(OrderLine).filter_by(order_id=receipt.order_id).count() == 2


class TestScheduledAtInput:

    @pytest.mark.parametrize("value", [12345, ["2026-10-18"], {"at": "noon"}, "tomorrow"])
    def test_non_iso_values_are_rejected(self, make_draft, value):
        rpc = make_draft().to_rpc()
        rpc["sale"]["scheduled_at"] = value
        with pytest.raises(SaleCompletionError) as exc:
            order_store.complete_sale(**rpc)
        assert exc.value.details["field"] == "scheduled_at"
        assert _counts() == (0, 0, 0)
