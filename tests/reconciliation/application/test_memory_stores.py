"""Tests for the in-memory order and payment stores."""

from decimal import Decimal

import pytest
from protean.exceptions import ObjectNotFoundError
from reconciliation.payment.events import PaymentAuthorized, PaymentCaptured
from reconciliation.payment.payment import Payment, PaymentState
from reconciliation.store.memory_adapter import MemoryOrderStore, MemoryPaymentStore


def _make_payment(rrn="RRN0001", order_id="42", gateway_id="victoriabank_redirect"):
    return Payment.authorize(
        order_id=order_id,
        gateway_id=gateway_id,
        amount=100.0,
        currency="MDL",
        rrn=rrn,
        int_ref="INT0001",
    )


class TestMemoryOrderStore:
    def test_add_and_load(self):
        store = MemoryOrderStore()
        store.add(42, "100.50", "MDL", email="buyer@example.md")
        order = store.load("42")
        assert order.id == "42"
        assert order.total_amount == Decimal("100.50")
        assert order.currency == "MDL"
        assert order.email == "buyer@example.md"

    def test_missing_order(self):
        assert MemoryOrderStore().load("404") is None


class TestMemoryPaymentStore:
    def test_create_and_load(self):
        store = MemoryPaymentStore()
        payment = store.create(_make_payment())
        loaded = store.load_unchanged(payment.id)
        assert loaded.remote_id == "RRN0001|INT0001"
        assert loaded.state == PaymentState.AUTHORIZATION.value

    def test_load_returns_fresh_object(self):
        store = MemoryPaymentStore()
        payment = store.create(_make_payment())
        payment.mark_captured("INT0002")
        assert store.load_unchanged(payment.id).state == PaymentState.AUTHORIZATION.value
        assert store.load_unchanged(payment.id) is not store.load_unchanged(payment.id)

    def test_save_persists_changes(self):
        store = MemoryPaymentStore()
        payment = store.create(_make_payment())
        payment.mark_captured("INT0002")
        store.save(payment)
        assert store.load_unchanged(payment.id).remote_id == "RRN0001|INT0002|INT0001"

    def test_create_duplicate_rejected(self):
        store = MemoryPaymentStore()
        payment = store.create(_make_payment())
        with pytest.raises(ValueError):
            store.create(payment)

    def test_save_unknown_payment(self):
        with pytest.raises(ObjectNotFoundError):
            MemoryPaymentStore().save(_make_payment())

    def test_load_unknown_payment(self):
        with pytest.raises(ObjectNotFoundError):
            MemoryPaymentStore().load_unchanged("missing")

    def test_events_are_collected(self):
        store = MemoryPaymentStore()
        payment = store.create(_make_payment())
        payment.mark_captured("INT0002")
        store.save(payment)
        assert [type(e) for e in store.events] == [PaymentAuthorized, PaymentCaptured]
        assert payment._events == []

    def test_query_by_remote_id_prefix(self):
        store = MemoryPaymentStore()
        store.create(_make_payment(rrn="RRN0001"))
        store.create(_make_payment(rrn="RRN00011"))
        found = store.query_by_remote_id_prefix("RRN0001|", ["victoriabank_redirect"])
        assert [p.remote_id for p in found] == ["RRN0001|INT0001"]

    def test_query_is_scoped_to_gateways(self):
        store = MemoryPaymentStore()
        store.create(_make_payment(gateway_id="other_gateway"))
        assert store.query_by_remote_id_prefix("RRN0001|", ["victoriabank_redirect"]) == []

    def test_find_by_order(self):
        store = MemoryPaymentStore()
        store.create(_make_payment(order_id="42"))
        store.create(_make_payment(order_id="43", rrn="RRN0002"))
        found = store.find_by_order("43", ["victoriabank_redirect"])
        assert len(found) == 1
        assert found[0].remote_id == "RRN0002|INT0001"

    def test_all(self):
        store = MemoryPaymentStore()
        store.create(_make_payment(rrn="RRN0001"))
        store.create(_make_payment(rrn="RRN0002"))
        assert len(store.all()) == 2
