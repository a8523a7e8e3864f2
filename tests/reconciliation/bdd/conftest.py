"""Shared BDD fixtures and step definitions for the Reconciliation domain."""

import pytest
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when
from reconciliation.config import Intent, IpnMode
from reconciliation.gateway.port import P_SIGN, TransactionType
from reconciliation.payment.outcome import Continue, Redirect


@pytest.fixture()
def outcome():
    """Container for the result of the last customer-facing step."""
    return {"value": None, "exc": None}


def _payment(payment_store, order):
    payments = payment_store.find_by_order(order.id, ["victoriabank_redirect"])
    assert len(payments) == 1, f"Expected one payment, found {len(payments)}"
    return payments[0]


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("the gateway captures payments automatically", target_fixture="engine")
def _capturing_gateway(make_engine):
    return make_engine(intent=Intent.CAPTURE, use_ipn=IpnMode.BOTH)


@given("the gateway only authorizes payments", target_fixture="engine")
def _authorizing_gateway(make_engine):
    return make_engine(intent=Intent.AUTHORIZE, use_ipn=IpnMode.BOTH)


@given("the gateway trusts direct bank responses only", target_fixture="engine")
def _direct_gateway(make_engine):
    return make_engine(use_ipn=IpnMode.DIRECT)


@given(parsers.cfparse("an order {order_id} of {amount} {currency}"), target_fixture="order")
def _an_order(order_store, order_id, amount, currency):
    return order_store.add(order_id, amount, currency)


@given(parsers.cfparse('the bank will issue INT_REF "{int_ref}" on completion'))
def _next_int_ref(bank, int_ref):
    bank.next_int_ref = int_ref


@given("the bank declines follow-up requests")
def _bank_declines(bank):
    bank.configure(should_succeed=False)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse("the bank notifies an authorization of {amount} {currency}"))
def _notify_authorization(engine, order, bank_message, amount, currency):
    engine.on_notify(bank_message(TransactionType.AUTHORIZATION, order_id=order.id, amount=amount, currency=currency))


@when(parsers.cfparse('the bank notifies a completion with INT_REF "{int_ref}"'))
def _notify_completion(engine, order, bank_message, int_ref):
    engine.on_notify(bank_message(TransactionType.COMPLETION, order_id=order.id, int_ref=int_ref))


@when("the bank notifies a reversal")
def _notify_reversal(engine, order, bank_message):
    engine.on_notify(bank_message(TransactionType.REVERSAL, order_id=order.id))


@when(parsers.cfparse("the customer returns with an authorization of {amount} {currency}"))
def _customer_returns(engine, order, bank_message, outcome, amount, currency):
    fields = bank_message(TransactionType.AUTHORIZATION, order_id=order.id, amount=amount, currency=currency)
    outcome["value"] = engine.on_return(order, fields)


@when("the customer returns with a forged authorization")
def _customer_returns_forged(engine, order, bank_message, outcome):
    fields = bank_message(TransactionType.AUTHORIZATION, order_id=order.id)
    fields[P_SIGN] = "forged"
    outcome["value"] = engine.on_return(order, fields)


@when("the merchant refunds the payment")
def _merchant_refunds(engine, order, payment_store, outcome):
    try:
        engine.refund_payment(_payment(payment_store, order))
    except ValidationError as exc:
        outcome["exc"] = exc


@when("the merchant voids the payment")
def _merchant_voids(engine, order, payment_store, outcome):
    try:
        engine.void_payment(_payment(payment_store, order))
    except ValidationError as exc:
        outcome["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("there is exactly one payment for the order")
def _one_payment(payment_store, order):
    _payment(payment_store, order)


@then("no payment exists for the order")
def _no_payment(payment_store, order):
    assert payment_store.find_by_order(order.id, ["victoriabank_redirect"]) == []


@then(parsers.cfparse('the payment state is "{state}"'))
def _payment_state(payment_store, order, state):
    assert _payment(payment_store, order).state == state


@then(parsers.cfparse('the payment remote id is "{remote_id}"'))
def _payment_remote_id(payment_store, order, remote_id):
    assert _payment(payment_store, order).remote_id == remote_id


@then(parsers.cfparse("a refund of {amount:f} {currency} is recorded"))
def _refund_recorded(payment_store, order, amount, currency):
    payment = _payment(payment_store, order)
    assert payment.refunded_amount == amount
    assert payment.refunded_currency == currency


@then("the customer continues checkout")
def _customer_continues(outcome):
    assert isinstance(outcome["value"], Continue)


@then("the customer is sent back to the order information step")
def _customer_sent_back(outcome, order):
    assert isinstance(outcome["value"], Redirect)
    assert outcome["value"].url.endswith(f"/checkout/{order.id}/order_information")


@then("the operation is rejected")
def _operation_rejected(outcome):
    assert isinstance(outcome["exc"], ValidationError)
