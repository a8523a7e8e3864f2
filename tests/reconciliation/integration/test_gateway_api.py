"""Integration tests for the gateway callback endpoints via TestClient."""

import inspect

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from reconciliation.api import routes
from reconciliation.api.routes import gateway_router
from reconciliation.gateway.port import AMOUNT, P_SIGN, TRTYPE, TransactionType
from reconciliation.payment.payment import PaymentState


@pytest.fixture()
def client(registry):
    app = FastAPI()
    app.include_router(gateway_router)
    return TestClient(app)


class TestNotifyAPI:
    def test_authorization_creates_payment(self, client, order, payment_store, bank_message):
        response = client.post("/victoriabank/notify", data=bank_message(TransactionType.AUTHORIZATION))

        assert response.status_code == 200
        assert response.content == b""
        payments = payment_store.all()
        assert len(payments) == 1
        assert payments[0].state == PaymentState.COMPLETED.value

    def test_invalid_message_still_answers_200(self, client, order, payment_store, bank_message):
        fields = bank_message(TransactionType.AUTHORIZATION)
        fields[P_SIGN] = "forged"
        response = client.post("/victoriabank/notify", data=fields)

        assert response.status_code == 200
        assert payment_store.all() == []

    def test_unknown_transaction_type_answers_200(self, client, order, bank_message):
        fields = bank_message(TransactionType.AUTHORIZATION)
        fields[TRTYPE] = "99"
        response = client.post("/victoriabank/notify", data=fields)
        assert response.status_code == 200

    def test_empty_post_answers_200(self, client):
        assert client.post("/victoriabank/notify").status_code == 200

    def test_unreadable_reversal_amount_answers_200(self, client, order, payment_store, bank_message):
        client.post("/victoriabank/notify", data=bank_message(TransactionType.AUTHORIZATION))
        fields = bank_message(TransactionType.REVERSAL)
        fields[AMOUNT] = "abc"
        response = client.post("/victoriabank/notify", data=fields)

        assert response.status_code == 200
        assert response.content == b""
        assert payment_store.all()[0].state == PaymentState.COMPLETED.value


class TestReturnAPI:
    def test_successful_return_continues(self, client, order, payment_store, bank_message):
        response = client.post(
            "/checkout/42/payment/return",
            data=bank_message(TransactionType.AUTHORIZATION),
            follow_redirects=False,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "continue"
        assert body["payment_id"] == str(payment_store.all()[0].id)

    def test_invalid_return_redirects_to_order_information(self, client, order, bank_message):
        fields = bank_message(TransactionType.AUTHORIZATION)
        fields[P_SIGN] = "forged"
        response = client.post(
            "/checkout/42/payment/return?gateway_id=victoriabank_redirect",
            data=fields,
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert response.headers["location"].startswith("https://shop.example.md/checkout/42/order_information?message=")

    def test_unknown_order(self, client, bank_message):
        response = client.post(
            "/checkout/404/payment/return",
            data=bank_message(TransactionType.AUTHORIZATION, order_id="404"),
            follow_redirects=False,
        )
        assert response.status_code == 404

    def test_unknown_gateway(self, client, order, bank_message):
        response = client.post(
            "/checkout/42/payment/return?gateway_id=other_gateway",
            data=bank_message(TransactionType.AUTHORIZATION),
            follow_redirects=False,
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Gateway other_gateway is not configured"


class TestOffsiteFormAPI:
    def test_renders_auto_submit_form(self, client, order):
        response = client.get("/checkout/42/payment/offsite?language=ro")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert 'action="https://ecomt.victoriabank.md/cgi-bin/cgi_link"' in response.text
        assert 'name="ORDER" value="42"' in response.text
        assert 'name="LANG" value="ro"' in response.text
        assert "/checkout/42/payment/return?gateway_id=victoriabank_redirect" in response.text

    def test_gateway_failure_redirects(self, client, bank, order):
        bank.configure(fail_transport=True)
        response = client.get("/checkout/42/payment/offsite", follow_redirects=False)
        assert response.status_code == 303

    def test_unknown_order(self, client):
        assert client.get("/checkout/404/payment/offsite").status_code == 404


class TestHandlersRunInThreadpool:
    @pytest.mark.parametrize(
        "handler",
        [
            routes.notify,
            routes.payment_return,
            routes.offsite_form,
            routes.capture_payment,
            routes.void_payment,
            routes.refund_payment,
        ],
    )
    def test_handler_is_sync(self, handler):
        # Blocking lock waits and bank round-trips must stay off the event loop
        assert not inspect.iscoroutinefunction(handler)
