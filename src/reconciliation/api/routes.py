"""FastAPI routes for the Reconciliation domain: gateway callbacks and admin actions."""

from html import escape
from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from reconciliation.api.schemas import (
    CapturePaymentRequest,
    ContinueResponse,
    PaymentStateResponse,
    RefundPaymentRequest,
)
from reconciliation.exceptions import PaymentGatewayError
from reconciliation.payment.engine import ReconciliationEngine
from reconciliation.payment.orchestration import CapturePayment, RefundPayment, VoidPayment
from reconciliation.payment.outcome import Redirect
from reconciliation.registry import get_registry
from reconciliation.store.port import Order

logger = structlog.get_logger(__name__)


async def _form_fields(request: Request) -> dict[str, str]:
    form = await request.form()
    return {key: str(value) for key, value in form.items()}


def _redirect(outcome: Redirect) -> RedirectResponse:
    url = outcome.url
    if outcome.message:
        url = f"{url}?{urlencode({'message': outcome.message})}"
    return RedirectResponse(url=url, status_code=303)


def _engine(gateway_id: str | None, fields: dict[str, str] | None = None) -> ReconciliationEngine:
    registry = get_registry()
    if gateway_id is None:
        gateway_id = registry.resolve_notification_gateway(fields or {})
        if gateway_id is None:
            raise HTTPException(status_code=404, detail="Payment gateway could not be determined")
    try:
        return registry.engine_for(gateway_id)
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _order(engine: ReconciliationEngine, order_id: str) -> Order:
    order = engine.order_store.load(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} does not exist")
    return order


# ---------------------------------------------------------------------------
# Gateway Router
# ---------------------------------------------------------------------------
gateway_router = APIRouter(tags=["gateway"])


@gateway_router.post("/victoriabank/notify")
def notify(fields: dict[str, str] = Depends(_form_fields)) -> Response:
    """Receive a bank notification. The bank only ever gets an empty 200."""
    gateway_id = None
    try:
        registry = get_registry()
        gateway_id = registry.resolve_notification_gateway(fields)
        if gateway_id is None:
            logger.warning("IPN: no gateway accepts notification", order_id=fields.get("ORDER"))
        else:
            registry.engine_for(gateway_id).on_notify(fields)
    except Exception:
        logger.exception("IPN: notification rejected", gateway_id=gateway_id)
    return Response(status_code=200)


@gateway_router.post("/checkout/{order_id}/payment/return", name="payment_return", response_model=None)
def payment_return(
    order_id: str,
    gateway_id: str | None = None,
    fields: dict[str, str] = Depends(_form_fields),
) -> ContinueResponse | RedirectResponse:
    """Customer returns from the bank's payment page."""
    engine = _engine(gateway_id, fields)
    outcome = engine.on_return(_order(engine, order_id), fields)
    if isinstance(outcome, Redirect):
        return _redirect(outcome)
    return ContinueResponse(payment_id=outcome.payment_id)


@gateway_router.get("/checkout/{order_id}/payment/offsite", response_class=HTMLResponse, response_model=None)
def offsite_form(
    order_id: str,
    request: Request,
    gateway_id: str | None = None,
    language: str = "en",
) -> HTMLResponse | RedirectResponse:
    """Auto-submitting form that sends the customer to the bank."""
    engine = _engine(gateway_id, {})
    order = _order(engine, order_id)
    return_url = f"{request.url_for('payment_return', order_id=order.id)}?{urlencode({'gateway_id': engine.config.gateway_id})}"

    outcome = engine.start_authorization(order, return_url, language)
    if isinstance(outcome, Redirect):
        return _redirect(outcome)

    inputs = "\n".join(
        f'    <input type="hidden" name="{escape(name)}" value="{escape(value)}">'
        for name, value in outcome.fields.items()
    )
    return HTMLResponse(
        content=(
            "<!DOCTYPE html>\n<html><body onload=\"document.forms[0].submit()\">\n"
            f'<form method="post" action="{escape(outcome.action)}">\n{inputs}\n'
            '    <noscript><button type="submit">Proceed to payment</button></noscript>\n'
            "</form>\n</body></html>"
        )
    )


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


def _process(command, payment_id: str) -> PaymentStateResponse:
    try:
        payment = current_domain.process(command, asynchronous=False)
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.messages) from exc
    except PaymentGatewayError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    if payment is None:
        return PaymentStateResponse(payment_id=payment_id, status="pending")
    return PaymentStateResponse(
        payment_id=str(payment.id),
        status="processed",
        state=payment.state,
        remote_id=payment.remote_id,
    )


@payment_router.post("/{gateway_id}/{payment_id}/capture", response_model=PaymentStateResponse)
def capture_payment(
    gateway_id: str,
    payment_id: str,
    body: CapturePaymentRequest | None = None,
) -> PaymentStateResponse:
    """Capture an authorized payment."""
    command = CapturePayment(
        gateway_id=gateway_id,
        payment_id=payment_id,
        amount=body.amount if body else None,
    )
    return _process(command, payment_id)


@payment_router.post("/{gateway_id}/{payment_id}/void", response_model=PaymentStateResponse)
def void_payment(gateway_id: str, payment_id: str) -> PaymentStateResponse:
    """Void an uncaptured authorization."""
    command = VoidPayment(gateway_id=gateway_id, payment_id=payment_id)
    return _process(command, payment_id)


@payment_router.post("/{gateway_id}/{payment_id}/refund", response_model=PaymentStateResponse)
def refund_payment(
    gateway_id: str,
    payment_id: str,
    body: RefundPaymentRequest | None = None,
) -> PaymentStateResponse:
    """Refund a completed payment."""
    command = RefundPayment(
        gateway_id=gateway_id,
        payment_id=payment_id,
        amount=body.amount if body else None,
        currency=body.currency if body else None,
    )
    return _process(command, payment_id)
