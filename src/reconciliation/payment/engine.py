"""Reconciliation engine — applies gateway messages to payments.

Two channels report the outcome of an off-site authorization: the browser
return redirect (``on_return``) and the bank's server-to-server notification
(``on_notify``). Either may arrive any number of times and in any order, so
every mutation goes through one of two locked paths:

- locate-or-create, locked per order, creates at most one payment per RRN
- finalize-*, locked per payment, re-reads the stored payment and applies a
  transition only if it has not been applied already

Capture, void and refund send a follow-up request to the bank and, unless the
gateway is configured to trust IPNs only, finalize with the synchronous reply.
"""

import json
import time
from collections.abc import Callable, Iterable
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation

import structlog
from protean.exceptions import ValidationError

from reconciliation.config import GatewayConfig, Intent, IpnMode
from reconciliation.exceptions import (
    BankGatewayError,
    LockTimeoutError,
    PaymentGatewayError,
    ReconciliationError,
    ResponseParseError,
    UnknownTransactionTypeError,
)
from reconciliation.gateway import build_gateway_client
from reconciliation.gateway.port import BankGatewayClient, BankResponse, TransactionType
from reconciliation.locking.port import LockBackend
from reconciliation.payment.correlation import rrn_prefix, split_remote_id
from reconciliation.payment.outcome import Continue, OffsiteForm, Outcome, Redirect
from reconciliation.payment.payment import Payment, PaymentState
from reconciliation.store.port import Order, OrderStore, PaymentStore

logger = structlog.get_logger(__name__)

GATEWAY_ERROR_MESSAGE = (
    "An error occurred while contacting the payment gateway. "
    "Please select another payment method or contact the site administrator."
)
PAYMENT_ERROR_MESSAGE = "An error occurred while loading payment. Please contact the site administrator."


def normalize_order_id(raw) -> str | None:
    """Order ids travel zero-padded in gateway messages."""
    try:
        order_id = int(str(raw).strip())
    except (TypeError, ValueError):
        return None
    return str(order_id) if order_id > 0 else None


class ReconciliationEngine:
    def __init__(
        self,
        config: GatewayConfig,
        payment_store: PaymentStore,
        order_store: OrderStore,
        lock_backend: LockBackend,
        gateway_ids: Iterable[str] | None = None,
    ) -> None:
        self.config = config
        self.payment_store = payment_store
        self.order_store = order_store
        self.lock = lock_backend
        # Correlation queries span every gateway instance of the family
        self.gateway_ids = tuple(gateway_ids or (config.gateway_id,))

    def client(self) -> BankGatewayClient:
        return build_gateway_client(self.config)

    # -------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------
    @staticmethod
    def order_lock_name(order_id) -> str:
        return f"victoriabank_order_{order_id}"

    @staticmethod
    def payment_lock_name(payment_id) -> str:
        return f"victoriabank_payment_{payment_id}"

    @contextmanager
    def locked(self, name: str):
        """Hold ``name`` for the duration of the block: wait while busy, then acquire."""
        timeout = self.config.lock_timeout
        deadline = time.monotonic() + timeout
        while True:
            if not self.lock.lock_may_be_available(name):
                self.lock.wait(name, max(deadline - time.monotonic(), 0.0))
            if self.lock.acquire(name, ttl=timeout):
                break
            if time.monotonic() >= deadline:
                raise LockTimeoutError(name, timeout)
        try:
            yield
        finally:
            self.lock.release(name)

    # -------------------------------------------------------------------
    # Message validation
    # -------------------------------------------------------------------
    def _log_payload(self, label: str, fields: dict) -> None:
        if self.config.debug:
            logger.info(f"{label}: payload", payload=json.dumps(dict(fields), sort_keys=True))

    def _parse(self, client: BankGatewayClient, fields: dict, channel: str) -> BankResponse | None:
        try:
            response = client.parse_response(dict(fields))
        except ResponseParseError:
            logger.warning(f"{channel}: invalid gateway payload", payload=json.dumps(dict(fields), sort_keys=True))
            return None
        if not response.is_valid():
            logger.critical(f"{channel}: invalid bank response", errors=list(response.errors))
            return None
        return response

    @staticmethod
    def is_amount_matching(response: BankResponse, order: Order) -> bool:
        """The message must carry exactly the order total."""
        try:
            amount = Decimal(response.amount)
        except InvalidOperation:
            return False
        return amount == order.total_amount and response.currency == order.currency

    def _load_order(self, raw_order_id) -> Order | None:
        order_id = normalize_order_id(raw_order_id)
        return self.order_store.load(order_id) if order_id else None

    # -------------------------------------------------------------------
    # IPN channel
    # -------------------------------------------------------------------
    def on_notify(self, fields: dict[str, str]) -> None:
        """Apply an asynchronous bank notification. Never raises for a bad message."""
        if self.config.use_ipn == IpnMode.DIRECT:
            return

        self._log_payload("IPN", fields)
        response = self._parse(self.client(), fields, "IPN")
        if response is None:
            return

        order = self._load_order(response.order)
        if order is None:
            logger.critical("IPN: can't load order", order_id=response.order, gateway_id=self.config.gateway_id)
            return

        transaction_type = response.transaction_type
        if transaction_type is TransactionType.AUTHORIZATION:
            self._notify_authorization(order, response)
        elif transaction_type is TransactionType.COMPLETION:
            self._notify_completion(order, response)
        elif transaction_type is TransactionType.REVERSAL:
            self._notify_reversal(order, response)
        else:
            raise UnknownTransactionTypeError(f"Unknown bank response transaction type: {response.trtype!r}")

    def _notify_authorization(self, order: Order, response: BankResponse) -> None:
        if not self.is_amount_matching(response, order):
            logger.critical(
                "IPN: received amount is not equal to amount from order",
                order_id=order.id,
                amount=response.amount,
                currency=response.currency,
            )
            return
        try:
            self.locate_or_create_payment(order, response)
        except Exception:
            logger.exception("IPN: can't create payment for order", order_id=order.id, rrn=response.rrn)

    def _correlated_payment(self, order: Order, response: BankResponse, operation: str) -> Payment | None:
        payment = self.load_payment(response.rrn)
        if payment is None:
            logger.critical(
                f"IPN: can't find payment for {operation}",
                rrn=response.rrn,
                int_ref=response.int_ref,
                order_id=order.id,
            )
            return None
        if str(payment.order_id) != order.id:
            logger.critical(
                f"IPN: {operation} payment belongs to another order",
                payment_id=str(payment.id),
                payment_order_id=str(payment.order_id),
                order_id=order.id,
            )
            return None
        return payment

    def _notify_completion(self, order: Order, response: BankResponse) -> None:
        payment = self._correlated_payment(order, response, "completion")
        if payment is None:
            return
        try:
            self.finalize_captured_payment(payment, response)
        except Exception:
            logger.exception("IPN: completion could not be applied", payment_id=str(payment.id))

    def _notify_reversal(self, order: Order, response: BankResponse) -> None:
        payment = self._correlated_payment(order, response, "reversal")
        if payment is None:
            return
        try:
            if payment.is_in(PaymentState.COMPLETED):
                self.finalize_refund_payment(payment, response)
            elif payment.is_in(PaymentState.AUTHORIZATION):
                self.finalize_void_payment(payment, response)
            else:
                # Redelivery of a reversal that was already applied
                logger.warning(
                    "IPN: reversal for payment in a final state ignored",
                    payment_id=str(payment.id),
                    state=payment.state,
                )
        except Exception:
            logger.exception("IPN: reversal could not be applied", payment_id=str(payment.id))

    # -------------------------------------------------------------------
    # Browser return channel
    # -------------------------------------------------------------------
    def error_redirect(self, order_id: str, message: str) -> Redirect:
        return Redirect(url=self.config.checkout_step_url(order_id), message=message)

    def on_return(self, order: Order, fields: dict[str, str]) -> Outcome:
        """Handle the customer's redirect back from the bank."""
        self._log_payload("Return", fields)
        if self.config.use_ipn == IpnMode.IPN_ONLY:
            # Payments are created from IPNs only
            return Continue()

        response = self._parse(self.client(), fields, "Return")
        if response is None:
            return self.error_redirect(order.id, GATEWAY_ERROR_MESSAGE)

        if (
            response.transaction_type is not TransactionType.AUTHORIZATION
            or normalize_order_id(response.order) != order.id
            or not self.is_amount_matching(response, order)
        ):
            logger.critical(
                "Return: bank response does not match order",
                order_id=order.id,
                response_order=response.order,
                trtype=response.trtype,
                amount=response.amount,
                currency=response.currency,
            )
            return self.error_redirect(order.id, GATEWAY_ERROR_MESSAGE)

        try:
            payment = self.locate_or_create_payment(order, response)
        except (ReconciliationError, ValidationError):
            logger.exception("Return: can't load payment for order", order_id=order.id)
            return self.error_redirect(order.id, PAYMENT_ERROR_MESSAGE)
        return Continue(payment_id=str(payment.id))

    def start_authorization(self, order: Order, return_url: str, language: str = "en") -> OffsiteForm | Redirect:
        """Build the off-site form that sends the customer to the bank."""
        email = order.email or self.config.merchant_email
        logger.info(
            "Send authorization request",
            order_id=order.id,
            amount=str(order.total_amount),
            currency=order.currency,
            return_url=return_url,
            email=email,
        )
        try:
            request = self.client().send_authorization_request(
                order_id=order.id,
                amount=float(order.total_amount),
                return_url=return_url,
                currency=order.currency,
                description=f"Order {order.id} payment",
                email=email,
                language=language,
            )
        except BankGatewayError as exc:
            logger.critical("Error sending authorization request", order_id=order.id, error=str(exc))
            return self.error_redirect(order.id, GATEWAY_ERROR_MESSAGE)
        return OffsiteForm(action=request.action, fields=dict(request.fields))

    # -------------------------------------------------------------------
    # Locate-or-create
    # -------------------------------------------------------------------
    def load_payment(self, rrn: str) -> Payment | None:
        """Find the payment of the authorization identified by ``rrn``."""
        if not rrn:
            return None
        payments = self.payment_store.query_by_remote_id_prefix(rrn_prefix(rrn), self.gateway_ids)
        return payments[0] if payments else None

    def create_payment(self, order: Order, response: BankResponse) -> Payment:
        payment = Payment.authorize(
            order_id=order.id,
            gateway_id=self.config.gateway_id,
            amount=float(response.amount),
            currency=response.currency,
            rrn=response.rrn,
            int_ref=response.int_ref,
            remote_state=response.rc,
            test=self.config.is_test,
        )
        self.payment_store.create(payment)
        logger.info(
            "Authorized payment",
            payment_id=str(payment.id),
            order_id=order.id,
            remote_id=payment.remote_id,
        )
        return payment

    def locate_or_create_payment(self, order: Order, response: BankResponse) -> Payment:
        """Return the payment for this authorization, creating it at most once."""
        with self.locked(self.order_lock_name(order.id)):
            payment = self.load_payment(response.rrn)
            if payment is None:
                payment = self.create_payment(order, response)

        # Outside the order lock: capture is a network round-trip
        if payment.is_in(PaymentState.AUTHORIZATION) and self.config.intent is Intent.CAPTURE:
            try:
                captured = self.capture_payment(payment)
            except (PaymentGatewayError, ValidationError):
                logger.exception("Automatic capture failed", payment_id=str(payment.id), order_id=order.id)
            else:
                if captured is not None:
                    payment = captured
        return payment

    # -------------------------------------------------------------------
    # Capture / void / refund
    # -------------------------------------------------------------------
    def _round_trip(
        self,
        operation: str,
        payment: Payment,
        expected: TransactionType,
        send: Callable[[BankGatewayClient], dict],
    ) -> BankResponse | None:
        """Send a follow-up request and validate the bank's synchronous reply.

        Returns None when only IPNs may update payments.
        """
        client = self.client()
        try:
            raw = send(client)
        except BankGatewayError as exc:
            logger.critical(f"{operation} request failed", payment_id=str(payment.id), error=str(exc))
            raise PaymentGatewayError(f"{operation} request for payment {payment.id} failed: {exc}") from exc

        self._log_payload(f"{operation} response", raw)
        if self.config.use_ipn == IpnMode.IPN_ONLY:
            return None

        try:
            response = client.parse_response(raw)
        except ResponseParseError as exc:
            logger.critical(f"{operation} response unreadable", payment_id=str(payment.id), error=str(exc))
            raise PaymentGatewayError(f"{operation} response for payment {payment.id} unreadable: {exc}") from exc
        if not response.is_valid() or response.transaction_type is not expected:
            logger.critical(
                f"{operation} response invalid",
                payment_id=str(payment.id),
                trtype=response.trtype,
                errors=list(response.errors),
            )
            raise PaymentGatewayError(
                f"Invalid bank response to {operation.lower()} of payment {payment.id}: {'; '.join(response.errors)}"
            )
        return response

    def _finalize_reply(self, operation: str, payment: Payment, finalize, response: BankResponse) -> Payment:
        try:
            return finalize(payment, response)
        except LockTimeoutError as exc:
            logger.critical(f"{operation} could not be finalized", payment_id=str(payment.id), error=str(exc))
            raise PaymentGatewayError(f"{operation} of payment {payment.id} could not be finalized: {exc}") from exc

    def capture_payment(self, payment: Payment, amount: float | None = None) -> Payment | None:
        """Complete an authorization. Returns the captured payment, or None if an IPN will finalize it."""
        payment.assert_state(PaymentState.AUTHORIZATION)
        amount = payment.amount if amount is None else float(amount)
        if amount <= 0 or amount > payment.amount:
            raise ValidationError({"amount": [f"Capture amount {amount} must be positive and at most {payment.amount}"]})
        rrn, int_ref = split_remote_id(payment.remote_id)

        response = self._round_trip(
            "Capture",
            payment,
            TransactionType.COMPLETION,
            lambda client: client.send_completion_request(
                order_id=str(payment.order_id),
                amount=amount,
                rrn=rrn,
                int_ref=int_ref,
                currency=payment.currency,
            ),
        )
        if response is None:
            return None
        return self._finalize_reply("Capture", payment, self.finalize_captured_payment, response)

    def void_payment(self, payment: Payment) -> Payment | None:
        """Reverse an authorization that was never captured."""
        payment.assert_state(PaymentState.AUTHORIZATION)
        rrn, int_ref = split_remote_id(payment.remote_id)

        response = self._round_trip(
            "Void",
            payment,
            TransactionType.REVERSAL,
            lambda client: client.send_reversal_request(
                order_id=str(payment.order_id),
                amount=payment.amount,
                rrn=rrn,
                int_ref=int_ref,
                currency=payment.currency,
            ),
        )
        if response is None:
            return None
        return self._finalize_reply("Void", payment, self.finalize_void_payment, response)

    def refund_payment(self, payment: Payment, amount: float | None = None, currency: str | None = None) -> Payment | None:
        """Reverse a completed payment, in full unless ``amount`` is given."""
        payment.assert_state(PaymentState.COMPLETED)
        amount = payment.amount if amount is None else float(amount)
        currency = currency or payment.currency
        if currency != payment.currency:
            raise ValidationError({"currency": [f"Refund currency {currency} does not match payment currency {payment.currency}"]})
        if amount <= 0 or amount > payment.amount:
            raise ValidationError({"amount": [f"Refund amount {amount} must be positive and at most {payment.amount}"]})
        rrn, int_ref = split_remote_id(payment.remote_id)

        response = self._round_trip(
            "Refund",
            payment,
            TransactionType.REVERSAL,
            lambda client: client.send_reversal_request(
                order_id=str(payment.order_id),
                amount=amount,
                rrn=rrn,
                int_ref=int_ref,
                currency=currency,
            ),
        )
        if response is None:
            return None
        return self._finalize_reply("Refund", payment, self.finalize_refund_payment, response)

    # -------------------------------------------------------------------
    # Finalize operations
    # -------------------------------------------------------------------
    def _finalize(self, payment: Payment, target: PaymentState, apply: Callable[[Payment], None]) -> Payment:
        with self.locked(self.payment_lock_name(payment.id)):
            current = self.payment_store.load_unchanged(payment.id)
            if current.is_in(target):
                logger.info("Payment already finalized", payment_id=str(current.id), state=current.state)
                return current
            apply(current)
            self.payment_store.save(current)
        return current

    def finalize_captured_payment(self, payment: Payment, response: BankResponse) -> Payment:
        payment = self._finalize(payment, PaymentState.COMPLETED, lambda current: current.mark_captured(response.int_ref))
        logger.info(
            "Captured payment",
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            amount=payment.amount,
            currency=payment.currency,
            remote_id=payment.remote_id,
        )
        return payment

    def finalize_refund_payment(self, payment: Payment, response: BankResponse) -> Payment:
        payment = self._finalize(
            payment,
            PaymentState.REFUNDED,
            lambda current: current.mark_refunded(float(response.amount), response.currency),
        )
        logger.info(
            "Refunded payment",
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            amount=payment.refunded_amount,
            currency=payment.refunded_currency,
        )
        return payment

    def finalize_void_payment(self, payment: Payment, response: BankResponse) -> Payment:
        payment = self._finalize(payment, PaymentState.AUTHORIZATION_VOIDED, lambda current: current.mark_voided())
        logger.info("Voided payment", payment_id=str(payment.id), order_id=str(payment.order_id))
        return payment
