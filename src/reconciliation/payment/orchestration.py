"""Capture, void and refund — commands and handler.

Merchant-initiated follow-up operations on an existing payment. The handler
resolves the engine of the payment's gateway and delegates to it; the engine
finalizes the payment from the bank's synchronous reply.
"""

from protean import handle
from protean.fields import Float, Identifier, String

from reconciliation.domain import reconciliation
from reconciliation.payment.payment import Payment
from reconciliation.registry import get_registry


@reconciliation.command(part_of="Payment")
class CapturePayment:
    """Capture an authorized payment, in full unless ``amount`` is given."""

    gateway_id = String(required=True, max_length=100)
    payment_id = Identifier(required=True)
    amount = Float()


@reconciliation.command(part_of="Payment")
class VoidPayment:
    """Void an authorization that was never captured."""

    gateway_id = String(required=True, max_length=100)
    payment_id = Identifier(required=True)


@reconciliation.command(part_of="Payment")
class RefundPayment:
    """Refund a completed payment."""

    gateway_id = String(required=True, max_length=100)
    payment_id = Identifier(required=True)
    amount = Float()
    currency = String(max_length=3)


def _engine_and_payment(command):
    engine = get_registry().engine_for(command.gateway_id)
    payment = engine.payment_store.load_unchanged(command.payment_id)
    return engine, payment


@reconciliation.command_handler(part_of=Payment)
class PaymentOrchestrationHandler:
    @handle(CapturePayment)
    def capture_payment(self, command):
        engine, payment = _engine_and_payment(command)
        return engine.capture_payment(payment, amount=command.amount)

    @handle(VoidPayment)
    def void_payment(self, command):
        engine, payment = _engine_and_payment(command)
        return engine.void_payment(payment)

    @handle(RefundPayment)
    def refund_payment(self, command):
        engine, payment = _engine_and_payment(command)
        return engine.refund_payment(payment, amount=command.amount, currency=command.currency)
