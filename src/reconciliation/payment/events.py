"""Domain events for the Payment aggregate.

Raised on every applied state transition and collected by the payment store,
giving an audit trail of what each gateway message did to a payment.
"""

from protean.fields import DateTime, Float, Identifier, String

from reconciliation.domain import reconciliation


@reconciliation.event(part_of="Payment")
class PaymentAuthorized:
    """The bank authorized (blocked) funds for an order."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    gateway_id = String(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    remote_id = String(required=True)
    authorized_at = DateTime(required=True)


@reconciliation.event(part_of="Payment")
class PaymentCaptured:
    """The authorization was completed and funds transferred."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    remote_id = String(required=True)
    captured_at = DateTime(required=True)


@reconciliation.event(part_of="Payment")
class PaymentRefunded:
    """A completed payment was reversed."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    refunded_amount = Float(required=True)
    currency = String(required=True)
    refunded_at = DateTime(required=True)


@reconciliation.event(part_of="Payment")
class AuthorizationVoided:
    """An authorization was reversed before capture."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    voided_at = DateTime(required=True)
