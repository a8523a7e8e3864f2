"""Payment aggregate — one authorization lifecycle for one order.

Payments are only ever created and mutated by the reconciliation engine in
response to gateway messages. The aggregate owns the transition table; the
engine owns locking and idempotency around it.

State Machine:
    AUTHORIZATION → COMPLETED → REFUNDED
    AUTHORIZATION → AUTHORIZATION_VOIDED
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, String

from reconciliation.domain import reconciliation
from reconciliation.payment.correlation import captured_remote_id, compose_remote_id
from reconciliation.payment.events import (
    AuthorizationVoided,
    PaymentAuthorized,
    PaymentCaptured,
    PaymentRefunded,
)


class PaymentState(Enum):
    AUTHORIZATION = "authorization"
    COMPLETED = "completed"
    REFUNDED = "refunded"
    AUTHORIZATION_VOIDED = "authorization_voided"


_VALID_TRANSITIONS = {
    PaymentState.AUTHORIZATION: {PaymentState.COMPLETED, PaymentState.AUTHORIZATION_VOIDED},
    PaymentState.COMPLETED: {PaymentState.REFUNDED},
    PaymentState.REFUNDED: set(),  # Terminal
    PaymentState.AUTHORIZATION_VOIDED: set(),  # Terminal
}


@reconciliation.aggregate
class Payment:
    order_id = Identifier(required=True)
    gateway_id = String(required=True, max_length=100)
    state = String(
        choices=PaymentState,
        default=PaymentState.AUTHORIZATION.value,
    )
    amount = Float(required=True)
    currency = String(required=True, max_length=3)
    remote_id = String(required=True, max_length=255)
    remote_state = String(max_length=50)
    refunded_amount = Float()
    refunded_currency = String(max_length=3)
    test = Boolean(default=False)
    authorized_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def authorize(
        cls,
        order_id: str,
        gateway_id: str,
        amount: float,
        currency: str,
        rrn: str,
        int_ref: str,
        remote_state: str | None = None,
        test: bool = False,
    ):
        """Record a fresh authorization reported by the bank."""
        now = datetime.now(UTC)
        remote_id = compose_remote_id(rrn, int_ref)
        payment = cls(
            order_id=order_id,
            gateway_id=gateway_id,
            state=PaymentState.AUTHORIZATION.value,
            amount=amount,
            currency=currency,
            remote_id=remote_id,
            remote_state=remote_state,
            test=test,
            authorized_at=now,
            updated_at=now,
        )
        payment.raise_(
            PaymentAuthorized(
                payment_id=str(payment.id),
                order_id=str(order_id),
                gateway_id=gateway_id,
                amount=amount,
                currency=currency,
                remote_id=remote_id,
                authorized_at=now,
            )
        )
        return payment

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    @property
    def payment_state(self) -> PaymentState:
        return PaymentState(self.state)

    def is_in(self, *states: PaymentState) -> bool:
        return self.payment_state in states

    def assert_state(self, *allowed: PaymentState) -> None:
        """Raise unless the payment is in one of ``allowed``."""
        if self.payment_state not in allowed:
            expected = ", ".join(state.value for state in allowed)
            raise ValidationError({"state": [f"Payment is {self.state}, expected one of: {expected}"]})

    def _assert_can_transition(self, target_state: PaymentState) -> None:
        current = self.payment_state
        if target_state not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"state": [f"Cannot transition from {current.value} to {target_state.value}"]})

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def mark_captured(self, new_int_ref: str) -> None:
        """Complete the authorization. The bank re-issues INT_REF on capture."""
        self._assert_can_transition(PaymentState.COMPLETED)
        now = datetime.now(UTC)
        self.remote_id = captured_remote_id(self.remote_id, new_int_ref)
        self.state = PaymentState.COMPLETED.value
        self.updated_at = now
        self.raise_(
            PaymentCaptured(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                amount=self.amount,
                currency=self.currency,
                remote_id=self.remote_id,
                captured_at=now,
            )
        )

    def mark_refunded(self, amount: float, currency: str) -> None:
        """Record the reversal of a completed payment."""
        self._assert_can_transition(PaymentState.REFUNDED)
        now = datetime.now(UTC)
        self.state = PaymentState.REFUNDED.value
        self.refunded_amount = amount
        self.refunded_currency = currency
        self.updated_at = now
        self.raise_(
            PaymentRefunded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                refunded_amount=amount,
                currency=currency,
                refunded_at=now,
            )
        )

    def mark_voided(self) -> None:
        """Record the reversal of an authorization that was never captured."""
        self._assert_can_transition(PaymentState.AUTHORIZATION_VOIDED)
        now = datetime.now(UTC)
        self.state = PaymentState.AUTHORIZATION_VOIDED.value
        self.updated_at = now
        self.raise_(
            AuthorizationVoided(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                voided_at=now,
            )
        )
