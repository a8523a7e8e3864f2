"""Error taxonomy of the reconciliation engine.

Precondition violations (operation against a payment in the wrong state)
are raised as ``protean.exceptions.ValidationError`` by the Payment
aggregate; everything here covers the gateway and infrastructure side.
"""


class ReconciliationError(Exception):
    """Base class for reconciliation failures."""


class ResponseParseError(ReconciliationError):
    """A gateway payload could not be parsed into a bank response."""


class BankGatewayError(ReconciliationError):
    """Transport or protocol failure while talking to the bank gateway."""


class PaymentGatewayError(ReconciliationError):
    """A capture/void/refund request failed; the payment was not changed."""


class LockTimeoutError(ReconciliationError):
    """A named lock could not be acquired before the timeout elapsed."""

    def __init__(self, name: str, timeout: float) -> None:
        super().__init__(f"Could not acquire lock {name!r} within {timeout}s")
        self.name = name
        self.timeout = timeout


class UnknownTransactionTypeError(ReconciliationError):
    """The gateway reported a transaction type the engine does not handle."""
