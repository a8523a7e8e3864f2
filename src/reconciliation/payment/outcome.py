"""Results of the browser-facing handlers.

A failed return or authorization start sends the customer back to a checkout
step. That control transfer is a value the caller acts on, not an exception.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Continue:
    """Checkout may proceed."""

    payment_id: str | None = None


@dataclass(frozen=True)
class Redirect:
    """Stop processing and send the customer to ``url``."""

    url: str
    message: str = ""


@dataclass(frozen=True)
class OffsiteForm:
    """Form the browser must post to the bank to authorize the payment."""

    action: str
    fields: dict[str, str] = field(default_factory=dict)


Outcome = Continue | Redirect
