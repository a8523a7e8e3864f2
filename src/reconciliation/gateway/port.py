"""Bank gateway client port (abstract interface).

Defines the contract every VictoriaBank client adapter implements. Request
signing, signature verification and scraping of the gateway's HTML replies
live behind this interface; the engine only ever sees ``BankResponse``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from reconciliation.config import GatewayConfig

# Response field names as posted by the gateway
TERMINAL = "TERMINAL"
TRTYPE = "TRTYPE"
ORDER = "ORDER"
AMOUNT = "AMOUNT"
CURRENCY = "CURRENCY"
ACTION = "ACTION"
RC = "RC"
APPROVAL = "APPROVAL"
RRN = "RRN"
INT_REF = "INT_REF"
TIMESTAMP = "TIMESTAMP"
NONCE = "NONCE"
P_SIGN = "P_SIGN"
TEXT = "TEXT"

REQUIRED_FIELDS = (TERMINAL, TRTYPE, ORDER, AMOUNT, CURRENCY, ACTION, RC, RRN, INT_REF, P_SIGN)

ACTION_APPROVED = "0"


class TransactionType(Enum):
    AUTHORIZATION = "0"
    COMPLETION = "21"
    REVERSAL = "24"

    @classmethod
    def from_code(cls, code: str) -> "TransactionType | None":
        try:
            return cls(str(code).strip())
        except ValueError:
            return None


@dataclass(frozen=True)
class BankResponse:
    """A parsed and signature-checked gateway message."""

    fields: dict[str, str]
    errors: tuple[str, ...] = field(default_factory=tuple)

    def is_valid(self) -> bool:
        return not self.errors

    def get(self, name: str, default: str = "") -> str:
        return self.fields.get(name, default)

    @property
    def trtype(self) -> str:
        return self.get(TRTYPE)

    @property
    def transaction_type(self) -> TransactionType | None:
        return TransactionType.from_code(self.trtype)

    @property
    def order(self) -> str:
        return self.get(ORDER)

    @property
    def amount(self) -> str:
        return self.get(AMOUNT)

    @property
    def currency(self) -> str:
        return self.get(CURRENCY)

    @property
    def rrn(self) -> str:
        return self.get(RRN)

    @property
    def int_ref(self) -> str:
        return self.get(INT_REF)

    @property
    def rc(self) -> str:
        return self.get(RC)

    @property
    def terminal(self) -> str:
        return self.get(TERMINAL)


@dataclass(frozen=True)
class OffsiteRequest:
    """Signed authorization request the browser posts to the gateway."""

    action: str
    fields: dict[str, str]


class BankGatewayClient(ABC):
    """Abstract VictoriaBank gateway client.

    Request methods raise ``BankGatewayError`` on transport failures.
    ``parse_response`` raises ``ResponseParseError`` when a payload cannot be
    interpreted at all; a parsed but untrustworthy payload comes back as a
    ``BankResponse`` carrying errors.
    """

    def __init__(self, config: GatewayConfig) -> None:
        self.config = config

    @abstractmethod
    def send_authorization_request(
        self,
        order_id: str,
        amount: float,
        return_url: str,
        currency: str,
        description: str,
        email: str,
        language: str,
    ) -> OffsiteRequest:
        """Build the signed authorization request for an order."""
        ...

    @abstractmethod
    def send_completion_request(
        self,
        order_id: str,
        amount: float,
        rrn: str,
        int_ref: str,
        currency: str,
    ) -> dict[str, str]:
        """Capture a prior authorization; returns the raw response fields."""
        ...

    @abstractmethod
    def send_reversal_request(
        self,
        order_id: str,
        amount: float,
        rrn: str,
        int_ref: str,
        currency: str,
    ) -> dict[str, str]:
        """Reverse an authorization or a completed charge; returns the raw response fields."""
        ...

    @abstractmethod
    def parse_response(self, fields: dict[str, str]) -> BankResponse:
        """Parse and verify a gateway message."""
        ...
