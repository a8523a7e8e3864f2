"""Configurable fake VictoriaBank gateway for development and testing.

Simulates the bank without any network calls or RSA keys. Messages are
"signed" with a fixed ``P_SIGN`` value, so tests can post well-formed IPN and
return payloads and tamper with them to exercise the validation paths.

- ``should_succeed=False`` makes completion/reversal replies declined
- ``fail_transport=True`` makes every request raise ``BankGatewayError``
- ``next_int_ref`` pins the INT_REF issued by the next completion reply
"""

from uuid import uuid4

from reconciliation.config import GatewayConfig
from reconciliation.exceptions import BankGatewayError, ResponseParseError
from reconciliation.gateway.port import (
    ACTION,
    ACTION_APPROVED,
    AMOUNT,
    CURRENCY,
    INT_REF,
    ORDER,
    P_SIGN,
    RC,
    REQUIRED_FIELDS,
    RRN,
    TERMINAL,
    TEXT,
    TRTYPE,
    BankGatewayClient,
    BankResponse,
    OffsiteRequest,
    TransactionType,
)

FAKE_SIGNATURE = "test-signature"


def _format_amount(amount) -> str:
    return f"{float(amount):.2f}"


def make_bank_fields(
    trtype: TransactionType,
    order_id: str,
    amount,
    currency: str,
    rrn: str,
    int_ref: str,
    terminal: str = "",
    action: str = ACTION_APPROVED,
    rc: str = "00",
    signature: str = FAKE_SIGNATURE,
) -> dict[str, str]:
    """Build a gateway payload in the shape the bank posts it."""
    return {
        TERMINAL: terminal,
        TRTYPE: trtype.value,
        ORDER: str(order_id),
        AMOUNT: _format_amount(amount),
        CURRENCY: currency,
        ACTION: action,
        RC: rc,
        RRN: rrn,
        INT_REF: int_ref,
        TEXT: "Approved" if action == ACTION_APPROVED else "Declined",
        P_SIGN: signature,
    }


class FakeBankGateway(BankGatewayClient):
    """Configurable fake bank gateway."""

    def __init__(self, config: GatewayConfig | None = None) -> None:
        super().__init__(config or GatewayConfig())
        self.should_succeed: bool = True
        self.fail_transport: bool = False
        self.failure_reason: str = "Declined"
        self.next_int_ref: str | None = None
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        fail_transport: bool = False,
        failure_reason: str = "Declined",
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.fail_transport = fail_transport
        self.failure_reason = failure_reason

    def _record(self, method: str, **kwargs) -> None:
        self.calls.append({"method": method, **kwargs})
        if self.fail_transport:
            raise BankGatewayError(f"{method}: connection to {self.config.gateway_url} failed")

    def _reply(self, trtype, order_id, amount, currency, rrn, int_ref) -> dict[str, str]:
        if self.should_succeed:
            return make_bank_fields(trtype, order_id, amount, currency, rrn, int_ref, terminal=self.config.terminal)
        return make_bank_fields(
            trtype,
            order_id,
            amount,
            currency,
            rrn,
            int_ref,
            terminal=self.config.terminal,
            action="2",
            rc="05",
        )

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
        self._record(
            "send_authorization_request",
            order_id=order_id,
            amount=amount,
            return_url=return_url,
            currency=currency,
            description=description,
            email=email,
            language=language,
        )
        return OffsiteRequest(
            action=self.config.gateway_url,
            fields={
                TERMINAL: self.config.terminal,
                TRTYPE: TransactionType.AUTHORIZATION.value,
                ORDER: str(order_id),
                AMOUNT: _format_amount(amount),
                CURRENCY: currency,
                "DESC": description,
                "EMAIL": email,
                "LANG": language,
                "BACKREF": return_url,
                P_SIGN: FAKE_SIGNATURE,
            },
        )

    def send_completion_request(
        self,
        order_id: str,
        amount: float,
        rrn: str,
        int_ref: str,
        currency: str,
    ) -> dict[str, str]:
        self._record(
            "send_completion_request",
            order_id=order_id,
            amount=amount,
            rrn=rrn,
            int_ref=int_ref,
            currency=currency,
        )
        # The bank issues a fresh INT_REF for the completion
        new_int_ref = self.next_int_ref or uuid4().hex[:16].upper()
        self.next_int_ref = None
        return self._reply(TransactionType.COMPLETION, order_id, amount, currency, rrn, new_int_ref)

    def send_reversal_request(
        self,
        order_id: str,
        amount: float,
        rrn: str,
        int_ref: str,
        currency: str,
    ) -> dict[str, str]:
        self._record(
            "send_reversal_request",
            order_id=order_id,
            amount=amount,
            rrn=rrn,
            int_ref=int_ref,
            currency=currency,
        )
        return self._reply(TransactionType.REVERSAL, order_id, amount, currency, rrn, int_ref)

    def parse_response(self, fields: dict[str, str]) -> BankResponse:
        if not fields or TRTYPE not in fields:
            raise ResponseParseError("Gateway payload carries no transaction type")

        errors = []
        missing = [name for name in REQUIRED_FIELDS if name not in fields]
        if missing:
            errors.append(f"Missing fields: {', '.join(missing)}")
        if fields.get(P_SIGN) != FAKE_SIGNATURE:
            errors.append("Invalid signature")
        if fields.get(ACTION, ACTION_APPROVED) != ACTION_APPROVED:
            errors.append(f"Transaction not approved (ACTION={fields.get(ACTION)}, RC={fields.get(RC)})")
        return BankResponse(fields={k: str(v) for k, v in fields.items()}, errors=tuple(errors))
