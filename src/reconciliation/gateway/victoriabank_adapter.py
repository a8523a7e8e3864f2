"""VictoriaBank gateway adapter (production stub).

This is a placeholder for the real e-commerce gateway integration.
In production, this would:
- Sign requests with the merchant RSA key (P_SIGN over the MAC fields)
- POST completion/reversal requests to ``config.gateway_url``
- Scrape the returned HTML form into response fields
- Verify the bank's P_SIGN with the bank public key
"""

from reconciliation.config import GatewayConfig
from reconciliation.gateway.port import BankGatewayClient, BankResponse, OffsiteRequest


class VictoriabankGateway(BankGatewayClient):
    """Production VictoriaBank gateway adapter. Not yet implemented."""

    def __init__(self, config: GatewayConfig) -> None:
        super().__init__(config)
        self.public_key_path = config.public_key_path
        self.private_key_path = config.private_key_path
        self.bank_public_key_path = config.bank_public_key_path

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
        raise NotImplementedError(
            "VictoriabankGateway.send_authorization_request() is not yet implemented. "
            "Sign the authorization fields with the merchant private key here."
        )

    def send_completion_request(
        self,
        order_id: str,
        amount: float,
        rrn: str,
        int_ref: str,
        currency: str,
    ) -> dict[str, str]:
        raise NotImplementedError(
            "VictoriabankGateway.send_completion_request() is not yet implemented. "
            "POST a TRTYPE=21 request to the gateway URL here."
        )

    def send_reversal_request(
        self,
        order_id: str,
        amount: float,
        rrn: str,
        int_ref: str,
        currency: str,
    ) -> dict[str, str]:
        raise NotImplementedError(
            "VictoriabankGateway.send_reversal_request() is not yet implemented. "
            "POST a TRTYPE=24 request to the gateway URL here."
        )

    def parse_response(self, fields: dict[str, str]) -> BankResponse:
        raise NotImplementedError(
            "VictoriabankGateway.parse_response() is not yet implemented. "
            "Verify P_SIGN with the bank public key here."
        )
