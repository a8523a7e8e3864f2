"""Gateway configuration.

Each configured VictoriaBank gateway instance is described by an immutable
``GatewayConfig``. Engines and gateway clients receive it explicitly; nothing
reads gateway settings from module globals.
"""

from enum import Enum, IntEnum
from typing import Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

GATEWAY_PLUGIN_ID = "victoriabank_redirect"

REDIRECT_TEST_URL = "https://ecomt.victoriabank.md/cgi-bin/cgi_link"
REDIRECT_LIVE_URL = "https://egateway.victoriabank.md/cgi-bin/cgi_link"

# Checkout step the customer is sent back to when the gateway round-trip fails
ORDER_INFORMATION_STEP = "order_information"


class Intent(Enum):
    CAPTURE = "capture"
    AUTHORIZE = "authorize"


class IpnMode(IntEnum):
    """Which channel is allowed to update payments."""

    DIRECT = 0  # direct bank responses only
    IPN_ONLY = 1
    BOTH = 2


class GatewayConfig(BaseModel):
    model_config = {"frozen": True}

    gateway_id: str = GATEWAY_PLUGIN_ID
    mode: Literal["test", "live"] = "test"
    intent: Intent = Intent.CAPTURE
    use_ipn: IpnMode = IpnMode.DIRECT
    debug: bool = False

    merchant: str = ""
    terminal: str = ""
    merchant_name: str = ""
    merchant_url: str = "http://localhost:8000"
    merchant_address: str = ""
    merchant_email: str = ""
    country_code: str = "MD"
    default_currency: str = "MDL"

    public_key_path: str = ""
    private_key_path: str = ""
    private_key_password: SecretStr = SecretStr("")
    bank_public_key_path: str = ""

    lock_timeout: float = Field(default=30.0, gt=0)

    @property
    def gateway_url(self) -> str:
        return REDIRECT_LIVE_URL if self.mode == "live" else REDIRECT_TEST_URL

    @property
    def is_test(self) -> bool:
        return self.mode == "test"

    def checkout_step_url(self, order_id: str, step: str = ORDER_INFORMATION_STEP) -> str:
        """Absolute URL of a checkout step for the given order."""
        return f"{self.merchant_url.rstrip('/')}/checkout/{order_id}/{step}"


class Settings(BaseSettings):
    """Environment-driven settings for the default gateway of the web app."""

    model_config = SettingsConfigDict(env_prefix="VICTORIABANK_", env_file=".env", extra="ignore")

    gateway_id: str = GATEWAY_PLUGIN_ID
    mode: Literal["test", "live"] = "test"
    intent: Intent = Intent.CAPTURE
    use_ipn: IpnMode = IpnMode.DIRECT
    debug: bool = False
    merchant: str = ""
    terminal: str = ""
    merchant_name: str = ""
    merchant_url: str = "http://localhost:8000"
    merchant_address: str = ""
    merchant_email: str = ""
    public_key_path: str = ""
    private_key_path: str = ""
    private_key_password: SecretStr = SecretStr("")
    bank_public_key_path: str = ""
    lock_timeout: float = 30.0

    def gateway_config(self) -> GatewayConfig:
        return GatewayConfig(**self.model_dump())
