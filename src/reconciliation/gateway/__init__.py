"""Bank gateway client factory.

``build_gateway_client(config)`` returns a client bound to one gateway
configuration. The client class is swappable:
- FakeBankGateway for development and testing (default for ``mode="test"``)
- VictoriabankGateway for production (always used for ``mode="live"``
  unless a factory was set explicitly)
"""

from collections.abc import Callable

from reconciliation.config import GatewayConfig
from reconciliation.gateway.fake_adapter import FakeBankGateway
from reconciliation.gateway.port import BankGatewayClient
from reconciliation.gateway.victoriabank_adapter import VictoriabankGateway

ClientFactory = Callable[[GatewayConfig], BankGatewayClient]

_client_factory: ClientFactory | None = None


def build_gateway_client(config: GatewayConfig) -> BankGatewayClient:
    """Return a gateway client configured for ``config``.

    The fake accepts a constant signature, so it is never built for a live
    gateway by default.
    """
    if _client_factory is not None:
        return _client_factory(config)
    if config.mode == "live":
        return VictoriabankGateway(config)
    return FakeBankGateway(config)


def set_client_factory(factory: ClientFactory) -> None:
    """Override how gateway clients are built (useful for tests)."""
    global _client_factory
    _client_factory = factory


def reset_client_factory() -> None:
    """Reset to the default client factory."""
    global _client_factory
    _client_factory = None
