"""Gateway registry — every configured VictoriaBank gateway instance.

Several gateway instances (e.g. one per terminal) share the payment store,
the order store and the lock backend. The registry builds the engine of each
instance and decides which instance owns an incoming IPN, since the bank
posts every notification to the same URL.
"""

import structlog
from protean.exceptions import ObjectNotFoundError

from reconciliation.config import GatewayConfig, Settings
from reconciliation.gateway.port import ORDER, TERMINAL
from reconciliation.locking import get_lock_backend
from reconciliation.locking.port import LockBackend
from reconciliation.payment.engine import ReconciliationEngine, normalize_order_id
from reconciliation.store.memory_adapter import MemoryOrderStore, MemoryPaymentStore
from reconciliation.store.port import OrderStore, PaymentStore

logger = structlog.get_logger(__name__)


class GatewayRegistry:
    def __init__(self, payment_store: PaymentStore, order_store: OrderStore, lock_backend: LockBackend) -> None:
        self.payment_store = payment_store
        self.order_store = order_store
        self.lock_backend = lock_backend
        self._configs: dict[str, GatewayConfig] = {}

    def register(self, config: GatewayConfig) -> None:
        self._configs[config.gateway_id] = config

    def gateway_ids(self) -> tuple[str, ...]:
        return tuple(self._configs)

    def config_for(self, gateway_id: str) -> GatewayConfig:
        try:
            return self._configs[gateway_id]
        except KeyError:
            raise ObjectNotFoundError(f"Gateway {gateway_id} is not configured") from None

    def engine_for(self, gateway_id: str) -> ReconciliationEngine:
        return ReconciliationEngine(
            self.config_for(gateway_id),
            self.payment_store,
            self.order_store,
            self.lock_backend,
            gateway_ids=self.gateway_ids(),
        )

    def resolve_notification_gateway(self, fields: dict[str, str]) -> str | None:
        """Pick the gateway instance an IPN belongs to, or None if ambiguous."""
        gateway_ids = self.gateway_ids()
        if not gateway_ids:
            return None
        if len(gateway_ids) == 1:
            return gateway_ids[0]

        terminal = fields.get(TERMINAL)
        if terminal:
            for gateway_id, config in self._configs.items():
                if config.terminal == terminal:
                    return gateway_id

        order_id = normalize_order_id(fields.get(ORDER))
        if order_id:
            for gateway_id in gateway_ids:
                if self.payment_store.find_by_order(order_id, (gateway_id,)):
                    return gateway_id

        logger.warning("IPN: can't determine gateway", terminal=terminal, order_id=fields.get(ORDER))
        return None


_current_registry: GatewayRegistry | None = None


def get_registry() -> GatewayRegistry:
    """Return the active registry. Defaults to the gateway described by the environment."""
    global _current_registry
    if _current_registry is None:
        registry = GatewayRegistry(MemoryPaymentStore(), MemoryOrderStore(), get_lock_backend())
        registry.register(Settings().gateway_config())
        _current_registry = registry
    return _current_registry


def set_registry(registry: GatewayRegistry) -> None:
    """Override the active registry (useful for tests)."""
    global _current_registry
    _current_registry = registry


def reset_registry() -> None:
    """Reset to the default registry."""
    global _current_registry
    _current_registry = None
