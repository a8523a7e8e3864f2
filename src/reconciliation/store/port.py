"""Payment and order store ports.

Both stores are shared, externally transactional resources. The engine never
treats an in-memory Payment as authoritative: ``load_unchanged`` must always
return the currently persisted state as a fresh object.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from reconciliation.payment.payment import Payment


@dataclass(frozen=True)
class Order:
    """The slice of an order the engine reads."""

    id: str
    total_amount: Decimal
    currency: str
    email: str | None = None


class OrderStore(ABC):
    @abstractmethod
    def load(self, order_id: str) -> Order | None:
        """Return the order, or None when it does not exist."""
        ...


class PaymentStore(ABC):
    @abstractmethod
    def create(self, payment: Payment) -> Payment:
        """Persist a new payment."""
        ...

    @abstractmethod
    def save(self, payment: Payment) -> Payment:
        """Persist changes to an existing payment."""
        ...

    @abstractmethod
    def load_unchanged(self, payment_id: str) -> Payment:
        """Load the persisted payment, bypassing any cached copy.

        Raises ``ObjectNotFoundError`` when there is no such payment.
        """
        ...

    @abstractmethod
    def query_by_remote_id_prefix(self, prefix: str, gateway_ids: Iterable[str]) -> list[Payment]:
        """Payments of the given gateways whose remote id starts with ``prefix``."""
        ...

    @abstractmethod
    def find_by_order(self, order_id: str, gateway_ids: Iterable[str]) -> list[Payment]:
        """Payments of the given gateways that belong to ``order_id``."""
        ...
