"""In-memory order and payment stores for development and testing.

Payments are kept as field snapshots, so every load builds a new aggregate
and no caller can mutate persisted state by holding on to an object. Events
raised by stored payments are drained into ``events`` as an audit trail.
"""

import threading
from collections.abc import Iterable
from decimal import Decimal

from protean.exceptions import ObjectNotFoundError

from reconciliation.payment.payment import Payment
from reconciliation.store.port import Order, OrderStore, PaymentStore

_PAYMENT_FIELDS = (
    "id",
    "order_id",
    "gateway_id",
    "state",
    "amount",
    "currency",
    "remote_id",
    "remote_state",
    "refunded_amount",
    "refunded_currency",
    "test",
    "authorized_at",
    "updated_at",
)


class MemoryOrderStore(OrderStore):
    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}

    def add(self, order_id, total_amount, currency: str, email: str | None = None) -> Order:
        order = Order(id=str(order_id), total_amount=Decimal(str(total_amount)), currency=currency, email=email)
        self._orders[order.id] = order
        return order

    def load(self, order_id: str) -> Order | None:
        return self._orders.get(str(order_id))


class MemoryPaymentStore(PaymentStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, dict] = {}
        self.events: list = []

    @staticmethod
    def _snapshot(payment: Payment) -> dict:
        return {name: getattr(payment, name) for name in _PAYMENT_FIELDS}

    def _drain_events(self, payment: Payment) -> None:
        self.events.extend(payment._events)
        payment._events.clear()

    def create(self, payment: Payment) -> Payment:
        with self._lock:
            key = str(payment.id)
            if key in self._rows:
                raise ValueError(f"Payment {key} already exists")
            self._rows[key] = self._snapshot(payment)
            self._drain_events(payment)
        return payment

    def save(self, payment: Payment) -> Payment:
        with self._lock:
            key = str(payment.id)
            if key not in self._rows:
                raise ObjectNotFoundError(f"Payment {key} does not exist")
            self._rows[key] = self._snapshot(payment)
            self._drain_events(payment)
        return payment

    def load_unchanged(self, payment_id: str) -> Payment:
        with self._lock:
            row = self._rows.get(str(payment_id))
        if row is None:
            raise ObjectNotFoundError(f"Payment {payment_id} does not exist")
        return Payment(**row)

    def _select(self, predicate) -> list[Payment]:
        with self._lock:
            rows = [dict(row) for row in self._rows.values() if predicate(row)]
        return [Payment(**row) for row in rows]

    def query_by_remote_id_prefix(self, prefix: str, gateway_ids: Iterable[str]) -> list[Payment]:
        gateways = set(gateway_ids)
        return self._select(lambda row: row["gateway_id"] in gateways and (row["remote_id"] or "").startswith(prefix))

    def find_by_order(self, order_id: str, gateway_ids: Iterable[str]) -> list[Payment]:
        gateways = set(gateway_ids)
        return self._select(lambda row: row["gateway_id"] in gateways and str(row["order_id"]) == str(order_id))

    def all(self) -> list[Payment]:
        return self._select(lambda row: True)
