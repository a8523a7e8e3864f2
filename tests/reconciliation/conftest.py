import pytest
from protean.integrations.pytest import DomainFixture
from reconciliation.config import GatewayConfig, IpnMode
from reconciliation.gateway import set_client_factory
from reconciliation.gateway.fake_adapter import FakeBankGateway, make_bank_fields
from reconciliation.locking.memory_adapter import MemoryLockBackend
from reconciliation.payment.engine import ReconciliationEngine
from reconciliation.registry import GatewayRegistry, set_registry
from reconciliation.store.memory_adapter import MemoryOrderStore, MemoryPaymentStore


@pytest.fixture(scope="session")
def reconciliation_bed():
    from reconciliation.domain import reconciliation

    bed = DomainFixture(reconciliation)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(reconciliation_bed):
    with reconciliation_bed.domain_context():
        yield


@pytest.fixture()
def gateway_config():
    return GatewayConfig(
        terminal="T0000001",
        merchant="M0000001",
        merchant_url="https://shop.example.md",
        merchant_email="shop@example.md",
        use_ipn=IpnMode.BOTH,
        lock_timeout=2.0,
    )


@pytest.fixture()
def bank(gateway_config):
    """Fake bank shared by every client the engine builds."""
    gateway = FakeBankGateway(gateway_config)
    set_client_factory(lambda config: gateway)
    return gateway


@pytest.fixture()
def payment_store():
    return MemoryPaymentStore()


@pytest.fixture()
def order_store():
    return MemoryOrderStore()


@pytest.fixture()
def lock_backend():
    return MemoryLockBackend()


@pytest.fixture()
def order(order_store):
    return order_store.add("42", "100.00", "MDL", email="buyer@example.md")


@pytest.fixture()
def make_engine(gateway_config, bank, payment_store, order_store, lock_backend):
    """Build an engine whose configuration differs from the default by ``overrides``."""

    def _make(**overrides):
        config = gateway_config.model_copy(update=overrides)
        return ReconciliationEngine(config, payment_store, order_store, lock_backend)

    return _make


@pytest.fixture()
def engine(make_engine):
    return make_engine()


@pytest.fixture()
def registry(gateway_config, bank, payment_store, order_store, lock_backend):
    registry = GatewayRegistry(payment_store, order_store, lock_backend)
    registry.register(gateway_config)
    set_registry(registry)
    return registry


@pytest.fixture()
def bank_message(gateway_config):
    """Build a signed gateway message for the default order."""

    def _message(trtype, order_id="42", amount="100.00", currency="MDL", rrn="RRN0001", int_ref="INT0001", **overrides):
        return make_bank_fields(
            trtype,
            order_id,
            amount,
            currency,
            rrn,
            int_ref,
            terminal=gateway_config.terminal,
            **overrides,
        )

    return _message
