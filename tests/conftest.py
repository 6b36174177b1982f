# Shared pytest configuration and fixtures for all test types
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from slowapi import Limiter
from slowapi.util import get_remote_address

# Create test limiter with no limits and in-memory storage
test_limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri="memory://",
    enabled=False,
)

# Patch the limiter before importing the app so decorators use test limiter
with patch("common.providers.rate_limiter.limiter.limiter", test_limiter):
    from api.main import app

from common.db.session import get_db
from common.db.base import Base
from packages.billing.models.domain.charge import (
    ChargeIntent,
    ChargeState,
    SettlementResult,
)
from packages.billing.providers.payment.interface import PaymentGatewayInterface
from packages.billing.services.billing_scheduler import BillingScheduler
from packages.billing.services.charge_service import ChargeService
from packages.billing.services.subscription_service import SubscriptionService
from packages.users.models.database.user import UserEntity
from packages.webhooks.services.webhook_reconciler import WebhookReconciler
from packages.webhooks.workers.notification_worker import NotificationWorker
import packages.billing.models.database  # noqa: F401
import packages.orders.models.database  # noqa: F401
import packages.webhooks.models.database  # noqa: F401

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FROZEN_NOW = datetime(2026, 3, 15, 12, 0, 0)


class FrozenClock:
    """Controllable naive-UTC clock."""

    def __init__(self, now: datetime = FROZEN_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_connection(test_engine):
    """Create test connection with outer transaction for rollback isolation."""
    async with test_engine.connect() as connection:
        trans = await connection.begin()
        yield connection
        await trans.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_connection):
    """Create session factory bound to test connection.

    Using join_transaction_mode="create_savepoint" so nested transaction()
    calls create savepoints instead of real nested transactions.
    """
    return async_sessionmaker(
        bind=test_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_lazy_sessions(test_session_factory, monkeypatch):
    """
    Patch session factories to use test database.

    This allows real transaction() and get_session() to run with proper
    commit/rollback/ContextVar semantics while using the test database.
    """
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", test_session_factory)


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(tmp_path, monkeypatch):
    """
    File-backed SQLite with independent connections per session.

    For tests that need genuinely concurrent sessions, which the shared
    in-memory connection above cannot provide.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}",
        echo=False,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", factory)
    yield factory
    await engine.dispose()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def mock_gateway():
    """Gateway double that approves every charge."""
    gateway = AsyncMock(spec=PaymentGatewayInterface)
    gateway.create_charge.return_value = ChargeIntent(
        payment_id="9001",
        payment_url="https://securepay.example/pay/9001",
        status="NEW",
    )
    gateway.settle_recurrent_charge.return_value = SettlementResult(
        success=True, status="CONFIRMED", payment_id="9001"
    )
    gateway.get_charge_state.return_value = ChargeState(
        payment_id="9001", status="CONFIRMED", success=True, amount=39000
    )
    gateway.health_check.return_value = True
    return gateway


@pytest_asyncio.fixture(scope="function")
async def scheduler(mock_gateway, clock):
    """Billing scheduler wired to the mock gateway and frozen clock."""
    billing_scheduler = BillingScheduler(
        charge_service=ChargeService(gateway=mock_gateway, clock=clock),
        clock=clock,
    )
    yield billing_scheduler
    await billing_scheduler.shutdown()


@pytest.fixture
def subscription_service(scheduler):
    return SubscriptionService(scheduler)


@pytest.fixture
def reconciler(subscription_service, clock):
    return WebhookReconciler(subscription_service, clock=clock)


@pytest_asyncio.fixture(scope="function")
async def notification_worker(reconciler):
    worker = NotificationWorker(reconciler, concurrency=2, max_queue_size=10)
    await worker.start()
    yield worker
    await worker.stop()


@pytest_asyncio.fixture(scope="function")
async def client(test_db: AsyncSession, scheduler, subscription_service, notification_worker):
    """Create a test client with the billing runtime on app.state."""

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.billing_scheduler = scheduler
    app.state.subscription_service = subscription_service
    app.state.notification_worker = notification_worker

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def sample_user(test_db: AsyncSession):
    """Create a sample user for testing."""
    user = UserEntity(
        id="user-1",
        email="payer@example.com",
        display_name="Test Payer",
        created_at=FROZEN_NOW,
    )
    test_db.add(user)
    await test_db.commit()
    await test_db.refresh(user)
    return user
