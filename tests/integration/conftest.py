import json
import pytest_asyncio
from decimal import Decimal
from typing import Dict, List, Optional
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import src.domain  # noqa: F401  registers every table on SQLModel.metadata
from src.adapter.services.stripe_billing_provider import event_from_payload
from src.app.services.billing_provider import BillingProvider, CheckoutSession
from src.depends import get_billing_provider, get_session
from src.domain.billing_event import BillingEvent
from src.domain.errors import ValidationError

VALID_SIGNATURE = "t=1,v1=valid"


class FakeBillingProvider(BillingProvider):
    """In-memory billing provider; webhook signatures are a fixed token"""

    def __init__(self):
        self.calls: List[tuple] = []
        self.sessions: Dict[str, CheckoutSession] = {}

    async def create_add_on_checkout(self, owner_id, amount: Decimal, currency, metadata) -> CheckoutSession:
        self.calls.append(("create_add_on_checkout", owner_id, metadata))
        session_id = f"cs_test_{len(self.sessions) + 1}"
        session = CheckoutSession(session_id=session_id, url=f"https://checkout.test/{session_id}")
        self.sessions[session_id] = session
        return session

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        self.calls.append(("retrieve_checkout_session", session_id))
        return self.sessions.get(session_id, CheckoutSession(session_id=session_id))

    async def pause_subscription(self, provider_subscription_id: str) -> None:
        self.calls.append(("pause_subscription", provider_subscription_id))

    async def resume_subscription(self, provider_subscription_id: str) -> None:
        self.calls.append(("resume_subscription", provider_subscription_id))

    async def cancel_subscription(self, provider_subscription_id: str) -> None:
        self.calls.append(("cancel_subscription", provider_subscription_id))

    def parse_webhook_event(self, payload: bytes, signature: Optional[str]) -> BillingEvent:
        if signature != VALID_SIGNATURE:
            raise ValidationError("Invalid webhook signature")
        return event_from_payload(json.loads(payload))


@pytest_asyncio.fixture(scope="function")
async def engine():
    """In-memory SQLite database shared by every connection of one test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    """Create a new database session for each test"""
    Session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with Session() as session:
        yield session


@pytest_asyncio.fixture
def billing_provider():
    return FakeBillingProvider()


@pytest_asyncio.fixture
async def client(db_session, billing_provider):
    """Create test client with database session and billing provider overrides"""
    from src.api.app import create_app
    from config import ApplicationConfig

    app = create_app(ApplicationConfig)

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_billing_provider] = lambda: billing_provider

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
