from functools import lru_cache
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from src.adapter.services.stripe_billing_provider import StripeBillingProvider
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.services.billing_provider import BillingProvider

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


async def get_unit_of_work():
    async with AsyncSessionLocal() as session:
        yield SqlAlchemyUnitOfWork(session)


def get_config():
    return ApplicationConfig


@lru_cache(maxsize=1)
def get_billing_provider() -> BillingProvider:
    return StripeBillingProvider(
        secret_key=ApplicationConfig.STRIPE_SECRET_KEY,
        webhook_secret=ApplicationConfig.STRIPE_WEBHOOK_SECRET,
        frontend_url=ApplicationConfig.FRONTEND_URL,
        add_on_product_id=ApplicationConfig.STRIPE_ADD_ON_PRODUCT_ID or None,
        checkout_ttl_minutes=ApplicationConfig.CHECKOUT_SESSION_TTL_MINUTES,
        max_network_retries=ApplicationConfig.STRIPE_MAX_NETWORK_RETRIES,
    )
