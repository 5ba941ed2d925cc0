"""SQLAlchemy Subscription Repository Implementation

Implements subscription persistence using SQLAlchemy async session.
"""

from datetime import datetime
from typing import Optional, List
from sqlalchemy import and_, or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.domain.base import utcnow
from src.domain.errors import ConcurrentModificationError, StateConflictError
from src.domain.subscription import Subscription, SubscriptionStatus, TERMINAL_STATUSES
from src.domain.subscription_lifecycle import SubscriptionState


class SqlAlchemySubscriptionRepository(SubscriptionRepository):
    """
    SQLAlchemy implementation of SubscriptionRepository

    Lifecycle writes are a single conditional UPDATE guarded by
    (id, status, version); zero rows matched means someone else got there first.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, subscription_id: str) -> Optional[Subscription]:
        statement = select(Subscription).where(Subscription.id == subscription_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_owner_id(self, owner_id: str) -> Optional[Subscription]:
        subscription = await self.get_open_by_owner_id(owner_id)
        if subscription:
            return subscription

        statement = (
            select(Subscription)
            .where(Subscription.owner_id == owner_id)
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_open_by_owner_id(self, owner_id: str) -> Optional[Subscription]:
        statement = (
            select(Subscription)
            .where(
                Subscription.owner_id == owner_id,
                Subscription.status.notin_(list(TERMINAL_STATUSES)),
            )
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_provider_subscription_id(self, provider_subscription_id: str) -> Optional[Subscription]:
        statement = select(Subscription).where(
            Subscription.provider_subscription_id == provider_subscription_id
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_provider_session_id(self, provider_session_id: str) -> Optional[Subscription]:
        statement = select(Subscription).where(
            Subscription.provider_session_id == provider_session_id
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def create(self, subscription: Subscription) -> Subscription:
        """
        Create a new subscription

        Args:
            subscription: Subscription entity to persist

        Returns:
            Created Subscription

        Raises:
            StateConflictError: The owner already has an open subscription
        """
        owner_id = subscription.owner_id
        self.session.add(subscription)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise StateConflictError(
                f"Owner {owner_id} already has an open subscription",
                reason=str(e.orig),
            ) from e
        await self.session.refresh(subscription)
        return subscription

    async def save_state(
        self,
        subscription: Subscription,
        state: SubscriptionState,
        **fields,
    ) -> Subscription:
        values = state.model_dump()
        values.update(fields)
        values["version"] = subscription.version + 1
        values["updated_at"] = utcnow()

        statement = (
            update(Subscription)
            .where(
                Subscription.id == subscription.id,
                Subscription.status == subscription.status,
                Subscription.version == subscription.version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)

        if result.rowcount != 1:
            raise ConcurrentModificationError(
                f"Subscription {subscription.id} was modified concurrently",
                reason=f"expected status={subscription.status.value} version={subscription.version}",
            )

        await self.session.refresh(subscription)
        return subscription

    async def list_due_for_expiration(self, now: datetime, limit: int = 500) -> List[Subscription]:
        statement = (
            select(Subscription)
            .where(
                or_(
                    and_(
                        Subscription.status == SubscriptionStatus.GRACE_PERIOD,
                        Subscription.grace_period_end_date <= now,
                    ),
                    and_(
                        Subscription.status == SubscriptionStatus.ACTIVE,
                        Subscription.end_date.is_not(None),
                        Subscription.end_date <= now,
                    ),
                )
            )
            .order_by(Subscription.updated_at)
            .limit(limit)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())
