"""GetSubscription Use Case

Returns the owner's subscription after lazy expiration.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.domain.base import utcnow
from src.domain.errors import BillingDomainError, ConcurrentModificationError, NotFoundError
from src.domain.subscription_lifecycle import SubscriptionState, check_expiration
from .dtos import SubscriptionResponseDTO

logger = logging.getLogger(__name__)


class GetSubscription:
    def __init__(self, uow: UnitOfWork, subscription_repo: SubscriptionRepository):
        self.uow = uow
        self.subscription_repo = subscription_repo

    async def execute(self, owner_id: str, now: Optional[datetime] = None) -> Result[SubscriptionResponseDTO]:
        now = now or utcnow()
        try:
            subscription = await self.subscription_repo.get_by_owner_id(owner_id)
            if not subscription:
                raise NotFoundError(
                    f"No subscription found for owner {owner_id}",
                    code="SUBSCRIPTION_NOT_FOUND",
                )

            expired = check_expiration(SubscriptionState.of(subscription), now)
            if expired.changed:
                subscription_id = subscription.id
                try:
                    subscription = await self.subscription_repo.save_state(subscription, expired.state)
                    await self.uow.commit()
                except ConcurrentModificationError:
                    await self.uow.rollback()
                    logger.info(f"Subscription {subscription_id} changed concurrently, re-reading")
                    subscription = await self.subscription_repo.get_by_owner_id(owner_id)

            return Return.ok(SubscriptionResponseDTO.from_entity(subscription, now))

        except BillingDomainError as e:
            await self.uow.rollback()
            return Return.err(e.to_error())
        except Exception as e:
            await self.uow.rollback()
            logger.exception(f"Failed to load subscription of owner {owner_id}")
            return Return.err(
                Error(
                    code="INTERNAL_ERROR",
                    message="Failed to load subscription",
                    reason=str(e),
                )
            )
