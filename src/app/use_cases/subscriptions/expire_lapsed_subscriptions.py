"""ExpireLapsedSubscriptions Use Case

Batch form of lazy expiration for reporting freshness. Reads already expire
subscriptions on their own, so this never changes what an owner may do.
"""

import logging
import time
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.domain.base import utcnow
from src.domain.errors import ConcurrentModificationError
from src.domain.subscription_lifecycle import SubscriptionState, check_expiration
from .dtos import ExpirationSweepResultDTO

logger = logging.getLogger(__name__)


class ExpireLapsedSubscriptions:
    """
    Use Case: Expire subscriptions whose window has elapsed

    Business Rules:
    1. Same transition as lazy expiration (grace_period/active -> expired)
    2. Each subscription is committed on its own
    3. A concurrent change ends the batch; the next run picks up the rest
    """

    def __init__(self, uow: UnitOfWork, subscription_repo: SubscriptionRepository, batch_size: int = 500):
        self.uow = uow
        self.subscription_repo = subscription_repo
        self.batch_size = batch_size

    async def execute(self, now: Optional[datetime] = None) -> Result[ExpirationSweepResultDTO]:
        now = now or utcnow()
        started = time.perf_counter()
        expired = conflicts = 0
        try:
            due = await self.subscription_repo.list_due_for_expiration(now, limit=self.batch_size)
            for subscription in due:
                subscription_id = subscription.id
                result = check_expiration(SubscriptionState.of(subscription), now)
                if not result.changed:
                    continue
                try:
                    await self.subscription_repo.save_state(subscription, result.state)
                    await self.uow.commit()
                    expired += 1
                except ConcurrentModificationError:
                    await self.uow.rollback()
                    conflicts += 1
                    logger.info(f"Subscription {subscription_id} changed during sweep, ending batch")
                    break

            return Return.ok(
                ExpirationSweepResultDTO(
                    checked=len(due),
                    expired=expired,
                    conflicts=conflicts,
                    swept_at=now,
                    execution_time_ms=int((time.perf_counter() - started) * 1000),
                )
            )
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Expiration sweep failed after {expired} subscriptions: {e}")
            return Return.err(
                Error(
                    code="INTERNAL_ERROR",
                    message="Expiration sweep failed",
                    reason=str(e),
                )
            )
