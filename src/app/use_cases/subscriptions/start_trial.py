"""StartTrial Use Case

Creates the owner's subscription in trial status at signup.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.domain.base import utcnow
from src.domain.errors import BillingDomainError
from src.domain.subscription import Subscription, SubscriptionStatus
from .dtos import StartTrialCommandDTO, SubscriptionResponseDTO

logger = logging.getLogger(__name__)


class StartTrial:
    """
    Use Case: Start a trial subscription

    Business Rules:
    1. One non-terminal subscription per owner
    2. Trial length comes from configuration (trial_days)
    3. The trial gets the limits of the chosen plan
    """

    def __init__(
        self,
        uow: UnitOfWork,
        subscription_repo: SubscriptionRepository,
        trial_days: int = 7,
    ):
        self.uow = uow
        self.subscription_repo = subscription_repo
        self.trial_days = trial_days

    async def execute(
        self, command: StartTrialCommandDTO, now: Optional[datetime] = None
    ) -> Result[SubscriptionResponseDTO]:
        now = now or utcnow()
        try:
            existing = await self.subscription_repo.get_open_by_owner_id(command.owner_id)
            if existing:
                return Return.err(
                    Error(
                        code="STATE_CONFLICT",
                        message=f"Owner {command.owner_id} already has an open subscription",
                        reason=f"subscription_id={existing.id}, status={existing.status.value}",
                    )
                )

            subscription = Subscription(
                owner_id=command.owner_id,
                plan_type=command.plan_type,
                status=SubscriptionStatus.TRIAL,
                start_date=now,
                trial_end_date=now + timedelta(days=self.trial_days),
                auto_renew=True,
                provider_session_id=command.provider_session_id,
                created_at=now,
                updated_at=now,
            )
            subscription = await self.subscription_repo.create(subscription)
            await self.uow.commit()

            logger.info(
                f"Trial started for owner {command.owner_id} "
                f"(plan={command.plan_type.value}, ends={subscription.trial_end_date.isoformat()})"
            )
            return Return.ok(SubscriptionResponseDTO.from_entity(subscription, now))

        except BillingDomainError as e:
            await self.uow.rollback()
            return Return.err(e.to_error())
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="INTERNAL_ERROR",
                    message="Failed to start trial",
                    reason=str(e),
                )
            )
