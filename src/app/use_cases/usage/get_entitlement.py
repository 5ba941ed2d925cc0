"""GetEntitlement Use Case

Answers "may this owner send another message, and how many remain".
"""

import logging
from datetime import datetime
from typing import Dict, Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.usage_meter import UsageMeter
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.app.repositories.add_on_credit_repository import AddOnCreditRepository
from src.domain.base import utcnow
from src.domain.entitlement import resolve_entitlement
from src.domain.errors import ConcurrentModificationError
from src.domain.plan import PLAN_LIMITS, PlanLimits, PlanType
from src.domain.subscription_lifecycle import SubscriptionState
from .dtos import EntitlementResponseDTO

logger = logging.getLogger(__name__)


class GetEntitlement:
    """
    Use Case: Compute the owner's entitlement

    Business Rules:
    1. Recomputed from stored state and live usage on every call
    2. Lazy expiration is the only write; it is conditional and a lost race
       does not fail the read
    3. Owners without a subscription get the fallback tier

    Flow:
    1. Load subscription, active add-ons, monthly and daily usage
    2. Resolve (expiration check included)
    3. Persist the expired status if it changed
    """

    def __init__(
        self,
        uow: UnitOfWork,
        subscription_repo: SubscriptionRepository,
        add_on_repo: AddOnCreditRepository,
        usage_meter: UsageMeter,
        plan_limits: Dict[PlanType, PlanLimits] = PLAN_LIMITS,
    ):
        self.uow = uow
        self.subscription_repo = subscription_repo
        self.add_on_repo = add_on_repo
        self.usage_meter = usage_meter
        self.plan_limits = plan_limits

    async def execute(self, owner_id: str, now: Optional[datetime] = None) -> Result[EntitlementResponseDTO]:
        now = now or utcnow()
        try:
            subscription = await self.subscription_repo.get_by_owner_id(owner_id)
            add_ons = await self.add_on_repo.list_active(owner_id, now)
            monthly_used = await self.usage_meter.monthly_count(owner_id, now)
            daily_used = await self.usage_meter.daily_count(owner_id, now)

            state = SubscriptionState.of(subscription) if subscription else None
            snapshot, new_state = resolve_entitlement(
                state,
                subscription.plan_type if subscription else None,
                add_ons,
                monthly_used,
                daily_used,
                now,
                self.plan_limits,
            )

            if subscription is not None and new_state != state:
                subscription_id = subscription.id
                try:
                    await self.subscription_repo.save_state(subscription, new_state)
                    await self.uow.commit()
                    logger.info(
                        f"Subscription {subscription_id} of owner {owner_id} "
                        f"{state.status.value} -> {new_state.status.value} (lazy expiration)"
                    )
                except ConcurrentModificationError:
                    await self.uow.rollback()
                    logger.info(f"Subscription {subscription_id} changed concurrently during lazy expiration")

            if not snapshot.can_send:
                logger.warning(
                    f"Owner {owner_id} at send limit: monthly {snapshot.monthly_used}/{snapshot.monthly_limit}, "
                    f"daily {snapshot.daily_used}/{snapshot.daily_limit}"
                )

            return Return.ok(EntitlementResponseDTO.from_snapshot(owner_id, snapshot, now))

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="INTERNAL_ERROR",
                    message="Failed to compute entitlement",
                    reason=str(e),
                )
            )
