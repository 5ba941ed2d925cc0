"""Base for owner-initiated subscription transitions

Loads the owner's open subscription, applies lazy expiration, runs the pure
transition, persists it with a conditional write and carries out the provider
effects before committing. A provider failure rolls the local change back.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.billing_provider import BillingProvider
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.domain.base import utcnow
from src.domain.errors import BillingDomainError, NotFoundError, StateConflictError
from src.domain.subscription import Subscription
from src.domain.subscription_lifecycle import (
    Effect,
    SubscriptionEvent,
    SubscriptionState,
    check_expiration,
    transition,
)
from .dtos import SubscriptionResponseDTO

logger = logging.getLogger(__name__)


class SubscriptionLifecycleCommand:
    action = "update"

    def __init__(
        self,
        uow: UnitOfWork,
        subscription_repo: SubscriptionRepository,
        billing_provider: BillingProvider,
    ):
        self.uow = uow
        self.subscription_repo = subscription_repo
        self.billing_provider = billing_provider

    def build_event(self, command) -> SubscriptionEvent:
        raise NotImplementedError

    async def execute(self, command, now: Optional[datetime] = None) -> Result[SubscriptionResponseDTO]:
        now = now or utcnow()
        try:
            event = self.build_event(command)
            subscription = await self.subscription_repo.get_open_by_owner_id(command.owner_id)
            if not subscription:
                raise NotFoundError(
                    f"No open subscription found for owner {command.owner_id}",
                    code="SUBSCRIPTION_NOT_FOUND",
                )

            expired = check_expiration(SubscriptionState.of(subscription), now)
            try:
                result = transition(expired.state, event, now)
            except StateConflictError:
                if expired.changed:
                    # The lapse is real regardless of the rejected action
                    await self.subscription_repo.save_state(subscription, expired.state)
                    await self.uow.commit()
                raise

            # Provider events older than this action must not undo it
            subscription = await self.subscription_repo.save_state(
                subscription, result.state, last_owner_action_at=now
            )
            await self._run_effects(subscription, result.effects)
            await self.uow.commit()

            logger.info(
                f"Subscription {subscription.id} of owner {subscription.owner_id}: "
                f"{result.previous.status.value} -> {result.state.status.value} ({self.action})"
            )
            return Return.ok(SubscriptionResponseDTO.from_entity(subscription, now))

        except BillingDomainError as e:
            await self.uow.rollback()
            logger.warning(f"Cannot {self.action} subscription of owner {command.owner_id}: {e.message}")
            return Return.err(e.to_error())
        except Exception as e:
            await self.uow.rollback()
            logger.exception(f"Unexpected failure during subscription {self.action}")
            return Return.err(
                Error(
                    code="INTERNAL_ERROR",
                    message=f"Failed to {self.action} subscription",
                    reason=str(e),
                )
            )

    async def _run_effects(self, subscription: Subscription, effects) -> None:
        if not effects:
            return
        provider_id = subscription.provider_subscription_id
        if not provider_id:
            logger.debug(f"Subscription {subscription.id} has no provider subscription, skipping {list(effects)}")
            return
        for effect in effects:
            if effect == Effect.PAUSE_PROVIDER_BILLING:
                await self.billing_provider.pause_subscription(provider_id)
            elif effect == Effect.RESUME_PROVIDER_BILLING:
                await self.billing_provider.resume_subscription(provider_id)
            elif effect == Effect.CANCEL_PROVIDER_RENEWAL:
                await self.billing_provider.cancel_subscription(provider_id)
