"""PurchaseAddOn Use Case

Creates a pending add-on row and opens a provider checkout for it. The row is
completed later by billing reconciliation.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.billing_provider import BillingProvider
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.app.repositories.add_on_credit_repository import AddOnCreditRepository
from src.domain.add_on_credit import AddOnCredit, AddOnStatus, end_of_month
from src.domain.base import utcnow
from src.domain.errors import BillingDomainError, NotFoundError
from src.domain.subscription_lifecycle import AccessTier, SubscriptionState, classify
from .dtos import AddOnCheckoutResponseDTO, PurchaseAddOnCommandDTO

logger = logging.getLogger(__name__)


class PurchaseAddOn:
    """
    Use Case: Purchase an add-on credit pack

    Business Rules:
    1. Only owners with an active paid subscription may buy add-ons
    2. Credits, price and currency are explicit constructor parameters
    3. The credit window runs from now to the end of the calendar month
    4. Nothing is committed if the provider checkout cannot be opened

    Flow:
    1. Load open subscription and check it is active
    2. Create pending AddOnCredit (flush to obtain the id)
    3. Open provider checkout carrying the add-on id in metadata
    4. Store the checkout session id on the row
    5. Commit
    """

    def __init__(
        self,
        uow: UnitOfWork,
        subscription_repo: SubscriptionRepository,
        add_on_repo: AddOnCreditRepository,
        billing_provider: BillingProvider,
        credits_granted: int,
        amount: Decimal,
        currency: str,
    ):
        self.uow = uow
        self.subscription_repo = subscription_repo
        self.add_on_repo = add_on_repo
        self.billing_provider = billing_provider
        self.credits_granted = credits_granted
        self.amount = Decimal(amount)
        self.currency = currency

    async def execute(
        self, command: PurchaseAddOnCommandDTO, now: Optional[datetime] = None
    ) -> Result[AddOnCheckoutResponseDTO]:
        now = now or utcnow()
        try:
            subscription = await self.subscription_repo.get_open_by_owner_id(command.owner_id)
            if not subscription:
                raise NotFoundError(
                    f"No open subscription found for owner {command.owner_id}",
                    code="SUBSCRIPTION_NOT_FOUND",
                )

            if classify(SubscriptionState.of(subscription), now) != AccessTier.ACTIVE:
                return Return.err(
                    Error(
                        code="STATE_CONFLICT",
                        message="An active subscription is required to purchase add-ons",
                        reason=f"status={subscription.status.value}",
                    )
                )

            add_on = AddOnCredit(
                owner_id=command.owner_id,
                plan_type_at_purchase=subscription.plan_type,
                credits_granted=self.credits_granted,
                amount_paid=self.amount,
                currency=self.currency,
                status=AddOnStatus.PENDING,
                effective_date=now,
                expiration_date=end_of_month(now),
                source_tag=command.source,
                purchase_date=now,
                created_at=now,
                updated_at=now,
            )
            add_on = await self.add_on_repo.create(add_on)

            session = await self.billing_provider.create_add_on_checkout(
                owner_id=command.owner_id,
                amount=self.amount,
                currency=self.currency,
                metadata={
                    "kind": "add_on",
                    "add_on_id": add_on.id,
                    "owner_id": command.owner_id,
                    "plan_type": subscription.plan_type.value,
                    "source": command.source.value,
                },
            )

            add_on.provider_session_id = session.session_id
            add_on = await self.add_on_repo.update(add_on)
            await self.uow.commit()

            logger.info(
                f"Add-on checkout opened for owner {command.owner_id} "
                f"(add_on_id={add_on.id}, session_id={session.session_id}, source={command.source.value})"
            )

            return Return.ok(
                AddOnCheckoutResponseDTO(
                    add_on_id=add_on.id,
                    session_id=session.session_id,
                    checkout_url=session.url,
                    credits_granted=add_on.credits_granted,
                    amount=add_on.amount_paid,
                    currency=add_on.currency,
                    expiration_date=add_on.expiration_date,
                )
            )

        except BillingDomainError as e:
            await self.uow.rollback()
            logger.error(f"Add-on purchase failed for owner {command.owner_id}: {e.message}")
            return Return.err(e.to_error())
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="INTERNAL_ERROR",
                    message="Failed to create add-on checkout",
                    reason=str(e),
                )
            )
