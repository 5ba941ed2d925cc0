"""ConfirmAddOnCheckout Use Case

Called when the owner lands back on the dashboard after paying. Asks the
provider for the session state and completes the add-on if it is paid, so the
credits show up without waiting for the webhook. Both paths settle the row the
same way, so whichever arrives second is a no-op.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.billing_provider import BillingProvider, call_with_retry
from src.app.repositories.add_on_credit_repository import AddOnCreditRepository
from src.domain.add_on_credit import AddOnStatus, settle
from src.domain.base import utcnow
from src.domain.errors import BillingDomainError, NotFoundError
from .dtos import AddOnDTO, ConfirmAddOnCheckoutCommandDTO

logger = logging.getLogger(__name__)

PAID_STATUSES = ("paid", "no_payment_required")


class ConfirmAddOnCheckout:
    def __init__(
        self,
        uow: UnitOfWork,
        add_on_repo: AddOnCreditRepository,
        billing_provider: BillingProvider,
    ):
        self.uow = uow
        self.add_on_repo = add_on_repo
        self.billing_provider = billing_provider

    async def execute(
        self, command: ConfirmAddOnCheckoutCommandDTO, now: Optional[datetime] = None
    ) -> Result[AddOnDTO]:
        now = now or utcnow()
        try:
            add_on = await self.add_on_repo.get_by_provider_session_id(command.session_id)
            if not add_on or add_on.owner_id != command.owner_id:
                raise NotFoundError(
                    f"No add-on purchase found for session {command.session_id}",
                    code="ADD_ON_NOT_FOUND",
                )

            if add_on.status != AddOnStatus.PENDING:
                return Return.ok(AddOnDTO.from_entity(add_on))

            session = await call_with_retry(
                self.billing_provider.retrieve_checkout_session, command.session_id
            )
            if session.payment_status not in PAID_STATUSES:
                logger.warning(
                    f"Add-on session {command.session_id} not paid yet "
                    f"(payment_status={session.payment_status})"
                )
                return Return.ok(AddOnDTO.from_entity(add_on))

            if settle(add_on, AddOnStatus.COMPLETED, now, payment_ref=session.payment_intent):
                add_on = await self.add_on_repo.update(add_on)
                await self.uow.commit()
                logger.info(
                    f"Add-on {add_on.id} completed for owner {add_on.owner_id} "
                    f"({add_on.credits_granted} credits, {add_on.amount_paid} {add_on.currency})"
                )
            return Return.ok(AddOnDTO.from_entity(add_on))

        except BillingDomainError as e:
            await self.uow.rollback()
            return Return.err(e.to_error())
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="INTERNAL_ERROR",
                    message="Failed to confirm add-on checkout",
                    reason=str(e),
                )
            )
