"""Billing Provider Webhook Route"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.services.billing_provider import BillingProvider
from src.app.use_cases.billing_events import ReconcileBillingEvent, ReconciliationOutcomeDTO
from src.adapter.repositories import (
    SqlAlchemyAddOnCreditRepository,
    SqlAlchemyBillingEventRepository,
    SqlAlchemySubscriptionRepository,
)
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_billing_provider, get_config, get_session
from src.domain.errors import ValidationError
from src.api.error import ClientError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post(
    "/stripe",
    response_model=ReconciliationOutcomeDTO,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"description": "Bad signature or malformed payload"},
        503: {
            "description": "Event references a record not committed yet; provider should retry",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "RECONCILIATION_DEFERRED",
                            "message": "Subscription sub_1PXyz not known locally yet"
                        }
                    }
                }
            }
        },
    }
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    session: AsyncSession = Depends(get_session),
    billing_provider: BillingProvider = Depends(get_billing_provider),
    config=Depends(get_config),
):
    """
    Receive a Stripe event and reconcile it into local state.

    Duplicate, stale and ignored events answer 200 so Stripe stops retrying.
    Deferred events answer 503 so Stripe redelivers them.
    """
    payload = await request.body()
    try:
        event = billing_provider.parse_webhook_event(payload, stripe_signature)
    except ValidationError as e:
        logger.warning(f"Rejected webhook delivery: {e.message}")
        raise ClientError(e.to_error())

    use_case = ReconcileBillingEvent(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemySubscriptionRepository(session),
        SqlAlchemyAddOnCreditRepository(session),
        SqlAlchemyBillingEventRepository(session),
        grace_period_days=config.DEFAULT_GRACE_PERIOD_DAYS,
        payment_failure_grace_period_days=config.PAYMENT_FAILURE_GRACE_PERIOD_DAYS,
    )
    result = await use_case.execute(event)

    if result.is_err():
        raise ClientError(result.error)
    return result.value
