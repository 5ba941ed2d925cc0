"""Subscription API Routes

Owner-initiated lifecycle operations and subscription reads.
"""

from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.schemas.subscription_request import CancelRequestSchema, StartTrialRequestSchema
from src.app.services.billing_provider import BillingProvider
from src.app.use_cases.subscriptions import (
    CancelCommandDTO,
    CancelSubscription,
    GetSubscription,
    OwnerCommandDTO,
    PauseSubscription,
    ReactivateSubscription,
    StartTrial,
    StartTrialCommandDTO,
    SubscriptionResponseDTO,
)
from src.adapter.repositories.subscription_repository import SqlAlchemySubscriptionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_billing_provider, get_config, get_session
from src.api.error import ClientError

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])

_CONFLICT_RESPONSE = {
    409: {
        "description": "Transition not allowed from the current status",
        "content": {
            "application/json": {
                "example": {
                    "error": {
                        "code": "STATE_CONFLICT",
                        "message": "Cannot pause a subscription in status 'trial'",
                        "reason": "status=trial"
                    }
                }
            }
        }
    },
    404: {"description": "Owner has no open subscription"},
    502: {"description": "Billing provider call failed; nothing was changed"},
}


@router.post(
    "/{owner_id}/trial",
    response_model=SubscriptionResponseDTO,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Owner already has an open subscription"}},
)
async def start_trial(
    owner_id: str,
    request: StartTrialRequestSchema,
    session: AsyncSession = Depends(get_session),
    config=Depends(get_config),
):
    """
    Start the signup trial for an owner.

    The trial grants the chosen plan's limits for TRIAL_DAYS days.
    """
    uow = SqlAlchemyUnitOfWork(session)
    subscription_repo = SqlAlchemySubscriptionRepository(session)

    command = StartTrialCommandDTO(
        owner_id=owner_id,
        plan_type=request.plan_type,
        provider_session_id=request.provider_session_id,
    )
    use_case = StartTrial(uow, subscription_repo, trial_days=config.TRIAL_DAYS)
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.get(
    "/{owner_id}",
    response_model=SubscriptionResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={404: {"description": "Owner has no subscription"}},
)
async def get_subscription(owner_id: str, session: AsyncSession = Depends(get_session)):
    """Current subscription with its access classification."""
    uow = SqlAlchemyUnitOfWork(session)
    subscription_repo = SqlAlchemySubscriptionRepository(session)

    result = await GetSubscription(uow, subscription_repo).execute(owner_id)

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post(
    "/{owner_id}/pause",
    response_model=SubscriptionResponseDTO,
    status_code=status.HTTP_200_OK,
    responses=_CONFLICT_RESPONSE,
)
async def pause_subscription(
    owner_id: str,
    session: AsyncSession = Depends(get_session),
    billing_provider: BillingProvider = Depends(get_billing_provider),
):
    """
    Pause an active subscription.

    Sending drops to the fallback tier until reactivation; the end date is
    restored on reactivation.
    """
    uow = SqlAlchemyUnitOfWork(session)
    subscription_repo = SqlAlchemySubscriptionRepository(session)

    use_case = PauseSubscription(uow, subscription_repo, billing_provider)
    result = await use_case.execute(OwnerCommandDTO(owner_id=owner_id))

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post(
    "/{owner_id}/reactivate",
    response_model=SubscriptionResponseDTO,
    status_code=status.HTTP_200_OK,
    responses=_CONFLICT_RESPONSE,
)
async def reactivate_subscription(
    owner_id: str,
    session: AsyncSession = Depends(get_session),
    billing_provider: BillingProvider = Depends(get_billing_provider),
):
    uow = SqlAlchemyUnitOfWork(session)
    subscription_repo = SqlAlchemySubscriptionRepository(session)

    use_case = ReactivateSubscription(uow, subscription_repo, billing_provider)
    result = await use_case.execute(OwnerCommandDTO(owner_id=owner_id))

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post(
    "/{owner_id}/cancel",
    response_model=SubscriptionResponseDTO,
    status_code=status.HTTP_200_OK,
    responses=_CONFLICT_RESPONSE,
)
async def cancel_subscription(
    owner_id: str,
    request: Optional[CancelRequestSchema] = None,
    session: AsyncSession = Depends(get_session),
    billing_provider: BillingProvider = Depends(get_billing_provider),
    config=Depends(get_config),
):
    """
    Cancel a subscription into its grace period.

    Access continues for `grace_period_days` (default DEFAULT_GRACE_PERIOD_DAYS),
    then the subscription expires on the next read.
    """
    uow = SqlAlchemyUnitOfWork(session)
    subscription_repo = SqlAlchemySubscriptionRepository(session)

    grace_period_days = request.grace_period_days if request else config.DEFAULT_GRACE_PERIOD_DAYS
    command = CancelCommandDTO(owner_id=owner_id, grace_period_days=grace_period_days)

    use_case = CancelSubscription(uow, subscription_repo, billing_provider)
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError(result.error)
    return result.value
