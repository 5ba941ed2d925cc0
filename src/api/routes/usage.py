"""Usage API Routes"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.services.usage_meter import UsageMeter
from src.app.use_cases.usage import EntitlementResponseDTO, GetEntitlement
from src.adapter.repositories import (
    SqlAlchemyAddOnCreditRepository,
    SqlAlchemyMessageLogRepository,
    SqlAlchemySubscriptionRepository,
)
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_config, get_session
from src.api.error import ClientError

router = APIRouter(prefix="/usage", tags=["Usage"])


@router.get(
    "/{owner_id}/entitlement",
    response_model=EntitlementResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def get_entitlement(
    owner_id: str,
    session: AsyncSession = Depends(get_session),
    config=Depends(get_config),
):
    """
    Compute whether the owner may send another message.

    **Returns:**
    - monthly / daily usage against the effective limits (base plan plus
      active add-ons for the month; the daily cap comes from the base plan)
    - `status`: healthy, warning (>= 70%) or critical (>= 90%)
    - `can_send`: both monthly and daily usage are below their limits
    - `access_tier`: the classification the limits were taken from

    Owners without a subscription get the fallback tier. Never cached.
    """
    uow = SqlAlchemyUnitOfWork(session)
    subscription_repo = SqlAlchemySubscriptionRepository(session)
    add_on_repo = SqlAlchemyAddOnCreditRepository(session)
    usage_meter = UsageMeter(
        SqlAlchemyMessageLogRepository(session),
        billable_channels=config.BILLABLE_CHANNELS,
    )

    use_case = GetEntitlement(uow, subscription_repo, add_on_repo, usage_meter)
    result = await use_case.execute(owner_id)

    if result.is_err():
        raise ClientError(result.error)
    return result.value
