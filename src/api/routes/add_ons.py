"""Add-On API Routes

Purchase flow for monthly add-on credit packs.
"""

from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.schemas.add_on_request import AddOnCheckoutRequestSchema
from src.app.services.billing_provider import BillingProvider
from src.app.use_cases.add_ons import (
    ActiveAddOnsResponseDTO,
    AddOnCheckoutResponseDTO,
    AddOnDTO,
    ConfirmAddOnCheckout,
    ConfirmAddOnCheckoutCommandDTO,
    ListActiveAddOns,
    PurchaseAddOn,
    PurchaseAddOnCommandDTO,
)
from src.adapter.repositories import (
    SqlAlchemyAddOnCreditRepository,
    SqlAlchemySubscriptionRepository,
)
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_billing_provider, get_config, get_session
from src.api.error import ClientError

router = APIRouter(prefix="/add-ons", tags=["Add-ons"])


@router.get(
    "/{owner_id}/active",
    response_model=ActiveAddOnsResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def list_active_add_ons(owner_id: str, session: AsyncSession = Depends(get_session)):
    """Completed add-ons whose window contains now, newest first."""
    add_on_repo = SqlAlchemyAddOnCreditRepository(session)

    result = await ListActiveAddOns(add_on_repo).execute(owner_id)

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post(
    "/{owner_id}/checkout",
    response_model=AddOnCheckoutResponseDTO,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {
            "description": "Owner has no active paid subscription",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "STATE_CONFLICT",
                            "message": "An active subscription is required to purchase add-ons",
                            "reason": "status=trial"
                        }
                    }
                }
            }
        },
        502: {"description": "Checkout could not be opened; no add-on was recorded"},
    }
)
async def create_add_on_checkout(
    owner_id: str,
    request: Optional[AddOnCheckoutRequestSchema] = None,
    session: AsyncSession = Depends(get_session),
    billing_provider: BillingProvider = Depends(get_billing_provider),
    config=Depends(get_config),
):
    """
    Open a provider checkout for one add-on pack.

    A pending add-on is recorded and completed once the provider confirms
    payment (webhook or the confirm endpoint). Credits expire at the end of
    the current calendar month.
    """
    uow = SqlAlchemyUnitOfWork(session)
    subscription_repo = SqlAlchemySubscriptionRepository(session)
    add_on_repo = SqlAlchemyAddOnCreditRepository(session)

    request = request or AddOnCheckoutRequestSchema()
    use_case = PurchaseAddOn(
        uow,
        subscription_repo,
        add_on_repo,
        billing_provider,
        credits_granted=config.ADD_ON_CREDITS,
        amount=Decimal(str(config.ADD_ON_PRICE)),
        currency=config.ADD_ON_CURRENCY,
    )
    result = await use_case.execute(PurchaseAddOnCommandDTO(owner_id=owner_id, source=request.source))

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post(
    "/{owner_id}/checkout/{session_id}/confirm",
    response_model=AddOnDTO,
    status_code=status.HTTP_200_OK,
    responses={404: {"description": "No add-on for this owner and session"}},
)
async def confirm_add_on_checkout(
    owner_id: str,
    session_id: str,
    session: AsyncSession = Depends(get_session),
    billing_provider: BillingProvider = Depends(get_billing_provider),
):
    """
    Confirm a checkout on return from the provider's success page.

    Completes the add-on if the provider reports it paid; otherwise returns
    it unchanged. Safe to call repeatedly.
    """
    uow = SqlAlchemyUnitOfWork(session)
    add_on_repo = SqlAlchemyAddOnCreditRepository(session)

    use_case = ConfirmAddOnCheckout(uow, add_on_repo, billing_provider)
    result = await use_case.execute(
        ConfirmAddOnCheckoutCommandDTO(owner_id=owner_id, session_id=session_id)
    )

    if result.is_err():
        raise ClientError(result.error)
    return result.value
