"""Data Transfer Objects for Add-On Use Cases"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

from src.domain.add_on_credit import AddOnCredit, AddOnSource, AddOnStatus


class PurchaseAddOnCommandDTO(BaseModel):
    owner_id: str = Field(..., min_length=1)
    source: AddOnSource = Field(default=AddOnSource.EMERGENCY_MODAL)


class ConfirmAddOnCheckoutCommandDTO(BaseModel):
    """Sent when the owner returns from the provider's checkout page"""

    owner_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)


class AddOnCheckoutResponseDTO(BaseModel):
    add_on_id: str
    session_id: str
    checkout_url: Optional[str] = None
    credits_granted: int
    amount: Decimal
    currency: str
    expiration_date: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "add_on_id": "9b2f63d4-1d7a-4c55-8e0c-0a8c4b7f2e10",
                "session_id": "cs_test_a1B2",
                "checkout_url": "https://checkout.stripe.com/c/pay/cs_test_a1B2",
                "credits_granted": 500,
                "amount": "30.00",
                "currency": "USD",
                "expiration_date": "2024-02-01T00:00:00",
            }
        }


class AddOnDTO(BaseModel):
    id: str
    credits_granted: int
    status: AddOnStatus
    purchase_date: datetime
    effective_date: datetime
    expiration_date: datetime
    source: AddOnSource

    @classmethod
    def from_entity(cls, add_on: AddOnCredit) -> "AddOnDTO":
        return cls(
            id=add_on.id,
            credits_granted=add_on.credits_granted,
            status=add_on.status,
            purchase_date=add_on.purchase_date,
            effective_date=add_on.effective_date,
            expiration_date=add_on.expiration_date,
            source=add_on.source_tag,
        )


class ActiveAddOnsResponseDTO(BaseModel):
    owner_id: str
    add_ons: List[AddOnDTO]
    total_credits: int
