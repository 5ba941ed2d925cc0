"""Data Transfer Objects for Billing Event Use Cases"""

from pydantic import BaseModel
from src.domain.billing_event import EventOutcome


class ReconciliationOutcomeDTO(BaseModel):
    """Result of reconciling one provider event"""

    event_id: str
    event_type: str
    outcome: EventOutcome
    detail: str

    class Config:
        json_schema_extra = {
            "example": {
                "event_id": "evt_1PXyz",
                "event_type": "invoice.payment_failed",
                "outcome": "applied",
                "detail": "subscription 5d0c1e7e-3f0a-4bb8-9d7e-2c1f8f0f6a11 active -> past_due",
            }
        }
