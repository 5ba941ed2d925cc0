"""Request schemas for Subscription API"""

from typing import Optional
from pydantic import BaseModel, Field
from src.domain.plan import PlanType
from src.domain.subscription_lifecycle import DEFAULT_GRACE_PERIOD_DAYS


class StartTrialRequestSchema(BaseModel):
    """Used for POST /subscriptions/{owner_id}/trial"""

    plan_type: PlanType = Field(..., description="Plan chosen at signup")

    provider_session_id: Optional[str] = Field(
        default=None,
        description="Plan checkout session opened at signup, if any"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "plan_type": "basic",
                "provider_session_id": "cs_test_a1B2",
            }
        }


class CancelRequestSchema(BaseModel):
    """
    Used for POST /subscriptions/{owner_id}/cancel

    Negative values are rejected by the use case with VALIDATION_ERROR.
    """

    grace_period_days: int = Field(
        default=DEFAULT_GRACE_PERIOD_DAYS,
        description="Days of preserved access after cancellation"
    )
