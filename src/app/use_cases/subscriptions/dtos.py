"""Data Transfer Objects for Subscription Use Cases"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from src.domain.plan import PlanType
from src.domain.subscription import Subscription, SubscriptionStatus
from src.domain.subscription_lifecycle import (
    AccessTier,
    DEFAULT_GRACE_PERIOD_DAYS,
    SubscriptionState,
    classify,
)


def whole_days_until(moment: Optional[datetime], now: datetime) -> int:
    """Full days left before ``moment``, never negative"""
    if moment is None or moment <= now:
        return 0
    return (moment - now).days


class StartTrialCommandDTO(BaseModel):
    """
    Command DTO for starting a trial at signup

    provider_session_id links the plan checkout the owner opened so the
    checkout-completed webhook can attach the provider subscription later.
    """

    owner_id: str = Field(..., min_length=1)
    plan_type: PlanType = Field(...)
    provider_session_id: Optional[str] = Field(default=None)


class OwnerCommandDTO(BaseModel):
    """Command DTO for owner actions without parameters (pause, reactivate)"""

    owner_id: str = Field(..., min_length=1)


class CancelCommandDTO(BaseModel):
    owner_id: str = Field(..., min_length=1)
    grace_period_days: int = Field(
        default=DEFAULT_GRACE_PERIOD_DAYS,
        description="Days of preserved access after cancellation"
    )


class SubscriptionResponseDTO(BaseModel):
    """
    Response DTO for subscription reads and mutations

    is_active / is_trial_active / access_tier are derived from one
    classification at ``as_of``.
    """

    id: str
    owner_id: str
    plan_type: PlanType
    status: SubscriptionStatus
    access_tier: AccessTier
    is_active: bool
    is_trial_active: bool
    start_date: datetime
    trial_end_date: datetime
    end_date: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    grace_period_end_date: Optional[datetime] = None
    auto_renew: bool
    trial_days_remaining: int = 0
    grace_period_days_remaining: int = 0
    as_of: datetime

    @classmethod
    def from_entity(cls, subscription: Subscription, now: datetime) -> "SubscriptionResponseDTO":
        tier = classify(SubscriptionState.of(subscription), now)
        return cls(
            id=subscription.id,
            owner_id=subscription.owner_id,
            plan_type=subscription.plan_type,
            status=subscription.status,
            access_tier=tier,
            is_active=tier in (AccessTier.ACTIVE, AccessTier.GRACE),
            is_trial_active=tier == AccessTier.TRIAL,
            start_date=subscription.start_date,
            trial_end_date=subscription.trial_end_date,
            end_date=subscription.end_date,
            paused_at=subscription.paused_at,
            cancelled_at=subscription.cancelled_at,
            grace_period_end_date=subscription.grace_period_end_date,
            auto_renew=subscription.auto_renew,
            trial_days_remaining=whole_days_until(subscription.trial_end_date, now),
            grace_period_days_remaining=whole_days_until(subscription.grace_period_end_date, now),
            as_of=now,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "5d0c1e7e-3f0a-4bb8-9d7e-2c1f8f0f6a11",
                "owner_id": "owner_abc123",
                "plan_type": "basic",
                "status": "grace_period",
                "access_tier": "grace",
                "is_active": True,
                "is_trial_active": False,
                "start_date": "2024-01-01T00:00:00",
                "trial_end_date": "2024-01-08T00:00:00",
                "cancelled_at": "2024-02-10T12:00:00",
                "grace_period_end_date": "2024-02-17T12:00:00",
                "auto_renew": False,
                "trial_days_remaining": 0,
                "grace_period_days_remaining": 6,
                "as_of": "2024-02-11T09:30:00",
            }
        }


class ExpirationSweepResultDTO(BaseModel):
    """Outcome of one expiration sweep batch"""

    checked: int
    expired: int
    conflicts: int
    swept_at: datetime
    execution_time_ms: int
