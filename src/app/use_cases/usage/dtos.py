"""Data Transfer Objects for Usage Use Cases"""

from datetime import datetime
from pydantic import BaseModel

from src.domain.entitlement import EntitlementSnapshot, UsageHealth
from src.domain.subscription_lifecycle import AccessTier


class MonthlyUsageDTO(BaseModel):
    used: int
    limit: int
    base_limit: int
    add_on_limit: int
    percentage: int
    remaining: int


class DailyUsageDTO(BaseModel):
    used: int
    limit: int
    percentage: int
    remaining: int


class EntitlementResponseDTO(BaseModel):
    """
    Response DTO for the entitlement query

    Recomputed on every call, never cached.
    """

    owner_id: str
    monthly: MonthlyUsageDTO
    daily: DailyUsageDTO
    status: UsageHealth
    can_send: bool
    access_tier: AccessTier
    as_of: datetime

    @classmethod
    def from_snapshot(cls, owner_id: str, snapshot: EntitlementSnapshot, now: datetime) -> "EntitlementResponseDTO":
        return cls(
            owner_id=owner_id,
            monthly=MonthlyUsageDTO(
                used=snapshot.monthly_used,
                limit=snapshot.monthly_limit,
                base_limit=snapshot.base_limit,
                add_on_limit=snapshot.add_on_limit,
                percentage=snapshot.monthly_percentage,
                remaining=snapshot.monthly_remaining,
            ),
            daily=DailyUsageDTO(
                used=snapshot.daily_used,
                limit=snapshot.daily_limit,
                percentage=snapshot.daily_percentage,
                remaining=snapshot.daily_remaining,
            ),
            status=snapshot.status,
            can_send=snapshot.can_send,
            access_tier=snapshot.access_tier,
            as_of=now,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "owner_id": "owner_abc123",
                "monthly": {
                    "used": 400,
                    "limit": 950,
                    "base_limit": 450,
                    "add_on_limit": 500,
                    "percentage": 42,
                    "remaining": 550,
                },
                "daily": {"used": 5, "limit": 20, "percentage": 25, "remaining": 15},
                "status": "healthy",
                "can_send": True,
                "access_tier": "active",
                "as_of": "2024-01-20T10:00:00",
            }
        }
