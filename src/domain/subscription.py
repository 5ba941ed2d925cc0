"""Subscription Domain Entity

Tracks an owner's base plan and where it is in its lifecycle.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import String, and_
from src.domain.base import BaseModel, generate_uuid, timestamp_column, utcnow
from src.domain.plan import PlanType


class SubscriptionStatus(str, Enum):
    """Subscription status types"""
    TRIAL = "trial"
    ACTIVE = "active"
    PAUSED = "paused"
    GRACE_PERIOD = "grace_period"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset({SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED})


class Subscription(BaseModel, table=True):
    """
    Subscription - Owner plan and lifecycle state

    Domain Rules:
    - One non-terminal subscription per owner (partial unique index)
    - grace_period_end_date is set iff status is grace_period
    - original_end_date is set iff status is paused (snapshot restored on reactivate)
    - Writes are conditional on (status, version) to detect concurrent changes
    - Never deleted
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        Index('ix_subscriptions_owner_id', 'owner_id'),
        Index('ix_subscriptions_status', 'status'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(36), primary_key=True),
        description="Unique subscription identifier (uuid)"
    )

    owner_id: str = Field(
        description="Owner (business account) identifier"
    )

    plan_type: PlanType = Field(
        description="Base plan (basic, premium, enterprise)"
    )

    status: SubscriptionStatus = Field(
        default=SubscriptionStatus.TRIAL,
        description="Lifecycle status"
    )

    start_date: datetime = Field(
        default_factory=utcnow,
        sa_column=timestamp_column(),
        description="Subscription start"
    )

    trial_end_date: datetime = Field(
        sa_column=timestamp_column(),
        description="End of the trial window"
    )

    end_date: Optional[datetime] = Field(
        default=None,
        sa_column=timestamp_column(nullable=True),
        description="Access end (None = ongoing)"
    )

    paused_at: Optional[datetime] = Field(default=None, sa_column=timestamp_column(nullable=True))
    cancelled_at: Optional[datetime] = Field(default=None, sa_column=timestamp_column(nullable=True))
    grace_period_end_date: Optional[datetime] = Field(default=None, sa_column=timestamp_column(nullable=True))

    original_end_date: Optional[datetime] = Field(
        default=None,
        sa_column=timestamp_column(nullable=True),
        description="end_date snapshot taken on pause"
    )

    auto_renew: bool = Field(default=True)

    provider_subscription_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True, unique=True),
        description="Billing provider subscription id"
    )

    provider_session_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True, unique=True),
        description="Billing provider checkout session id"
    )

    last_payment_at: Optional[datetime] = Field(default=None, sa_column=timestamp_column(nullable=True))
    last_payment_attempt_at: Optional[datetime] = Field(default=None, sa_column=timestamp_column(nullable=True))

    last_billing_event_at: Optional[datetime] = Field(
        default=None,
        sa_column=timestamp_column(nullable=True),
        description="Timestamp of the newest provider event applied"
    )

    last_owner_action_at: Optional[datetime] = Field(
        default=None,
        sa_column=timestamp_column(nullable=True),
        description="Timestamp of the newest owner-initiated transition"
    )

    version: int = Field(
        default=0,
        description="Optimistic concurrency counter"
    )

    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": "5d0c1e7e-3f0a-4bb8-9d7e-2c1f8f0f6a11",
                "owner_id": "owner_abc123",
                "plan_type": "basic",
                "status": "active",
                "start_date": "2024-01-01T00:00:00Z",
                "trial_end_date": "2024-01-08T00:00:00Z",
                "end_date": None,
                "auto_renew": True,
                "provider_subscription_id": "sub_1PXyz",
                "version": 3,
            }
        }


def _open_subscription_clause():
    status = Subscription.__table__.c.status
    return and_(*(status != terminal for terminal in TERMINAL_STATUSES))


# At most one non-terminal subscription per owner
Index(
    'uq_subscriptions_open_owner',
    Subscription.__table__.c.owner_id,
    unique=True,
    sqlite_where=_open_subscription_clause(),
    postgresql_where=_open_subscription_clause(),
)
