"""Add-On Credit Domain Entity

A separately purchased, time-boxed allotment of extra monthly sends.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, Numeric, String
from src.domain.base import BaseModel, generate_uuid, timestamp_column, utcnow
from src.domain.errors import StateConflictError
from src.domain.plan import PlanType


class AddOnStatus(str, Enum):
    """Add-on purchase status types"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class AddOnSource(str, Enum):
    """Where in the dashboard the purchase was started"""
    EMERGENCY_MODAL = "emergency_modal"
    PREVENTIVE_DASHBOARD = "preventive_dashboard"


def end_of_month(moment: datetime) -> datetime:
    """First instant of the month after ``moment`` (exclusive bound)"""
    if moment.month == 12:
        return datetime(moment.year + 1, 1, 1)
    return datetime(moment.year, moment.month + 1, 1)


class AddOnCredit(BaseModel, table=True):
    """
    Add-On Credit - Purchased monthly send allotment

    Domain Rules:
    - Created pending when the owner starts a checkout
    - Moves to completed/failed/refunded only through billing reconciliation
    - Contributes credits_granted while completed and
      effective_date <= now < expiration_date
    - expiration_date is the end of the calendar month of effective_date
      (no rollover, no proration)
    - Retained permanently for audit
    """

    __tablename__ = "add_on_credits"
    __table_args__ = (
        CheckConstraint('expiration_date > effective_date', name='expiration_after_effective'),
        CheckConstraint('credits_granted > 0', name='credits_granted_positive'),
        Index('ix_add_on_credits_owner_effective', 'owner_id', 'effective_date'),
        Index('ix_add_on_credits_status', 'status'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(36), primary_key=True),
        description="Unique add-on purchase identifier (uuid)"
    )

    owner_id: str = Field(
        description="Owner that purchased the add-on"
    )

    plan_type_at_purchase: PlanType = Field(
        description="Base plan the owner was on when purchasing"
    )

    credits_granted: int = Field(
        description="Extra sends granted for the month"
    )

    amount_paid: Decimal = Field(
        sa_column=Column(Numeric(18, 2), nullable=False),
        description="Price charged"
    )

    currency: str = Field(
        sa_column=Column(String(3), nullable=False),
        description="Currency code (ISO 4217)"
    )

    provider_session_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True, unique=True),
        description="Billing provider checkout session id"
    )

    external_payment_ref: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True, index=True),
        description="Billing provider payment reference (payment intent)"
    )

    status: AddOnStatus = Field(
        default=AddOnStatus.PENDING,
        description="Purchase status"
    )

    effective_date: datetime = Field(
        sa_column=timestamp_column(),
        description="Start of the credit window"
    )

    expiration_date: datetime = Field(
        sa_column=timestamp_column(),
        description="End of the credit window (exclusive)"
    )

    source_tag: AddOnSource = Field(
        default=AddOnSource.EMERGENCY_MODAL,
        description="Dashboard surface that started the purchase"
    )

    purchase_date: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())

    last_billing_event_at: Optional[datetime] = Field(
        default=None,
        sa_column=timestamp_column(nullable=True),
        description="Timestamp of the newest provider event applied"
    )

    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())

    def is_active_at(self, now: datetime) -> bool:
        return (
            self.status == AddOnStatus.COMPLETED
            and self.effective_date <= now < self.expiration_date
        )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": "9b2f63d4-1d7a-4c55-8e0c-0a8c4b7f2e10",
                "owner_id": "owner_abc123",
                "plan_type_at_purchase": "basic",
                "credits_granted": 500,
                "amount_paid": "30.00",
                "currency": "USD",
                "provider_session_id": "cs_test_a1B2",
                "status": "completed",
                "effective_date": "2024-01-15T10:00:00Z",
                "expiration_date": "2024-02-01T00:00:00Z",
                "source_tag": "emergency_modal",
            }
        }


def active_credits(add_ons: Iterable[AddOnCredit], now: datetime) -> int:
    """Sum of credits granted by add-ons in force at ``now``"""
    return sum(add_on.credits_granted for add_on in add_ons if add_on.is_active_at(now))


_SETTLEMENTS = {
    AddOnStatus.PENDING: (AddOnStatus.COMPLETED, AddOnStatus.FAILED),
    AddOnStatus.COMPLETED: (AddOnStatus.REFUNDED,),
}


def settle(
    add_on: AddOnCredit,
    status: AddOnStatus,
    at: datetime,
    payment_ref: Optional[str] = None,
) -> bool:
    """
    Move an add-on to a settled status

    Settling to the status it already has is a no-op (returns False), which
    makes repeated provider confirmations harmless.

    Raises:
        StateConflictError: the move is not allowed (e.g. failed -> completed)
    """
    if add_on.status == status:
        if payment_ref and not add_on.external_payment_ref:
            add_on.external_payment_ref = payment_ref
            add_on.updated_at = at
            return True
        return False
    if status not in _SETTLEMENTS.get(add_on.status, ()):
        raise StateConflictError(
            f"Cannot move add-on {add_on.id} from '{add_on.status.value}' to '{status.value}'",
            reason=f"status={add_on.status.value}",
        )
    add_on.status = status
    if payment_ref:
        add_on.external_payment_ref = payment_ref
    add_on.updated_at = at
    return True
