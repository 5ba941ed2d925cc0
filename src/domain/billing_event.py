"""Processed Billing Event Domain Entity

Idempotency ledger for provider webhook events. One row per event id that
reached a final outcome. Deferred events are never recorded.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel as PydanticModel, Field as PydanticField
from sqlmodel import Field, Column
from sqlalchemy import BigInteger, Integer, String
from src.domain.base import BaseModel, timestamp_column, utcnow


class EventOutcome(str, Enum):
    """Final outcome of reconciling one provider event"""
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    STALE = "stale"
    IGNORED = "ignored"


class BillingEvent(PydanticModel):
    """Provider-neutral webhook event"""

    event_id: str
    event_type: str
    object_id: Optional[str] = None
    occurred_at: datetime
    payload: Dict[str, Any] = PydanticField(default_factory=dict)


class ProcessedBillingEvent(BaseModel, table=True):
    """
    Processed Billing Event - Provider events already reconciled

    Domain Rules:
    - event_id is unique (a redelivered event is a no-op)
    - Immutable once written
    """

    __tablename__ = "processed_billing_events"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
    )

    event_id: str = Field(
        sa_column=Column(String(255), nullable=False, unique=True),
        description="Provider event id"
    )

    event_type: str = Field(
        sa_column=Column(String(100), nullable=False),
        description="Provider event type"
    )

    object_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Id of the provider object the event is about"
    )

    occurred_at: datetime = Field(sa_column=timestamp_column(), description="Provider-side event timestamp")

    outcome: EventOutcome = Field(description="How the event was reconciled")

    processed_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())
