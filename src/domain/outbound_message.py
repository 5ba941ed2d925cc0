"""Outbound Message Read Model

Maps the message log written by the messaging subsystem. This service only
counts rows; it never inserts or updates them.
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import String
from src.domain.base import BaseModel, generate_uuid, timestamp_column


class OutboundMessage(BaseModel, table=True):
    __tablename__ = "messages"
    __table_args__ = (
        Index('ix_messages_owner_direction_sent_at', 'owner_id', 'direction', 'sent_at'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(36), primary_key=True),
    )

    owner_id: str = Field(description="Owner that sent or received the message")

    channel: str = Field(
        sa_column=Column(String(32), nullable=False),
        description="whatsapp, instagram, messenger, telegram, ..."
    )

    direction: str = Field(
        sa_column=Column(String(3), nullable=False),
        description="'in' or 'out'"
    )

    sent_at: datetime = Field(sa_column=timestamp_column(), description="Send timestamp (UTC)")

    external_id: Optional[str] = Field(default=None)
