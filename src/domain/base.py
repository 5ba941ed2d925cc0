"""Shared base for domain entities"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation every stored datetime uses"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def timestamp_column(nullable: bool = False) -> Column:
    # Stored naive (UTC); a fresh Column per field
    return Column(DateTime(timezone=False), nullable=nullable)


class BaseModel(SQLModel):
    pass
