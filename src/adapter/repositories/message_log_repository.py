"""SQLAlchemy implementation of MessageLogRepository

Counts are computed live from the message log on every call.
"""

from datetime import datetime
from typing import Sequence
from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.message_log_repository import MessageLogRepository
from src.domain.outbound_message import OutboundMessage

OUTBOUND = "out"


class SqlAlchemyMessageLogRepository(MessageLogRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def count_outbound_messages(
        self,
        owner_id: str,
        channels: Sequence[str],
        start: datetime,
        end: datetime,
    ) -> int:
        if not channels:
            return 0
        stmt = select(func.count(OutboundMessage.id)).where(
            OutboundMessage.owner_id == owner_id,
            OutboundMessage.direction == OUTBOUND,
            OutboundMessage.channel.in_(list(channels)),
            OutboundMessage.sent_at >= start,
            OutboundMessage.sent_at < end,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one() or 0
