"""Usage Meter

Live counts of billable outbound messages over the current calendar month and
day. Nothing is cached: every call hits the message log.
"""

from datetime import datetime, timedelta
from typing import Sequence, Tuple
from src.app.repositories.message_log_repository import MessageLogRepository
from src.domain.add_on_credit import end_of_month

DEFAULT_BILLABLE_CHANNELS = ("whatsapp",)


def month_window(now: datetime) -> Tuple[datetime, datetime]:
    start = datetime(now.year, now.month, 1)
    return start, end_of_month(start)


def day_window(now: datetime) -> Tuple[datetime, datetime]:
    start = datetime(now.year, now.month, now.day)
    return start, start + timedelta(days=1)


class UsageMeter:
    def __init__(
        self,
        message_log: MessageLogRepository,
        billable_channels: Sequence[str] = DEFAULT_BILLABLE_CHANNELS,
    ):
        self.message_log = message_log
        self.billable_channels = tuple(billable_channels)

    async def monthly_count(self, owner_id: str, now: datetime) -> int:
        start, end = month_window(now)
        return await self.message_log.count_outbound_messages(
            owner_id, self.billable_channels, start, end
        )

    async def daily_count(self, owner_id: str, now: datetime) -> int:
        start, end = day_window(now)
        return await self.message_log.count_outbound_messages(
            owner_id, self.billable_channels, start, end
        )
