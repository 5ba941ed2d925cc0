"""Message Log Repository Interface

Read-only port onto the outbound message log owned by the messaging subsystem.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Sequence


class MessageLogRepository(ABC):
    @abstractmethod
    async def count_outbound_messages(
        self,
        owner_id: str,
        channels: Sequence[str],
        start: datetime,
        end: datetime,
    ) -> int:
        """
        Count outbound messages sent by an owner in [start, end)

        Args:
            owner_id: Owner identifier
            channels: Billable channels to include
            start: Window start (inclusive)
            end: Window end (exclusive)
        """
        pass
