"""Processed Billing Event Repository Interface"""

from abc import ABC, abstractmethod
from typing import Optional
from src.domain.billing_event import BillingEvent, EventOutcome, ProcessedBillingEvent


class BillingEventRepository(ABC):
    @abstractmethod
    async def get_by_event_id(self, event_id: str) -> Optional[ProcessedBillingEvent]:
        pass

    @abstractmethod
    async def record(self, event: BillingEvent, outcome: EventOutcome) -> ProcessedBillingEvent:
        """
        Record the final outcome of an event

        Raises:
            DuplicateBillingEventError: The event id was already recorded
                (concurrent delivery of the same event)
        """
        pass
