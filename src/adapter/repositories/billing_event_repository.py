"""SQLAlchemy implementation of BillingEventRepository

Idempotency is enforced by the unique constraint on event_id.
"""

from typing import Optional
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.exc import IntegrityError
from src.app.repositories.billing_event_repository import BillingEventRepository
from src.domain.billing_event import BillingEvent, EventOutcome, ProcessedBillingEvent
from src.domain.errors import DuplicateBillingEventError


class SqlAlchemyBillingEventRepository(BillingEventRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_event_id(self, event_id: str) -> Optional[ProcessedBillingEvent]:
        stmt = select(ProcessedBillingEvent).where(ProcessedBillingEvent.event_id == event_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def record(self, event: BillingEvent, outcome: EventOutcome) -> ProcessedBillingEvent:
        processed = ProcessedBillingEvent(
            event_id=event.event_id,
            event_type=event.event_type,
            object_id=event.object_id,
            occurred_at=event.occurred_at,
            outcome=outcome,
        )
        self.session.add(processed)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicateBillingEventError(
                f"Billing event {event.event_id} already recorded",
                reason=str(e.orig),
            ) from e
        await self.session.refresh(processed)
        return processed
