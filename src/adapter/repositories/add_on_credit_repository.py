"""SQLAlchemy implementation of AddOnCreditRepository"""

from datetime import datetime
from typing import Optional, List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.add_on_credit_repository import AddOnCreditRepository
from src.domain.add_on_credit import AddOnCredit, AddOnStatus


class SqlAlchemyAddOnCreditRepository(AddOnCreditRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, add_on: AddOnCredit) -> AddOnCredit:
        self.session.add(add_on)
        await self.session.flush()
        await self.session.refresh(add_on)
        return add_on

    async def update(self, add_on: AddOnCredit) -> AddOnCredit:
        self.session.add(add_on)
        await self.session.flush()
        await self.session.refresh(add_on)
        return add_on

    async def get_by_id(self, add_on_id: str) -> Optional[AddOnCredit]:
        stmt = select(AddOnCredit).where(AddOnCredit.id == add_on_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_provider_session_id(self, provider_session_id: str) -> Optional[AddOnCredit]:
        stmt = select(AddOnCredit).where(AddOnCredit.provider_session_id == provider_session_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_payment_ref(self, external_payment_ref: str) -> Optional[AddOnCredit]:
        stmt = (
            select(AddOnCredit)
            .where(AddOnCredit.external_payment_ref == external_payment_ref)
            .order_by(AddOnCredit.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active(self, owner_id: str, now: datetime) -> List[AddOnCredit]:
        stmt = (
            select(AddOnCredit)
            .where(
                AddOnCredit.owner_id == owner_id,
                AddOnCredit.status == AddOnStatus.COMPLETED,
                AddOnCredit.effective_date <= now,
                AddOnCredit.expiration_date > now,
            )
            .order_by(AddOnCredit.effective_date.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
