"""ListActiveAddOns Use Case

Read-only listing of the add-ons in force for an owner.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.repositories.add_on_credit_repository import AddOnCreditRepository
from src.domain.base import utcnow
from .dtos import ActiveAddOnsResponseDTO, AddOnDTO

logger = logging.getLogger(__name__)


class ListActiveAddOns:
    def __init__(self, add_on_repo: AddOnCreditRepository):
        self.add_on_repo = add_on_repo

    async def execute(self, owner_id: str, now: Optional[datetime] = None) -> Result[ActiveAddOnsResponseDTO]:
        now = now or utcnow()
        try:
            add_ons = [a for a in await self.add_on_repo.list_active(owner_id, now) if a.is_active_at(now)]
        except Exception as e:
            logger.exception(f"Failed to list add-ons of owner {owner_id}")
            return Return.err(
                Error(
                    code="INTERNAL_ERROR",
                    message="Failed to list active add-ons",
                    reason=str(e),
                )
            )

        return Return.ok(
            ActiveAddOnsResponseDTO(
                owner_id=owner_id,
                add_ons=[AddOnDTO.from_entity(a) for a in add_ons],
                total_credits=sum(a.credits_granted for a in add_ons),
            )
        )
