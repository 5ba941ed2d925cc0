"""Add-On Credit Repository Interface"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from src.domain.add_on_credit import AddOnCredit


class AddOnCreditRepository(ABC):
    """
    Repository interface for AddOnCredit persistence

    Each purchase is an independent row; there is no shared counter.
    """

    @abstractmethod
    async def create(self, add_on: AddOnCredit) -> AddOnCredit:
        pass

    @abstractmethod
    async def update(self, add_on: AddOnCredit) -> AddOnCredit:
        pass

    @abstractmethod
    async def get_by_id(self, add_on_id: str) -> Optional[AddOnCredit]:
        pass

    @abstractmethod
    async def get_by_provider_session_id(self, provider_session_id: str) -> Optional[AddOnCredit]:
        pass

    @abstractmethod
    async def get_by_payment_ref(self, external_payment_ref: str) -> Optional[AddOnCredit]:
        pass

    @abstractmethod
    async def list_active(self, owner_id: str, now: datetime) -> List[AddOnCredit]:
        """
        Retrieve add-ons in force at ``now``

        Completed records with effective_date <= now < expiration_date,
        newest first.
        """
        pass
