"""Subscription Repository Interface

Defines the contract for subscription persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from src.domain.subscription import Subscription
from src.domain.subscription_lifecycle import SubscriptionState


class SubscriptionRepository(ABC):
    """
    Repository interface for Subscription persistence

    State changes go through ``save_state``, a conditional write keyed on the
    status and version the caller read. Reads never lock.
    """

    @abstractmethod
    async def get_by_id(self, subscription_id: str) -> Optional[Subscription]:
        pass

    @abstractmethod
    async def get_by_owner_id(self, owner_id: str) -> Optional[Subscription]:
        """
        Retrieve the owner's current subscription

        Returns the open (non-terminal) subscription if there is one, otherwise
        the most recently created one.

        Args:
            owner_id: Owner identifier

        Returns:
            Subscription if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_open_by_owner_id(self, owner_id: str) -> Optional[Subscription]:
        """Retrieve the owner's non-terminal subscription, if any"""
        pass

    @abstractmethod
    async def get_by_provider_subscription_id(self, provider_subscription_id: str) -> Optional[Subscription]:
        pass

    @abstractmethod
    async def get_by_provider_session_id(self, provider_session_id: str) -> Optional[Subscription]:
        pass

    @abstractmethod
    async def create(self, subscription: Subscription) -> Subscription:
        pass

    @abstractmethod
    async def save_state(
        self,
        subscription: Subscription,
        state: SubscriptionState,
        **fields,
    ) -> Subscription:
        """
        Persist a new lifecycle state with optimistic concurrency

        The write only succeeds if the stored row still has the status and
        version of ``subscription`` as it was read.

        Args:
            subscription: Subscription as read by the caller
            state: New lifecycle state
            **fields: Extra non-lifecycle columns to set (e.g. provider ids)

        Returns:
            The refreshed Subscription

        Raises:
            ConcurrentModificationError: The row changed since it was read
        """
        pass

    @abstractmethod
    async def list_due_for_expiration(self, now: datetime, limit: int = 500) -> List[Subscription]:
        """Grace-period or active subscriptions whose window has elapsed"""
        pass
