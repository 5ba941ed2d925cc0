"""Billing Provider Interface

Narrow port onto the external billing system (checkout sessions and
subscription collection control).
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Optional
from pydantic import BaseModel
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt
from src.domain.billing_event import BillingEvent
from src.domain.errors import UpstreamBillingError

logger = logging.getLogger(__name__)


class CheckoutSession(BaseModel):
    session_id: str
    url: Optional[str] = None
    payment_status: Optional[str] = None
    payment_intent: Optional[str] = None


class BillingProvider(ABC):
    """
    Abstract billing provider

    Implementations raise UpstreamBillingError on any provider failure.
    Read-only calls may be retried by the caller; mutating calls are not.
    """

    @abstractmethod
    async def create_add_on_checkout(
        self,
        owner_id: str,
        amount: Decimal,
        currency: str,
        metadata: Dict[str, str],
    ) -> CheckoutSession:
        """Open a one-off payment checkout for an add-on purchase"""
        pass

    @abstractmethod
    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        pass

    @abstractmethod
    async def pause_subscription(self, provider_subscription_id: str) -> None:
        pass

    @abstractmethod
    async def resume_subscription(self, provider_subscription_id: str) -> None:
        pass

    @abstractmethod
    async def cancel_subscription(self, provider_subscription_id: str) -> None:
        """Stop renewal at the end of the current period"""
        pass

    @abstractmethod
    def parse_webhook_event(self, payload: bytes, signature: Optional[str]) -> BillingEvent:
        """
        Verify a webhook delivery and normalise it into a BillingEvent

        Raises:
            ValidationError: Bad signature or malformed payload
        """
        pass


async def call_with_retry(func, *args, attempts: int = 2, **kwargs):
    """
    Call a read-only provider method, retrying once on UpstreamBillingError

    Never use for mutating calls: those surface to the caller on first failure.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        retry=retry_if_exception_type(UpstreamBillingError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    return await retrying(func, *args, **kwargs)
