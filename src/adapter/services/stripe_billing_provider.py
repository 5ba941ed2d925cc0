"""Stripe Billing Provider

Stripe implementation of the BillingProvider port. The Stripe SDK is
synchronous, so every API call runs in a worker thread.
"""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Optional

import stripe

from src.app.services.billing_provider import BillingProvider, CheckoutSession
from src.domain.billing_event import BillingEvent
from src.domain.errors import UpstreamBillingError, ValidationError

logger = logging.getLogger(__name__)

# Stripe refuses checkout expiries shorter than this
MIN_CHECKOUT_TTL_MINUTES = 30


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1")))


def from_timestamp(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)


class StripeBillingProvider(BillingProvider):
    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        frontend_url: str,
        add_on_product_id: Optional[str] = None,
        checkout_ttl_minutes: int = MIN_CHECKOUT_TTL_MINUTES,
        max_network_retries: int = 0,
    ):
        stripe.api_key = secret_key
        stripe.max_network_retries = max_network_retries
        self.webhook_secret = webhook_secret
        self.frontend_url = frontend_url.rstrip("/")
        self.add_on_product_id = add_on_product_id
        self.checkout_ttl_minutes = max(checkout_ttl_minutes, MIN_CHECKOUT_TTL_MINUTES)

    async def _call(self, operation: str, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except stripe.StripeError as e:
            logger.error(f"Stripe {operation} failed: {e.user_message or str(e)}")
            raise UpstreamBillingError(
                f"Billing provider {operation} failed",
                reason=str(e),
            ) from e

    async def create_add_on_checkout(
        self,
        owner_id: str,
        amount: Decimal,
        currency: str,
        metadata: Dict[str, str],
    ) -> CheckoutSession:
        price_data = {
            "currency": currency.lower(),
            "unit_amount": to_minor_units(amount),
        }
        if self.add_on_product_id:
            price_data["product"] = self.add_on_product_id
        else:
            price_data["product_data"] = {"name": "Message add-on"}

        expires_at = datetime.now(timezone.utc) + timedelta(minutes=self.checkout_ttl_minutes)
        session = await self._call(
            "checkout creation",
            stripe.checkout.Session.create,
            mode="payment",
            client_reference_id=owner_id,
            line_items=[{"price_data": price_data, "quantity": 1}],
            metadata=metadata,
            payment_intent_data={"metadata": metadata},
            success_url=f"{self.frontend_url}/billing/add-ons/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{self.frontend_url}/billing/add-ons/cancel",
            expires_at=int(expires_at.timestamp()),
        )
        logger.info(f"Created Stripe checkout session {session.id} for owner {owner_id}")
        return self._to_checkout_session(session)

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        session = await self._call("checkout lookup", stripe.checkout.Session.retrieve, session_id)
        return self._to_checkout_session(session)

    async def pause_subscription(self, provider_subscription_id: str) -> None:
        await self._call(
            "subscription pause",
            stripe.Subscription.modify,
            provider_subscription_id,
            pause_collection={"behavior": "void"},
        )

    async def resume_subscription(self, provider_subscription_id: str) -> None:
        # Empty string unsets pause_collection
        await self._call(
            "subscription resume",
            stripe.Subscription.modify,
            provider_subscription_id,
            pause_collection="",
        )

    async def cancel_subscription(self, provider_subscription_id: str) -> None:
        await self._call(
            "subscription cancellation",
            stripe.Subscription.modify,
            provider_subscription_id,
            cancel_at_period_end=True,
        )

    def parse_webhook_event(self, payload: bytes, signature: Optional[str]) -> BillingEvent:
        if not signature:
            raise ValidationError("Missing Stripe-Signature header")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            raise ValidationError("Invalid webhook payload", reason=str(e)) from e
        except stripe.SignatureVerificationError as e:
            raise ValidationError("Invalid webhook signature", reason=str(e)) from e

        # Signature verified; work from plain dicts from here on
        return event_from_payload(json.loads(payload))

    @staticmethod
    def _to_checkout_session(session) -> CheckoutSession:
        # StripeObject is not a dict on current SDKs; attribute access only
        payment_intent = getattr(session, "payment_intent", None)
        if payment_intent is not None and not isinstance(payment_intent, str):
            # Expanded PaymentIntent object
            payment_intent = payment_intent.id
        return CheckoutSession(
            session_id=session.id,
            url=getattr(session, "url", None),
            payment_status=getattr(session, "payment_status", None),
            payment_intent=payment_intent,
        )


def event_from_payload(body: dict) -> BillingEvent:
    """Normalise a raw Stripe event body"""
    try:
        obj = body["data"]["object"]
        return BillingEvent(
            event_id=body["id"],
            event_type=body["type"],
            object_id=obj.get("id"),
            occurred_at=from_timestamp(body["created"]),
            payload=obj,
        )
    except (KeyError, TypeError) as e:
        raise ValidationError("Malformed Stripe event", reason=str(e)) from e
