"""ReconcileBillingEvent Use Case

Applies one provider webhook event to local subscription / add-on state.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.app.repositories.add_on_credit_repository import AddOnCreditRepository
from src.app.repositories.billing_event_repository import BillingEventRepository
from src.domain.add_on_credit import AddOnCredit, AddOnStatus, settle
from src.domain.billing_event import BillingEvent, EventOutcome
from src.domain.errors import (
    BillingDomainError,
    DuplicateBillingEventError,
    ReconciliationDeferred,
    StateConflictError,
)
from src.domain.subscription import Subscription, SubscriptionStatus
from src.domain.subscription_lifecycle import (
    DEFAULT_GRACE_PERIOD_DAYS,
    PaymentFailed,
    PaymentSucceeded,
    ProviderCanceled,
    ProviderPaused,
    ProviderResumed,
    SubscriptionEvent,
    SubscriptionState,
    transition,
)
from .dtos import ReconciliationOutcomeDTO

logger = logging.getLogger(__name__)

PAID_STATUSES = ("paid", "no_payment_required")
CANCELED_PROVIDER_STATUSES = ("canceled", "unpaid", "incomplete_expired")


class ReconcileBillingEvent:
    """
    Use Case: Reconcile a billing provider event

    Business Rules:
    1. Idempotency: an event id already recorded is a no-op success
    2. Out-of-order tolerance: events older than the last change applied to the
       same record (provider event or owner action) are recorded as stale and
       not applied
    3. Provider cancellation maps to the local grace period, never straight
       to cancelled
    4. A referenced record that does not exist yet defers the event
       (RECONCILIATION_DEFERRED) so the provider redelivers it
    5. Transitions the local state machine rejects are recorded as ignored
    6. No provider calls: completes in bounded time

    Flow:
    1. Look up the event id in the processed-event ledger
    2. Dispatch on event type
    3. Record the outcome and commit in the same unit of work
    """

    def __init__(
        self,
        uow: UnitOfWork,
        subscription_repo: SubscriptionRepository,
        add_on_repo: AddOnCreditRepository,
        event_repo: BillingEventRepository,
        grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS,
        payment_failure_grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS,
    ):
        self.uow = uow
        self.subscription_repo = subscription_repo
        self.add_on_repo = add_on_repo
        self.event_repo = event_repo
        self.grace_period_days = grace_period_days
        self.payment_failure_grace_period_days = payment_failure_grace_period_days
        self._handlers = {
            "invoice.paid": self._on_invoice_paid,
            "invoice.payment_succeeded": self._on_invoice_paid,
            "invoice.payment_failed": self._on_invoice_payment_failed,
            "customer.subscription.updated": self._on_subscription_updated,
            "customer.subscription.deleted": self._on_subscription_deleted,
            "customer.subscription.paused": self._on_subscription_paused,
            "customer.subscription.resumed": self._on_subscription_resumed,
            "checkout.session.completed": self._on_checkout_completed,
            "checkout.session.async_payment_succeeded": self._on_checkout_completed,
            "checkout.session.expired": self._on_checkout_failed,
            "checkout.session.async_payment_failed": self._on_checkout_failed,
            "charge.refunded": self._on_charge_refunded,
        }

    async def execute(self, event: BillingEvent) -> Result[ReconciliationOutcomeDTO]:
        try:
            existing = await self.event_repo.get_by_event_id(event.event_id)
            if existing:
                logger.info(f"Billing event {event.event_id} already processed ({existing.outcome.value})")
                return Return.ok(self._outcome(event, EventOutcome.DUPLICATE, f"previously {existing.outcome.value}"))

            handler = self._handlers.get(event.event_type)
            if handler is None:
                outcome, detail = EventOutcome.IGNORED, "unhandled event type"
            else:
                outcome, detail = await handler(event)

            await self.event_repo.record(event, outcome)
            await self.uow.commit()

            logger.info(
                f"Billing event {event.event_id} ({event.event_type}, object={event.object_id}) "
                f"-> {outcome.value}: {detail}"
            )
            return Return.ok(self._outcome(event, outcome, detail))

        except DuplicateBillingEventError:
            await self.uow.rollback()
            logger.info(f"Billing event {event.event_id} processed concurrently by another delivery")
            return Return.ok(self._outcome(event, EventOutcome.DUPLICATE, "concurrent delivery"))
        except ReconciliationDeferred as e:
            await self.uow.rollback()
            logger.info(f"Billing event {event.event_id} ({event.event_type}) deferred: {e.message}")
            return Return.err(e.to_error())
        except BillingDomainError as e:
            await self.uow.rollback()
            logger.error(f"Billing event {event.event_id} ({event.event_type}) failed: {e.message}")
            return Return.err(e.to_error())
        except Exception as e:
            await self.uow.rollback()
            logger.exception(f"Unexpected failure reconciling billing event {event.event_id}")
            return Return.err(
                Error(
                    code="INTERNAL_ERROR",
                    message="Failed to reconcile billing event",
                    reason=str(e),
                )
            )

    # --- subscription events ------------------------------------------------

    async def _on_invoice_paid(self, event: BillingEvent):
        provider_id = _invoice_subscription_id(event.payload)
        if not provider_id:
            return EventOutcome.IGNORED, "invoice not tied to a subscription"
        subscription = await self._require_subscription(provider_id)
        return await self._apply(subscription, event, PaymentSucceeded())

    async def _on_invoice_payment_failed(self, event: BillingEvent):
        provider_id = _invoice_subscription_id(event.payload)
        if not provider_id:
            return EventOutcome.IGNORED, "invoice not tied to a subscription"
        subscription = await self._require_subscription(provider_id)
        # No further automatic attempt scheduled means retries are exhausted
        retries_exhausted = event.payload.get("next_payment_attempt") is None
        return await self._apply(
            subscription,
            event,
            PaymentFailed(
                retries_exhausted=retries_exhausted,
                grace_period_days=self.payment_failure_grace_period_days,
            ),
        )

    async def _on_subscription_updated(self, event: BillingEvent):
        subscription = await self._require_subscription(event.object_id)
        provider_status = event.payload.get("status")

        sub_event: Optional[SubscriptionEvent] = None
        if event.payload.get("pause_collection") or provider_status == "paused":
            sub_event = ProviderPaused()
        elif provider_status == "active":
            if subscription.status == SubscriptionStatus.PAUSED:
                sub_event = ProviderResumed()
            elif subscription.status in (SubscriptionStatus.TRIAL, SubscriptionStatus.PAST_DUE):
                sub_event = PaymentSucceeded()
        elif provider_status == "past_due":
            sub_event = PaymentFailed(retries_exhausted=False)
        elif provider_status in CANCELED_PROVIDER_STATUSES:
            sub_event = ProviderCanceled(grace_period_days=self.grace_period_days)

        if sub_event is None:
            return EventOutcome.IGNORED, f"nothing to apply for provider status '{provider_status}'"
        return await self._apply(subscription, event, sub_event)

    async def _on_subscription_deleted(self, event: BillingEvent):
        subscription = await self._require_subscription(event.object_id)
        return await self._apply(subscription, event, ProviderCanceled(grace_period_days=self.grace_period_days))

    async def _on_subscription_paused(self, event: BillingEvent):
        subscription = await self._require_subscription(event.object_id)
        return await self._apply(subscription, event, ProviderPaused())

    async def _on_subscription_resumed(self, event: BillingEvent):
        subscription = await self._require_subscription(event.object_id)
        return await self._apply(subscription, event, ProviderResumed())

    async def _require_subscription(self, provider_subscription_id: Optional[str]) -> Subscription:
        subscription = None
        if provider_subscription_id:
            subscription = await self.subscription_repo.get_by_provider_subscription_id(provider_subscription_id)
        if not subscription:
            raise ReconciliationDeferred(
                f"Subscription {provider_subscription_id} not known locally yet",
                reason=f"provider_subscription_id={provider_subscription_id}",
            )
        return subscription

    async def _apply(self, subscription: Subscription, event: BillingEvent, sub_event: SubscriptionEvent):
        watermark = _subscription_watermark(subscription)
        if _is_stale(watermark, event):
            return EventOutcome.STALE, f"older than last applied change ({watermark.isoformat()})"

        state = SubscriptionState.of(subscription)
        try:
            result = transition(state, sub_event, event.occurred_at)
        except StateConflictError as e:
            logger.warning(
                f"Billing event {event.event_id} rejected by subscription {subscription.id}: {e.message}"
            )
            return EventOutcome.IGNORED, e.message

        await self.subscription_repo.save_state(
            subscription, result.state, last_billing_event_at=event.occurred_at
        )
        return EventOutcome.APPLIED, (
            f"subscription {subscription.id} {result.previous.status.value} -> {result.state.status.value}"
        )

    # --- checkout / add-on events -------------------------------------------

    async def _on_checkout_completed(self, event: BillingEvent):
        payload = event.payload
        if payload.get("payment_status") not in PAID_STATUSES:
            return EventOutcome.IGNORED, f"payment_status={payload.get('payment_status')}, awaiting payment"

        add_on = await self._find_add_on(event)
        if add_on is not None:
            return await self._settle_add_on(add_on, event, AddOnStatus.COMPLETED, payload.get("payment_intent"))

        if _metadata(payload).get("kind") == "add_on":
            raise ReconciliationDeferred(
                f"Add-on for checkout session {event.object_id} not committed yet",
                reason=f"session_id={event.object_id}",
            )

        if payload.get("mode") == "subscription":
            return await self._attach_provider_subscription(event)

        return EventOutcome.IGNORED, "checkout session not linked to an add-on or subscription"

    async def _on_checkout_failed(self, event: BillingEvent):
        add_on = await self._find_add_on(event)
        if add_on is not None:
            return await self._settle_add_on(add_on, event, AddOnStatus.FAILED)
        if _metadata(event.payload).get("kind") == "add_on":
            raise ReconciliationDeferred(
                f"Add-on for checkout session {event.object_id} not committed yet",
                reason=f"session_id={event.object_id}",
            )
        return EventOutcome.IGNORED, "checkout session not linked to an add-on"

    async def _on_charge_refunded(self, event: BillingEvent):
        payment_ref = event.payload.get("payment_intent")
        add_on = await self.add_on_repo.get_by_payment_ref(payment_ref) if payment_ref else None
        if add_on is None:
            return EventOutcome.IGNORED, "refund not linked to an add-on"
        return await self._settle_add_on(add_on, event, AddOnStatus.REFUNDED)

    async def _find_add_on(self, event: BillingEvent) -> Optional[AddOnCredit]:
        add_on_id = _metadata(event.payload).get("add_on_id")
        if add_on_id:
            add_on = await self.add_on_repo.get_by_id(add_on_id)
            if add_on is not None:
                return add_on
        if event.object_id:
            return await self.add_on_repo.get_by_provider_session_id(event.object_id)
        return None

    async def _settle_add_on(
        self,
        add_on: AddOnCredit,
        event: BillingEvent,
        status: AddOnStatus,
        payment_ref: Optional[str] = None,
    ):
        if _is_stale(add_on.last_billing_event_at, event):
            return EventOutcome.STALE, (
                f"older than last applied event ({add_on.last_billing_event_at.isoformat()})"
            )
        try:
            changed = settle(add_on, status, event.occurred_at, payment_ref=payment_ref)
        except StateConflictError as e:
            logger.warning(f"Billing event {event.event_id} rejected by add-on {add_on.id}: {e.message}")
            return EventOutcome.IGNORED, e.message

        if not changed:
            return EventOutcome.IGNORED, f"add-on {add_on.id} already {status.value}"

        if add_on.provider_session_id is None and event.event_type.startswith("checkout.session."):
            add_on.provider_session_id = event.object_id
        add_on.last_billing_event_at = event.occurred_at
        await self.add_on_repo.update(add_on)
        return EventOutcome.APPLIED, f"add-on {add_on.id} -> {status.value}"

    async def _attach_provider_subscription(self, event: BillingEvent):
        subscription = None
        if event.object_id:
            subscription = await self.subscription_repo.get_by_provider_session_id(event.object_id)
        if subscription is None:
            raise ReconciliationDeferred(
                f"Subscription for checkout session {event.object_id} not committed yet",
                reason=f"session_id={event.object_id}",
            )

        provider_id = event.payload.get("subscription")
        if not provider_id or subscription.provider_subscription_id == provider_id:
            return EventOutcome.IGNORED, "provider subscription already attached"

        await self.subscription_repo.save_state(
            subscription,
            SubscriptionState.of(subscription),
            provider_subscription_id=provider_id,
        )
        return EventOutcome.APPLIED, f"subscription {subscription.id} linked to {provider_id}"

    @staticmethod
    def _outcome(event: BillingEvent, outcome: EventOutcome, detail: str) -> ReconciliationOutcomeDTO:
        return ReconciliationOutcomeDTO(
            event_id=event.event_id,
            event_type=event.event_type,
            outcome=outcome,
            detail=detail,
        )


def _is_stale(last_applied_at, event: BillingEvent) -> bool:
    return last_applied_at is not None and event.occurred_at < last_applied_at


def _subscription_watermark(subscription: Subscription) -> Optional[datetime]:
    """Newest of the last applied provider event and the last owner action"""
    stamps = [
        stamp
        for stamp in (subscription.last_billing_event_at, subscription.last_owner_action_at)
        if stamp is not None
    ]
    return max(stamps) if stamps else None


def _metadata(payload: Dict[str, Any]) -> Dict[str, Any]:
    return payload.get("metadata") or {}


def _invoice_subscription_id(payload: Dict[str, Any]) -> Optional[str]:
    subscription = payload.get("subscription")
    if isinstance(subscription, dict):
        return subscription.get("id")
    if subscription:
        return subscription
    # Newer API versions nest it under parent.subscription_details
    details = (payload.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")
