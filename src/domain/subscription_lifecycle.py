"""Subscription Lifecycle

Pure state machine for a subscription. ``transition`` takes the current
``SubscriptionState`` and an event and returns the next state plus the side
effects the caller must carry out against the billing provider. Nothing here
touches storage or the network.

    trial        -> active         payment succeeded
    active       -> paused         pause
    paused       -> active         reactivate
    active|paused|trial -> grace_period   cancel(grace_period_days)
    grace_period -> expired        grace window elapsed (lazy)
    active       -> expired        end_date elapsed (lazy)
    active       -> past_due       payment failed
    past_due     -> active         payment recovered
    past_due     -> grace_period   payment retries exhausted
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Optional, Tuple, Type
from pydantic import BaseModel, Field

from src.domain.errors import StateConflictError, ValidationError
from src.domain.subscription import Subscription, SubscriptionStatus, TERMINAL_STATUSES

DEFAULT_GRACE_PERIOD_DAYS = 7


class SubscriptionState(BaseModel):
    """Lifecycle fields of a subscription, detached from persistence"""

    model_config = {"frozen": True}

    status: SubscriptionStatus
    trial_end_date: datetime
    end_date: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    grace_period_end_date: Optional[datetime] = None
    original_end_date: Optional[datetime] = None
    auto_renew: bool = True
    last_payment_at: Optional[datetime] = None
    last_payment_attempt_at: Optional[datetime] = None

    @classmethod
    def of(cls, subscription: Subscription) -> "SubscriptionState":
        return cls(**{name: getattr(subscription, name) for name in cls.model_fields})


class Effect(str, Enum):
    """Provider-side work implied by a transition"""
    PAUSE_PROVIDER_BILLING = "pause_provider_billing"
    RESUME_PROVIDER_BILLING = "resume_provider_billing"
    CANCEL_PROVIDER_RENEWAL = "cancel_provider_renewal"


class AccessTier(str, Enum):
    """Single classification of what a subscription grants right now"""
    TRIAL = "trial"
    ACTIVE = "active"
    GRACE = "grace"
    PAUSED = "paused"
    PAST_DUE = "past_due"
    LAPSED = "lapsed"


ENTITLED_TIERS = frozenset({AccessTier.TRIAL, AccessTier.ACTIVE, AccessTier.GRACE})


# --- events -----------------------------------------------------------------

class SubscriptionEvent(BaseModel):
    model_config = {"frozen": True}


class Pause(SubscriptionEvent):
    pass


class Reactivate(SubscriptionEvent):
    pass


class Cancel(SubscriptionEvent):
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS


class CheckExpiration(SubscriptionEvent):
    pass


class PaymentSucceeded(SubscriptionEvent):
    pass


class PaymentFailed(SubscriptionEvent):
    retries_exhausted: bool = False
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS


class ProviderCanceled(SubscriptionEvent):
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS


class ProviderPaused(SubscriptionEvent):
    pass


class ProviderResumed(SubscriptionEvent):
    pass


class Transition(BaseModel):
    model_config = {"frozen": True}

    previous: SubscriptionState
    state: SubscriptionState
    effects: Tuple[Effect, ...] = Field(default_factory=tuple)

    @property
    def changed(self) -> bool:
        return self.state != self.previous


# --- classification -----------------------------------------------------------

def classify(state: SubscriptionState, now: datetime) -> AccessTier:
    """Collapse status and dates into one access tier"""
    status = state.status
    if status == SubscriptionStatus.TRIAL:
        return AccessTier.TRIAL if now < state.trial_end_date else AccessTier.LAPSED
    if status == SubscriptionStatus.ACTIVE:
        if state.end_date is None or now < state.end_date:
            return AccessTier.ACTIVE
        return AccessTier.LAPSED
    if status == SubscriptionStatus.GRACE_PERIOD:
        if state.grace_period_end_date is not None and now < state.grace_period_end_date:
            return AccessTier.GRACE
        return AccessTier.LAPSED
    if status == SubscriptionStatus.PAUSED:
        return AccessTier.PAUSED
    if status == SubscriptionStatus.PAST_DUE:
        return AccessTier.PAST_DUE
    return AccessTier.LAPSED


def is_trial_active(state: SubscriptionState, now: datetime) -> bool:
    return classify(state, now) == AccessTier.TRIAL


def is_active(state: SubscriptionState, now: datetime) -> bool:
    return classify(state, now) in (AccessTier.ACTIVE, AccessTier.GRACE)


def is_entitled(state: SubscriptionState, now: datetime) -> bool:
    return classify(state, now) in ENTITLED_TIERS


# --- transitions --------------------------------------------------------------

def _conflict(action: str, state: SubscriptionState) -> StateConflictError:
    return StateConflictError(
        f"Cannot {action} a subscription in status '{state.status.value}'",
        reason=f"status={state.status.value}",
    )


def _enter_grace(state: SubscriptionState, now: datetime, grace_period_days: int) -> SubscriptionState:
    if grace_period_days < 0:
        raise ValidationError(
            "grace_period_days must be >= 0",
            reason=f"grace_period_days={grace_period_days}",
        )
    end_date = state.end_date
    if state.status == SubscriptionStatus.PAUSED:
        end_date = state.original_end_date
    return state.model_copy(update={
        "status": SubscriptionStatus.GRACE_PERIOD,
        "cancelled_at": now,
        "auto_renew": False,
        "grace_period_end_date": now + timedelta(days=grace_period_days),
        "end_date": end_date,
        "paused_at": None,
        "original_end_date": None,
    })


def _pause(state: SubscriptionState, now: datetime) -> SubscriptionState:
    return state.model_copy(update={
        "status": SubscriptionStatus.PAUSED,
        "paused_at": now,
        "original_end_date": state.end_date,
        "auto_renew": False,
    })


def _resume(state: SubscriptionState) -> SubscriptionState:
    return state.model_copy(update={
        "status": SubscriptionStatus.ACTIVE,
        "end_date": state.original_end_date,
        "paused_at": None,
        "original_end_date": None,
        "auto_renew": True,
    })


def _on_pause(state, event, now):
    if state.status != SubscriptionStatus.ACTIVE:
        raise _conflict("pause", state)
    return _pause(state, now), (Effect.PAUSE_PROVIDER_BILLING,)


def _on_reactivate(state, event, now):
    if state.status != SubscriptionStatus.PAUSED:
        raise _conflict("reactivate", state)
    return _resume(state), (Effect.RESUME_PROVIDER_BILLING,)


def _on_cancel(state, event: Cancel, now):
    if state.status not in (SubscriptionStatus.ACTIVE, SubscriptionStatus.PAUSED, SubscriptionStatus.TRIAL):
        raise _conflict("cancel", state)
    return _enter_grace(state, now, event.grace_period_days), (Effect.CANCEL_PROVIDER_RENEWAL,)


def _on_check_expiration(state, event, now):
    if state.status == SubscriptionStatus.GRACE_PERIOD:
        if state.grace_period_end_date is not None and now >= state.grace_period_end_date:
            return state.model_copy(update={
                "status": SubscriptionStatus.EXPIRED,
                "grace_period_end_date": None,
            }), ()
    elif state.status == SubscriptionStatus.ACTIVE:
        if state.end_date is not None and now >= state.end_date:
            return state.model_copy(update={"status": SubscriptionStatus.EXPIRED}), ()
    return state, ()


def _on_payment_succeeded(state, event, now):
    if state.status in (SubscriptionStatus.TRIAL, SubscriptionStatus.PAST_DUE, SubscriptionStatus.ACTIVE):
        return state.model_copy(update={
            "status": SubscriptionStatus.ACTIVE,
            "auto_renew": True,
            "last_payment_at": now,
        }), ()
    raise _conflict("record a payment for", state)


def _on_payment_failed(state, event: PaymentFailed, now):
    if state.status not in (SubscriptionStatus.ACTIVE, SubscriptionStatus.PAST_DUE):
        raise _conflict("record a failed payment for", state)
    attempted = state.model_copy(update={"last_payment_attempt_at": now})
    if event.retries_exhausted:
        return _enter_grace(attempted, now, event.grace_period_days), ()
    return attempted.model_copy(update={"status": SubscriptionStatus.PAST_DUE}), ()


def _on_provider_canceled(state, event: ProviderCanceled, now):
    # The product grants its own grace window whatever the provider says
    if state.status == SubscriptionStatus.GRACE_PERIOD or state.status in TERMINAL_STATUSES:
        return state, ()
    return _enter_grace(state, now, event.grace_period_days), ()


def _on_provider_paused(state, event, now):
    if state.status == SubscriptionStatus.PAUSED:
        return state, ()
    if state.status != SubscriptionStatus.ACTIVE:
        raise _conflict("pause", state)
    return _pause(state, now), ()


def _on_provider_resumed(state, event, now):
    if state.status == SubscriptionStatus.ACTIVE:
        return state, ()
    if state.status != SubscriptionStatus.PAUSED:
        raise _conflict("resume", state)
    return _resume(state), ()


_HANDLERS: Dict[Type[SubscriptionEvent], Callable] = {
    Pause: _on_pause,
    Reactivate: _on_reactivate,
    Cancel: _on_cancel,
    CheckExpiration: _on_check_expiration,
    PaymentSucceeded: _on_payment_succeeded,
    PaymentFailed: _on_payment_failed,
    ProviderCanceled: _on_provider_canceled,
    ProviderPaused: _on_provider_paused,
    ProviderResumed: _on_provider_resumed,
}


def transition(state: SubscriptionState, event: SubscriptionEvent, now: datetime) -> Transition:
    """
    Apply an event to a subscription state

    Raises:
        StateConflictError: event is not valid from the current status
        ValidationError: event carries malformed parameters
    """
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise ValidationError(f"Unsupported subscription event {type(event).__name__}")
    new_state, effects = handler(state, event, now)
    return Transition(previous=state, state=new_state, effects=tuple(effects))


def check_expiration(state: SubscriptionState, now: datetime) -> Transition:
    return transition(state, CheckExpiration(), now)
