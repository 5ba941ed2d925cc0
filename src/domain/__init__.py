from .base import BaseModel, generate_uuid, utcnow
from .plan import PlanType, PlanLimits, PLAN_LIMITS, FALLBACK_LIMITS
from .subscription import Subscription, SubscriptionStatus
from .add_on_credit import AddOnCredit, AddOnStatus, AddOnSource
from .billing_event import BillingEvent, ProcessedBillingEvent, EventOutcome
from .outbound_message import OutboundMessage

__all__ = [
    "BaseModel",
    "generate_uuid",
    "utcnow",
    "PlanType",
    "PlanLimits",
    "PLAN_LIMITS",
    "FALLBACK_LIMITS",
    "Subscription",
    "SubscriptionStatus",
    "AddOnCredit",
    "AddOnStatus",
    "AddOnSource",
    "BillingEvent",
    "ProcessedBillingEvent",
    "EventOutcome",
    "OutboundMessage",
]
