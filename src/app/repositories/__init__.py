from .subscription_repository import SubscriptionRepository
from .add_on_credit_repository import AddOnCreditRepository
from .billing_event_repository import BillingEventRepository
from .message_log_repository import MessageLogRepository

__all__ = [
    "SubscriptionRepository",
    "AddOnCreditRepository",
    "BillingEventRepository",
    "MessageLogRepository",
]
