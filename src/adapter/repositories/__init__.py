from .subscription_repository import SqlAlchemySubscriptionRepository
from .add_on_credit_repository import SqlAlchemyAddOnCreditRepository
from .billing_event_repository import SqlAlchemyBillingEventRepository
from .message_log_repository import SqlAlchemyMessageLogRepository

__all__ = [
    "SqlAlchemySubscriptionRepository",
    "SqlAlchemyAddOnCreditRepository",
    "SqlAlchemyBillingEventRepository",
    "SqlAlchemyMessageLogRepository",
]
