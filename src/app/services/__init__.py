from .unit_of_work import UnitOfWork
from .billing_provider import BillingProvider, CheckoutSession, call_with_retry
from .usage_meter import UsageMeter

__all__ = [
    "UnitOfWork",
    "BillingProvider",
    "CheckoutSession",
    "call_with_retry",
    "UsageMeter",
]
