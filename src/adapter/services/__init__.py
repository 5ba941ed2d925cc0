from .unit_of_work import SqlAlchemyUnitOfWork
from .stripe_billing_provider import StripeBillingProvider

__all__ = [
    "SqlAlchemyUnitOfWork",
    "StripeBillingProvider",
]
