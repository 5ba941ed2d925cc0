"""Billing provider event use cases"""
from .reconcile_billing_event import ReconcileBillingEvent
from .dtos import ReconciliationOutcomeDTO

__all__ = [
    "ReconcileBillingEvent",
    "ReconciliationOutcomeDTO",
]
