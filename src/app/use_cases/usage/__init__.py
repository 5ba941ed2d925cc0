"""Usage and entitlement use cases"""
from .get_entitlement import GetEntitlement
from .dtos import EntitlementResponseDTO, MonthlyUsageDTO, DailyUsageDTO

__all__ = [
    "GetEntitlement",
    "EntitlementResponseDTO",
    "MonthlyUsageDTO",
    "DailyUsageDTO",
]
