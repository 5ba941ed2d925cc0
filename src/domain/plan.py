"""Plan Catalogue

Monthly and daily send limits per plan. Limits count business-initiated
conversations on billable channels.
"""

from enum import Enum
from typing import Dict
from pydantic import BaseModel, Field


class PlanType(str, Enum):
    """Base plans an owner can subscribe to"""
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class PlanLimits(BaseModel):
    """Send ceilings for one tier"""

    model_config = {"frozen": True}

    max_messages_per_month: int = Field(..., ge=0)
    max_messages_per_day: int = Field(..., ge=0)


PLAN_LIMITS: Dict[PlanType, PlanLimits] = {
    PlanType.BASIC: PlanLimits(max_messages_per_month=450, max_messages_per_day=20),
    PlanType.PREMIUM: PlanLimits(max_messages_per_month=900, max_messages_per_day=45),
    PlanType.ENTERPRISE: PlanLimits(max_messages_per_month=2250, max_messages_per_day=110),
}

# Owners without an entitled subscription
FALLBACK_LIMITS = PlanLimits(max_messages_per_month=10, max_messages_per_day=1)


def limits_for(plan_type: PlanType, table: Dict[PlanType, PlanLimits] = PLAN_LIMITS) -> PlanLimits:
    return table.get(plan_type, FALLBACK_LIMITS)
