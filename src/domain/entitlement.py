"""Entitlement Resolver

Pure computation of "may this owner send, and how much is left". Combines the
subscription state, the add-on credits in force and the live usage counts
into an ``EntitlementSnapshot``. Snapshots are never stored.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple
from pydantic import BaseModel

from src.domain.add_on_credit import AddOnCredit, active_credits
from src.domain.plan import FALLBACK_LIMITS, PLAN_LIMITS, PlanLimits, PlanType, limits_for
from src.domain.subscription_lifecycle import (
    AccessTier,
    ENTITLED_TIERS,
    SubscriptionState,
    check_expiration,
    classify,
)

WARNING_THRESHOLD = 70
CRITICAL_THRESHOLD = 90


class UsageHealth(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class EntitlementSnapshot(BaseModel):
    model_config = {"frozen": True}

    monthly_used: int
    monthly_limit: int
    base_limit: int
    add_on_limit: int
    monthly_percentage: int
    monthly_remaining: int
    daily_used: int
    daily_limit: int
    daily_percentage: int
    daily_remaining: int
    status: UsageHealth
    can_send: bool
    access_tier: AccessTier


def usage_percentage(used: int, limit: int) -> int:
    """Percentage of ``limit`` consumed, rounded half up; 0 when there is no limit"""
    if limit <= 0:
        return 0
    ratio = Decimal(100 * used) / Decimal(limit)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def usage_health(*percentages: int) -> UsageHealth:
    peak = max(percentages, default=0)
    if peak >= CRITICAL_THRESHOLD:
        return UsageHealth.CRITICAL
    if peak >= WARNING_THRESHOLD:
        return UsageHealth.WARNING
    return UsageHealth.HEALTHY


def resolve_entitlement(
    state: Optional[SubscriptionState],
    plan_type: Optional[PlanType],
    add_ons: Iterable[AddOnCredit],
    monthly_used: int,
    daily_used: int,
    now: datetime,
    plan_limits: Dict[PlanType, PlanLimits] = PLAN_LIMITS,
    fallback: PlanLimits = FALLBACK_LIMITS,
) -> Tuple[EntitlementSnapshot, Optional[SubscriptionState]]:
    """
    Compute the entitlement for one owner

    The subscription state is first run through ``check_expiration``; the
    possibly-advanced state is returned next to the snapshot so the caller can
    persist it. An owner without a subscription gets the fallback tier.

    Returns:
        (snapshot, state after lazy expiration)
    """
    tier = AccessTier.LAPSED
    if state is not None:
        state = check_expiration(state, now).state
        tier = classify(state, now)

    if tier in ENTITLED_TIERS and plan_type is not None:
        limits = limits_for(plan_type, plan_limits)
    else:
        limits = fallback

    base_limit = limits.max_messages_per_month
    add_on_limit = active_credits(add_ons, now)
    monthly_limit = base_limit + add_on_limit
    # Add-ons raise the monthly ceiling only
    daily_limit = limits.max_messages_per_day

    monthly_percentage = usage_percentage(monthly_used, monthly_limit)
    daily_percentage = usage_percentage(daily_used, daily_limit)

    snapshot = EntitlementSnapshot(
        monthly_used=monthly_used,
        monthly_limit=monthly_limit,
        base_limit=base_limit,
        add_on_limit=add_on_limit,
        monthly_percentage=monthly_percentage,
        monthly_remaining=max(0, monthly_limit - monthly_used),
        daily_used=daily_used,
        daily_limit=daily_limit,
        daily_percentage=daily_percentage,
        daily_remaining=max(0, daily_limit - daily_used),
        status=usage_health(monthly_percentage, daily_percentage),
        can_send=monthly_used < monthly_limit and daily_used < daily_limit,
        access_tier=tier,
    )
    return snapshot, state
