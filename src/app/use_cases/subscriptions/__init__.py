"""Subscription lifecycle use cases"""
from .start_trial import StartTrial
from .get_subscription import GetSubscription
from .pause_subscription import PauseSubscription
from .reactivate_subscription import ReactivateSubscription
from .cancel_subscription import CancelSubscription
from .expire_lapsed_subscriptions import ExpireLapsedSubscriptions
from .dtos import (
    StartTrialCommandDTO,
    OwnerCommandDTO,
    CancelCommandDTO,
    SubscriptionResponseDTO,
    ExpirationSweepResultDTO,
)

__all__ = [
    "StartTrial",
    "GetSubscription",
    "PauseSubscription",
    "ReactivateSubscription",
    "CancelSubscription",
    "ExpireLapsedSubscriptions",
    "StartTrialCommandDTO",
    "OwnerCommandDTO",
    "CancelCommandDTO",
    "SubscriptionResponseDTO",
    "ExpirationSweepResultDTO",
]
