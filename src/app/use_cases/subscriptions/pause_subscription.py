"""PauseSubscription Use Case

active -> paused. The current end date is kept aside and restored on
reactivation; provider collection is paused.
"""

from src.domain.subscription_lifecycle import Pause
from .dtos import OwnerCommandDTO
from .lifecycle_command import SubscriptionLifecycleCommand


class PauseSubscription(SubscriptionLifecycleCommand):
    action = "pause"

    def build_event(self, command: OwnerCommandDTO) -> Pause:
        return Pause()
