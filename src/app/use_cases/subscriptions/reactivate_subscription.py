"""ReactivateSubscription Use Case

paused -> active, restoring the end date stashed by the pause.
"""

from src.domain.subscription_lifecycle import Reactivate
from .dtos import OwnerCommandDTO
from .lifecycle_command import SubscriptionLifecycleCommand


class ReactivateSubscription(SubscriptionLifecycleCommand):
    action = "reactivate"

    def build_event(self, command: OwnerCommandDTO) -> Reactivate:
        return Reactivate()
