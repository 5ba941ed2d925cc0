"""CancelSubscription Use Case

{active, paused, trial} -> grace_period. Access is preserved until
now + grace_period_days, renewal stops at the provider.
"""

from src.domain.errors import ValidationError
from src.domain.subscription_lifecycle import Cancel
from .dtos import CancelCommandDTO
from .lifecycle_command import SubscriptionLifecycleCommand


class CancelSubscription(SubscriptionLifecycleCommand):
    action = "cancel"

    def build_event(self, command: CancelCommandDTO) -> Cancel:
        if command.grace_period_days < 0:
            raise ValidationError(
                "grace_period_days must be >= 0",
                reason=f"grace_period_days={command.grace_period_days}",
            )
        return Cancel(grace_period_days=command.grace_period_days)
