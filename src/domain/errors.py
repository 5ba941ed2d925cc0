"""Domain Errors

Every error carries a stable machine-readable ``code``. Use cases translate
them into ``libs.result.Error`` values and the API maps codes to HTTP status.
"""

from typing import Optional
from libs.result import Error

class BillingDomainError(Exception):
    """Base class for expected failures of the entitlement core"""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, reason: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason
        if code:
            self.code = code

    def to_error(self) -> Error:
        return Error(code=self.code, message=self.message, reason=self.reason)

class ValidationError(BillingDomainError):
    """Malformed input"""

    code = "VALIDATION_ERROR"

class StateConflictError(BillingDomainError):
    """Transition is invalid from the subscription's current status"""

    code = "STATE_CONFLICT"

class ConcurrentModificationError(StateConflictError):
    """The record changed between read and conditional write"""

    code = "CONCURRENT_MODIFICATION"

class NotFoundError(BillingDomainError):
    """The subscription or add-on the request names does not exist"""

    code = "NOT_FOUND"

class UpstreamBillingError(BillingDomainError):
    """A call to the billing provider failed"""

    code = "UPSTREAM_BILLING_ERROR"

class ReconciliationDeferred(BillingDomainError):
    """The event references a local record that is not committed yet.

    Not a failure: the provider must redeliver the event later.
    """

    code = "RECONCILIATION_DEFERRED"


class DuplicateBillingEventError(BillingDomainError):
    """The billing event id has already been recorded"""

    code = "DUPLICATE_EVENT"
