import enum
from typing import Any, Dict, Optional


class ErrorKind(str, enum.Enum):
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    UPSTREAM_UNREACHABLE = "upstream_unreachable"
    QUOTA_EXCEEDED = "quota_exceeded"
    NO_ACTIVE_SUBSCRIPTION = "no_active_subscription"
    INACTIVE = "inactive"
    PAYMENT_METHOD_MISSING = "payment_method_missing"
    BILLING_PROVIDER = "billing_provider"


class ExplorerError(Exception):
    """
    Base class for every failure the explorer services report to callers.

    Subclasses pin the `kind`; routes branch on it, clients only ever see
    `message`.
    """
    kind: ErrorKind

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, context={self.context!r})"


class InvalidInput(ExplorerError):
    kind = ErrorKind.INVALID_INPUT


class NotFound(ExplorerError):
    kind = ErrorKind.NOT_FOUND


class Forbidden(ExplorerError):
    kind = ErrorKind.FORBIDDEN


class Conflict(ExplorerError):
    kind = ErrorKind.CONFLICT


class UpstreamUnreachable(ExplorerError):
    kind = ErrorKind.UPSTREAM_UNREACHABLE


class QuotaExceeded(ExplorerError):
    kind = ErrorKind.QUOTA_EXCEEDED


class NoActiveSubscription(ExplorerError):
    kind = ErrorKind.NO_ACTIVE_SUBSCRIPTION


class Inactive(ExplorerError):
    kind = ErrorKind.INACTIVE


class PaymentMethodMissing(ExplorerError):
    kind = ErrorKind.PAYMENT_METHOD_MISSING


class BillingProviderFailure(ExplorerError):
    kind = ErrorKind.BILLING_PROVIDER
