"""
Billing enums - strongly typed enumerations for subscription and gateway states.
"""

from enum import Enum


class SubscriptionStatus(str, Enum):
    """
    Subscription status lifecycle.

    Flow: active -> payment_failed | cancelled | cancelled_by_system
    """

    ACTIVE = "active"  # Charged on schedule
    PAYMENT_FAILED = "payment_failed"  # Terminal until resumed externally
    CANCELLED = "cancelled"  # Cancelled by the user or replaced by a new card
    CANCELLED_BY_SYSTEM = "cancelled_by_system"  # Removed by invariant repair

    def is_billable(self) -> bool:
        """Check if this status should be billed."""
        return self == SubscriptionStatus.ACTIVE


class CancellationReason(str, Enum):
    """Why a subscription left the active state."""

    USER_REQUEST = "user_request"
    PAYMENT_METHOD_REPLACED = "payment_method_replaced"
    MULTIPLE_ACTIVE_SUBSCRIPTIONS = "multiple_active_subscriptions"
    MULTIPLE_SUBSCRIPTIONS_ON_RESTART = "multiple_subscriptions_on_restart"


class GatewayPaymentStatus(str, Enum):
    """Payment statuses reported by the acquiring gateway (subset we act on)."""

    NEW = "NEW"
    FORM_SHOWED = "FORM_SHOWED"
    AUTHORIZED = "AUTHORIZED"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    CANCELED = "CANCELED"
    REVERSED = "REVERSED"
    REFUNDED = "REFUNDED"
    DEADLINE_EXPIRED = "DEADLINE_EXPIRED"

    @classmethod
    def is_settled(cls, status: str) -> bool:
        """Statuses that mean the money was captured or held."""
        return status in (cls.AUTHORIZED.value, cls.CONFIRMED.value)


class HistoryEntryStatus(str, Enum):
    """Status recorded on a payment history entry."""

    SUCCESS = "success"
