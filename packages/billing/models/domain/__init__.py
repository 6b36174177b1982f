"""Domain models for billing."""

from packages.billing.models.domain.enums import (
    SubscriptionStatus,
    CancellationReason,
    GatewayPaymentStatus,
    HistoryEntryStatus,
)
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    PaymentHistoryEntry,
    PaymentFailure,
    ChargeEvidence,
    InvariantRepairResult,
)
from packages.billing.models.domain.charge import (
    ChargeIntent,
    SettlementResult,
    ChargeState,
    ChargeResult,
    ChargeAttempt,
    ChargeAttemptCreateModel,
)

__all__ = [
    # Enums
    "SubscriptionStatus",
    "CancellationReason",
    "GatewayPaymentStatus",
    "HistoryEntryStatus",
    # Subscription
    "Subscription",
    "SubscriptionCreateModel",
    "PaymentHistoryEntry",
    "PaymentFailure",
    "ChargeEvidence",
    "InvariantRepairResult",
    # Charges
    "ChargeIntent",
    "SettlementResult",
    "ChargeState",
    "ChargeResult",
    "ChargeAttempt",
    "ChargeAttemptCreateModel",
]
