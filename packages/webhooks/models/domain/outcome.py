from enum import Enum


class ReconcileOutcome(str, Enum):
    """Terminal state of one notification in the reconciler."""

    DUPLICATE = "duplicate"  # already processed, short-circuited
    APPLIED = "applied"  # routed to an order and applied
    ROUTED_BY_EMAIL = "routed_by_email"  # unroutable by order, matched a user by email
    PENDING = "pending"  # unroutable, stored for manual review
    FAILED = "failed"  # processing error, written to the error store
