"""
Order State Machine

This module is the SINGLE SOURCE OF TRUTH for order status transitions.
All status changes, regular orders and backorders alike, go through
transition_order().

    PENDING    -> CONFIRMED, CANCELLED
    CONFIRMED  -> PROCESSING, CANCELLED
    PROCESSING -> SHIPPED, CANCELLED
    SHIPPED    -> DELIVERED
    DELIVERED  -> REFUNDED
    CANCELLED  (terminal)
    REFUNDED   (terminal)
"""

from typing import List, Dict, Optional
from datetime import datetime, timezone

from attireburg.models.order import OrderStatus as _OrderStatus


class OrderStatus:
    """Status string constants, mirroring the OrderStatus enum values."""
    PENDING = _OrderStatus.PENDING.value
    CONFIRMED = _OrderStatus.CONFIRMED.value
    PROCESSING = _OrderStatus.PROCESSING.value
    SHIPPED = _OrderStatus.SHIPPED.value
    DELIVERED = _OrderStatus.DELIVERED.value
    CANCELLED = _OrderStatus.CANCELLED.value
    REFUNDED = _OrderStatus.REFUNDED.value

    @classmethod
    def all(cls) -> List[str]:
        return [s.value for s in _OrderStatus]


class InvalidTransitionError(ValueError):
    """Raised when a status change is not in ORDER_TRANSITIONS."""

    def __init__(self, current_status: str, new_status: str, message: Optional[str] = None):
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(message or f"Invalid status transition from {current_status} to {new_status}")


# =============================================================================
# TRANSITION RULES
# =============================================================================

# Format: current_status -> [list of allowed next statuses]
ORDER_TRANSITIONS: Dict[str, List[str]] = {
    OrderStatus.PENDING: [
        OrderStatus.CONFIRMED,      # Payment confirmed
        OrderStatus.CANCELLED,      # Cancel before confirmation
    ],
    OrderStatus.CONFIRMED: [
        OrderStatus.PROCESSING,     # Start picking/packing
        OrderStatus.CANCELLED,
    ],
    OrderStatus.PROCESSING: [
        OrderStatus.SHIPPED,        # Handed to carrier
        OrderStatus.CANCELLED,
    ],
    OrderStatus.SHIPPED: [
        OrderStatus.DELIVERED,
    ],
    OrderStatus.DELIVERED: [
        OrderStatus.REFUNDED,
    ],
    OrderStatus.CANCELLED: [],      # Terminal state
    OrderStatus.REFUNDED: [],       # Terminal state
}

# Customer-facing labels
STATUS_LABELS: Dict[str, Dict[str, str]] = {
    OrderStatus.PENDING: {"de": "Ausstehend", "en": "Pending"},
    OrderStatus.CONFIRMED: {"de": "Bestätigt", "en": "Confirmed"},
    OrderStatus.PROCESSING: {"de": "In Bearbeitung", "en": "Processing"},
    OrderStatus.SHIPPED: {"de": "Versandt", "en": "Shipped"},
    OrderStatus.DELIVERED: {"de": "Zugestellt", "en": "Delivered"},
    OrderStatus.CANCELLED: {"de": "Storniert", "en": "Cancelled"},
    OrderStatus.REFUNDED: {"de": "Erstattet", "en": "Refunded"},
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def can_transition(current_status: str, new_status: str) -> bool:
    """Check if a transition is allowed."""
    allowed = ORDER_TRANSITIONS.get(current_status, [])
    return new_status in allowed


def get_allowed_transitions(current_status: str) -> List[str]:
    """Get list of statuses that can be transitioned to from current status."""
    return list(ORDER_TRANSITIONS.get(current_status, []))


def get_status_label(status: str, language: str = "de") -> str:
    return STATUS_LABELS.get(status, {}).get(language, status)


def validate_transition(current_status: str, new_status: str) -> None:
    """
    Validate a status transition. Raises InvalidTransitionError if invalid.

    Re-applying the current status is not a transition and is rejected too,
    so that no history row is written for a no-op.
    """
    if new_status not in ORDER_TRANSITIONS:
        raise InvalidTransitionError(
            current_status,
            new_status,
            f"Unknown order status '{new_status}'. Valid statuses: {', '.join(OrderStatus.all())}"
        )

    if not can_transition(current_status, new_status):
        allowed = get_allowed_transitions(current_status)
        if not allowed:
            raise InvalidTransitionError(
                current_status,
                new_status,
                f"Invalid status transition from {current_status} to {new_status}: "
                f"{current_status} is a terminal state"
            )
        raise InvalidTransitionError(
            current_status,
            new_status,
            f"Invalid status transition from {current_status} to {new_status}. "
            f"Allowed transitions: {', '.join(allowed)}"
        )


def is_terminal(status: str) -> bool:
    """Is this a terminal (final) state?"""
    return not ORDER_TRANSITIONS.get(status)


def can_cancel(status: str) -> bool:
    return OrderStatus.CANCELLED in ORDER_TRANSITIONS.get(status, [])


# =============================================================================
# TRANSITION EXECUTOR
# =============================================================================

def transition_order(order, new_status: str) -> str:
    """
    Transition an order to a new status.

    Validates the transition, updates the status and sets the audit
    timestamp that belongs to the target status.

    Returns:
        The previous status

    Raises:
        InvalidTransitionError: If transition is not allowed
    """
    current_status = order.status

    validate_transition(current_status, new_status)

    order.status = new_status

    now = datetime.now(timezone.utc)

    if new_status == OrderStatus.CONFIRMED:
        order.confirmed_at = now

    elif new_status == OrderStatus.SHIPPED:
        order.shipped_at = now

    elif new_status == OrderStatus.DELIVERED:
        order.delivered_at = now

    elif new_status == OrderStatus.CANCELLED:
        order.cancelled_at = now

    return current_status
