"""Enum-based order state machines.

Order status and fulfillment status are separate enums with explicit
transition tables. Validation is independent of persistence: the orders
service asks these machines before writing a new status.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# State definitions
# ---------------------------------------------------------------------------

class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class FulfillmentStatus(str, Enum):
    UNFULFILLED = "UNFULFILLED"
    FULFILLED = "FULFILLED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"


# ---------------------------------------------------------------------------
# Transition rules
# ---------------------------------------------------------------------------

# Allowed transitions: {current_state: [allowed_next_states]}
_ORDER_TRANSITIONS: dict[OrderStatus, list[OrderStatus]] = {
    OrderStatus.PENDING: [OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.CANCELLED],
    OrderStatus.CONFIRMED: [OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.CANCELLED],
    OrderStatus.PROCESSING: [OrderStatus.SHIPPED, OrderStatus.CANCELLED],
    OrderStatus.SHIPPED: [OrderStatus.DELIVERED],
    OrderStatus.DELIVERED: [OrderStatus.REFUNDED],
    OrderStatus.CANCELLED: [],  # terminal
    OrderStatus.REFUNDED: [],   # terminal
}

# Orders the dashboard may still cancel.
CANCELLABLE = (OrderStatus.PENDING, OrderStatus.PROCESSING)


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

@dataclass
class WorkflowTransition:
    """Record of a single state transition."""

    from_state: str
    to_state: str
    timestamp: datetime
    actor: str = "system"
    metadata: dict[str, Any] = field(default_factory=dict)


def allowed_transitions(state: OrderStatus) -> list[OrderStatus]:
    return list(_ORDER_TRANSITIONS.get(OrderStatus(state), []))


def can_transition(current: OrderStatus, to_state: OrderStatus) -> bool:
    """Same-state writes are no-ops and always allowed."""
    current, to_state = OrderStatus(current), OrderStatus(to_state)
    return current == to_state or to_state in _ORDER_TRANSITIONS.get(current, [])


@dataclass
class OrderWorkflow:
    """Order status tracker with transition validation.

    Usage::

        wf = OrderWorkflow(order_number="ORD-123", current_state=OrderStatus.PENDING)
        wf.transition(OrderStatus.CONFIRMED, actor="stripe_webhook")
    """

    order_number: str
    current_state: OrderStatus
    history: list[WorkflowTransition] = field(default_factory=list)

    def can_transition(self, to_state: OrderStatus) -> bool:
        return can_transition(self.current_state, to_state)

    def transition(
        self,
        to_state: OrderStatus,
        actor: str = "system",
        metadata: dict[str, Any] | None = None,
    ) -> WorkflowTransition:
        """Execute a state transition.

        Raises ValueError if the transition is not allowed.
        """
        to_state = OrderStatus(to_state)
        if not self.can_transition(to_state):
            allowed_names = [s.value for s in allowed_transitions(self.current_state)]
            raise ValueError(
                f"Cannot transition from {self.current_state.value} to {to_state.value}. "
                f"Allowed: {allowed_names}"
            )

        record = WorkflowTransition(
            from_state=self.current_state.value,
            to_state=to_state.value,
            timestamp=datetime.now(timezone.utc),
            actor=actor,
            metadata=metadata or {},
        )
        self.history.append(record)
        self.current_state = to_state
        return record

    @property
    def is_terminal(self) -> bool:
        """Check if the order is in a terminal state."""
        return len(_ORDER_TRANSITIONS.get(self.current_state, [])) == 0
