"""Order status state machine.

The repository is authoritative for status changes and enforces the same
graph; this module decides which changes the client may request and which
actions a customer is shown for each status. Every status-dependent label
or action is read from STATUS_TABLE rather than branching on raw codes.

Transition graph:
    DRAFT      -> VALIDATED | CANCELLED
    VALIDATED  -> PROCESSING | DELIVERED | CANCELLED
    PROCESSING -> DELIVERED | CANCELLED
    DELIVERED and CANCELLED are terminal.
"""

from dataclasses import dataclass
from enum import Enum

from .errors import IllegalTransitionError
from .models import OrderStatus


class CustomerAction(Enum):
    """Actions a customer may trigger from the order details screen."""

    CANCEL = "cancel"
    ATTACH_FEEDBACK = "attach_feedback"


@dataclass(frozen=True)
class StatusInfo:
    """Everything a screen needs to know about one status."""

    label: str
    color: str
    transitions: frozenset[OrderStatus]
    customer_actions: frozenset[CustomerAction]


STATUS_TABLE: dict[OrderStatus, StatusInfo] = {
    OrderStatus.DRAFT: StatusInfo(
        label="Draft",
        color="#ff9800",
        transitions=frozenset({OrderStatus.VALIDATED, OrderStatus.CANCELLED}),
        customer_actions=frozenset({CustomerAction.CANCEL}),
    ),
    OrderStatus.VALIDATED: StatusInfo(
        label="Validated",
        color="#4caf50",
        transitions=frozenset(
            {OrderStatus.PROCESSING, OrderStatus.DELIVERED, OrderStatus.CANCELLED}
        ),
        customer_actions=frozenset(),
    ),
    OrderStatus.PROCESSING: StatusInfo(
        label="Processing",
        color="#2196f3",
        transitions=frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
        customer_actions=frozenset(),
    ),
    OrderStatus.DELIVERED: StatusInfo(
        label="Delivered",
        color="#009688",
        transitions=frozenset(),
        customer_actions=frozenset({CustomerAction.ATTACH_FEEDBACK}),
    ),
    OrderStatus.CANCELLED: StatusInfo(
        label="Cancelled",
        color="#f44336",
        transitions=frozenset(),
        customer_actions=frozenset(),
    ),
    OrderStatus.UNKNOWN: StatusInfo(
        label="Unrecognized",
        color="#9e9e9e",
        transitions=frozenset(),
        customer_actions=frozenset(),
    ),
}

# The customer-facing status change each action maps to, if any.
_CUSTOMER_TRANSITIONS: dict[CustomerAction, OrderStatus] = {
    CustomerAction.CANCEL: OrderStatus.CANCELLED,
}

# Display order for available_transitions()
_STATUS_ORDER = (
    OrderStatus.VALIDATED,
    OrderStatus.PROCESSING,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
)


class OrderStateMachine:
    """Decides which status changes and customer actions are legal.

    Pure decision logic, no side effects.
    """

    def __init__(self, table: dict[OrderStatus, StatusInfo] | None = None):
        self.table = table if table is not None else STATUS_TABLE
        missing = set(OrderStatus) - set(self.table)
        if missing:
            raise ValueError(
                f"Status table is missing entries for: {sorted(s.name for s in missing)}"
            )

    def info(self, status: OrderStatus) -> StatusInfo:
        return self.table[status]

    def label(self, status: OrderStatus) -> str:
        return self.table[status].label

    def color(self, status: OrderStatus) -> str:
        return self.table[status].color

    def is_terminal(self, status: OrderStatus) -> bool:
        """True for statuses with no outgoing edge (UNKNOWN included)."""
        return not self.table[status].transitions

    def can_transition(self, current: OrderStatus, target: OrderStatus) -> bool:
        """Whether target is reachable from current in one step."""
        if OrderStatus.UNKNOWN in (current, target):
            return False
        return target in self.table[current].transitions

    def available_transitions(self, current: OrderStatus) -> list[OrderStatus]:
        """Statuses reachable from current, in lifecycle order."""
        allowed = self.table[current].transitions
        return [status for status in _STATUS_ORDER if status in allowed]

    def transition(self, current: OrderStatus, target: OrderStatus) -> OrderStatus:
        """Validate a status change and return the new status.

        Requesting the current status again is accepted as a no-op, except
        for UNKNOWN which never takes part in a transition.

        Raises:
            IllegalTransitionError: If the edge is not in the graph.
        """
        if current == target and current is not OrderStatus.UNKNOWN:
            return current
        if not self.can_transition(current, target):
            raise IllegalTransitionError(current, target)
        return target

    def customer_actions(self, status: OrderStatus) -> frozenset[CustomerAction]:
        return self.table[status].customer_actions

    def is_customer_action_allowed(
        self, status: OrderStatus, action: CustomerAction
    ) -> bool:
        return action in self.table[status].customer_actions

    def customer_transition(
        self, current: OrderStatus, target: OrderStatus
    ) -> OrderStatus:
        """Validate a status change requested by the customer.

        Customers may only cancel a draft; every other change is made by
        the back office.

        Raises:
            IllegalTransitionError: If the customer may not request it.
        """
        allowed = {
            _CUSTOMER_TRANSITIONS[action]
            for action in self.customer_actions(current)
            if action in _CUSTOMER_TRANSITIONS
        }
        if target not in allowed:
            raise IllegalTransitionError(current, target)
        return self.transition(current, target)
