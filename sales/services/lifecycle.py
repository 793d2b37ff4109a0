"""
Sale lifecycle rules.

Defines the only legal status transitions. No database writes happen
here; callers pair these checks with a conditional update.
"""
from sales.exceptions import InvalidStateTransition
from sales.models import Sale

# Events
APPROVE = 'approve'
REJECT = 'reject'
SELF_EDIT = 'self_edit'

TERMINAL_STATES = frozenset({
    Sale.Status.APPROVED,
    Sale.Status.REJECTED,
})

# from_status -> {event: to_status}
TRANSITIONS = {
    Sale.Status.PENDING: {
        APPROVE: Sale.Status.APPROVED,
        REJECT: Sale.Status.REJECTED,
        SELF_EDIT: Sale.Status.PENDING,
    },
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATES


def can_transition(from_status: str, event: str) -> bool:
    if is_terminal(from_status):
        return False
    return event in TRANSITIONS.get(from_status, {})


def target_status(from_status: str, event: str) -> str:
    """
    Raises:
        InvalidStateTransition: the event is not allowed from ``from_status``
    """
    if not can_transition(from_status, event):
        raise InvalidStateTransition(
            f"Event '{event}' is not allowed from status '{from_status}'"
        )
    return TRANSITIONS[from_status][event]


def validate_transition(sale: Sale, event: str) -> str:
    """Check ``event`` against the sale's current status and return the target status."""
    try:
        return target_status(sale.status, event)
    except InvalidStateTransition:
        raise InvalidStateTransition(
            f"Sale {sale.id} cannot '{event}' from status '{sale.status}'"
        ) from None
