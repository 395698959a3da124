"""
Ticket status transitions.

    reserved ──> purchased ──> active ──> used
        │            │           │
        └────────────┴───────────┴──> cancelled | refunded

used, cancelled and refunded are terminal.
"""

from boxoffice.core.exceptions import ValidationError
from boxoffice.db.base import utcnow
from boxoffice.models.ticket import ALLOWED_TRANSITIONS, Ticket, TicketStatus


def parse_status(value: str) -> TicketStatus:
    try:
        return TicketStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid ticket status: {value}")


def ensure_transition(current: str, target: str) -> TicketStatus:
    """Return the target status, or raise ValidationError if the move is illegal."""
    current_status = parse_status(current)
    target_status = parse_status(target)
    if target_status not in ALLOWED_TRANSITIONS[current_status]:
        raise ValidationError(
            f"Cannot change ticket status from {current_status.value} to {target_status.value}"
        )
    return target_status


def apply_transition(ticket: Ticket, target: str) -> None:
    target_status = ensure_transition(ticket.status, target)
    ticket.status = target_status.value
    if target_status is TicketStatus.USED:
        ticket.checked_in_at = utcnow()
