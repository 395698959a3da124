"""
Ticket notification sender interface.
Allows swapping between delivery channels without touching reservation code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class TicketNotification:
    """
    Plain snapshot of a committed ticket.

    Built before the notification leaves the reservation path so delivery
    never touches the database session that created the ticket.
    """

    ticket_number: str
    email: str
    customer_name: str
    event_id: int
    performance_id: int
    category: str
    price: Decimal
    barcode: str
    seat_label: Optional[str] = None


class TicketNotifier(ABC):
    """
    Interface for ticket notification channels.

    Implementations:
    - LogNotifier: writes the notification to the structured log
    - SmtpNotifier: sends the ticket by email
    """

    @abstractmethod
    async def send(self, notification: TicketNotification) -> None:
        """
        Deliver one ticket notification.

        Raises on failure; the dispatcher decides about retries and never lets
        the error reach the reservation caller.
        """
        pass

    async def close(self) -> None:
        """Release any channel resources on shutdown."""
        pass
