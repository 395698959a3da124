"""
Log-only notification channel. Default in development and tests.
"""

from boxoffice.core.logging import get_logger
from boxoffice.services.interfaces.notifier import TicketNotification, TicketNotifier

logger = get_logger(__name__)


class LogNotifier(TicketNotifier):
    """Records the notification in the log instead of delivering it."""

    async def send(self, notification: TicketNotification) -> None:
        logger.info(
            "ticket_notification_logged",
            ticket_number=notification.ticket_number,
            email=notification.email,
            seat=notification.seat_label,
        )
