"""
SMTP delivery of ticket notifications.

smtplib is blocking, so each send runs in a worker thread. The dispatcher
wraps the call in its own timeout; the socket timeout here only bounds a
single connection attempt.
"""

import asyncio
import smtplib
from email.message import EmailMessage

from boxoffice.core.config import Settings, get_settings
from boxoffice.services.interfaces.notifier import TicketNotification, TicketNotifier


class SmtpNotifier(TicketNotifier):
    """Sends one plain-text ticket email per notification."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def build_message(self, notification: TicketNotification) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = f"Your ticket {notification.ticket_number}"
        message["From"] = f"{self.settings.EMAIL_FROM_NAME} <{self.settings.EMAIL_FROM_ADDRESS}>"
        message["To"] = notification.email

        lines = [
            f"Hi {notification.customer_name},",
            "",
            "Thank you for your purchase. Your ticket details:",
            f"  Ticket: {notification.ticket_number}",
            f"  Category: {notification.category}",
            f"  Price: {notification.price:.2f}",
        ]
        if notification.seat_label:
            lines.append(f"  Seat: {notification.seat_label}")
        lines += ["", "Present this code at the door:", notification.barcode]
        message.set_content("\n".join(lines))
        message.add_attachment(
            notification.barcode,
            subtype="plain",
            filename=f"ticket-{notification.ticket_number}.txt",
        )
        return message

    async def send(self, notification: TicketNotification) -> None:
        message = self.build_message(notification)
        await asyncio.to_thread(self._deliver, message)

    def _deliver(self, message: EmailMessage) -> None:
        settings = self.settings
        with smtplib.SMTP(
            settings.SMTP_HOST,
            settings.SMTP_PORT,
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        ) as smtp:
            if settings.SMTP_USE_TLS:
                smtp.starttls()
            if settings.SMTP_USER:
                smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            smtp.send_message(message)
