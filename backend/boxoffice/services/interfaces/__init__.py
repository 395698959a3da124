"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .notifier import TicketNotification, TicketNotifier
from .log_notifier import LogNotifier

__all__ = ['TicketNotification', 'TicketNotifier', 'LogNotifier']
