from boxoffice.models.user import User, UserRole
from boxoffice.models.venue import PriceCategory, Venue, VenueRow, VenueSection
from boxoffice.models.event import Event
from boxoffice.models.performance import Performance, TicketType
from boxoffice.models.payment import Payment, PaymentMethod, PaymentStatus
from boxoffice.models.order import Order, OrderStatus
from boxoffice.models.ticket import Ticket, TicketPaymentStatus, TicketStatus

__all__ = [
    "User", "UserRole",
    "PriceCategory", "Venue", "VenueRow", "VenueSection",
    "Event",
    "Performance", "TicketType",
    "Payment", "PaymentMethod", "PaymentStatus",
    "Order", "OrderStatus",
    "Ticket", "TicketPaymentStatus", "TicketStatus",
]
