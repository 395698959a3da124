from boxoffice.schemas.user import UserCreate, UserResponse, UserLogin, Token
from boxoffice.schemas.venue import (
    VenueRowCreate, VenueSectionCreate, VenueCreate, VenueUpdate, VenueRowResponse,
    VenueSectionResponse, VenueResponse, VenueListResponse,
)
from boxoffice.schemas.event import EventCreate, EventUpdate, EventResponse, EventListResponse
from boxoffice.schemas.performance import (
    TicketTypeCreate, TicketTypeResponse, PerformanceCreate, PerformanceUpdate,
    PerformanceResponse, PerformanceListResponse,
)
from boxoffice.schemas.ticket import TicketResponse, TicketListResponse, TicketStatusUpdate, CheckInRequest
from boxoffice.schemas.payment import PaymentCreate, PaymentResponse
from boxoffice.schemas.order import (
    ReleaseReason, SeatRequest, CustomerDetails, OrderCreate, OrderResponse,
    OrderListResponse, OrderStatusUpdate, ReleaseRequest,
)

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "VenueRowCreate", "VenueSectionCreate", "VenueCreate", "VenueUpdate", "VenueRowResponse",
    "VenueSectionResponse", "VenueResponse", "VenueListResponse",
    "EventCreate", "EventUpdate", "EventResponse", "EventListResponse",
    "TicketTypeCreate", "TicketTypeResponse", "PerformanceCreate", "PerformanceUpdate",
    "PerformanceResponse", "PerformanceListResponse",
    "TicketResponse", "TicketListResponse", "TicketStatusUpdate", "CheckInRequest",
    "PaymentCreate", "PaymentResponse",
    "ReleaseReason", "SeatRequest", "CustomerDetails", "OrderCreate", "OrderResponse",
    "OrderListResponse", "OrderStatusUpdate", "ReleaseRequest",
]
