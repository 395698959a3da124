"""
Typed errors raised by the service layer.

Every error carries a stable `code`, a user-safe `message` and the HTTP status
the API layer maps it to. Services raise these; routes let them propagate to
the handler registered in `boxoffice.main`, which renders them as JSON.
"""

from typing import Any, Optional


class TicketingError(Exception):
    """Base class for all domain errors."""

    code = "TICKETING_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.details}


class NotFoundError(TicketingError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: Any) -> None:
        super().__init__(f"{resource} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class InvalidPaymentError(TicketingError):
    code = "INVALID_PAYMENT"
    status_code = 400


class SeatsUnavailableError(TicketingError):
    code = "SEATS_UNAVAILABLE"
    status_code = 409

    def __init__(self, seats: list[str]) -> None:
        super().__init__(
            "Some selected seats are already booked",
            details={"seats": seats},
        )
        self.seats = seats


class SoldOutError(TicketingError):
    code = "SOLD_OUT"
    status_code = 409


class PerformanceCancelledError(TicketingError):
    code = "PERFORMANCE_CANCELLED"
    status_code = 409


class CapacityExceededError(TicketingError):
    code = "CAPACITY_EXCEEDED"
    status_code = 409


class ValidationError(TicketingError):
    code = "VALIDATION_ERROR"
    status_code = 400


class PermissionDeniedError(TicketingError):
    code = "FORBIDDEN"
    status_code = 403


class ConflictError(TicketingError):
    code = "CONFLICT"
    status_code = 409


class TransientStoreError(TicketingError):
    """Transaction aborted by contention or transport failure. Safe to retry."""

    code = "TRANSIENT_STORE_ERROR"
    status_code = 503
