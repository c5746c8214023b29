"""
Custom application exceptions
"""

from typing import Optional, Dict, Any


class BusSeatsException(Exception):
    """Base exception for the seat allocation core"""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(BusSeatsException):
    """Authentication related errors"""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code="AUTH_ERROR",
            status_code=401,
            details=details
        )


class AuthorizationError(BusSeatsException):
    """Authorization related errors"""

    def __init__(self, message: str = "Not authorized", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code="AUTH_FORBIDDEN",
            status_code=403,
            details=details
        )


class NotFoundError(BusSeatsException):
    """Resource not found errors"""

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id {identifier} not found"
        self.identifier = identifier
        super().__init__(
            message=message,
            code="NOT_FOUND",
            status_code=404,
            details={"id": str(identifier)} if identifier else None
        )


class ValidationError(BusSeatsException):
    """Malformed or missing input, always tied to one field"""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            details=details
        )


class SeatConflictError(BusSeatsException):
    """The seat was taken between the availability read and the write"""

    def __init__(self, seat_id: str):
        self.seat_id = seat_id
        super().__init__(
            message=f"Seat {seat_id} was just booked by someone else",
            code="SEAT_CONFLICT",
            status_code=409,
            details={"seat_id": seat_id}
        )


class InvalidTransitionError(BusSeatsException):
    """Illegal reservation status transition"""

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message=f"Cannot transition reservation from {from_status} to {to_status}",
            code="INVALID_TRANSITION",
            status_code=409,
            details={"from": from_status, "to": to_status}
        )


class CancellationNotAllowedError(BusSeatsException):
    """Travel date has fully elapsed"""

    def __init__(self, reservation_id: str):
        super().__init__(
            message="Reservation can no longer be cancelled",
            code="CANCELLATION_NOT_ALLOWED",
            status_code=400,
            details={"reservation_id": reservation_id}
        )


class StoreUnavailableError(BusSeatsException):
    """Transient failure talking to the document store"""

    def __init__(self, operation: str, message: str = None):
        self.operation = operation
        super().__init__(
            message=message or "Reservation store is temporarily unavailable, please retry",
            code="STORE_UNAVAILABLE",
            status_code=503,
            details={"operation": operation}
        )
