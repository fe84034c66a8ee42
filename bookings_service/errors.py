from fastapi import status


class BookingError(Exception):
    """
    Base class for failures of the booking rules.

    Each subclass carries the HTTP status it maps to and a short machine
    readable code; the message is the human readable detail.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    code = "booking_error"
    default_detail = "Booking request failed"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "Booking not found"


class NotBookable(BookingError):
    code = "not_bookable"
    default_detail = "Equipment is not bookable"


class Unavailable(BookingError):
    code = "unavailable"
    default_detail = "Equipment is not available"


class Conflict(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_detail = "Time slot conflicts with existing booking"


class Forbidden(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_detail = "Not allowed to modify this booking"


class InvalidState(BookingError):
    code = "invalid_state"
    default_detail = "Status transition not permitted"


class InvalidInterval(BookingError):
    code = "invalid_interval"
    default_detail = "end_time must be after start_time"


class ServiceUnavailable(BookingError):
    """
    A service the booking rules depend on could not answer.

    502 when the call failed, 503 when its circuit breaker is open.
    """
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "service_unavailable"
    default_detail = "Failed to contact a dependent service"

    def __init__(self, detail: str = None, status_code: int = None):
        super().__init__(detail)
        if status_code is not None:
            self.status_code = status_code


class EquipmentServiceUnavailable(ServiceUnavailable):
    code = "equipment_service_unavailable"
    default_detail = "Failed to contact equipment service"


class UsersServiceUnavailable(ServiceUnavailable):
    code = "users_service_unavailable"
    default_detail = "Failed to contact users service"


class NotAuthenticated(BookingError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "not_authenticated"
    default_detail = "Could not validate credentials"


class EmptyUpdate(BookingError):
    code = "empty_update"
    default_detail = "No fields to update"
