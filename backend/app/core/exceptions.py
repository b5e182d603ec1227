"""
Domain errors raised by the service layer.

Each error carries the HTTP status it maps to. The handlers registered in
app.main render them into the {"success": false, "message": ...} envelope,
so services never build responses themselves.
"""

from fastapi import status


class EventHubError(Exception):
    """Base class for all business-level errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(EventHubError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class ForbiddenError(EventHubError):
    status_code = status.HTTP_403_FORBIDDEN


class InvalidStateError(EventHubError):
    """A business rule rejected the operation."""

    status_code = status.HTTP_409_CONFLICT


class InsufficientTicketsError(InvalidStateError):
    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Not enough tickets available. Requested: {requested}, Available: {available}"
        )


class InvalidTransitionError(InvalidStateError):
    """Raised when an illegal payment state transition is attempted."""

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Illegal payment transition: {from_state} -> {to_state}")


class ValidationError(EventHubError):
    status_code = status.HTTP_400_BAD_REQUEST


class ExternalServiceError(EventHubError):
    """The payment provider failed or returned something unusable."""

    status_code = status.HTTP_502_BAD_GATEWAY


class WebhookSignatureError(ExternalServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class PaymentTimeoutError(ExternalServiceError):
    """
    The provider did not answer in time. The caller may retry; nothing was
    changed locally.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
