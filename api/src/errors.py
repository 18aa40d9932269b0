"""
Caller-visible errors raised by the service request engine.

Every error is terminal: the engine never retries internally. Each class
carries a stable ``error_code`` and the HTTP status the API layer maps it
to. Failures of best-effort side effects (notifications, channel
provisioning, history entries) have no class in this module;
they are logged and never raised to callers.
"""

from typing import Iterable, List, Optional


class ServiceRequestError(Exception):
    """Base class for all lifecycle errors surfaced to callers."""

    error_code: str = "SERVICE_REQUEST_ERROR"
    http_status: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StoreUnavailableError(ServiceRequestError):
    """The document store could not be reached."""

    error_code = "STORE_UNAVAILABLE"
    http_status = 503

    def __init__(self, message: str = "Document store is not available"):
        super().__init__(message)


class UnknownKindError(ServiceRequestError):
    """The requested kind has no registered configuration."""

    error_code = "UNKNOWN_KIND"
    http_status = 404

    def __init__(self, kind: str):
        super().__init__(f"Unknown request kind: {kind}")
        self.kind = kind


# ============================================================================
# Input validation
# ============================================================================


class RequestValidationFailed(ServiceRequestError):
    """Base class for payload validation failures (fixable by the caller)."""

    error_code = "VALIDATION_FAILED"
    http_status = 422


class MissingFieldError(RequestValidationFailed):
    """One or more structurally required fields are absent."""

    error_code = "MISSING_FIELD"

    def __init__(self, fields: Iterable[str]):
        self.fields: List[str] = list(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}")


class InvalidItemError(RequestValidationFailed):
    """A line item failed validation."""

    error_code = "INVALID_ITEM"

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Invalid item at index {index}: {reason}")


class InvalidFieldError(RequestValidationFailed):
    """A top-level field has an unusable value (e.g. non-numeric budget)."""

    error_code = "INVALID_FIELD"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid field {field}: {reason}")


# ============================================================================
# Lookup and state machine
# ============================================================================


class RequestNotFoundError(ServiceRequestError):
    """A point lookup found no request."""

    error_code = "NOT_FOUND"
    http_status = 404

    def __init__(self, kind: str, request_id: str):
        self.kind = kind
        self.request_id = request_id
        super().__init__(f"{kind} request not found: {request_id}")


class IllegalTransitionError(ServiceRequestError):
    """The requested status is not reachable from the current status."""

    error_code = "ILLEGAL_TRANSITION"
    http_status = 409

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Illegal transition: {from_status} -> {to_status}")


class ProviderConflictError(ServiceRequestError):
    """A different provider is already assigned to the request."""

    error_code = "PROVIDER_CONFLICT"
    http_status = 409

    def __init__(self, assigned_provider_id: Optional[str], acting_provider_id: str):
        self.assigned_provider_id = assigned_provider_id
        self.acting_provider_id = acting_provider_id
        super().__init__(
            f"Request is already assigned to provider {assigned_provider_id}; "
            f"{acting_provider_id} cannot accept it"
        )
