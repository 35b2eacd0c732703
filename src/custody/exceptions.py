"""
Error taxonomy for the custody core.

NotFoundError and ValidationError always abort the operation and surface to
the caller. NonCriticalLoggingFailure is never raised out of the recorder; it
is carried back inside a RecordResult so the gap stays visible.
"""

from typing import Any, Optional


class CustodyError(Exception):
    """Base class for all custody errors."""

    pass


class NotFoundError(CustodyError):
    """Raised when a document, matter, job, package or certificate is absent."""

    def __init__(self, resource: str, resource_id: Any):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}")


class ValidationError(CustodyError):
    """Raised for malformed filters, ranges, thresholds or payloads."""

    pass


class LimitExceededError(ValidationError):
    """Raised when a configured result-size cap would be exceeded."""

    def __init__(self, what: str, limit: int, actual: int):
        self.what = what
        self.limit = limit
        self.actual = actual
        super().__init__(f"{what} exceeds configured limit of {limit} (got {actual})")


class StatusTransitionError(ValidationError):
    """Raised when an evidence package status change is not permitted."""

    def __init__(self, package_id: Any, current: Optional[str], requested: str):
        self.package_id = package_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move package {package_id} from {current or 'unknown'} to {requested}"
        )


class DuplicateCertificateError(ValidationError):
    """Raised when a package already carries a certificate."""

    pass


class IntegrityError(CustodyError):
    """Raised when a recomputed hash does not match, or no hash is stored."""

    def __init__(self, message: str, expected: Optional[str] = None, actual: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class NonCriticalLoggingFailure(CustodyError):
    """An audit write that failed for a non-critical category and was absorbed."""

    def __init__(self, event_type: str, category: str, cause: BaseException):
        self.event_type = event_type
        self.category = category
        self.cause = cause
        super().__init__(f"Audit write for {event_type} ({category}) failed: {cause}")
