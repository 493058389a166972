"""
Domain Errors

Error taxonomy shared by the aggregates, repositories and the HTTP layer:

- DomainError: caller-correctable validation failure with a stable code
- NotFoundError: the single not-found condition
- ConcurrencyConflictError: optimistic-concurrency (version) mismatch
- RepositoryError / EventBusError: infrastructure failures
"""

from typing import Any, Dict, Optional


class AnalyticsError(Exception):
    """Base class for all service errors"""


class DomainError(AnalyticsError):
    """Validation error raised by aggregate methods and command handlers."""

    def __init__(self, code: str, message: str, details: str = ""):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __repr__(self) -> str:
        return f"DomainError(code={self.code!r}, message={self.message!r})"


class NotFoundError(AnalyticsError):
    """Requested aggregate, widget, dimension or recipient does not exist."""

    def __init__(self, resource: str = "resource", identifier: Optional[str] = None):
        self.resource = resource
        self.identifier = identifier
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} '{identifier}' not found"
        super().__init__(message)


class ConcurrencyConflictError(AnalyticsError):
    """Stored version no longer matches the version read at load time."""

    def __init__(self, resource: str, identifier: str, expected_version: int):
        self.resource = resource
        self.identifier = identifier
        self.expected_version = expected_version
        super().__init__(
            f"{resource} '{identifier}' was modified concurrently "
            f"(expected version {expected_version})"
        )


class RepositoryError(AnalyticsError):
    """Persistence failure, raised from the underlying driver exception"""


class EventBusError(AnalyticsError):
    """Transport failure while publishing or subscribing"""
