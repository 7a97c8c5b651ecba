"""Domain error types raised by the service layer."""

from __future__ import annotations

from collections.abc import Iterable


class SecuraError(ValueError):
    """Base class for business rule violations.

    Subclasses ``ValueError`` so routers can keep translating any rejected
    input into an HTTP 400 response.
    """

    code = "SECURA_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return self.message


class ValidationError(SecuraError):
    """Input failed schema or business validation."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Iterable[str] | None = None) -> None:
        self.errors = list(errors or [])
        if self.errors:
            message = f"{message}: {'; '.join(self.errors)}"
        super().__init__(message)


class BatchTooLargeError(ValidationError):
    """A bulk operation exceeded its configured size cap."""

    code = "BATCH_TOO_LARGE"

    def __init__(self, *, limit: int, received: int, noun: str = "rows") -> None:
        self.limit = limit
        self.received = received
        super().__init__(
            f"Batch limited to {limit} {noun}, received {received}"
        )


class LimitReachedError(SecuraError):
    """A per-event or per-organizer quota has been reached."""

    code = "LIMIT_REACHED"


class DuplicateGuestError(ValidationError):
    """Guest email is already used inside the event."""

    code = "DUPLICATE_GUEST"


class GuestStateError(SecuraError):
    """Requested transition is not allowed for the guest's current state."""

    code = "INVALID_GUEST_STATE"


class NotFoundError(LookupError):
    """Requested resource does not exist."""

    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource") -> None:
        super().__init__(f"{resource} not found")
        self.resource = resource


class PersistenceError(RuntimeError):
    """The database rejected or failed a write."""

    code = "PERSISTENCE_ERROR"


__all__ = [
    "BatchTooLargeError",
    "DuplicateGuestError",
    "GuestStateError",
    "LimitReachedError",
    "NotFoundError",
    "PersistenceError",
    "SecuraError",
    "ValidationError",
]
