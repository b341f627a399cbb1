"""Application error taxonomy.

Every failure the engine surfaces is a ``MaraumError`` with a stable
``kind``. The API layer renders them with a single exception handler, so
services raise these instead of ``HTTPException``.
"""

from typing import Any


class MaraumError(Exception):
    """Base class for all expected application failures."""

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message, "details": self.details}


class ValidationError(MaraumError):
    """Bad input shape or length. Raised before any write."""

    kind = "validation_error"
    status_code = 400


class NotFoundError(MaraumError):
    """Session or scenario unknown."""

    kind = "not_found"
    status_code = 404


class ConflictError(MaraumError):
    """Operation conflicts with current state (completed session, second active session)."""

    kind = "session_completed"
    status_code = 409


class ActiveSessionExistsError(ConflictError):
    """User already has a non-completed session."""

    kind = "active_session_exists"


class ProviderError(MaraumError):
    """Response provider failed after the human turn was persisted."""

    kind = "provider_failure"
    status_code = 502

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        merged = {"attempts": attempts, "lastError": last_error, "userMessageSaved": True}
        merged.update(details or {})
        super().__init__(message, merged)
        self.attempts = attempts
        self.last_error = last_error


class ProviderTimeoutError(ProviderError):
    kind = "provider_timeout"
    status_code = 504


class ProviderExhaustedError(ProviderError):
    kind = "provider_exhausted_retries"
    status_code = 502


class ProviderRejectedError(ProviderError):
    kind = "provider_rejected"
    status_code = 502


class StoreError(MaraumError):
    """Persistence failed after the adapter's own retries."""

    kind = "store_failure"
    status_code = 500


class DuplicateRowError(StoreError):
    """A uniqueness constraint rejected an insert.

    Internal to the engine: callers resolve it by reading the winning row.
    """

    kind = "duplicate_row"
