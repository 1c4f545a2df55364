"""Exception hierarchy shared by the store, ingestion and API layers."""

from __future__ import annotations


class BoxWatchError(Exception):
    """Base class for all BoxWatch errors."""


class InvalidPayloadError(BoxWatchError):
    """Raised when an ingestion payload is missing a required field.

    Raised before anything is appended, so a rejected payload never mutates
    the event log.
    """


class StoreUnavailableError(BoxWatchError):
    """Raised when the event log backend cannot be read or written."""

    def __init__(self, operation: str, cause: Exception) -> None:
        super().__init__(f"Event store {operation} failed: {cause}")
        self.operation = operation
        self.cause = cause
