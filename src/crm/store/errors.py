"""Error taxonomy for remote data store calls.

FetchError is raised when a read fails; callers keep whatever state they
already hold. WriteError is raised when an insert, update or delete fails;
callers surface the message to the user. Neither is retried.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for failures reported by the remote data store."""

    def __init__(self, message: str, *, table: str, operation: str) -> None:
        self.message = message
        self.table = table
        self.operation = operation
        super().__init__(f"{operation} on {table} failed: {message}")


class FetchError(StoreError):
    """Raised when a select or count against the store fails."""


class WriteError(StoreError):
    """Raised when an insert, update or delete against the store fails."""
