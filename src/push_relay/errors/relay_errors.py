"""RelayError — base exception class for all push-relay errors."""

from __future__ import annotations


class RelayError(Exception):
    """Base error for all relay operations.

    Attributes:
        message: Human-readable error description.
        status_code: Suggested HTTP status code.
        code: Machine-readable error code string.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "RELAY_ERROR",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class SnapshotError(RelayError):
    """Snapshot file exists but cannot be decoded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=500, code="SNAPSHOT_ERROR")


class StoreError(RelayError):
    """Snapshot could not be written."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=500, code="STORE_ERROR")


class PushError(RelayError):
    """Error from the push delivery provider."""

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message, status_code=status_code, code="PUSH_ERROR")
