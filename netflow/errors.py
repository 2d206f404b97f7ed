"""Exception hierarchy for netflow."""

from __future__ import annotations

from typing import Any


class NetflowError(Exception):
    """Base class for all netflow errors."""


class InvalidRecordError(NetflowError):
    """Raised when a person or relationship record cannot be parsed."""

    def __init__(self, message: str, record: Any = None) -> None:
        super().__init__(message)
        self.record = record


class SnapshotError(NetflowError):
    """Raised when the input snapshot cannot be retrieved from a source.

    Carries enough context for operators to find the failing store
    without exposing it to API callers.
    """

    def __init__(
        self,
        message: str,
        *,
        source: str = "",
        owner_id: str = "",
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.owner_id = owner_id
        self.cause = cause

    def context(self) -> dict[str, Any]:
        """Diagnostic context for logs."""
        return {
            "source": self.source,
            "owner_id": self.owner_id,
            "cause": repr(self.cause) if self.cause else None,
        }
