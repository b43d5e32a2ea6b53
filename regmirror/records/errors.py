"""Errors raised by the sync record store."""

from __future__ import annotations


class StoreError(RuntimeError):
    """Raised when a sync record cannot be persisted or read."""

    def __init__(self, repo_path: str, tag: str, reason: str) -> None:
        """Initialise with the record key and a short failure reason."""
        self.repo_path = repo_path
        self.tag = tag
        self.reason = reason
        super().__init__(f"failed to store record for {repo_path}:{tag}: {reason}")


class TimezoneAwareRequiredError(ValueError):
    """Raised when a naive datetime is bound to a UTC column."""

    def __init__(self, column: str) -> None:
        """Name the column that received the naive value."""
        super().__init__(f"{column} must be timezone aware")
