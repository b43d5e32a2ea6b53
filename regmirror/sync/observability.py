"""Structured sync events and error categorisation.

Every event is one log line of the form ``[event] key=value ...`` so runs can
be followed and aggregated from the log stream alone.
"""

from __future__ import annotations

import enum
import typing as typ

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from regmirror.logging import get_logger, log_error, log_info, log_warning
from regmirror.records.errors import StoreError
from regmirror.registry.errors import (
    CheckError,
    InvalidPathError,
    ListError,
    NotFoundError,
    ParseError,
    RegistryConfigError,
)
from regmirror.transfer.errors import CopyError

if typ.TYPE_CHECKING:
    import datetime as dt

    from .models import SyncSummary, SyncWorkItem

logger = get_logger(__name__)

_HTTP_SERVER_ERROR_THRESHOLD = 500


class SyncEventType(enum.StrEnum):
    """Structured log event types for a sync run."""

    RUN_STARTED = "sync.run.started"
    RUN_COMPLETED = "sync.run.completed"
    REPOSITORY_SKIPPED = "sync.repository.skipped"
    ITEM_PRESENT = "sync.item.present"
    ITEM_SYNCED = "sync.item.synced"
    ITEM_FAILED = "sync.item.failed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    NOT_FOUND = "not_found"
    SCHEMA_DRIFT = "schema_drift"
    CONFIGURATION = "configuration"
    TIMEOUT = "timeout"
    COPY_FAILED = "copy_failed"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATA_INTEGRITY = "data_integrity"
    DATABASE_ERROR = "database_error"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (ParseError, ErrorCategory.SCHEMA_DRIFT),
    (NotFoundError, ErrorCategory.NOT_FOUND),
    (InvalidPathError, ErrorCategory.CONFIGURATION),
    (RegistryConfigError, ErrorCategory.CONFIGURATION),
    (TimeoutError, ErrorCategory.TIMEOUT),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (IntegrityError, ErrorCategory.DATA_INTEGRITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
)


def _categorize_status(status_code: int | None) -> ErrorCategory:
    # No response at all means the transport failed.
    if status_code is None or status_code >= _HTTP_SERVER_ERROR_THRESHOLD:
        return ErrorCategory.TRANSIENT
    return ErrorCategory.CLIENT_ERROR


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    Store failures are categorised by their underlying SQLAlchemy cause.
    """
    if isinstance(exc, ListError | CheckError):
        return _categorize_status(exc.status_code)

    if isinstance(exc, CopyError):
        if isinstance(exc.__cause__, TimeoutError):
            return ErrorCategory.TIMEOUT
        return ErrorCategory.COPY_FAILED

    if isinstance(exc, StoreError) and exc.__cause__ is not None:
        return categorize_error(exc.__cause__)

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


class SyncEventLogger:
    """Emit structured sync events through femtologging.

    Successful items log at INFO, skipped repositories at WARNING and item
    failures at ERROR.
    """

    def log_run_started(self, input_path: str, repositories: int, selector: str) -> None:
        """Log the start of a run after path resolution."""
        log_info(
            logger,
            "[%s] input_path=%s repositories=%d selector=%s",
            SyncEventType.RUN_STARTED,
            input_path or "<all>",
            repositories,
            selector,
        )

    def log_run_completed(self, summary: SyncSummary, duration: dt.timedelta) -> None:
        """Log run completion with per-outcome counts."""
        log_info(
            logger,
            "[%s] duration_seconds=%.3f present=%d synced=%d failed=%d "
            "repositories_skipped=%d",
            SyncEventType.RUN_COMPLETED,
            duration.total_seconds(),
            summary.present,
            summary.synced,
            summary.failed,
            summary.repositories_skipped,
        )

    def log_repository_skipped(self, repository: str, error: BaseException) -> None:
        """Log a repository dropped because its tags could not be resolved."""
        log_warning(
            logger,
            "[%s] repository=%s error_type=%s error_category=%s error_message=%s",
            SyncEventType.REPOSITORY_SKIPPED,
            repository,
            type(error).__name__,
            categorize_error(error),
            str(error),
        )

    def log_item_present(self, item: SyncWorkItem) -> None:
        """Log an item that already exists on the destination."""
        log_info(
            logger,
            "[%s] repository=%s tag=%s",
            SyncEventType.ITEM_PRESENT,
            item.repository,
            item.tag,
        )

    def log_item_synced(self, item: SyncWorkItem, duration: dt.timedelta) -> None:
        """Log a completed copy."""
        log_info(
            logger,
            "[%s] repository=%s tag=%s duration_seconds=%.3f",
            SyncEventType.ITEM_SYNCED,
            item.repository,
            item.tag,
            duration.total_seconds(),
        )

    def log_item_failed(self, item: SyncWorkItem, error: BaseException) -> None:
        """Log a failed item with error categorisation."""
        log_error(
            logger,
            "[%s] repository=%s tag=%s error_type=%s error_category=%s "
            "error_message=%s",
            SyncEventType.ITEM_FAILED,
            item.repository,
            item.tag,
            type(error).__name__,
            categorize_error(error),
            str(error),
        )
