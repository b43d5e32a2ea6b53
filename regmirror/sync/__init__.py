"""Path resolution and the mirror sync orchestrator."""

from __future__ import annotations

from .models import (
    AllTags,
    ExplicitTag,
    ItemOutcome,
    ItemResult,
    LatestTag,
    ResolvedPaths,
    SkippedRepository,
    SyncConfig,
    SyncSummary,
    SyncWorkItem,
    TagSelector,
)
from .observability import ErrorCategory, SyncEventLogger, SyncEventType, categorize_error
from .orchestrator import SyncOrchestrator
from .resolver import PathResolver, listing_prefix, split_input_path

__all__ = [
    "AllTags",
    "ErrorCategory",
    "ExplicitTag",
    "ItemOutcome",
    "ItemResult",
    "LatestTag",
    "PathResolver",
    "ResolvedPaths",
    "SkippedRepository",
    "SyncConfig",
    "SyncEventLogger",
    "SyncEventType",
    "SyncOrchestrator",
    "SyncSummary",
    "SyncWorkItem",
    "TagSelector",
    "categorize_error",
    "listing_prefix",
    "split_input_path",
]
