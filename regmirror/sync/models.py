"""Value types shared by path resolution and the sync orchestrator."""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

from regmirror.common.refs import image_reference

if typ.TYPE_CHECKING:
    from regmirror.registry.models import RegistryEndpoint


@dataclasses.dataclass(frozen=True, slots=True)
class ExplicitTag:
    """Copy exactly ``tag`` in every resolved repository."""

    tag: str


@dataclasses.dataclass(frozen=True, slots=True)
class LatestTag:
    """Copy the most recently created tag of each repository."""


@dataclasses.dataclass(frozen=True, slots=True)
class AllTags:
    """Copy every tag of each repository."""


type TagSelector = ExplicitTag | LatestTag | AllTags


@dataclasses.dataclass(frozen=True, slots=True)
class ResolvedPaths:
    """Outcome of resolving a user supplied path.

    Attributes
    ----------
    repositories : frozenset[str]
        Repositories to process. May be empty for an empty registry.
    selector : TagSelector
        How tags are chosen per repository.
    is_specific : bool
        True when the path named a single repository that listing did not
        return, so the path itself is used.

    """

    repositories: frozenset[str]
    selector: TagSelector
    is_specific: bool = False


@dataclasses.dataclass(frozen=True, slots=True, order=True)
class SyncWorkItem:
    """One ``repository:tag`` pair to mirror."""

    repository: str
    tag: str

    def src_reference(self, source: RegistryEndpoint) -> str:
        """Return the image reference on the source registry."""
        return image_reference(source.host, self.repository, self.tag)

    def dst_reference(self, destination: RegistryEndpoint) -> str:
        """Return the image reference on the destination registry."""
        return image_reference(destination.host, self.repository, self.tag)


class ItemOutcome(enum.StrEnum):
    """Terminal state of a work item."""

    PRESENT = "present"
    SYNCED = "synced"
    FAILED = "failed"


@dataclasses.dataclass(frozen=True, slots=True)
class ItemResult:
    """Outcome of processing one work item."""

    item: SyncWorkItem
    outcome: ItemOutcome
    error: BaseException | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class SkippedRepository:
    """A repository whose tags could not be resolved."""

    repository: str
    error: BaseException


@dataclasses.dataclass(frozen=True, slots=True)
class SyncSummary:
    """Aggregate result of one sync run, in work-item order."""

    results: tuple[ItemResult, ...] = ()
    skipped: tuple[SkippedRepository, ...] = ()

    def _count(self, outcome: ItemOutcome) -> int:
        return sum(1 for result in self.results if result.outcome is outcome)

    @property
    def present(self) -> int:
        """Items already on the destination."""
        return self._count(ItemOutcome.PRESENT)

    @property
    def synced(self) -> int:
        """Items copied during this run."""
        return self._count(ItemOutcome.SYNCED)

    @property
    def failed(self) -> int:
        """Items whose check, copy or record write failed."""
        return self._count(ItemOutcome.FAILED)

    @property
    def repositories_skipped(self) -> int:
        """Repositories dropped because tag resolution failed."""
        return len(self.skipped)


DEFAULT_CONCURRENCY = 1
DEFAULT_COPY_TIMEOUT_S = 15 * 60.0


@dataclasses.dataclass(frozen=True, slots=True)
class SyncConfig:
    """Tuning for a sync run.

    Attributes
    ----------
    concurrency : int
        Maximum number of work items processed at once.
    copy_timeout_s : float
        Upper bound for a single image copy, in seconds.

    """

    concurrency: int = DEFAULT_CONCURRENCY
    copy_timeout_s: float = DEFAULT_COPY_TIMEOUT_S

    def __post_init__(self) -> None:
        """Reject non-positive tuning values."""
        if self.concurrency < 1:
            msg = f"concurrency must be at least 1, got {self.concurrency}"
            raise ValueError(msg)
        if self.copy_timeout_s <= 0:
            msg = f"copy_timeout_s must be positive, got {self.copy_timeout_s}"
            raise ValueError(msg)
