"""Drive a mirror run from resolved paths to persisted records.

Per run the orchestrator expands each resolved repository into work items
according to the tag selector, then for every item checks the destination,
copies when missing and upserts the record. Failures are isolated at the
narrowest level that still makes sense:

- listing the source registry failed: the run aborts (raised from
  :meth:`SyncOrchestrator.sync_path`);
- tags for one repository could not be resolved: that repository is skipped;
- check, copy or record write failed: only that item fails.
"""

from __future__ import annotations

import asyncio
import typing as typ

from regmirror.common.time import elapsed_since, utcnow
from regmirror.records.errors import StoreError
from regmirror.registry.errors import RegistryError
from regmirror.transfer.copier import CompressionFormat, RegistryAuth
from regmirror.transfer.errors import CopyError

from .models import (
    AllTags,
    ExplicitTag,
    ItemOutcome,
    ItemResult,
    LatestTag,
    SkippedRepository,
    SyncConfig,
    SyncSummary,
    SyncWorkItem,
)
from .observability import SyncEventLogger
from .resolver import PathResolver

if typ.TYPE_CHECKING:
    from regmirror.records.store import RecordStore
    from regmirror.registry.client import RegistryClient
    from regmirror.registry.existence import ExistenceChecker
    from regmirror.registry.models import RegistryEndpoint
    from regmirror.transfer.copier import ImageCopier

    from .models import ResolvedPaths


class SyncOrchestrator:
    """Mirror images from a source registry to a destination registry.

    Parameters
    ----------
    source_client : RegistryClient
        Client for the source registry, used for listing and tag resolution.
    checker : ExistenceChecker
        Manifest probe bound to the destination registry.
    copier : ImageCopier
        Collaborator that performs the recompressing copy.
    store : RecordStore
        Idempotent record store.
    source, destination : RegistryEndpoint
        Endpoints providing image reference hosts and copy credentials.
    config : SyncConfig, optional
        Concurrency and copy timeout. Defaults to one item at a time and a
        fifteen minute copy budget.
    events : SyncEventLogger, optional
        Structured event sink.

    """

    def __init__(  # noqa: PLR0913
        self,
        source_client: RegistryClient,
        checker: ExistenceChecker,
        copier: ImageCopier,
        store: RecordStore,
        *,
        source: RegistryEndpoint,
        destination: RegistryEndpoint,
        config: SyncConfig | None = None,
        events: SyncEventLogger | None = None,
        compression: CompressionFormat = CompressionFormat.ZSTD,
    ) -> None:
        """Wire the collaborators for a run."""
        self._source_client = source_client
        self._checker = checker
        self._copier = copier
        self._store = store
        self._source = source
        self._destination = destination
        self._config = config or SyncConfig()
        self._events = events or SyncEventLogger()
        self._compression = compression
        self._src_auth = RegistryAuth.from_endpoint(source)
        self._dst_auth = RegistryAuth.from_endpoint(destination)

    async def sync_path(self, input_path: str) -> SyncSummary:
        """Resolve ``input_path`` on the source registry and run the sync.

        Raises
        ------
        RegistryError
            If the top-level repository listing fails.

        """
        resolved = await PathResolver(self._source_client).resolve(input_path)
        return await self.run(resolved, input_path=input_path)

    async def run(self, resolved: ResolvedPaths, *, input_path: str = "") -> SyncSummary:
        """Process every work item derived from ``resolved``."""
        started_at = utcnow()
        self._events.log_run_started(
            input_path, len(resolved.repositories), type(resolved.selector).__name__
        )

        items, skipped = await self._collect_items(resolved)
        results = await self._process_items(items)

        summary = SyncSummary(results=results, skipped=skipped)
        self._events.log_run_completed(summary, elapsed_since(started_at))
        return summary

    async def _collect_items(
        self, resolved: ResolvedPaths
    ) -> tuple[list[SyncWorkItem], tuple[SkippedRepository, ...]]:
        seen: dict[SyncWorkItem, None] = {}
        skipped: list[SkippedRepository] = []
        for repository in sorted(resolved.repositories):
            try:
                tags = await self._tags_for(repository, resolved)
            except RegistryError as exc:
                self._events.log_repository_skipped(repository, exc)
                skipped.append(SkippedRepository(repository, exc))
                continue
            for tag in tags:
                seen.setdefault(SyncWorkItem(repository, tag), None)
        return (list(seen), tuple(skipped))

    async def _tags_for(self, repository: str, resolved: ResolvedPaths) -> list[str]:
        match resolved.selector:
            case ExplicitTag(tag=tag):
                return [tag]
            case AllTags():
                return await self._source_client.list_tags(repository)
            case LatestTag():
                return [await self._source_client.get_latest_tag(repository)]

    async def _process_items(self, items: list[SyncWorkItem]) -> tuple[ItemResult, ...]:
        semaphore = asyncio.Semaphore(self._config.concurrency)

        async def bounded(item: SyncWorkItem) -> ItemResult:
            async with semaphore:
                return await self._process_item(item)

        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(bounded(item)) for item in items]
        except ExceptionGroup as eg:
            raise eg.exceptions[0] from eg
        return tuple(task.result() for task in tasks)

    async def _process_item(self, item: SyncWorkItem) -> ItemResult:
        src_ref = item.src_reference(self._source)
        dst_ref = item.dst_reference(self._destination)
        try:
            if await self._checker.exists(item.repository, item.tag):
                outcome = ItemOutcome.PRESENT
            else:
                copy_started = utcnow()
                await self._copy(src_ref, dst_ref)
                copy_duration = elapsed_since(copy_started)
                outcome = ItemOutcome.SYNCED
            await self._store.upsert(item.repository, item.tag, src_ref, dst_ref)
        except (RegistryError, CopyError, StoreError) as exc:
            self._events.log_item_failed(item, exc)
            return ItemResult(item, ItemOutcome.FAILED, exc)

        if outcome is ItemOutcome.SYNCED:
            self._events.log_item_synced(item, copy_duration)
        else:
            self._events.log_item_present(item)
        return ItemResult(item, outcome)

    async def _copy(self, src_ref: str, dst_ref: str) -> None:
        timeout_s = self._config.copy_timeout_s
        try:
            async with asyncio.timeout(timeout_s):
                await self._copier.copy(
                    src_ref,
                    dst_ref,
                    src_auth=self._src_auth,
                    dst_auth=self._dst_auth,
                    compression=self._compression,
                )
        except TimeoutError as exc:
            raise CopyError.timed_out(src_ref, timeout_s) from exc
