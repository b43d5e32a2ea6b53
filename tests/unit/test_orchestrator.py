"""Unit tests for the sync orchestrator."""

from __future__ import annotations

import typing as typ

import pytest
from sqlalchemy import select

from regmirror.records import ImageRecord, RecordStore, StoreError
from regmirror.registry.errors import CheckError, ListError
from regmirror.sync import (
    AllTags,
    ExplicitTag,
    ItemOutcome,
    LatestTag,
    ResolvedPaths,
    SyncConfig,
    SyncOrchestrator,
    SyncWorkItem,
)
from regmirror.transfer import CompressionFormat, CopyError, RegistryAuth
from tests.unit.sync_test_helpers import FakeChecker, FakeCopier, FakeRegistryClient

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from regmirror.registry.models import RegistryEndpoint


class _FailingStore:
    """Record store whose writes always fail."""

    async def upsert(self, repo_path: str, tag: str, src: str, dst: str) -> None:
        raise StoreError(repo_path, tag, "OperationalError")


def _orchestrator(  # noqa: PLR0913
    source: RegistryEndpoint,
    destination: RegistryEndpoint,
    *,
    client: FakeRegistryClient,
    checker: FakeChecker,
    copier: FakeCopier,
    store: object,
    config: SyncConfig | None = None,
) -> SyncOrchestrator:
    return SyncOrchestrator(
        client,
        checker,  # type: ignore[arg-type]
        copier,
        store,  # type: ignore[arg-type]
        source=source,
        destination=destination,
        config=config,
    )


async def _records(
    session_factory: async_sessionmaker[AsyncSession],
) -> list[tuple[str, str, str, str]]:
    async with session_factory() as session:
        rows = await session.scalars(
            select(ImageRecord).order_by(ImageRecord.repo_path, ImageRecord.tag)
        )
        return [(r.repo_path, r.tag, r.src_oci, r.dst_oci) for r in rows]


@pytest.mark.asyncio
async def test_missing_image_is_copied_and_recorded(
    harbor_endpoint: RegistryEndpoint,
    acr_endpoint: RegistryEndpoint,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """A missing image is copied with zstd and both references are stored."""
    client = FakeRegistryClient(latest={"library/nginx": "1.27"})
    checker = FakeChecker()
    copier = FakeCopier(checker=checker)
    orchestrator = _orchestrator(
        harbor_endpoint,
        acr_endpoint,
        client=client,
        checker=checker,
        copier=copier,
        store=RecordStore(session_factory),
    )

    summary = await orchestrator.run(
        ResolvedPaths(frozenset({"library/nginx"}), LatestTag())
    )

    assert summary.synced == 1
    call = copier.calls[0]
    assert call.src_ref == "harbor.example.com/library/nginx:1.27"
    assert call.dst_ref == "mirror.azurecr.io/library/nginx:1.27"
    assert call.compression is CompressionFormat.ZSTD
    assert call.src_auth == RegistryAuth("robot$mirror", "harbor-secret")
    assert call.dst_auth == RegistryAuth("mirror", "acr-secret")
    assert await _records(session_factory) == [
        (
            "library/nginx",
            "1.27",
            "harbor.example.com/library/nginx:1.27",
            "mirror.azurecr.io/library/nginx:1.27",
        )
    ]


@pytest.mark.asyncio
async def test_present_image_is_recorded_without_copy(
    harbor_endpoint: RegistryEndpoint,
    acr_endpoint: RegistryEndpoint,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Images already on the destination are recorded but not copied."""
    checker = FakeChecker(present={("library/nginx", "1.27")})
    copier = FakeCopier()
    orchestrator = _orchestrator(
        harbor_endpoint,
        acr_endpoint,
        client=FakeRegistryClient(),
        checker=checker,
        copier=copier,
        store=RecordStore(session_factory),
    )

    summary = await orchestrator.run(
        ResolvedPaths(frozenset({"library/nginx"}), ExplicitTag("1.27"))
    )

    assert summary.present == 1
    assert copier.calls == []
    assert len(await _records(session_factory)) == 1


@pytest.mark.asyncio
async def test_second_run_performs_no_copies(
    harbor_endpoint: RegistryEndpoint,
    acr_endpoint: RegistryEndpoint,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Re-running an unchanged sync copies nothing and keeps the same records."""
    client = FakeRegistryClient(
        repositories={"library/nginx"}, tags={"library/nginx": ["1.26", "1.27"]}
    )
    checker = FakeChecker()
    copier = FakeCopier(checker=checker)
    orchestrator = _orchestrator(
        harbor_endpoint,
        acr_endpoint,
        client=client,
        checker=checker,
        copier=copier,
        store=RecordStore(session_factory),
    )
    resolved = ResolvedPaths(frozenset({"library/nginx"}), AllTags(), is_specific=True)

    first = await orchestrator.run(resolved)
    records_after_first = await _records(session_factory)
    copies_after_first = len(copier.calls)
    second = await orchestrator.run(resolved)

    assert first.synced == 2
    assert second.present == 2
    assert len(copier.calls) == copies_after_first, "Second run must not copy"
    assert await _records(session_factory) == records_after_first


@pytest.mark.asyncio
async def test_copy_failure_does_not_stop_later_items(
    harbor_endpoint: RegistryEndpoint,
    acr_endpoint: RegistryEndpoint,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """A failed copy produces no record and later tags still run."""
    client = FakeRegistryClient(
        tags={"library/nginx": ["1.26", "1.27"], "library/redis": ["7"]}
    )
    checker = FakeChecker()
    copier = FakeCopier(
        checker=checker, failing={"harbor.example.com/library/nginx:1.26"}
    )
    orchestrator = _orchestrator(
        harbor_endpoint,
        acr_endpoint,
        client=client,
        checker=checker,
        copier=copier,
        store=RecordStore(session_factory),
    )

    summary = await orchestrator.run(
        ResolvedPaths(frozenset({"library/nginx", "library/redis"}), AllTags())
    )

    assert summary.failed == 1
    assert summary.synced == 2
    failed = [r for r in summary.results if r.outcome is ItemOutcome.FAILED]
    assert failed[0].item == SyncWorkItem("library/nginx", "1.26")
    assert isinstance(failed[0].error, CopyError)
    stored = {(repo, tag) for repo, tag, _, _ in await _records(session_factory)}
    assert stored == {("library/nginx", "1.27"), ("library/redis", "7")}


@pytest.mark.asyncio
async def test_check_and_store_failures_are_per_item(
    harbor_endpoint: RegistryEndpoint,
    acr_endpoint: RegistryEndpoint,
) -> None:
    """Existence-check and record-write failures only fail their own item."""
    checker = FakeChecker(
        present={("library/redis", "7")}, failing={("library/nginx", "1.27")}
    )
    orchestrator = _orchestrator(
        harbor_endpoint,
        acr_endpoint,
        client=FakeRegistryClient(
            latest={"library/nginx": "1.27", "library/redis": "7"}
        ),
        checker=checker,
        copier=FakeCopier(),
        store=_FailingStore(),
    )

    summary = await orchestrator.run(
        ResolvedPaths(frozenset({"library/nginx", "library/redis"}), LatestTag())
    )

    errors = {r.item.repository: r.error for r in summary.results}
    assert summary.failed == 2
    assert isinstance(errors["library/nginx"], CheckError)
    assert isinstance(errors["library/redis"], StoreError)


@pytest.mark.asyncio
async def test_tag_resolution_failure_skips_repository(
    harbor_endpoint: RegistryEndpoint,
    acr_endpoint: RegistryEndpoint,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Repositories without a resolvable tag are skipped, others proceed."""
    checker = FakeChecker()
    orchestrator = _orchestrator(
        harbor_endpoint,
        acr_endpoint,
        client=FakeRegistryClient(latest={"library/nginx": "1.27"}),
        checker=checker,
        copier=FakeCopier(checker=checker),
        store=RecordStore(session_factory),
    )

    summary = await orchestrator.run(
        ResolvedPaths(frozenset({"library/nginx", "library/empty"}), LatestTag())
    )

    assert summary.repositories_skipped == 1
    assert summary.skipped[0].repository == "library/empty"
    assert summary.synced == 1


@pytest.mark.asyncio
async def test_explicit_tag_skips_tag_listing(
    harbor_endpoint: RegistryEndpoint,
    acr_endpoint: RegistryEndpoint,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """An explicit tag is used as-is without asking the source for tags."""
    client = FakeRegistryClient()
    checker = FakeChecker()
    orchestrator = _orchestrator(
        harbor_endpoint,
        acr_endpoint,
        client=client,
        checker=checker,
        copier=FakeCopier(checker=checker),
        store=RecordStore(session_factory),
    )

    await orchestrator.run(
        ResolvedPaths(frozenset({"library/nginx"}), ExplicitTag("1.27"))
    )

    assert client.tag_listings == []
    assert checker.checks == [("library/nginx", "1.27")]


@pytest.mark.asyncio
async def test_duplicate_tags_are_processed_once(
    harbor_endpoint: RegistryEndpoint,
    acr_endpoint: RegistryEndpoint,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Work items are de-duplicated by repository and tag."""
    checker = FakeChecker()
    copier = FakeCopier(checker=checker)
    orchestrator = _orchestrator(
        harbor_endpoint,
        acr_endpoint,
        client=FakeRegistryClient(tags={"library/nginx": ["1.27", "1.27"]}),
        checker=checker,
        copier=copier,
        store=RecordStore(session_factory),
    )

    summary = await orchestrator.run(
        ResolvedPaths(frozenset({"library/nginx"}), AllTags())
    )

    assert len(summary.results) == 1
    assert len(copier.calls) == 1


@pytest.mark.asyncio
async def test_copy_timeout_fails_only_that_item(
    harbor_endpoint: RegistryEndpoint,
    acr_endpoint: RegistryEndpoint,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """A copy exceeding its budget is cancelled and reported as a CopyError."""
    checker = FakeChecker()
    copier = FakeCopier(
        checker=checker, hanging={"harbor.example.com/library/nginx:1.26"}
    )
    orchestrator = _orchestrator(
        harbor_endpoint,
        acr_endpoint,
        client=FakeRegistryClient(tags={"library/nginx": ["1.26", "1.27"]}),
        checker=checker,
        copier=copier,
        store=RecordStore(session_factory),
        config=SyncConfig(concurrency=2, copy_timeout_s=0.2),
    )

    summary = await orchestrator.run(
        ResolvedPaths(frozenset({"library/nginx"}), AllTags())
    )

    outcomes = {r.item.tag: r for r in summary.results}
    assert outcomes["1.27"].outcome is ItemOutcome.SYNCED
    assert outcomes["1.26"].outcome is ItemOutcome.FAILED
    assert isinstance(outcomes["1.26"].error, CopyError)
    assert isinstance(outcomes["1.26"].error.__cause__, TimeoutError)
    assert copier.cancelled == ["harbor.example.com/library/nginx:1.26"]


@pytest.mark.asyncio
@pytest.mark.parametrize("concurrency", [1, 3])
async def test_concurrency_bound_is_respected(
    harbor_endpoint: RegistryEndpoint,
    acr_endpoint: RegistryEndpoint,
    session_factory: async_sessionmaker[AsyncSession],
    concurrency: int,
) -> None:
    """No more than ``concurrency`` copies run at once."""
    checker = FakeChecker()
    copier = FakeCopier(checker=checker)
    orchestrator = _orchestrator(
        harbor_endpoint,
        acr_endpoint,
        client=FakeRegistryClient(tags={"library/nginx": [str(n) for n in range(6)]}),
        checker=checker,
        copier=copier,
        store=RecordStore(session_factory),
        config=SyncConfig(concurrency=concurrency),
    )

    summary = await orchestrator.run(
        ResolvedPaths(frozenset({"library/nginx"}), AllTags())
    )

    assert summary.synced == 6
    assert 1 <= copier.max_active <= concurrency


@pytest.mark.asyncio
async def test_sync_path_propagates_listing_failure(
    harbor_endpoint: RegistryEndpoint,
    acr_endpoint: RegistryEndpoint,
) -> None:
    """A failing top-level listing aborts the run."""
    orchestrator = _orchestrator(
        harbor_endpoint,
        acr_endpoint,
        client=FakeRegistryClient(fail_listing=True),
        checker=FakeChecker(),
        copier=FakeCopier(),
        store=_FailingStore(),
    )

    with pytest.raises(ListError):
        await orchestrator.sync_path("/library")


def test_sync_config_rejects_non_positive_values() -> None:
    """Concurrency and copy timeout must be positive."""
    with pytest.raises(ValueError, match="concurrency"):
        SyncConfig(concurrency=0)
    with pytest.raises(ValueError, match="copy_timeout_s"):
        SyncConfig(copy_timeout_s=0)
