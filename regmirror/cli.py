"""Command-line entry point for mirroring images between registries.

Usage:
    regmirror sync                     # latest tag of every repository
    regmirror sync /library            # latest tag of each repo under library/
    regmirror sync /library/nginx      # every tag of library/nginx
    regmirror sync /library/nginx:1.27 # one tag

Connection settings come from the environment (``DB_*``, ``SRC_*``,
``DST_*``), optionally loaded from a ``.env`` file.
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import sys
import typing as typ
from pathlib import Path

from cyclopts import App, Parameter
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from regmirror import __version__
from regmirror.config import ConfigError, MirrorConfig, load_env_file
from regmirror.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_exception,
    log_info,
    log_warning,
)
from regmirror.records.storage import init_record_storage
from regmirror.records.store import RecordStore
from regmirror.registry.client import build_registry_client
from regmirror.registry.errors import RegistryError
from regmirror.registry.existence import ExistenceChecker
from regmirror.sync.models import SyncConfig
from regmirror.sync.orchestrator import SyncOrchestrator
from regmirror.transfer.copier import SkopeoImageCopier

if typ.TYPE_CHECKING:
    import httpx

    from regmirror.sync.models import SyncSummary
    from regmirror.transfer.copier import ImageCopier

logger = get_logger(__name__)

app = App(
    name="regmirror",
    help="Mirror container images between Harbor and ACR registries",
    version=__version__,
)


async def run_sync(
    config: MirrorConfig,
    input_path: str,
    *,
    reset_schema: bool = False,
    copier: ImageCopier | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> SyncSummary:
    """Run one sync against the configured registries and record store.

    Parameters
    ----------
    config : MirrorConfig
        Endpoints, database settings and tuning.
    input_path : str
        ``[/]namespace[/repo][:tag]``; empty for the whole registry.
    reset_schema : bool, optional
        Drop and recreate ``image_records`` before syncing.
    copier : ImageCopier | None, optional
        Copy collaborator; defaults to :class:`SkopeoImageCopier`.
    http_client : httpx.AsyncClient | None, optional
        Shared HTTP client for both registries. Owned clients are created
        per registry when omitted.

    Raises
    ------
    RegistryError
        If the top-level repository listing fails.

    """
    engine = create_async_engine(config.engine_url())
    try:
        await init_record_storage(engine, reset=reset_schema)
        session_factory = async_sessionmaker(engine, expire_on_commit=False)
        async with (
            build_registry_client(
                config.source,
                http_client=http_client,
                timeout_s=config.http_timeout_s,
            ) as source_client,
            contextlib.aclosing(
                ExistenceChecker(
                    config.destination,
                    http_client=http_client,
                    timeout_s=config.http_timeout_s,
                )
            ) as checker,
        ):
            orchestrator = SyncOrchestrator(
                source_client,
                checker,
                copier or SkopeoImageCopier(),
                RecordStore(session_factory),
                source=config.source,
                destination=config.destination,
                config=SyncConfig(
                    concurrency=config.concurrency,
                    copy_timeout_s=config.copy_timeout_s,
                ),
            )
            return await orchestrator.sync_path(input_path)
    finally:
        await engine.dispose()


def _apply_overrides(
    config: MirrorConfig,
    *,
    concurrency: int | None,
    copy_timeout: float | None,
) -> MirrorConfig:
    if concurrency is not None and concurrency < 1:
        raise ConfigError.invalid("--concurrency", str(concurrency), "at least 1")
    if copy_timeout is not None and copy_timeout <= 0:
        raise ConfigError.invalid("--copy-timeout", str(copy_timeout), "positive")
    return dataclasses.replace(
        config,
        concurrency=concurrency or config.concurrency,
        copy_timeout_s=copy_timeout or config.copy_timeout_s,
    )


@app.command
def sync(
    path: str = "",
    *,
    concurrency: int | None = None,
    copy_timeout: float | None = None,
    reset_schema: bool = False,
    log_level: str | None = None,
    env_file: typ.Annotated[
        Path | None, Parameter(env_var="REGMIRROR_ENV_FILE")
    ] = None,
) -> int:
    """Mirror images under PATH from the source to the destination registry.

    Args:
        path: Repository path, ``[/]namespace[/repo][:tag]``. Empty mirrors
            the latest tag of every repository.
        concurrency: Work items processed at once.
        copy_timeout: Per-image copy budget in seconds.
        reset_schema: Drop and recreate the record table first.
        log_level: femtologging level; overrides ``REGMIRROR_LOG_LEVEL``.
        env_file: ``.env`` file to load; defaults to searching for ``.env``.

    Returns:
        Exit code: 0 when the run completed, 1 on configuration errors or a
        failed repository listing.

    """
    load_env_file(env_file)
    try:
        config = _apply_overrides(
            MirrorConfig.from_env(),
            concurrency=concurrency,
            copy_timeout=copy_timeout,
        )
    except ConfigError as exc:
        configure_logging(log_level)
        log_error(logger, "Configuration error: %s", exc)
        return 1

    normalized_level, invalid_level = configure_logging(log_level or config.log_level)
    if log_level:
        rejected_level = log_level if invalid_level else None
    else:
        rejected_level = config.rejected_log_level
    if rejected_level:
        log_warning(
            logger,
            "Invalid log level %r, falling back to %s",
            rejected_level,
            normalized_level,
        )

    try:
        summary = asyncio.run(run_sync(config, path, reset_schema=reset_schema))
    except RegistryError as exc:
        log_exception(logger, f"Failed to list repositories: {exc}", exc)
        return 1
    except (SQLAlchemyError, OSError) as exc:
        log_exception(logger, f"Record store unavailable: {exc}", exc)
        return 1

    log_info(
        logger,
        "Sync finished: %d present, %d synced, %d failed, %d repositories skipped",
        summary.present,
        summary.synced,
        summary.failed,
        summary.repositories_skipped,
    )
    return 0


def main() -> int:
    """Entry point for the CLI."""
    return app()


if __name__ == "__main__":
    sys.exit(main())
