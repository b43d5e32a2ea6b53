"""Idempotent persistence of sync outcomes."""

from __future__ import annotations

import typing as typ

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from regmirror.common.time import utcnow
from regmirror.records.errors import StoreError
from regmirror.records.storage import ImageRecord

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    type SessionFactory = async_sessionmaker[AsyncSession]

_UPSERT_BUILDERS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class RecordStore:
    """Upsert one ``image_records`` row per ``(repo_path, tag)``.

    The unique constraint is the only idempotency mechanism: conflicts are
    resolved by the database in a single statement, so concurrent writers
    need no extra locking.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        """Store the session factory used for each write."""
        self._session_factory = session_factory

    async def upsert(
        self,
        repo_path: str,
        tag: str,
        src_reference: str,
        dst_reference: str,
    ) -> None:
        """Insert a record or refresh the existing one for ``repo_path:tag``.

        On conflict both references and ``updated_at`` are overwritten;
        ``created_at`` keeps the value from the first insert.

        Raises
        ------
        StoreError
            If the dialect is unsupported or the statement fails.

        """
        now = utcnow()
        try:
            async with self._session_factory() as session, session.begin():
                dialect = session.get_bind().dialect.name
                builder = _UPSERT_BUILDERS.get(dialect)
                if builder is None:
                    raise StoreError(repo_path, tag, f"unsupported dialect {dialect}")
                stmt = builder(ImageRecord).values(
                    repo_path=repo_path,
                    tag=tag,
                    src_oci=src_reference,
                    dst_oci=dst_reference,
                    created_at=now,
                    updated_at=now,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[ImageRecord.repo_path, ImageRecord.tag],
                    set_={
                        "src_oci": stmt.excluded.src_oci,
                        "dst_oci": stmt.excluded.dst_oci,
                        "updated_at": now,
                    },
                )
                await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(repo_path, tag, type(exc).__name__) from exc

    async def get(self, repo_path: str, tag: str) -> ImageRecord | None:
        """Return the stored record for ``repo_path:tag``, if any."""
        try:
            async with self._session_factory() as session:
                return await session.scalar(
                    select(ImageRecord).where(
                        ImageRecord.repo_path == repo_path,
                        ImageRecord.tag == tag,
                    )
                )
        except SQLAlchemyError as exc:
            raise StoreError(repo_path, tag, type(exc).__name__) from exc
