"""Persistence model for synchronised image records."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import DateTime, Integer, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from regmirror.common.time import utcnow
from regmirror.records.errors import TimezoneAwareRequiredError

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine


class Base(DeclarativeBase):
    """Declarative base for regmirror tables."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """Timestamp column that stores and returns aware UTC values.

    SQLite drops tzinfo on the way back, so results are re-tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Reject naive values and convert aware ones to UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError(self.__class__.__name__)
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Return stored timestamps as aware UTC datetimes."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class ImageRecord(Base):
    """One row per mirrored ``repo_path:tag``.

    ``src_oci`` and ``dst_oci`` hold ``host/repository:tag`` references.
    Re-syncing a pair updates the references and ``updated_at`` in place.
    """

    __tablename__ = "image_records"
    __table_args__ = (
        UniqueConstraint("repo_path", "tag", name="uq_image_records_repo_tag"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    repo_path: Mapped[str] = mapped_column(Text())
    tag: Mapped[str] = mapped_column(Text())
    src_oci: Mapped[str] = mapped_column(Text())
    dst_oci: Mapped[str] = mapped_column(Text())
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


async def init_record_storage(engine: AsyncEngine, *, reset: bool = False) -> None:
    """Create the ``image_records`` table, dropping it first when ``reset``."""
    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
