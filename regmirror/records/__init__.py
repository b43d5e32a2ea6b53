"""Durable record of mirrored images.

Each successfully mirrored (or already present) ``repository:tag`` is kept as
one ``image_records`` row. Re-running a sync refreshes the row in place::

    store = RecordStore(session_factory)
    await store.upsert(
        "library/nginx",
        "1.27",
        "src.example.com/library/nginx:1.27",
        "dst.example.com/library/nginx:1.27",
    )

"""

from __future__ import annotations

from .errors import StoreError, TimezoneAwareRequiredError
from .storage import Base, ImageRecord, init_record_storage
from .store import RecordStore

__all__ = [
    "Base",
    "ImageRecord",
    "RecordStore",
    "StoreError",
    "TimezoneAwareRequiredError",
    "init_record_storage",
]
