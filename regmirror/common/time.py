"""Clock helpers for record timestamps and run durations."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp for record columns and run markers."""
    return dt.datetime.now(dt.UTC)


def elapsed_since(started_at: dt.datetime) -> dt.timedelta:
    """Return the time elapsed between ``started_at`` and now.

    Naive inputs are rejected because comparing them with an aware clock
    reading would raise deep inside callers.
    """
    if started_at.tzinfo is None:
        msg = "started_at must be timezone-aware"
        raise ValueError(msg)
    return utcnow() - started_at
