"""Unit tests for image reference and clock helpers."""

from __future__ import annotations

import datetime as dt

import pytest

from regmirror.common.refs import (
    host_of,
    image_reference,
    normalise_url_base,
    quote_repository,
    quote_segment,
)
from regmirror.common.time import elapsed_since, utcnow


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("https://harbor.example.com/", "https://harbor.example.com"),
        ("  harbor.example.com  ", "https://harbor.example.com"),
        ("http://harbor.local:8080", "http://harbor.local:8080"),
    ],
)
def test_normalise_url_base(raw: str, expected: str) -> None:
    """Base URLs are trimmed and default to https."""
    assert normalise_url_base(raw) == expected, f"Unexpected base for {raw!r}"


def test_host_of_keeps_port() -> None:
    """Hosts used in image references keep an explicit port."""
    assert host_of("http://harbor.local:8080/") == "harbor.local:8080"


def test_image_reference_format() -> None:
    """References are host/repository:tag."""
    assert (
        image_reference("mirror.azurecr.io", "library/nginx", "1.27")
        == "mirror.azurecr.io/library/nginx:1.27"
    )


def test_quote_helpers() -> None:
    """Repository quoting keeps slashes; segment quoting escapes them."""
    assert quote_repository("team/app one") == "team/app%20one"
    assert quote_segment("team/app") == "team%2Fapp"


def test_elapsed_since_rejects_naive_datetimes() -> None:
    """Naive start markers are refused."""
    with pytest.raises(ValueError, match="timezone-aware"):
        elapsed_since(dt.datetime(2026, 1, 1))  # noqa: DTZ001


def test_elapsed_since_is_non_negative() -> None:
    """Elapsed time from now is a small non-negative delta."""
    assert elapsed_since(utcnow()) >= dt.timedelta(0)
