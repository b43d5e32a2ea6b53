"""Unit tests for the page iterators."""

from __future__ import annotations

import httpx
import pytest

from regmirror.registry.pagination import (
    iter_linked_pages,
    iter_numbered_pages,
    next_link,
)


@pytest.mark.asyncio
async def test_numbered_pages_stop_on_empty_page() -> None:
    """A full page triggers another request; an empty page ends iteration."""
    requested: list[int] = []
    pages = {1: ["a"] * 100, 2: ["b"]}

    async def fetch(page: int) -> list[str]:
        requested.append(page)
        return pages.get(page, [])

    collected = [page async for page in iter_numbered_pages(fetch)]

    assert requested == [1, 2, 3], "Expected iteration until an empty page"
    assert sum(len(page) for page in collected) == 101


@pytest.mark.asyncio
async def test_numbered_pages_empty_first_page() -> None:
    """An empty first page yields nothing after one request."""
    requested: list[int] = []

    async def fetch(page: int) -> list[str]:
        requested.append(page)
        return []

    collected = [page async for page in iter_numbered_pages(fetch)]

    assert collected == []
    assert requested == [1]


@pytest.mark.asyncio
async def test_linked_pages_follow_until_no_next() -> None:
    """Linked pages follow next targets and yield empty pages too."""
    chain = {
        "first": (["a"], "second"),
        "second": ([], "third"),
        "third": (["c"], None),
    }
    visited: list[str] = []

    async def fetch(url: str) -> tuple[list[str], str | None]:
        visited.append(url)
        return chain[url]

    collected = [page async for page in iter_linked_pages(fetch, "first")]

    assert visited == ["first", "second", "third"]
    assert collected == [["a"], [], ["c"]]


@pytest.mark.parametrize(
    ("headers", "expected"),
    [
        ({}, None),
        ({"Link": '</v2/_catalog?last=b&n=100>; rel="next"'}, "/v2/_catalog?last=b&n=100"),
        ({"Link": '</v2/_catalog?n=100>; rel="prev"'}, None),
    ],
)
def test_next_link(headers: dict[str, str], expected: str | None) -> None:
    """Only a rel="next" relation continues pagination."""
    response = httpx.Response(200, headers=headers)
    assert next_link(response) == expected
