"""Lazy page producers for the two registry cursor styles.

Harbor paginates with a page-number counter and signals exhaustion with an
empty page. Registry v2 (and ACR) return an opaque ``Link`` header whose
``rel="next"`` target is requested verbatim until no such link remains.
Both producers are one-shot: each listing call builds a fresh iterator.
"""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

if typ.TYPE_CHECKING:
    import httpx

HARBOR_PAGE_SIZE = 100
REGISTRY_PAGE_SIZE = 100

type PageFetcher[T] = cabc.Callable[[int], cabc.Awaitable[list[T]]]
type LinkedPageFetcher[T] = cabc.Callable[
    [str], cabc.Awaitable[tuple[list[T], str | None]]
]


def next_link(response: httpx.Response) -> str | None:
    """Return the ``rel="next"`` target of a response, if any.

    A missing ``Link`` header, or one without a ``next`` relation, ends
    pagination after the current page.
    """
    if not response.headers.get("Link"):
        return None
    link = response.links.get("next")
    if link is None:
        return None
    url = link.get("url")
    return url or None


async def iter_numbered_pages[T](
    fetch: PageFetcher[T],
    *,
    first_page: int = 1,
) -> cabc.AsyncIterator[list[T]]:
    """Yield pages from ``fetch(page)`` until it returns an empty page.

    A full page never ends iteration on its own: only an empty page does,
    so a listing of exactly one full page costs a second request.
    """
    page = first_page
    while True:
        items = await fetch(page)
        if not items:
            return
        yield items
        page += 1


async def iter_linked_pages[T](
    fetch: LinkedPageFetcher[T],
    first_url: str,
) -> cabc.AsyncIterator[list[T]]:
    """Yield pages from ``fetch(url)`` following ``next`` links.

    Empty pages are yielded too; only the absence of a next link stops the
    iteration.
    """
    url: str | None = first_url
    while url is not None:
        items, url = await fetch(url)
        yield items
