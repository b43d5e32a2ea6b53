"""Translate a user supplied path into repositories and a tag selector."""

from __future__ import annotations

import typing as typ

from regmirror.logging import get_logger, log_debug

from .models import AllTags, ExplicitTag, LatestTag, ResolvedPaths

if typ.TYPE_CHECKING:
    from regmirror.registry.client import RegistryClient

    from .models import TagSelector

logger = get_logger(__name__)


def split_input_path(input_path: str) -> tuple[str, str | None]:
    """Return ``(path, explicit_tag)`` for ``[/]namespace[/repo][:tag]``.

    One leading ``/`` is dropped and the text after the last ``:`` becomes
    the tag. An empty tag (``"library/nginx:"``) counts as no tag.

    >>> split_input_path("/library/nginx:1.27")
    ('library/nginx', '1.27')
    >>> split_input_path("library")
    ('library', None)

    """
    path = input_path.removeprefix("/")
    head, sep, tail = path.rpartition(":")
    if not sep:
        return (path, None)
    return (head, tail or None)


def listing_prefix(path: str) -> str:
    """Return the listing prefix: ``""`` or ``path`` ending in ``/``."""
    if not path or path.endswith("/"):
        return path
    return f"{path}/"


class PathResolver:
    """Resolve paths against the source registry's repository listing."""

    def __init__(self, client: RegistryClient) -> None:
        """Bind the resolver to the source registry ``client``."""
        self._client = client

    async def resolve(self, input_path: str) -> ResolvedPaths:
        """Resolve ``input_path`` into repositories and a tag selector.

        When listing under the prefix finds nothing, a non-empty path is taken
        to name one repository directly and every tag of it is selected,
        unless an explicit tag was given.

        Raises
        ------
        RegistryError
            If the repository listing fails. Listing errors are fatal to the
            run and are not caught here.

        """
        path, explicit_tag = split_input_path(input_path)
        prefix = listing_prefix(path)
        repositories = await self._client.list_repositories(prefix)

        is_specific = False
        if not repositories and path:
            repositories = {prefix.removesuffix("/")}
            is_specific = True

        selector: TagSelector
        if explicit_tag is not None:
            selector = ExplicitTag(explicit_tag)
        elif is_specific:
            selector = AllTags()
        else:
            selector = LatestTag()

        log_debug(
            logger,
            "Resolved %r to %d repositories (specific=%s, selector=%s)",
            input_path,
            len(repositories),
            is_specific,
            type(selector).__name__,
        )
        return ResolvedPaths(
            repositories=frozenset(repositories),
            selector=selector,
            is_specific=is_specific,
        )
