"""Registry API clients used for repository discovery and tag resolution.

Two backends sit behind :class:`RegistryClient`:

- :class:`HarborRegistryClient` walks Harbor's proprietary
  ``/api/v2.0`` project and repository listings and resolves "latest" from
  artifact creation times.
- :class:`AcrRegistryClient` walks the Docker Registry v2 ``_catalog`` and
  resolves "latest" through ACR's ``_tags`` endpoint.

Both list tags through the Registry v2 ``tags/list`` endpoint, which Harbor
also serves.
"""

from __future__ import annotations

import asyncio
import typing as typ

import httpx
import msgspec

from regmirror.common.refs import quote_repository, quote_segment

from .errors import (
    InvalidPathError,
    ListError,
    NotFoundError,
    ParseError,
    RegistryConfigError,
)
from .models import (
    AcrTagList,
    BackendType,
    CatalogPage,
    HarborArtifact,
    NamedItem,
    TagListPage,
)
from .pagination import (
    HARBOR_PAGE_SIZE,
    REGISTRY_PAGE_SIZE,
    iter_linked_pages,
    iter_numbered_pages,
    next_link,
)

if typ.TYPE_CHECKING:
    import types

    from .models import RegistryEndpoint

_HTTP_OK = 200
DEFAULT_HTTP_TIMEOUT_S = 10.0
DEFAULT_PROJECT_CONCURRENCY = 4


class RegistryClient(typ.Protocol):
    """Capabilities needed to discover repositories and tags on a registry."""

    async def list_repositories(self, prefix: str) -> set[str]:
        """Return repositories under ``prefix``; ``""`` means the whole registry."""
        ...

    async def list_tags(self, repository: str) -> list[str]:
        """Return every tag of ``repository`` in registry order."""
        ...

    async def get_latest_tag(self, repository: str) -> str:
        """Return the most recently created tag of ``repository``."""
        ...

    async def aclose(self) -> None:
        """Release HTTP resources."""
        ...


def _decode[T](content: bytes, type_: type[T], *, what: str) -> T:
    try:
        return msgspec.json.decode(content, type=type_)
    except msgspec.DecodeError as exc:
        raise ParseError.for_body(what, exc) from exc


class _RegistryHTTPClient:
    """Shared request plumbing and Registry v2 tag listing."""

    def __init__(
        self,
        endpoint: RegistryEndpoint,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = DEFAULT_HTTP_TIMEOUT_S,
    ) -> None:
        """Bind the client to ``endpoint``; an injected HTTP client is not owned."""
        self._endpoint = endpoint
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_s)

    @property
    def endpoint(self) -> RegistryEndpoint:
        """Return the endpoint this client talks to."""
        return self._endpoint

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> typ.Self:
        """Return the client for use in ``async with`` blocks."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        """Close owned HTTP resources on exit."""
        await self.aclose()

    def _url(self, path: str) -> str:
        return f"{self._endpoint.url_base}{path}"

    def _follow(self, target: str) -> str:
        # Link targets are usually origin-relative; absolute ones pass through.
        return str(httpx.URL(self._endpoint.url_base).join(target))

    async def _get(
        self,
        url: str,
        *,
        what: str,
        params: dict[str, str | int] | None = None,
    ) -> httpx.Response:
        """Issue an authenticated GET and return the response on HTTP 200."""
        try:
            response = await self._client.get(
                url,
                params=params,
                auth=self._endpoint.auth,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise ListError.transport(what, exc) from exc
        if response.status_code != _HTTP_OK:
            raise ListError.http_error(what, response.status_code, response.text)
        return response

    async def list_tags(self, repository: str) -> list[str]:
        """Return all tags of ``repository`` via ``/v2/{repo}/tags/list``."""

        async def fetch(url: str) -> tuple[list[str], str | None]:
            response = await self._get(url, what="tags")
            page = _decode(response.content, TagListPage, what="tags")
            return (page.tags or [], self._follow_next(response))

        first_url = self._url(
            f"/v2/{quote_repository(repository)}/tags/list?n={REGISTRY_PAGE_SIZE}"
        )
        tags: list[str] = []
        async for page in iter_linked_pages(fetch, first_url):
            tags.extend(page)
        return tags

    def _follow_next(self, response: httpx.Response) -> str | None:
        target = next_link(response)
        return self._follow(target) if target is not None else None


class HarborRegistryClient(_RegistryHTTPClient):
    """Harbor implementation of :class:`RegistryClient`."""

    def __init__(
        self,
        endpoint: RegistryEndpoint,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = DEFAULT_HTTP_TIMEOUT_S,
        project_concurrency: int = DEFAULT_PROJECT_CONCURRENCY,
    ) -> None:
        """Configure the client; ``project_concurrency`` bounds sweep fan-out."""
        super().__init__(endpoint, http_client=http_client, timeout_s=timeout_s)
        self._project_concurrency = max(1, project_concurrency)

    async def _list_named(self, path: str, *, what: str) -> list[str]:
        async def fetch(page: int) -> list[NamedItem]:
            response = await self._get(
                self._url(path),
                what=what,
                params={"page": page, "page_size": HARBOR_PAGE_SIZE},
            )
            return _decode(response.content, list[NamedItem] | None, what=what) or []

        names: list[str] = []
        async for page in iter_numbered_pages(fetch):
            names.extend(item.name for item in page)
        return names

    async def list_projects(self) -> list[str]:
        """Return the names of every project visible to the credentials."""
        return await self._list_named("/api/v2.0/projects", what="projects")

    async def list_project_repositories(self, project: str) -> list[str]:
        """Return full ``project/repo`` names for every repository in ``project``."""
        return await self._list_named(
            f"/api/v2.0/projects/{quote_segment(project)}/repositories",
            what="repos",
        )

    async def list_repositories(self, prefix: str) -> set[str]:
        """Return repositories under ``prefix`` using Harbor project listings.

        The filter after the project segment is a literal string-prefix match
        on the full repository name, not a path-segment-aware one.
        """
        if not prefix:
            return await self._list_all_repositories()

        trimmed = prefix.rstrip("/")
        project, _, rest = trimmed.partition("/")
        sub_prefix = f"{rest}/" if rest else ""
        prefix_with_slash = f"{trimmed}/"

        repositories = await self.list_project_repositories(project)
        return {
            name
            for name in repositories
            if not sub_prefix or name.startswith(prefix_with_slash)
        }

    async def _list_all_repositories(self) -> set[str]:
        projects = await self.list_projects()
        semaphore = asyncio.Semaphore(self._project_concurrency)

        async def bounded(project: str) -> list[str]:
            async with semaphore:
                return await self.list_project_repositories(project)

        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(bounded(project)) for project in projects]
        except ExceptionGroup as exc_group:
            # Surface the first listing failure with its own type.
            raise exc_group.exceptions[0] from None

        return {name for task in tasks for name in task.result()}

    async def get_latest_tag(self, repository: str) -> str:
        """Return the first tag of the most recently created tagged artifact."""
        if "/" not in repository:
            raise InvalidPathError(repository)
        project, name = repository.split("/", 1)

        response = await self._get(
            self._url(
                f"/api/v2.0/projects/{quote_segment(project)}"
                f"/repositories/{quote_segment(quote_segment(name))}/artifacts"
            ),
            what="Harbor artifacts",
            params={
                "page": 1,
                "page_size": 1,
                "with_tag": "true",
                "sort": "creation_time desc",
            },
        )
        artifacts = _decode(
            response.content, list[HarborArtifact] | None, what="Harbor artifacts"
        )
        if not artifacts or not artifacts[0].tags:
            raise NotFoundError(repository)
        return artifacts[0].tags[0].name


class AcrRegistryClient(_RegistryHTTPClient):
    """Registry v2 / Azure Container Registry implementation."""

    async def list_repositories(self, prefix: str) -> set[str]:
        """Walk ``/v2/_catalog`` and keep names under ``prefix``."""
        normalised = prefix.rstrip("/")
        if normalised:
            normalised = f"{normalised}/"

        async def fetch(url: str) -> tuple[list[str], str | None]:
            response = await self._get(url, what="catalog")
            page = _decode(response.content, CatalogPage, what="catalog")
            return (page.repositories or [], self._follow_next(response))

        first_url = self._url(f"/v2/_catalog?n={REGISTRY_PAGE_SIZE}")
        repositories: set[str] = set()
        async for page in iter_linked_pages(fetch, first_url):
            repositories.update(
                name for name in page if not normalised or name.startswith(normalised)
            )
        return repositories

    async def get_latest_tag(self, repository: str) -> str:
        """Return the newest tag according to ACR's ``orderby=timedesc``."""
        response = await self._get(
            self._url(f"/acr/v1/{quote_repository(repository)}/_tags"),
            what="ACR tags",
            params={"orderby": "timedesc", "n": 1},
        )
        tag_list = _decode(response.content, AcrTagList, what="ACR tags")
        if not tag_list.tags_attributes:
            raise NotFoundError(repository)
        return tag_list.tags_attributes[0].name


def build_registry_client(
    endpoint: RegistryEndpoint,
    *,
    http_client: httpx.AsyncClient | None = None,
    timeout_s: float = DEFAULT_HTTP_TIMEOUT_S,
    project_concurrency: int = DEFAULT_PROJECT_CONCURRENCY,
) -> HarborRegistryClient | AcrRegistryClient:
    """Return the client implementation matching ``endpoint.backend``.

    Raises
    ------
    RegistryConfigError
        If the backend has no client implementation.

    """
    match endpoint.backend:
        case BackendType.HARBOR:
            return HarborRegistryClient(
                endpoint,
                http_client=http_client,
                timeout_s=timeout_s,
                project_concurrency=project_concurrency,
            )
        case BackendType.ACR:
            return AcrRegistryClient(
                endpoint, http_client=http_client, timeout_s=timeout_s
            )
        case _:
            raise RegistryConfigError.unsupported_backend(endpoint.backend)
