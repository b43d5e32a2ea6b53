"""Manifest presence probe against the destination registry."""

from __future__ import annotations

import typing as typ

import httpx

from regmirror.common.refs import quote_repository, quote_segment

from .client import DEFAULT_HTTP_TIMEOUT_S
from .errors import CheckError

if typ.TYPE_CHECKING:
    from .models import RegistryEndpoint

DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"

_HTTP_OK = 200
_HTTP_NOT_FOUND = 404


class ExistenceChecker:
    """Report whether ``repository:tag`` already exists on a registry.

    The probe uses the Registry v2 manifest endpoint, which Harbor and ACR
    both serve, so the checker does not depend on the backend type.
    """

    def __init__(
        self,
        endpoint: RegistryEndpoint,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = DEFAULT_HTTP_TIMEOUT_S,
    ) -> None:
        """Bind the checker to the destination ``endpoint``."""
        self._endpoint = endpoint
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_s)

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def exists(self, repository: str, tag: str) -> bool:
        """Return True on HTTP 200 and False on HTTP 404.

        Raises
        ------
        CheckError
            For any other status, or when no response was received.

        """
        url = (
            f"{self._endpoint.url_base}/v2/{quote_repository(repository)}"
            f"/manifests/{quote_segment(tag)}"
        )
        try:
            response = await self._client.get(
                url,
                auth=self._endpoint.auth,
                headers={"Accept": DOCKER_MANIFEST_V2},
            )
        except httpx.HTTPError as exc:
            raise CheckError.transport(exc) from exc

        if response.status_code == _HTTP_OK:
            return True
        if response.status_code == _HTTP_NOT_FOUND:
            return False
        raise CheckError.http_error(response.status_code, response.text)
