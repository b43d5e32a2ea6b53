"""Registry access for discovery, tag resolution and existence checks.

Usage
-----
Build a backend-specific client from an endpoint and list repositories::

    from regmirror.registry import BackendType, RegistryEndpoint, build_registry_client

    endpoint = RegistryEndpoint(
        url_base="https://harbor.example.com",
        username="robot$mirror",
        password="...",
        backend=BackendType.HARBOR,
    )
    async with build_registry_client(endpoint) as client:
        repos = await client.list_repositories("library/")
        latest = await client.get_latest_tag("library/nginx")

Probe the destination before copying::

    checker = ExistenceChecker(destination)
    if not await checker.exists("library/nginx", latest):
        ...

"""

from regmirror.registry.client import (
    AcrRegistryClient,
    HarborRegistryClient,
    RegistryClient,
    build_registry_client,
)
from regmirror.registry.errors import (
    CheckError,
    InvalidPathError,
    ListError,
    NotFoundError,
    ParseError,
    RegistryConfigError,
    RegistryError,
)
from regmirror.registry.existence import ExistenceChecker
from regmirror.registry.models import BackendType, RegistryEndpoint

__all__ = [
    "AcrRegistryClient",
    "BackendType",
    "CheckError",
    "ExistenceChecker",
    "HarborRegistryClient",
    "InvalidPathError",
    "ListError",
    "NotFoundError",
    "ParseError",
    "RegistryClient",
    "RegistryConfigError",
    "RegistryEndpoint",
    "RegistryError",
    "build_registry_client",
]
