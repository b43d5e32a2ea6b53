"""Registry endpoint configuration and API response schemas."""

from __future__ import annotations

import dataclasses
import enum

import msgspec

from regmirror.common.refs import host_of, normalise_url_base


class BackendType(enum.StrEnum):
    """API flavour spoken by a registry endpoint."""

    HARBOR = "harbor"
    ACR = "acr"


@dataclasses.dataclass(frozen=True, slots=True)
class RegistryEndpoint:
    """Connection details for one registry.

    One instance describes the source and another the destination for the
    lifetime of a run. ``url_base`` is normalised on construction.
    """

    url_base: str
    username: str
    password: str = dataclasses.field(repr=False)
    backend: BackendType = BackendType.HARBOR

    def __post_init__(self) -> None:
        """Normalise the base URL so request paths can be joined safely."""
        object.__setattr__(self, "url_base", normalise_url_base(self.url_base))
        object.__setattr__(self, "backend", BackendType(self.backend))

    @property
    def host(self) -> str:
        """Return ``host[:port]`` used in image references."""
        return host_of(self.url_base)

    @property
    def auth(self) -> tuple[str, str]:
        """Return basic-auth credentials as a ``(user, password)`` pair."""
        return (self.username, self.password)


class NamedItem(msgspec.Struct):
    """Harbor project or repository entry; only the name is consumed."""

    name: str


class CatalogPage(msgspec.Struct):
    """One page of ``GET /v2/_catalog``."""

    repositories: list[str] | None = None


class TagListPage(msgspec.Struct):
    """One page of ``GET /v2/{repo}/tags/list``."""

    name: str = ""
    tags: list[str] | None = None


class HarborTag(msgspec.Struct):
    """Tag attached to a Harbor artifact."""

    name: str


class HarborArtifact(msgspec.Struct):
    """Harbor artifact summary; only its tags are consumed."""

    tags: list[HarborTag] | None = None


class AcrTagAttributes(msgspec.Struct):
    """ACR tag attribute entry."""

    name: str


class AcrTagList(msgspec.Struct, rename={"tags_attributes": "tagsAttributes"}):
    """Response of the ACR ``_tags`` endpoint."""

    tags_attributes: list[AcrTagAttributes] | None = None
