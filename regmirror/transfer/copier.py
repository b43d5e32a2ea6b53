"""Image copy collaborator.

The orchestrator only depends on :class:`ImageCopier`. The production
implementation shells out to ``skopeo copy``, which performs the
manifest-aware transfer and recompresses layers to the requested format.
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import contextlib
import dataclasses
import enum
import typing as typ

from .errors import CopyError

if typ.TYPE_CHECKING:
    from regmirror.registry.models import RegistryEndpoint


class CompressionFormat(enum.StrEnum):
    """Layer compression algorithms a copy can be forced to."""

    ZSTD = "zstd"
    ZSTD_CHUNKED = "zstd:chunked"
    GZIP = "gzip"


@dataclasses.dataclass(frozen=True, slots=True)
class RegistryAuth:
    """Credentials presented to one side of a copy."""

    username: str
    password: str = dataclasses.field(repr=False)

    @classmethod
    def from_endpoint(cls, endpoint: RegistryEndpoint) -> RegistryAuth:
        """Reuse the basic-auth credentials configured for ``endpoint``."""
        return cls(username=endpoint.username, password=endpoint.password)

    def as_creds(self) -> str:
        """Return ``user:password`` as expected by skopeo ``--*-creds``."""
        return f"{self.username}:{self.password}"


class ImageCopier(typ.Protocol):
    """Copy one image reference to another, forcing layer compression."""

    async def copy(
        self,
        src_ref: str,
        dst_ref: str,
        *,
        src_auth: RegistryAuth,
        dst_auth: RegistryAuth,
        compression: CompressionFormat,
    ) -> None:
        """Copy ``src_ref`` to ``dst_ref``; raise :class:`CopyError` on failure."""
        ...


type ProcessFactory = cabc.Callable[..., cabc.Awaitable[asyncio.subprocess.Process]]


class SkopeoImageCopier:
    """Run ``skopeo copy`` between two ``docker://`` references.

    TLS verification is always enabled on both sides and the destination
    compression format is always forced. ``--multi-arch all`` carries every
    platform of an image index so each one is recompressed.
    """

    def __init__(
        self,
        *,
        executable: str = "skopeo",
        process_factory: ProcessFactory | None = None,
    ) -> None:
        """Configure the executable and the subprocess factory."""
        self._executable = executable
        self._process_factory = process_factory or asyncio.create_subprocess_exec

    def build_command(
        self,
        src_ref: str,
        dst_ref: str,
        *,
        src_auth: RegistryAuth,
        dst_auth: RegistryAuth,
        compression: CompressionFormat,
    ) -> list[str]:
        """Return the argument vector for one copy."""
        return [
            self._executable,
            "copy",
            "--src-tls-verify=true",
            "--dest-tls-verify=true",
            "--src-creds",
            src_auth.as_creds(),
            "--dest-creds",
            dst_auth.as_creds(),
            "--dest-compress",
            "--dest-compress-format",
            str(compression),
            "--dest-force-compress-format",
            "--multi-arch",
            "all",
            f"docker://{src_ref}",
            f"docker://{dst_ref}",
        ]

    async def copy(
        self,
        src_ref: str,
        dst_ref: str,
        *,
        src_auth: RegistryAuth,
        dst_auth: RegistryAuth,
        compression: CompressionFormat,
    ) -> None:
        """Copy the image, killing skopeo if the awaiting task is cancelled.

        Raises
        ------
        CopyError
            If skopeo cannot be started or exits non-zero.

        """
        command = self.build_command(
            src_ref,
            dst_ref,
            src_auth=src_auth,
            dst_auth=dst_auth,
            compression=compression,
        )
        try:
            process = await self._process_factory(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise CopyError.unavailable(self._executable, exc) from exc

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise

        if process.returncode != 0:
            raise CopyError.failed(
                src_ref,
                process.returncode if process.returncode is not None else -1,
                stderr.decode("utf-8", errors="replace") if stderr else "",
            )
