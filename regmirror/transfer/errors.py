"""Errors raised by image copiers."""

from __future__ import annotations

_STDERR_PREVIEW_LIMIT = 2048


class CopyError(RuntimeError):
    """Raised when an image could not be copied to the destination."""

    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        """Record the copier exit status and diagnostics."""
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)

    @classmethod
    def failed(cls, src_ref: str, returncode: int, stderr: str) -> CopyError:
        """Return an error for a copier process that exited non-zero."""
        detail = stderr.strip()[-_STDERR_PREVIEW_LIMIT:]
        return cls(
            f"copy {src_ref} failed with exit code {returncode}: {detail}",
            returncode=returncode,
            stderr=stderr,
        )

    @classmethod
    def timed_out(cls, src_ref: str, timeout_s: float) -> CopyError:
        """Return an error for a copy that exceeded its wall-clock budget."""
        return cls(f"copy {src_ref} timed out after {timeout_s:g}s")

    @classmethod
    def unavailable(cls, executable: str, exc: OSError) -> CopyError:
        """Return an error when the copier executable cannot be started."""
        return cls(f"cannot start {executable}: {exc}")
