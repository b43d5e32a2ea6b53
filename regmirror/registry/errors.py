"""Errors raised by registry clients and the existence checker."""

from __future__ import annotations

_BODY_PREVIEW_LIMIT = 512


def _preview(body: str) -> str:
    text = body.strip()
    if len(text) <= _BODY_PREVIEW_LIMIT:
        return text
    return f"{text[:_BODY_PREVIEW_LIMIT]}..."


class RegistryError(Exception):
    """Base class for registry API errors."""


class RegistryConfigError(RegistryError):
    """Raised when a registry endpoint cannot be served by any client."""

    @classmethod
    def unsupported_backend(cls, backend: object) -> RegistryConfigError:
        """Return an error for a backend type without a client implementation."""
        return cls(f"unsupported registry type: {backend}")


class ListError(RegistryError):
    """Raised when a listing endpoint answers with a non-200 status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        """Record the HTTP status and response body for diagnostics."""
        self.status_code = status_code
        self.body = body
        super().__init__(message)

    @classmethod
    def http_error(cls, what: str, status_code: int, body: str) -> ListError:
        """Return an error for a non-200 listing response."""
        return cls(
            f"{what} API error {status_code}: {_preview(body)}",
            status_code=status_code,
            body=body,
        )

    @classmethod
    def transport(cls, what: str, exc: Exception) -> ListError:
        """Return an error for a request that never produced a response."""
        return cls(f"{what} request failed: {exc}")


class ParseError(RegistryError):
    """Raised when a response body does not match the expected schema."""

    @classmethod
    def for_body(cls, what: str, exc: Exception) -> ParseError:
        """Return an error wrapping the decoder failure."""
        return cls(f"parse {what} failed: {exc}")


class InvalidPathError(RegistryError):
    """Raised when a Harbor repository path lacks its project segment."""

    def __init__(self, repository: str) -> None:
        """Initialise with the offending repository path."""
        self.repository = repository
        super().__init__(
            f"invalid repo path: must be project/repository, got {repository}"
        )


class NotFoundError(RegistryError):
    """Raised when a repository has no tags or tagged artifacts."""

    def __init__(self, repository: str) -> None:
        """Initialise with the repository that yielded nothing."""
        self.repository = repository
        super().__init__(f"no tags found for {repository}")


class CheckError(RegistryError):
    """Raised when the manifest probe returns neither 200 nor 404."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        """Record the HTTP status and response body for diagnostics."""
        self.status_code = status_code
        self.body = body
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int, body: str) -> CheckError:
        """Return an error for an unexpected manifest status."""
        return cls(
            f"check existence API error {status_code}: {_preview(body)}",
            status_code=status_code,
            body=body,
        )

    @classmethod
    def transport(cls, exc: Exception) -> CheckError:
        """Return an error for a manifest request that never got a response."""
        return cls(f"check existence failed: {exc}")
