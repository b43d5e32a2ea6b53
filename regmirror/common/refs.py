"""Image reference and URL path helpers.

Repository paths are registry identifiers such as ``library/nginx``. They use
``/`` as a separator but are not filesystem paths, so they are handled with
these helpers rather than ``pathlib``.
"""

from __future__ import annotations

from urllib.parse import quote, urlsplit

_DEFAULT_SCHEME = "https"


def normalise_url_base(url_base: str) -> str:
    """Return ``url_base`` trimmed, without a trailing slash, with a scheme.

    Examples
    --------
    >>> normalise_url_base(" registry.example.com/ ")
    'https://registry.example.com'
    >>> normalise_url_base("http://harbor.local:8080")
    'http://harbor.local:8080'

    """
    trimmed = url_base.strip().rstrip("/")
    if "://" not in trimmed:
        trimmed = f"{_DEFAULT_SCHEME}://{trimmed}"
    return trimmed


def host_of(url_base: str) -> str:
    """Return the ``host[:port]`` part of a registry base URL."""
    return urlsplit(normalise_url_base(url_base)).netloc


def image_reference(host: str, repository: str, tag: str) -> str:
    """Build a ``host/repository:tag`` image reference.

    >>> image_reference("harbor.example.com", "library/nginx", "1.27")
    'harbor.example.com/library/nginx:1.27'

    """
    return f"{host}/{repository}:{tag}"


def quote_repository(repository: str) -> str:
    """Percent-encode a repository path for Registry v2 URLs, keeping ``/``."""
    return quote(repository, safe="/")


def quote_segment(value: str) -> str:
    """Percent-encode a single URL path segment, including ``/``."""
    return quote(value, safe="")
