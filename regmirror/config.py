"""Environment driven configuration for a mirror run.

Example:
    config = MirrorConfig.from_env()
    url = config.engine_url()

Variables are read from the process environment after an optional ``.env``
file has been loaded with :func:`load_env_file`; real environment variables
always win over the file.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import os
import typing as typ

from dotenv import load_dotenv
from sqlalchemy.engine import URL

from regmirror.logging import normalize_log_level
from regmirror.registry.client import DEFAULT_HTTP_TIMEOUT_S
from regmirror.registry.models import BackendType, RegistryEndpoint
from regmirror.sync.models import DEFAULT_CONCURRENCY, DEFAULT_COPY_TIMEOUT_S

if typ.TYPE_CHECKING:
    from pathlib import Path

DATABASE_URL_ENV = "REGMIRROR_DATABASE_URL"
_DB_DRIVER = "postgresql+asyncpg"


class ConfigError(ValueError):
    """Raised when required configuration is missing or malformed."""

    def __init__(self, variable: str, message: str) -> None:
        """Name the offending variable alongside the message."""
        self.variable = variable
        super().__init__(message)

    @classmethod
    def missing(cls, variable: str) -> ConfigError:
        """Return an error for an unset or blank variable."""
        return cls(variable, f"{variable} is required")

    @classmethod
    def invalid(cls, variable: str, value: str, expected: str) -> ConfigError:
        """Return an error for a value that cannot be parsed."""
        return cls(variable, f"{variable} must be {expected}, got {value!r}")


def load_env_file(path: str | Path | None = None) -> bool:
    """Load ``.env`` style variables without overriding the environment.

    Returns True when a file was found and read.
    """
    return load_dotenv(dotenv_path=path, override=False)


def _required(env: cabc.Mapping[str, str], name: str) -> str:
    value = env.get(name, "").strip()
    if not value:
        raise ConfigError.missing(name)
    return value


def _positive_int(env: cabc.Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError.invalid(name, raw, "a positive integer") from exc
    if value <= 0:
        raise ConfigError.invalid(name, raw, "a positive integer")
    return value


def _positive_float(env: cabc.Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError.invalid(name, raw, "a positive number") from exc
    if value <= 0:
        raise ConfigError.invalid(name, raw, "a positive number")
    return value


def _endpoint(env: cabc.Mapping[str, str], prefix: str) -> RegistryEndpoint:
    type_var = f"{prefix}_TYPE"
    raw_type = _required(env, type_var).lower()
    try:
        backend = BackendType(raw_type)
    except ValueError as exc:
        raise ConfigError.invalid(type_var, raw_type, "'harbor' or 'acr'") from exc
    return RegistryEndpoint(
        url_base=_required(env, f"{prefix}_URLBASE"),
        username=_required(env, f"{prefix}_USER"),
        password=_required(env, f"{prefix}_PASSWORD"),
        backend=backend,
    )


@dataclasses.dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """PostgreSQL connection settings for the record store."""

    host: str
    port: int
    user: str
    password: str = dataclasses.field(repr=False)
    name: str

    @classmethod
    def from_env(cls, env: cabc.Mapping[str, str] | None = None) -> DatabaseConfig:
        """Read ``DB_HOST``, ``DB_PORT``, ``DB_USER``, ``DB_PASSWORD`` and ``DB_NAME``.

        Raises
        ------
        ConfigError
            If a variable is missing or ``DB_PORT`` is not a positive integer.

        """
        source = os.environ if env is None else env
        raw_port = _required(source, "DB_PORT")
        try:
            port = int(raw_port)
        except ValueError as exc:
            raise ConfigError.invalid("DB_PORT", raw_port, "a positive integer") from exc
        if port <= 0:
            raise ConfigError.invalid("DB_PORT", raw_port, "a positive integer")
        return cls(
            host=_required(source, "DB_HOST"),
            port=port,
            user=_required(source, "DB_USER"),
            password=_required(source, "DB_PASSWORD"),
            name=_required(source, "DB_NAME"),
        )

    def url(self) -> URL:
        """Return the asyncpg SQLAlchemy URL for these settings."""
        return URL.create(
            _DB_DRIVER,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.name,
        )


@dataclasses.dataclass(frozen=True, slots=True)
class MirrorConfig:
    """Everything a sync run needs besides the input path.

    Attributes
    ----------
    source, destination
        Registry endpoints read from the ``SRC_*`` and ``DST_*`` variables.
    database
        Assembled PostgreSQL settings, or None when ``REGMIRROR_DATABASE_URL``
        replaces them.
    database_url
        Explicit SQLAlchemy URL override.
    concurrency
        Work items processed at once (``REGMIRROR_CONCURRENCY``).
    copy_timeout_s
        Per-copy budget in seconds (``REGMIRROR_COPY_TIMEOUT_S``).
    http_timeout_s
        Registry API request timeout (``REGMIRROR_HTTP_TIMEOUT_S``).
    log_level
        Normalised femtologging level (``REGMIRROR_LOG_LEVEL``).
    rejected_log_level
        Raw ``REGMIRROR_LOG_LEVEL`` value replaced by ``INFO``, if any.

    """

    source: RegistryEndpoint
    destination: RegistryEndpoint
    database: DatabaseConfig | None = None
    database_url: str | None = None
    concurrency: int = DEFAULT_CONCURRENCY
    copy_timeout_s: float = DEFAULT_COPY_TIMEOUT_S
    http_timeout_s: float = DEFAULT_HTTP_TIMEOUT_S
    log_level: str = "INFO"
    rejected_log_level: str | None = None

    @classmethod
    def from_env(cls, env: cabc.Mapping[str, str] | None = None) -> MirrorConfig:
        """Build configuration from environment variables.

        Raises
        ------
        ConfigError
            If a required variable is missing or any value is invalid.

        """
        source = os.environ if env is None else env

        database_url = source.get(DATABASE_URL_ENV, "").strip() or None
        database = None if database_url else DatabaseConfig.from_env(source)

        raw_level = source.get("REGMIRROR_LOG_LEVEL", "").strip()
        log_level, invalid_level = normalize_log_level(raw_level)

        return cls(
            source=_endpoint(source, "SRC"),
            destination=_endpoint(source, "DST"),
            database=database,
            database_url=database_url,
            concurrency=_positive_int(
                source, "REGMIRROR_CONCURRENCY", DEFAULT_CONCURRENCY
            ),
            copy_timeout_s=_positive_float(
                source, "REGMIRROR_COPY_TIMEOUT_S", DEFAULT_COPY_TIMEOUT_S
            ),
            http_timeout_s=_positive_float(
                source, "REGMIRROR_HTTP_TIMEOUT_S", DEFAULT_HTTP_TIMEOUT_S
            ),
            log_level=log_level,
            rejected_log_level=raw_level if raw_level and invalid_level else None,
        )

    def engine_url(self) -> str | URL:
        """Return the URL the record store engine connects to."""
        if self.database_url:
            return self.database_url
        if self.database is None:
            raise ConfigError.missing(DATABASE_URL_ENV)
        return self.database.url()
