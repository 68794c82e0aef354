"""
Configuration for the authstate backing store.

Settings are plain dataclasses. ``StoreConfig.from_env`` reads the same
``MONGO_URL`` variable the surrounding application uses, after loading a
``.env`` file into the process environment.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from .types import ConfigurationError


DEFAULT_DATABASE = "authstate"
DEFAULT_COLLECTION = "auth"


@dataclass
class RetryPolicy:
    """How often to retry the initial backing store connection."""

    max_attempts: int = 1
    """Total connection attempts, including the first."""

    delay: timedelta = field(default_factory=lambda: timedelta(seconds=2))
    """Delay between attempts."""

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be at least 1, got {self.max_attempts}")


@dataclass
class StoreConfig:
    """Configuration for the backing document store."""

    url: str
    """Connection string; the scheme selects the backend."""

    database: Optional[str] = None
    """Database name. Defaults to the URL's database, then ``authstate``."""

    collection: str = DEFAULT_COLLECTION
    """Collection holding the credential and key documents."""

    connect_timeout: timedelta = field(default_factory=lambda: timedelta(seconds=10))
    """Upper bound on a single connection attempt."""

    retry: RetryPolicy = field(default_factory=RetryPolicy)
    """Connection retry policy."""

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigurationError("Store URL must not be empty")
        if self.connect_timeout <= timedelta(0):
            raise ConfigurationError("connect_timeout must be positive")

    @property
    def scheme(self) -> str:
        """The URL scheme, e.g. ``mongodb`` or ``memory``."""
        scheme, sep, _ = self.url.partition("://")
        if not sep:
            raise ConfigurationError(f"Store URL has no scheme: {self.url!r}")
        return scheme.lower()

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[str] = None,
        dotenv_override: bool = False,
    ) -> "StoreConfig":
        """
        Build a configuration from environment variables.

        Reads ``MONGO_URL`` (required), ``AUTHSTATE_DB``,
        ``AUTHSTATE_COLLECTION``, ``AUTHSTATE_CONNECT_TIMEOUT`` (seconds)
        and ``AUTHSTATE_CONNECT_ATTEMPTS``.

        When ``environ`` is not given, a ``.env`` file is first loaded into
        the process environment: ``dotenv_path`` if set, otherwise the
        nearest ``.env`` above the working directory. Variables already set
        win unless ``dotenv_override`` is true.

        Raises:
            ConfigurationError: If ``MONGO_URL`` is unset or a value is invalid.
        """
        if environ is None:
            load_dotenv(dotenv_path or find_dotenv(usecwd=True), override=dotenv_override)
            environ = os.environ

        url = environ.get("MONGO_URL")
        if not url:
            raise ConfigurationError("MONGO_URL is not set")

        try:
            timeout = float(environ.get("AUTHSTATE_CONNECT_TIMEOUT", "10"))
            attempts = int(environ.get("AUTHSTATE_CONNECT_ATTEMPTS", "1"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid authstate setting: {e}") from e

        return cls(
            url=url,
            database=environ.get("AUTHSTATE_DB") or None,
            collection=environ.get("AUTHSTATE_COLLECTION") or DEFAULT_COLLECTION,
            connect_timeout=timedelta(seconds=timeout),
            retry=RetryPolicy(max_attempts=attempts),
        )
