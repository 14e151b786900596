"""Unified configuration for Retail Core.

This module provides a single configuration class describing how to reach
the external data store. It is used by the store client, the report API
and the command-line tool.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping
from urllib.parse import urlparse

from retail_core.exceptions import ConfigError

ENV_URL = "RETAIL_STORE_URL"
ENV_KEY = "RETAIL_STORE_KEY"
ENV_TIMEOUT = "RETAIL_STORE_TIMEOUT"
ENV_RETRIES = "RETAIL_STORE_RETRIES"
ENV_SCHEMA = "RETAIL_STORE_SCHEMA"

DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRIES = 0


@dataclass
class StoreConfig:
    """Connection settings for the hosted data store.

    Attributes:
        base_url: REST root of the store, e.g. ``https://xyz.example.co/rest/v1``.
        api_key: Key sent as the ``apikey`` header and as a bearer token.
            None for stores that do not require one.
        timeout: Default timeout in seconds for every request.
        retries: Number of retry attempts for failed requests. Defaults to 0,
            every failure is terminal for the action that caused it.
        schema: Optional database schema sent as ``Accept-Profile`` /
            ``Content-Profile``.
    """

    base_url: str
    api_key: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    retries: int = DEFAULT_RETRIES
    schema: str | None = None

    def __post_init__(self) -> None:
        parsed = urlparse(self.base_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigError(f"Invalid data store URL: {self.base_url!r}")
        self.base_url = self.base_url.rstrip("/")
        if self.timeout <= 0:
            raise ConfigError(f"Timeout must be positive, got {self.timeout}")
        if self.retries < 0:
            raise ConfigError(f"Retries must be >= 0, got {self.retries}")

    @classmethod
    def from_url(
        cls,
        base_url: str,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
    ) -> StoreConfig:
        """Create a StoreConfig from a URL and optional key.

        Examples:
            >>> config = StoreConfig.from_url("https://db.example.com/rest/v1/")
            >>> config.base_url
            'https://db.example.com/rest/v1'

        """
        return cls(base_url=base_url, api_key=api_key, timeout=timeout, retries=retries)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> StoreConfig:
        """Create a StoreConfig from environment variables.

        Reads RETAIL_STORE_URL (required), RETAIL_STORE_KEY,
        RETAIL_STORE_TIMEOUT, RETAIL_STORE_RETRIES and RETAIL_STORE_SCHEMA.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Raises:
            ConfigError: If the URL is missing or a numeric setting is invalid.

        """
        env = os.environ if environ is None else environ

        base_url = env.get(ENV_URL)
        if not base_url:
            raise ConfigError(f"{ENV_URL} must be set to the data store REST URL")

        try:
            timeout = float(env.get(ENV_TIMEOUT, DEFAULT_TIMEOUT))
            retries = int(env.get(ENV_RETRIES, DEFAULT_RETRIES))
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

        return cls(
            base_url=base_url,
            api_key=env.get(ENV_KEY) or None,
            timeout=timeout,
            retries=retries,
            schema=env.get(ENV_SCHEMA) or None,
        )
