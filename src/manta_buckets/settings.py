"""
Settings and configuration for the Manta buckets client.

Centralizes configuration values and provides validation with fail-fast behavior.
Loads settings from environment variables when a client is built from the
environment.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass

__all__ = ["Settings", "create_settings_from_env", "DEFAULT_USER_AGENT"]

DEFAULT_USER_AGENT = "manta-buckets/0.1.0"


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for the buckets client and its HTTP transport.

    Service Settings:
        url: Manta endpoint URL (required), e.g. https://us-east.manta.example.com
        user: Account login that owns the buckets (required)
        insecure: Allow plain HTTP and skip TLS verification for local/dev use

    Transport Settings:
        http_timeout_s: Read/write/pool timeout in seconds
        connect_timeout_s: Connection establishment timeout in seconds
        http_retry: Connection attempts to retry for body-less requests (0=no retry)
        user_agent: User-Agent header sent with every request
    """
    url: str
    user: str
    insecure: bool = False
    http_timeout_s: float = 30.0
    connect_timeout_s: float = 5.0
    http_retry: int = 0
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self):
        """Validate settings on construction."""
        if not self.url:
            raise ValueError("url is required")

        # host[:port] or http(s)://host[:port][/path]
        url_pattern = r"^(?:https?://)?[a-zA-Z0-9.-]+(?::[0-9]+)?(?:/.*)?$"
        if not re.match(url_pattern, self.url):
            raise ValueError(f"Invalid url format: {self.url}")

        if self.url.startswith("http://") and not self.insecure:
            raise ValueError(f"Plain HTTP url requires insecure=True: {self.url}")

        if not self.user:
            raise ValueError("user is required")

        if "/" in self.user:
            raise ValueError(f"Invalid user: {self.user}. Must not contain '/'")

        if self.http_timeout_s <= 0:
            raise ValueError(f"http_timeout_s must be positive, got {self.http_timeout_s}")

        if self.connect_timeout_s <= 0:
            raise ValueError(f"connect_timeout_s must be positive, got {self.connect_timeout_s}")

        if self.http_retry < 0:
            raise ValueError(f"http_retry must be non-negative, got {self.http_retry}")

    @property
    def base_url(self) -> str:
        """Endpoint URL with a scheme, honoring the insecure flag."""
        if self.url.startswith("http"):
            return self.url.rstrip("/")
        scheme = "http" if self.insecure else "https"
        return f"{scheme}://{self.url}".rstrip("/")


def create_settings_from_env() -> Settings:
    """
    Load settings from environment variables.

    Environment Variables:
        - MANTA_URL (required)
        - MANTA_USER (required)
        - MANTA_TLS_INSECURE (default: false)
        - MANTA_TIMEOUT (default: 30.0)
        - MANTA_CONNECT_TIMEOUT (default: 5.0)
        - MANTA_HTTP_RETRY (default: 0)

    Returns:
        Settings object with validated configuration

    Raises:
        ValueError: If configuration is invalid or required values missing

    Note:
        Creates a fresh Settings instance every time (no caching).
    """
    def str_to_bool(value: str) -> bool:
        return value.lower() in ('true', '1', 'yes', 'on')

    def get_float(key: str, default: float) -> float:
        value = os.getenv(key)
        return float(value) if value else default

    def get_int(key: str, default: int) -> int:
        value = os.getenv(key)
        return int(value) if value else default

    url = os.getenv("MANTA_URL")
    user = os.getenv("MANTA_USER")

    if not url:
        raise ValueError("MANTA_URL environment variable is required")
    if not user:
        raise ValueError("MANTA_USER environment variable is required")

    return Settings(
        url=url,
        user=user,
        insecure=str_to_bool(os.getenv("MANTA_TLS_INSECURE", "false")),
        http_timeout_s=get_float("MANTA_TIMEOUT", 30.0),
        connect_timeout_s=get_float("MANTA_CONNECT_TIMEOUT", 5.0),
        http_retry=get_int("MANTA_HTTP_RETRY", 0),
    )
