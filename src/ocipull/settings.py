"""
Settings and configuration for ocipull.

Centralizes configuration values and provides validation with fail-fast behavior.
Loads settings from environment variables at construction time.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .storage.oci_media_types import REPOSITORY_NAME_PATTERN

__all__ = ["Settings", "create_settings_from_env"]

DEFAULT_REGISTRY_URL = "https://registry-1.docker.io"
DEFAULT_NAMESPACE = "library"
DEFAULT_AUTH_URL = "https://auth.docker.io/token"
DEFAULT_AUTH_SERVICE = "registry.docker.io"


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for a pull.

    Registry Settings:
        registry_url: Registry root URL, without the /v2/ suffix
        registry_namespace: Repository namespace images live under (Docker Hub: "library")
        registry_insecure: Skip TLS certificate validation (opt-in only)
        registry_user: Username for the token exchange
        registry_pass: Password for the token exchange
        http_timeout_s: HTTP request timeout in seconds
        http_retry: Number of retries for timed-out requests (0=no retry)

    Token Service Settings:
        auth_url: Token endpoint (the bearer realm)
        auth_service: Value of the ``service`` query parameter

    Layout Settings:
        cache_dir: Root under which image layouts are written
        layer_concurrency: Max concurrent layer fetches when layers are pulled

    Platform Settings:
        platform_arch: Override detected host architecture
        platform_os: Override detected host OS
    """
    registry_url: str = DEFAULT_REGISTRY_URL
    registry_namespace: str = DEFAULT_NAMESPACE
    registry_insecure: bool = False
    registry_user: Optional[str] = None
    registry_pass: Optional[str] = None
    http_timeout_s: float = 30.0
    http_retry: int = 0

    auth_url: str = DEFAULT_AUTH_URL
    auth_service: str = DEFAULT_AUTH_SERVICE

    cache_dir: str = ".cache"
    layer_concurrency: int = 4

    platform_arch: Optional[str] = None
    platform_os: Optional[str] = None

    def __post_init__(self):
        """Validate settings on construction."""
        if not self.registry_url:
            raise ValueError("registry_url is required")

        # Should be host[:port] or https://host[:port]
        url_pattern = r"^(?:https?://)?[a-zA-Z0-9.-]+(?::[0-9]+)?/?$"
        if not re.match(url_pattern, self.registry_url):
            raise ValueError(f"Invalid registry_url format: {self.registry_url}")

        # Namespace may be empty for registries serving top-level repositories
        ns_pattern = r"^(?:[a-z0-9][a-z0-9._-]*(?:/[a-z0-9][a-z0-9._-]*)*)?$"
        if not re.match(ns_pattern, self.registry_namespace):
            raise ValueError(
                f"Invalid registry_namespace format: {self.registry_namespace}. "
                "Must follow OCI naming conventions."
            )

        if not re.match(r"^https?://", self.auth_url or ""):
            raise ValueError(f"Invalid auth_url format: {self.auth_url}")

        if not self.auth_service:
            raise ValueError("auth_service is required")

        if self.http_timeout_s <= 0:
            raise ValueError(f"http_timeout_s must be positive, got {self.http_timeout_s}")

        if self.http_retry < 0:
            raise ValueError(f"http_retry must be non-negative, got {self.http_retry}")

        if self.layer_concurrency < 1:
            raise ValueError(f"layer_concurrency must be at least 1, got {self.layer_concurrency}")

        if not self.cache_dir:
            raise ValueError("cache_dir is required")

        if self.registry_user and not self.registry_pass:
            raise ValueError("registry_user specified but registry_pass is missing")
        if self.registry_pass and not self.registry_user:
            raise ValueError("registry_pass specified but registry_user is missing")

    @property
    def api_base_url(self) -> str:
        """Registry API root including the namespace, always ending in '/'."""
        url = self.registry_url.rstrip("/")
        if not re.match(r"^https?://", url):
            url = f"{'http' if self.registry_insecure else 'https'}://{url}"
        if self.registry_namespace:
            return f"{url}/v2/{self.registry_namespace}/"
        return f"{url}/v2/"

    def repository(self, image: str) -> str:
        """Fully qualified repository path for ``image``."""
        if not image:
            raise ValueError("image cannot be empty")
        if not re.match(REPOSITORY_NAME_PATTERN, image):
            raise ValueError(f"Invalid image name: {image!r}")
        if self.registry_namespace:
            return f"{self.registry_namespace}/{image}"
        return image

    def scope_for(self, image: str) -> str:
        """Token scope granting pull access to ``image``."""
        return f"repository:{self.repository(image)}:pull"

    def layout_dir_for(self, image: str) -> Path:
        """Deterministic image layout directory for ``image``."""
        return Path(self.cache_dir) / "images" / self.repository(image)


def create_settings_from_env() -> Settings:
    """
    Load settings from environment variables.

    Environment Variables:
        - OCIPULL_REGISTRY_URL (default: https://registry-1.docker.io)
        - OCIPULL_REGISTRY_NAMESPACE (default: library)
        - OCIPULL_REGISTRY_INSECURE (default: false)
        - OCIPULL_REGISTRY_USERNAME (optional)
        - OCIPULL_REGISTRY_PASSWORD (optional)
        - OCIPULL_HTTP_TIMEOUT (default: 30.0)
        - OCIPULL_HTTP_RETRY (default: 0)
        - OCIPULL_AUTH_URL (default: https://auth.docker.io/token)
        - OCIPULL_AUTH_SERVICE (default: registry.docker.io)
        - OCIPULL_CACHE_DIR (default: .cache)
        - OCIPULL_LAYER_CONCURRENCY (default: 4)
        - OCIPULL_PLATFORM_ARCH (optional)
        - OCIPULL_PLATFORM_OS (optional)

    Returns:
        Settings object with validated configuration

    Raises:
        ValueError: If configuration is invalid

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

    return Settings(
        registry_url=os.getenv("OCIPULL_REGISTRY_URL", DEFAULT_REGISTRY_URL),
        registry_namespace=os.getenv("OCIPULL_REGISTRY_NAMESPACE", DEFAULT_NAMESPACE),
        registry_insecure=str_to_bool(os.getenv("OCIPULL_REGISTRY_INSECURE", "false")),
        registry_user=os.getenv("OCIPULL_REGISTRY_USERNAME"),
        registry_pass=os.getenv("OCIPULL_REGISTRY_PASSWORD"),
        http_timeout_s=get_float("OCIPULL_HTTP_TIMEOUT", 30.0),
        http_retry=get_int("OCIPULL_HTTP_RETRY", 0),
        auth_url=os.getenv("OCIPULL_AUTH_URL", DEFAULT_AUTH_URL),
        auth_service=os.getenv("OCIPULL_AUTH_SERVICE", DEFAULT_AUTH_SERVICE),
        cache_dir=os.getenv("OCIPULL_CACHE_DIR", ".cache"),
        layer_concurrency=get_int("OCIPULL_LAYER_CONCURRENCY", 4),
        platform_arch=os.getenv("OCIPULL_PLATFORM_ARCH") or None,
        platform_os=os.getenv("OCIPULL_PLATFORM_OS") or None,
    )
