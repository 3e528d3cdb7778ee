"""
Bearer token authentication for the OCI Distribution API.

Exchanges a requested access scope (``repository:<name>:pull``) for a
short-lived bearer token from the token service. Tokens are returned as
immutable ``Credential`` values; nothing here caches or persists them.
"""
from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlparse

import httpx

from .oci_errors import OciAuthError

logger = logging.getLogger(__name__)

__all__ = ["Credential", "DockerAuth", "TokenAuth"]


@dataclass(frozen=True)
class Credential:
    """Bearer token issued for one scope."""
    token: str
    scope: str = ""

    @property
    def authorization(self) -> str:
        """Value for the ``Authorization`` header."""
        return f"Bearer {self.token}"

    def __repr__(self) -> str:
        return f"Credential(scope={self.scope!r}, token=<redacted>)"


class DockerAuth:
    """Read basic credentials for a token service from the Docker config file."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or Path.home() / ".docker" / "config.json"

    def get_credentials(self, host: str) -> Optional[Tuple[str, str]]:
        """
        Get credentials for ``host`` from Docker config.

        Returns: (username, password) or None if not found
        """
        config = self._load_config()
        if not config:
            return None

        auths = config.get("auths", {})

        # Docker Hub stores its entry under the legacy index URL
        candidates = [host, f"https://{host}", f"https://{host}/v1/"]
        if host.endswith("docker.io"):
            candidates.append("https://index.docker.io/v1/")

        auth_entry = next((auths[key] for key in candidates if key in auths), None)
        if auth_entry is None:
            return None

        if "auth" in auth_entry:
            try:
                decoded = base64.b64decode(auth_entry["auth"]).decode()
            except (ValueError, UnicodeDecodeError) as e:
                logger.debug(f"Ignoring undecodable auth entry for {host}: {e}")
                return None
            if ":" in decoded:
                username, password = decoded.split(":", 1)
                return username, password

        if "username" in auth_entry and "password" in auth_entry:
            return auth_entry["username"], auth_entry["password"]

        return None

    def _load_config(self) -> Optional[dict]:
        if not self.config_path.exists():
            return None
        try:
            with open(self.config_path, 'r') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.debug(f"Failed to read Docker config {self.config_path}: {e}")
            return None


class TokenAuth:
    """
    Token service client.

    Each ``fetch_token`` call performs one fresh GET against the realm with
    ``scope`` and ``service`` query parameters and parses ``{"token": ...}``.
    """

    def __init__(self, realm: str, service: str, client: httpx.AsyncClient,
                 credentials: Optional[Tuple[str, str]] = None,
                 docker_auth: Optional[DockerAuth] = None):
        """
        Initialize token client.

        Args:
            realm: Token endpoint URL (e.g. "https://auth.docker.io/token")
            service: Service name sent with every request
            client: Shared async HTTP client
            credentials: Explicit (username, password) for the exchange
            docker_auth: Fallback credential source when none are given
        """
        self.realm = realm
        self.service = service
        self.client = client
        self.credentials = credentials
        self.docker_auth = docker_auth

    def _basic_auth(self) -> Optional[Tuple[str, str]]:
        if self.credentials:
            return self.credentials
        if self.docker_auth is not None:
            host = urlparse(self.realm).hostname or ""
            return self.docker_auth.get_credentials(host)
        return None

    async def fetch_token(self, scope: str) -> Credential:
        """
        Exchange ``scope`` for a bearer token.

        Raises:
            OciAuthError: On transport failure, non-2xx status, or a body
                without a token
        """
        params = {"scope": scope, "service": self.service}
        auth = self._basic_auth()
        logger.debug(f"Requesting token for {scope} from {self.realm} "
                     f"({'basic auth' if auth else 'anonymous'})")

        try:
            response = await self.client.get(self.realm, params=params, auth=auth)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise OciAuthError(
                f"Token service returned {e.response.status_code} for scope {scope}"
            ) from e
        except httpx.HTTPError as e:
            raise OciAuthError(f"Sending login request failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise OciAuthError(f"Token response is not valid JSON: {e}") from e

        token = None
        if isinstance(body, dict):
            token = body.get("token") or body.get("access_token")
        if not isinstance(token, str) or not token:
            raise OciAuthError("Token response does not contain a token")

        return Credential(token=token, scope=scope)
