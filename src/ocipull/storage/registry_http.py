"""
Registry HTTP Client for OCI Distribution API.

Provides async HTTP-based pull operations (index, manifest, blob) against a
registry API root. The client holds an immutable bearer ``Credential``;
re-authenticating produces a new client that shares the same connection pool.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .. import __version__
from ..models import ImageIndex
from ..settings import Settings
from .auth import Credential
from .oci_errors import (
    OciDecodeError,
    OciHttpError,
    OciNotFound,
    OciRateLimited,
    OciTransportError,
)
from .oci_media_types import (
    DISTRIBUTION_API_VERSION,
    DISTRIBUTION_API_VERSION_HEADER,
    OCI_IMAGE_INDEX,
    OCI_IMAGE_MANIFEST,
)

logger = logging.getLogger(__name__)

__all__ = ["RegistryClient", "build_http_client", "USER_AGENT"]

USER_AGENT = f"ocipull/{__version__}"

_RETRYABLE = (httpx.ConnectTimeout, httpx.ReadTimeout, httpx.TimeoutException)


def build_http_client(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    Build the async HTTP client shared by the token exchange and the registry.

    Certificate validation stays on unless ``settings.registry_insecure``
    opts out.

    Args:
        settings: Timeout and TLS policy source
        transport: Optional transport override (tests use ``httpx.MockTransport``)
    """
    timeout = settings.http_timeout_s
    return httpx.AsyncClient(
        timeout=httpx.Timeout(connect=min(5.0, timeout), read=timeout, write=timeout, pool=5.0),
        follow_redirects=True,
        verify=not settings.registry_insecure,
        headers={
            "User-Agent": USER_AGENT,
            DISTRIBUTION_API_VERSION_HEADER: DISTRIBUTION_API_VERSION,
        },
        transport=transport,
    )


class RegistryClient:
    """
    Async client for the pull side of the OCI Distribution API.

    Bound to a registry API root (e.g. "https://registry-1.docker.io/v2/library/");
    image paths are resolved relative to it.
    """

    def __init__(self, base_url: str, client: httpx.AsyncClient,
                 credential: Optional[Credential] = None, retries: int = 0):
        """
        Initialize registry client.

        Args:
            base_url: Registry API root; a trailing '/' is added if missing
            client: Shared async HTTP client (connection pool)
            credential: Bearer credential sent with every request
            retries: Extra attempts for timed-out requests
        """
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.client = client
        self.credential = credential
        self.retries = retries

    def with_credential(self, credential: Credential) -> RegistryClient:
        """Return a client holding ``credential``, sharing this client's pool."""
        return RegistryClient(self.base_url, self.client, credential=credential, retries=self.retries)

    def url_for(self, image: str, kind: str, ref: str) -> str:
        """Build ``<base>/<image>/<kind>/<ref>``."""
        return f"{self.base_url}{image}/{kind}/{ref}"

    async def fetch_index(self, image: str, reference: str) -> ImageIndex:
        """
        Fetch and parse the image index for a tag or digest.

        Args:
            image: Image name relative to the API root
            reference: Tag or digest

        Returns:
            Parsed ImageIndex

        Raises:
            OciNotFound: If the image or reference does not exist
            OciHttpError: For other non-2xx responses
            OciDecodeError: If the body is not an OCI image index
        """
        data = await self.fetch_index_bytes(image, reference)
        try:
            return ImageIndex.parse(data)
        except ValidationError as e:
            raise OciDecodeError(f"Invalid image index for {image}:{reference}: {e}") from e

    async def fetch_index_bytes(self, image: str, reference: str) -> bytes:
        """
        Fetch the image index for a tag or digest as raw bytes.

        Returned unparsed so callers can verify and persist the exact document.
        """
        response = await self._get(
            self.url_for(image, "manifests", reference),
            accept=OCI_IMAGE_INDEX,
            what=f"index {image}:{reference}",
        )
        return response.content

    async def fetch_manifest_bytes(self, image: str, digest: str) -> bytes:
        """
        Fetch a manifest by digest as raw bytes.

        Returned unparsed so callers can verify the digest before decoding.
        """
        response = await self._get(
            self.url_for(image, "manifests", digest),
            accept=OCI_IMAGE_MANIFEST,
            what=f"manifest {image}@{digest}",
        )
        return response.content

    async def fetch_blob(self, image: str, digest: str) -> bytes:
        """Fetch a blob by digest as raw bytes."""
        response = await self._get(
            self.url_for(image, "blobs", digest),
            accept=None,
            what=f"blob {image}@{digest}",
        )
        return response.content

    def _headers(self, accept: Optional[str]) -> Dict[str, str]:
        headers = {}
        if accept:
            headers["Accept"] = accept
        if self.credential is not None:
            headers["Authorization"] = self.credential.authorization
        return headers

    async def _get(self, url: str, accept: Optional[str], what: str) -> httpx.Response:
        """GET with timeout retries, mapping failures onto the OCI error taxonomy."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retries + 1),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception_type(_RETRYABLE),
                reraise=True,
            ):
                with attempt:
                    response = await self.client.get(url, headers=self._headers(accept))
        except httpx.HTTPError as e:
            raise OciTransportError(f"Network error fetching {what}: {e}") from e

        logger.debug(f"GET {url} -> {response.status_code}")

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 404:
                raise OciNotFound(f"Not found: {what}") from e
            if status == 429:
                raise OciRateLimited(f"Rate limited fetching {what}") from e
            if status in (401, 403):
                raise OciHttpError(f"Authentication failed for {what} ({status})", status) from e
            raise OciHttpError(f"Registry error {status} fetching {what}", status) from e

        return response
