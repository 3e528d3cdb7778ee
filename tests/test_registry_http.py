"""
Tests for the registry HTTP client.

Runs against the fake registry over httpx.MockTransport and checks request
shape (paths, Accept and Authorization headers) plus error mapping.
"""
from __future__ import annotations

import httpx
import pytest

from ocipull.settings import Settings
from ocipull.storage.auth import Credential
from ocipull.storage.oci_errors import (
    OciDecodeError,
    OciHttpError,
    OciNotFound,
    OciRateLimited,
    OciTransportError,
)
from ocipull.storage.oci_media_types import OCI_IMAGE_INDEX, OCI_IMAGE_MANIFEST
from ocipull.storage.registry_http import USER_AGENT, RegistryClient, build_http_client

from tests.fakes.fake_registry import REGISTRY_HOST

BASE_URL = f"https://{REGISTRY_HOST}/v2/library/"


def make_client(http_client, token="test-token", retries=0):
    return RegistryClient(BASE_URL, http_client, credential=Credential(token=token), retries=retries)


class TestRegistryClient:
    """Test index, manifest and blob fetches."""

    def test_base_url_gets_trailing_slash(self):
        client = RegistryClient(BASE_URL.rstrip("/"), httpx.AsyncClient())
        assert client.url_for("alpine", "manifests", "latest") == f"{BASE_URL}alpine/manifests/latest"

    def test_with_credential_returns_new_client(self):
        http_client = httpx.AsyncClient()
        original = RegistryClient(BASE_URL, http_client, retries=2)
        updated = original.with_credential(Credential(token="t"))

        assert original.credential is None
        assert updated.credential == Credential(token="t")
        assert updated.client is http_client
        assert updated.retries == 2

    @pytest.mark.asyncio
    async def test_fetch_index(self, fake_registry, image):
        async with fake_registry.client() as http_client:
            index = await make_client(http_client).fetch_index("alpine", "latest")

        assert index.platforms() == [("amd64", "linux"), ("arm64", "linux")]
        (request,) = fake_registry.registry_requests
        assert request.url.path == "/v2/library/alpine/manifests/latest"
        assert request.headers["Accept"] == OCI_IMAGE_INDEX
        assert request.headers["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    async def test_fetch_index_bytes_is_raw(self, fake_registry, image):
        async with fake_registry.client() as http_client:
            data = await make_client(http_client).fetch_index_bytes("alpine", "latest")

        assert data == image.index_bytes
        (request,) = fake_registry.registry_requests
        assert request.headers["Accept"] == OCI_IMAGE_INDEX

    @pytest.mark.asyncio
    async def test_fetch_manifest_bytes_is_raw(self, fake_registry, image):
        variant = image.variant("amd64", "linux")
        async with fake_registry.client() as http_client:
            data = await make_client(http_client).fetch_manifest_bytes("alpine", variant.manifest_digest)

        assert data == variant.manifest_bytes
        assert fake_registry.registry_requests[0].headers["Accept"] == OCI_IMAGE_MANIFEST

    @pytest.mark.asyncio
    async def test_fetch_blob(self, fake_registry, image):
        variant = image.variant("amd64", "linux")
        async with fake_registry.client() as http_client:
            data = await make_client(http_client).fetch_blob("alpine", variant.config_digest)

        assert data == variant.config_bytes
        request = fake_registry.registry_requests[0]
        assert request.url.path == f"/v2/library/alpine/blobs/{variant.config_digest}"
        assert request.headers["Accept"] == "*/*"

    @pytest.mark.asyncio
    async def test_unknown_tag_is_not_found(self, fake_registry):
        async with fake_registry.client() as http_client:
            with pytest.raises(OciNotFound) as exc_info:
                await make_client(http_client).fetch_index("alpine", "missing")
        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_wrong_token_is_http_error(self, fake_registry):
        async with fake_registry.client() as http_client:
            with pytest.raises(OciHttpError, match="Authentication failed") as exc_info:
                await make_client(http_client, token="wrong").fetch_index("alpine", "latest")
        assert exc_info.value.status == 401
        assert not isinstance(exc_info.value, OciNotFound)

    @pytest.mark.asyncio
    async def test_rate_limited(self, fake_registry):
        fake_registry.override("/v2/library/alpine/manifests/latest", httpx.Response(429))
        async with fake_registry.client() as http_client:
            with pytest.raises(OciRateLimited):
                await make_client(http_client).fetch_index("alpine", "latest")

    @pytest.mark.asyncio
    async def test_server_error(self, fake_registry):
        fake_registry.override("/v2/library/alpine/manifests/latest", httpx.Response(503))
        async with fake_registry.client() as http_client:
            with pytest.raises(OciHttpError) as exc_info:
                await make_client(http_client).fetch_index("alpine", "latest")
        assert exc_info.value.status == 503

    @pytest.mark.asyncio
    async def test_non_index_body_is_decode_error(self, fake_registry):
        fake_registry.override(
            "/v2/library/alpine/manifests/latest",
            httpx.Response(200, json={"schemaVersion": 1, "manifests": []}),
        )
        async with fake_registry.client() as http_client:
            with pytest.raises(OciDecodeError, match="Invalid image index"):
                await make_client(http_client).fetch_index("alpine", "latest")

    @pytest.mark.asyncio
    async def test_connect_error_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            with pytest.raises(OciTransportError, match="Network error"):
                await make_client(http_client).fetch_index("alpine", "latest")

    @pytest.mark.asyncio
    async def test_timeout_retried(self, fake_registry):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ReadTimeout("timed out", request=request)
            return fake_registry.handler(request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            index = await make_client(http_client, retries=1).fetch_index("alpine", "latest")

        assert len(attempts) == 2
        assert len(index.manifests) == 2

    @pytest.mark.asyncio
    async def test_timeout_not_retried_by_default(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ReadTimeout("timed out", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            with pytest.raises(OciTransportError):
                await make_client(http_client).fetch_index("alpine", "latest")

        assert len(attempts) == 1


class TestBuildHttpClient:
    """Test shared client construction."""

    @pytest.mark.asyncio
    async def test_default_headers(self, fake_registry):
        async with build_http_client(Settings(), transport=fake_registry.transport()) as client:
            await client.get(f"https://{REGISTRY_HOST}/v2/")

        request = fake_registry.requests[0]
        assert request.headers["User-Agent"] == USER_AGENT
        assert request.headers["Docker-Distribution-Api-Version"] == "registry/2.0"

    @pytest.mark.asyncio
    async def test_timeout_from_settings(self):
        async with build_http_client(Settings(http_timeout_s=12.0)) as client:
            assert client.timeout.read == 12.0
            assert client.timeout.connect == 5.0
