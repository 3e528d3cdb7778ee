"""Root pytest configuration for ocipull tests."""
import os

import pytest

from ocipull.settings import Settings

from tests.fakes.fake_registry import AUTH_HOST, REGISTRY_HOST, FakeRegistry
from tests.helpers.oci_helpers import build_image


@pytest.fixture(autouse=True)
def test_env(monkeypatch, tmp_path):
    """Isolate tests from the caller's environment and Docker config."""
    for key in list(os.environ):
        if key.startswith("OCIPULL_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at the fake registry, pinned to linux/amd64."""
    return Settings(
        registry_url=f"https://{REGISTRY_HOST}",
        registry_namespace="library",
        auth_url=f"https://{AUTH_HOST}/token",
        auth_service=REGISTRY_HOST,
        cache_dir=str(tmp_path / "cache"),
        platform_arch="amd64",
        platform_os="linux",
    )


@pytest.fixture
def image():
    """Two-platform image (amd64 and arm64 linux)."""
    return build_image(platforms=[("amd64", "linux"), ("arm64", "linux")])


@pytest.fixture
def fake_registry(image):
    """Fake registry serving ``library/alpine:latest``."""
    registry = FakeRegistry()
    registry.add_image("library/alpine", "latest", image)
    return registry
