"""
Test Operations facade wiring.

Validates that the facade builds the shared client from its settings,
applies OpsConfig policy to the pull, and lets errors bubble up unchanged.
"""
from __future__ import annotations

from dataclasses import replace
from unittest.mock import patch

import httpx
import pytest

from ocipull.operations import Operations, OpsConfig
from ocipull.storage.oci_errors import NoMatchingPlatform, PullFailed, PullStage


@pytest.fixture
def patched_client(fake_registry):
    clients = []

    def fake_client(settings):
        clients.append(settings)
        return httpx.AsyncClient(transport=fake_registry.transport())

    with patch("ocipull.operations.facade.build_http_client", side_effect=fake_client):
        yield clients


class TestOperationsFacade:
    """Test Operations facade orchestration."""

    def test_facade_initialization(self, settings):
        config = OpsConfig(fetch_layers=True)
        ops = Operations(config=config, settings=settings)

        assert ops.cfg is config
        assert ops.settings is settings

    def test_settings_loaded_from_env(self, monkeypatch):
        monkeypatch.setenv("OCIPULL_REGISTRY_NAMESPACE", "team")
        ops = Operations(config=OpsConfig())
        assert ops.settings.registry_namespace == "team"

    def test_pull_uses_settings_for_client(self, settings, patched_client):
        result = Operations(OpsConfig(), settings=settings).pull("alpine", "latest")

        assert patched_client == [settings]
        assert result.layout_dir == settings.layout_dir_for("alpine")
        assert result.layers_fetched == []

    def test_fetch_layers_policy_applied(self, settings, patched_client, image):
        result = Operations(OpsConfig(fetch_layers=True), settings=settings).pull("alpine", "latest")
        assert result.layers_fetched == image.variant("amd64", "linux").layer_digests

    def test_errors_bubble_up(self, settings, patched_client):
        ops = Operations(OpsConfig(), settings=replace(settings, platform_os="windows"))

        with pytest.raises(PullFailed) as exc_info:
            ops.pull("alpine", "latest")

        assert exc_info.value.stage is PullStage.SELECT_MANIFEST
        assert isinstance(exc_info.value.__cause__, NoMatchingPlatform)

    def test_platform_uses_overrides(self, settings):
        assert Operations(OpsConfig(), settings=settings).platform() == ("amd64", "linux")
