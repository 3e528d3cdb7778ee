"""
Operations Facade - Application service layer.

Provides a synchronous interface between the CLI and the async pull
pipeline, centralizing configuration and client lifetime while keeping CLI
commands thin and testable.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from ..models import ImageReference
from ..platform import host_platform
from ..pull import Puller, PullResult
from ..settings import Settings, create_settings_from_env
from ..storage.registry_http import build_http_client


@dataclass(frozen=True)
class OpsConfig:
    """
    Configuration for Operations facade.

    Per-invocation policy that does not belong in environment settings.
    """
    fetch_layers: bool = False    # Also pull layer blobs
    verbose: bool = False         # Show detailed output


class Operations:
    """
    Application service facade for CLI operations.

    One method per CLI verb. Exceptions bubble up unchanged for central
    mapping in ``run_and_exit``.
    """

    def __init__(self, config: OpsConfig, settings: Optional[Settings] = None):
        """
        Initialize Operations facade.

        Args:
            config: Configuration settings
            settings: Optional settings (if None, loaded from environment)
        """
        self.cfg = config
        if settings is None:
            settings = create_settings_from_env()
        self.settings = settings

    def pull(self, image: str, reference: str, dest: Optional[Union[str, Path]] = None) -> PullResult:
        """Pull ``image``/``reference`` into an image layout."""
        ref = ImageReference(name=image, reference=reference)
        return asyncio.run(self._pull(ref, dest))

    async def _pull(self, ref: ImageReference, dest: Optional[Union[str, Path]]) -> PullResult:
        async with build_http_client(self.settings) as client:
            puller = Puller(self.settings, http_client=client)
            return await puller.pull(ref, dest=dest, fetch_layers=self.cfg.fetch_layers)

    def platform(self) -> Tuple[str, str]:
        """Platform pulls select for, after settings overrides."""
        return host_platform(self.settings.platform_arch, self.settings.platform_os)
