"""
Image pull pipeline.

Sequences authentication, index fetch, platform selection, manifest and
config fetch, and persistence into an OCI Image Layout. Each stage finishes
before the next starts; any failure ends the pull with ``PullFailed``
carrying the stage, chained from the underlying error. Nothing is written to
disk before the persist stage.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple, Union

import httpx
from pydantic import ValidationError

from .digest import verify_digest
from .layout import ImageLayoutWriter
from .models import ImageConfig, ImageIndex, ImageReference, Manifest
from .platform import host_platform, select_manifest
from .settings import Settings, create_settings_from_env
from .storage.auth import DockerAuth, TokenAuth
from .storage.oci_errors import OciDecodeError, OciError, PullFailed, PullStage
from .storage.registry_http import RegistryClient, build_http_client

logger = logging.getLogger(__name__)

__all__ = ["PullResult", "Puller", "pull_image"]


@dataclass(frozen=True)
class PullResult:
    """
    Outcome of a successful pull.

    ``layers_fetched`` lists layer digests written to the layout; it is empty
    unless layer fetching was requested.
    """
    reference: ImageReference
    layout_dir: Path
    platform: Tuple[str, str]
    manifest_digest: str
    config_digest: str
    manifest: Manifest
    config: ImageConfig
    layers_fetched: List[str] = field(default_factory=list)


@asynccontextmanager
async def _stage(stage: PullStage) -> AsyncIterator[None]:
    """Wrap pipeline errors of one stage into PullFailed."""
    logger.debug(f"Pull stage: {stage.value}")
    try:
        yield
    except PullFailed:
        raise
    except OciError as e:
        raise PullFailed(stage, str(e)) from e


class Puller:
    """
    Pulls images into OCI Image Layout directories.

    The HTTP client is the only state shared between pulls; pass one in to
    share its connection pool across concurrent pulls, or let the puller own
    one (use ``async with Puller(...)`` to close it).
    """

    def __init__(self, settings: Optional[Settings] = None,
                 http_client: Optional[httpx.AsyncClient] = None,
                 auth: Optional[TokenAuth] = None):
        """
        Initialize puller.

        Args:
            settings: Configuration (defaults to loading from environment)
            http_client: Shared async HTTP client (created from settings if None)
            auth: Token provider (created from settings if None)
        """
        if settings is None:
            settings = create_settings_from_env()
        self.settings = settings

        self._owns_client = http_client is None
        self.http_client = http_client or build_http_client(settings)

        if auth is None:
            credentials = None
            if settings.registry_user:
                credentials = (settings.registry_user, settings.registry_pass)
            auth = TokenAuth(
                realm=settings.auth_url,
                service=settings.auth_service,
                client=self.http_client,
                credentials=credentials,
                docker_auth=DockerAuth(),
            )
        self.auth = auth

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    async def __aenter__(self) -> Puller:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def pull(self, ref: ImageReference, *, dest: Optional[Union[str, Path]] = None,
                   fetch_layers: bool = False) -> PullResult:
        """
        Pull ``ref`` into an image layout.

        Args:
            ref: Image name and tag/digest
            dest: Layout directory (defaults to ``settings.layout_dir_for(name)``)
            fetch_layers: Also fetch and store every layer blob

        Returns:
            PullResult describing what was written

        Raises:
            PullFailed: With the failing stage; the cause is chained
        """
        settings = self.settings
        image = ref.name
        layout_dir = Path(dest) if dest is not None else settings.layout_dir_for(image)

        async with _stage(PullStage.AUTHENTICATE):
            credential = await self.auth.fetch_token(settings.scope_for(image))
            registry = RegistryClient(
                settings.api_base_url, self.http_client,
                credential=credential, retries=settings.http_retry,
            )
            logger.debug("Login succeeded")

        async with _stage(PullStage.FETCH_INDEX):
            index_bytes = await registry.fetch_index_bytes(image, ref.reference)
            if ref.is_digest:
                verify_digest(ref.reference, index_bytes)
            index = _decode(ImageIndex, index_bytes, f"image index for {ref}")
            logger.debug(f"Fetched {len(index.manifests)} manifests")

        async with _stage(PullStage.SELECT_MANIFEST):
            arch, os_name = host_platform(settings.platform_arch, settings.platform_os)
            descriptor = select_manifest(index, arch, os_name)

        async with _stage(PullStage.FETCH_MANIFEST):
            manifest_bytes = await registry.fetch_manifest_bytes(image, descriptor.digest)
            verify_digest(descriptor.digest, manifest_bytes)
            manifest = _decode(Manifest, manifest_bytes, f"manifest {descriptor.digest}")
            logger.debug(f"Fetched manifest with {len(manifest.layers)} layers")

        async with _stage(PullStage.FETCH_CONFIG):
            config_bytes = await registry.fetch_blob(image, manifest.config.digest)
            verify_digest(manifest.config.digest, config_bytes)
            config = _decode(ImageConfig, config_bytes, f"config {manifest.config.digest}")
            logger.debug(f"Fetched configuration (created={config.created})")

        async with _stage(PullStage.PERSIST):
            writer = await ImageLayoutWriter.init(layout_dir, index_bytes)
            await writer.write_blob(descriptor.digest, manifest_bytes)
            await writer.write_blob(manifest.config.digest, config_bytes)

        layers_fetched: List[str] = []
        if fetch_layers:
            async with _stage(PullStage.FETCH_LAYERS):
                layers_fetched = await self._fetch_layers(registry, writer, image, manifest)

        logger.info(f"Pulled {ref} ({arch}/{os_name}) into {layout_dir}")
        return PullResult(
            reference=ref,
            layout_dir=layout_dir,
            platform=(arch, os_name),
            manifest_digest=descriptor.digest,
            config_digest=manifest.config.digest,
            manifest=manifest,
            config=config,
            layers_fetched=layers_fetched,
        )

    async def _fetch_layers(self, registry: RegistryClient, writer: ImageLayoutWriter,
                            image: str, manifest: Manifest) -> List[str]:
        """Fetch all layer blobs, at most ``layer_concurrency`` at a time."""
        semaphore = asyncio.Semaphore(self.settings.layer_concurrency)

        async def fetch_one(digest: str) -> str:
            async with semaphore:
                if await writer.has_verified_blob(digest):
                    logger.debug(f"Layer {digest} already present")
                    return digest
                content = await registry.fetch_blob(image, digest)
                await writer.write_blob(digest, content)
                return digest

        # Duplicate layers are fetched once
        digests = list(dict.fromkeys(layer.digest for layer in manifest.layers))
        tasks = [asyncio.create_task(fetch_one(d)) for d in digests]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise


def _decode(model, data: bytes, what: str):
    try:
        return model.parse(data)
    except ValidationError as e:
        raise OciDecodeError(f"Invalid {what}: {e}") from e


async def pull_image(image: str, reference: str, settings: Optional[Settings] = None, *,
                     dest: Optional[Union[str, Path]] = None, fetch_layers: bool = False,
                     http_client: Optional[httpx.AsyncClient] = None) -> PullResult:
    """
    Pull ``image:reference`` with a one-off ``Puller``.

    Examples:
        >>> result = asyncio.run(pull_image("alpine", "latest"))
        >>> result.layout_dir
        PosixPath('.cache/images/library/alpine')
    """
    ref = ImageReference(name=image, reference=reference)
    async with Puller(settings, http_client=http_client) as puller:
        return await puller.pull(ref, dest=dest, fetch_layers=fetch_layers)
