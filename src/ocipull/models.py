"""
Data models for the OCI image graph.

These Pydantic models mirror the OCI image-spec documents the pull pipeline
reads (index, manifest, config). Schema versions and media types are
``Literal`` fields, so a document of an unexpected kind fails validation
instead of being coerced into something it is not.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .digest import Digest
from .storage.oci_errors import OciDigestMalformed
from .storage.oci_media_types import (
    OCI_IMAGE_CONFIG,
    OCI_IMAGE_INDEX,
    OCI_IMAGE_LAYER,
    OCI_IMAGE_MANIFEST,
    REPOSITORY_NAME_PATTERN,
    TAG_PATTERN,
)


class _OciModel(BaseModel):
    """Shared config: accept field names and wire aliases alike."""
    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def parse(cls, data: bytes | str):
        """Validate a raw JSON document."""
        return cls.model_validate_json(data)

    def to_json(self) -> str:
        """Serialize using wire names, omitting unset optionals."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class _Descriptor(_OciModel):
    """Content reference: digest plus byte size."""
    digest: str = Field(..., description="Content digest (sha256:...)")
    size: int = Field(..., ge=0, description="Content size in bytes")

    @field_validator("digest")
    @classmethod
    def validate_digest(cls, v: str) -> str:
        """Reject digests that do not split into algorithm and hex."""
        try:
            Digest.parse(v)
        except OciDigestMalformed as e:
            raise ValueError(str(e)) from e
        return v


class ImageReference(BaseModel):
    """What to pull: an image name plus a tag or digest."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Image name within the namespace (e.g. 'alpine')")
    reference: str = Field(..., min_length=1, description="Tag or digest")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Names become URL and filesystem path segments; only the repository grammar is allowed."""
        if not re.match(REPOSITORY_NAME_PATTERN, v):
            raise ValueError(
                f"Invalid image name: {v!r}. Must be lowercase path components "
                "separated by '/', without '.' or '..' segments."
            )
        return v

    @field_validator("reference")
    @classmethod
    def validate_reference(cls, v: str) -> str:
        if ":" in v:
            try:
                Digest.parse(v)
            except OciDigestMalformed as e:
                raise ValueError(str(e)) from e
        elif not re.match(TAG_PATTERN, v):
            raise ValueError(f"Invalid tag: {v!r}")
        return v

    @property
    def is_digest(self) -> bool:
        return ":" in self.reference

    def __str__(self) -> str:
        sep = "@" if self.is_digest else ":"
        return f"{self.name}{sep}{self.reference}"


class Platform(_OciModel):
    """Platform a manifest targets."""
    architecture: str = Field(..., description="CPU architecture (amd64, arm64, ...)")
    os: str = Field(..., description="Operating system (linux, windows, ...)")
    os_version: Optional[str] = Field(default=None, alias="os.version")
    os_features: List[str] = Field(default_factory=list, alias="os.features")
    variant: Optional[str] = Field(default=None, description="CPU variant (v7, v8, ...)")


class ManifestDescriptor(_Descriptor):
    """Index entry pointing at one platform-specific manifest."""
    media_type: Literal[OCI_IMAGE_MANIFEST] = Field(..., alias="mediaType")
    platform: Platform
    annotations: Optional[Dict[str, str]] = None


class ImageIndex(_OciModel):
    """
    Root of a multi-platform image.

    One registry reference resolves to an index listing one manifest per
    platform. ``schemaVersion`` must be exactly 2.
    """
    schema_version: Literal[2] = Field(..., alias="schemaVersion")
    media_type: Optional[Literal[OCI_IMAGE_INDEX]] = Field(
        default=None, alias="mediaType"
    )
    manifests: List[ManifestDescriptor] = Field(..., description="Per-platform manifests, in index order")
    annotations: Dict[str, str] = Field(default_factory=dict)

    def platforms(self) -> List[tuple[str, str]]:
        """(architecture, os) pairs in index order."""
        return [(m.platform.architecture, m.platform.os) for m in self.manifests]


class ConfigDescriptor(_Descriptor):
    """Manifest reference to the image config blob."""
    media_type: Literal[OCI_IMAGE_CONFIG] = Field(..., alias="mediaType")


class LayerDescriptor(_Descriptor):
    """Manifest reference to one layer blob."""
    media_type: Literal[OCI_IMAGE_LAYER] = Field(..., alias="mediaType")
    annotations: Optional[Dict[str, str]] = None


class Manifest(_OciModel):
    """
    One platform-specific image variant.

    ref: https://github.com/opencontainers/image-spec/blob/main/manifest.md
    """
    schema_version: Literal[2] = Field(..., alias="schemaVersion")
    media_type: Literal[OCI_IMAGE_MANIFEST] = Field(..., alias="mediaType")
    config: ConfigDescriptor
    layers: List[LayerDescriptor] = Field(..., description="Layers, base first")
    annotations: Optional[Dict[str, str]] = None


class RuntimeConfig(_OciModel):
    """Execution parameters baked into the image (the config's ``config`` object)."""
    user: Optional[str] = Field(default=None, alias="User")
    exposed_ports: Optional[Dict[str, Any]] = Field(default=None, alias="ExposedPorts")
    env: Optional[List[str]] = Field(default=None, alias="Env")
    entrypoint: Optional[List[str]] = Field(default=None, alias="Entrypoint")
    cmd: Optional[List[str]] = Field(default=None, alias="Cmd")
    volumes: Optional[Dict[str, Any]] = Field(default=None, alias="Volumes")
    working_dir: Optional[str] = Field(default=None, alias="WorkingDir")
    labels: Optional[Dict[str, str]] = Field(default=None, alias="Labels")
    stop_signal: Optional[str] = Field(default=None, alias="StopSignal")


class RootFs(_OciModel):
    diff_ids: List[str]
    type: str


class HistoryEntry(_OciModel):
    created: Optional[str] = None
    created_by: Optional[str] = None
    author: Optional[str] = None
    comment: Optional[str] = None
    empty_layer: Optional[bool] = None


class ImageConfig(_OciModel):
    """
    Image configuration blob.

    Only validated here; the raw bytes are what gets persisted.
    """
    created: Optional[str] = None
    author: Optional[str] = None
    architecture: str
    os: str
    config: Optional[RuntimeConfig] = None
    rootfs: RootFs
    history: Optional[List[HistoryEntry]] = None


__all__ = [
    "ImageReference",
    "Platform",
    "ManifestDescriptor",
    "ImageIndex",
    "ConfigDescriptor",
    "LayerDescriptor",
    "Manifest",
    "RuntimeConfig",
    "RootFs",
    "HistoryEntry",
    "ImageConfig",
]
