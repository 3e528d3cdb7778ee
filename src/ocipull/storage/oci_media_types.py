"""
OCI media types and constants.

Single source of truth for all OCI-related media types and constants.
"""
from __future__ import annotations

# Media types accepted by the pull pipeline; anything else is rejected
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_IMAGE_CONFIG = "application/vnd.oci.image.config.v1+json"
OCI_IMAGE_LAYER = "application/vnd.oci.image.layer.v1.tar+gzip"

# Image Layout
OCI_LAYOUT_FILE = "oci-layout"
OCI_LAYOUT_VERSION = "1.0.0"
OCI_INDEX_FILE = "index.json"
OCI_BLOBS_DIR = "blobs"

# Repository name and tag grammar of the OCI distribution API
REPOSITORY_NAME_PATTERN = r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*(?:/[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*)*$"
TAG_PATTERN = r"^[a-zA-Z0-9_][a-zA-Z0-9._-]{0,127}$"

# Distribution protocol identification header
DISTRIBUTION_API_VERSION_HEADER = "Docker-Distribution-Api-Version"
DISTRIBUTION_API_VERSION = "registry/2.0"


__all__ = [
    "OCI_IMAGE_INDEX",
    "OCI_IMAGE_MANIFEST",
    "OCI_IMAGE_CONFIG",
    "OCI_IMAGE_LAYER",
    "OCI_LAYOUT_FILE",
    "OCI_LAYOUT_VERSION",
    "OCI_INDEX_FILE",
    "OCI_BLOBS_DIR",
    "REPOSITORY_NAME_PATTERN",
    "TAG_PATTERN",
    "DISTRIBUTION_API_VERSION_HEADER",
    "DISTRIBUTION_API_VERSION",
]
