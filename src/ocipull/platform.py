"""
Host platform detection and manifest selection.

An image index lists one manifest per platform. The pull takes the first
descriptor whose architecture and OS both equal the host's; OS version,
features and variant are not scored.
"""
from __future__ import annotations

import logging
import platform as _platform
import sys
from typing import Optional, Tuple

from .models import ImageIndex, ManifestDescriptor
from .storage.oci_errors import NoMatchingPlatform, UnsupportedHost

logger = logging.getLogger(__name__)

__all__ = ["host_oci_arch", "host_oci_os", "host_platform", "select_manifest"]

# platform.machine() values to OCI architecture names
_ARCH_MAP = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}

# sys.platform prefixes to OCI OS names
_OS_MAP = {
    "linux": "linux",
}


def host_oci_arch(machine: Optional[str] = None) -> str:
    """OCI architecture of the host (or of ``machine`` if given)."""
    machine = (machine if machine is not None else _platform.machine()).lower()
    try:
        return _ARCH_MAP[machine]
    except KeyError:
        raise UnsupportedHost(f"unsupported architecture: {machine or 'unknown'}") from None


def host_oci_os(system: Optional[str] = None) -> str:
    """OCI operating system of the host (or of ``system`` if given)."""
    system = system if system is not None else sys.platform
    for prefix, oci_os in _OS_MAP.items():
        if system.startswith(prefix):
            return oci_os
    raise UnsupportedHost(f"unsupported operating system: {system}")


def host_platform(arch_override: Optional[str] = None, os_override: Optional[str] = None) -> Tuple[str, str]:
    """
    Resolve the (architecture, os) pair to pull for.

    Overrides skip detection for that half, so a host that cannot be
    detected still works when both are given.
    """
    arch = arch_override or host_oci_arch()
    os_name = os_override or host_oci_os()
    return arch, os_name


def select_manifest(index: ImageIndex, architecture: str, os: str) -> ManifestDescriptor:
    """
    Pick the manifest for ``architecture``/``os`` from ``index``.

    Descriptors are scanned in index order and the first exact match wins.

    Raises:
        NoMatchingPlatform: If no descriptor matches; never falls back
    """
    for descriptor in index.manifests:
        if descriptor.platform.architecture == architecture and descriptor.platform.os == os:
            logger.debug(f"Found matching manifest {descriptor.digest} for {architecture}/{os}")
            return descriptor
    raise NoMatchingPlatform(architecture, os, available=index.platforms())
