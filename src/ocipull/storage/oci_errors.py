"""
OCI registry error classes.

Provides a clear taxonomy of errors that can occur while pulling an image.
HTTP status codes, transport failures, body-shape failures and local
filesystem failures each map to one class so callers (and the CLI exit-code
mapping) can tell them apart without inspecting messages.
"""
from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple


class OciError(Exception):
    """
    Base class for all pull errors.

    Every error raised by the pipeline derives from this class and is raised
    ``from`` its underlying cause, so the full causal chain is available for
    diagnostics.
    """
    pass


class OciAuthError(OciError):
    """
    Token exchange failed.

    Raised when:
    - The token endpoint cannot be reached
    - The token endpoint answers with a non-2xx status
    - The response body does not contain a token
    """
    pass


class OciHttpError(OciError):
    """
    Registry answered with a non-2xx status.
    """

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


class OciNotFound(OciHttpError):
    """
    Resource not found in registry.

    Raised when:
    - HTTP 404 Not Found (manifest, blob, or repository doesn't exist)
    """

    def __init__(self, message: str, status: int = 404):
        super().__init__(message, status)


class OciRateLimited(OciHttpError):
    """
    Rate limit exceeded.

    Raised when:
    - HTTP 429 Too Many Requests
    """

    def __init__(self, message: str, status: int = 429):
        super().__init__(message, status)


class OciTransportError(OciError):
    """Network-level failure (connect, read, timeout) talking to the registry."""
    pass


class OciDecodeError(OciError):
    """
    Response body does not match the expected JSON shape.

    Covers invalid JSON, a wrong schema version and unexpected media types.
    """
    pass


class OciDigestMalformed(OciError):
    """Digest string is not of the form ``algorithm:hex`` or names an unknown algorithm."""
    pass


class OciDigestMismatch(OciError):
    """
    Content digest validation failed.

    Raised when the hash of fetched content, recomputed under the algorithm
    named by its digest, differs from the digest's hex value.
    """

    def __init__(self, message: str, expected: str | None = None, actual: str | None = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class NoMatchingPlatform(OciError):
    """
    The image index has no manifest for the requested architecture and OS.

    Terminal: the pull never falls back to some other platform.
    """

    def __init__(self, architecture: str, os: str, available: Optional[List[Tuple[str, str]]] = None):
        self.architecture = architecture
        self.os = os
        self.available = available or []
        listed = ", ".join(f"{a}/{o}" for a, o in self.available) or "none"
        super().__init__(
            f"no image with matching platform {architecture}/{os} found (available: {listed})"
        )


class UnsupportedHost(OciError):
    """Host architecture or OS has no OCI platform equivalent."""
    pass


class LayoutWriteError(OciError):
    """Creating a directory or writing a file of the image layout failed."""
    pass


class PullStage(str, Enum):
    """Stages of a pull, in execution order."""
    AUTHENTICATE = "authenticate"
    FETCH_INDEX = "fetch-index"
    SELECT_MANIFEST = "select-manifest"
    FETCH_MANIFEST = "fetch-manifest"
    FETCH_CONFIG = "fetch-config"
    PERSIST = "persist"
    FETCH_LAYERS = "fetch-layers"


class PullFailed(OciError):
    """
    A pull stage failed.

    The failing stage is kept on the exception; the underlying error is its
    ``__cause__``.
    """

    def __init__(self, stage: PullStage, message: str):
        super().__init__(f"{stage.value}: {message}")
        self.stage = stage


def error_chain(exc: BaseException) -> List[BaseException]:
    """Return ``exc`` followed by its causes, outermost first."""
    chain = []
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        chain.append(current)
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return chain


__all__ = [
    "OciError",
    "OciAuthError",
    "OciHttpError",
    "OciNotFound",
    "OciRateLimited",
    "OciTransportError",
    "OciDecodeError",
    "OciDigestMalformed",
    "OciDigestMismatch",
    "NoMatchingPlatform",
    "UnsupportedHost",
    "LayoutWriteError",
    "PullStage",
    "PullFailed",
    "error_chain",
]
