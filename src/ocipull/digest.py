"""
Content digest helpers.

A digest is ``algorithm:hex`` where ``hex`` is the lowercase hex encoding of
the content hash under ``algorithm``. Digests both name blobs in the image
layout (``blobs/<algorithm>/<hex>``) and verify fetched content.
"""
from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

from .storage.oci_errors import OciDigestMalformed, OciDigestMismatch

__all__ = ["Digest", "SUPPORTED_ALGORITHMS", "compute_hex", "compute_digest", "verify_digest"]

SUPPORTED_ALGORITHMS = ("sha256", "sha384", "sha512")

_ALGORITHM_PATTERN = re.compile(r"^[a-z0-9]+(?:[+._-][a-z0-9]+)*$")
_HEX_PATTERN = re.compile(r"^[a-f0-9]+$")


@dataclass(frozen=True)
class Digest:
    """
    Parsed ``algorithm:hex`` digest.

    Invariants:
    - algorithm: lowercase, non-empty
    - hex: lowercase hex characters, non-empty
    """
    algorithm: str
    hex: str

    @classmethod
    def parse(cls, text: str) -> Digest:
        """
        Split a digest string on its first colon.

        Raises:
            OciDigestMalformed: If the separator is missing or either part is
                empty or contains unexpected characters
        """
        if not isinstance(text, str) or ":" not in text:
            raise OciDigestMalformed(f"digest {text!r} does not have ALG:ENCODED format")

        algorithm, encoded = text.split(":", 1)
        if not algorithm or not encoded:
            raise OciDigestMalformed(f"digest {text!r} does not have ALG:ENCODED format")
        if not _ALGORITHM_PATTERN.match(algorithm):
            raise OciDigestMalformed(f"digest {text!r} has invalid algorithm {algorithm!r}")
        if not _HEX_PATTERN.match(encoded):
            raise OciDigestMalformed(f"digest {text!r} has non-hex encoded part")

        return cls(algorithm=algorithm, hex=encoded)

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.hex}"


def compute_hex(algorithm: str, content: bytes) -> str:
    """Hash ``content`` under ``algorithm`` and return lowercase hex."""
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise OciDigestMalformed(
            f"unsupported digest algorithm {algorithm!r}. "
            f"Expected one of: {', '.join(SUPPORTED_ALGORITHMS)}"
        )
    return hashlib.new(algorithm, content).hexdigest()


def compute_digest(content: bytes, algorithm: str = "sha256") -> str:
    """Return the ``algorithm:hex`` digest string of ``content``."""
    return f"{algorithm}:{compute_hex(algorithm, content)}"


def verify_digest(digest: str | Digest, content: bytes) -> Digest:
    """
    Check that ``content`` hashes to ``digest``.

    Args:
        digest: Claimed digest, as a string or parsed ``Digest``
        content: Raw bytes to check

    Returns:
        The parsed digest

    Raises:
        OciDigestMalformed: If the digest cannot be parsed or names an
            unsupported algorithm
        OciDigestMismatch: If the recomputed hash differs
    """
    parsed = digest if isinstance(digest, Digest) else Digest.parse(digest)
    actual = compute_hex(parsed.algorithm, content)
    if actual != parsed.hex:
        raise OciDigestMismatch(
            f"content does not match digest {parsed}: got {parsed.algorithm}:{actual}",
            expected=str(parsed),
            actual=f"{parsed.algorithm}:{actual}",
        )
    return parsed
