"""
Tests for digest parsing, hashing and verification.
"""
from __future__ import annotations

import hashlib

import pytest

from ocipull.digest import Digest, compute_digest, compute_hex, verify_digest
from ocipull.storage.oci_errors import OciDigestMalformed, OciDigestMismatch


class TestDigestParse:
    """Test Digest.parse splitting rules."""

    def test_splits_on_first_colon(self):
        digest = Digest.parse("sha256:" + "a" * 64)
        assert digest.algorithm == "sha256"
        assert digest.hex == "a" * 64
        assert str(digest) == "sha256:" + "a" * 64

    @pytest.mark.parametrize("text", [
        "",
        "sha256",
        ":abc",
        "sha256:",
        "sha256:ABCDEF",
        "sha256:not-hex",
        "SHA256:abcd",
    ])
    def test_malformed_digests_rejected(self, text):
        with pytest.raises(OciDigestMalformed):
            Digest.parse(text)

    def test_second_colon_belongs_to_hex_part(self):
        with pytest.raises(OciDigestMalformed, match="non-hex"):
            Digest.parse("sha256:abc:def")


class TestHashing:
    """Test hash computation and verification."""

    def test_compute_hex_matches_hashlib(self):
        assert compute_hex("sha256", b"hello") == hashlib.sha256(b"hello").hexdigest()
        assert compute_hex("sha512", b"hello") == hashlib.sha512(b"hello").hexdigest()

    def test_compute_digest_default_algorithm(self):
        assert compute_digest(b"") == "sha256:" + hashlib.sha256(b"").hexdigest()

    def test_unknown_algorithm_rejected(self):
        with pytest.raises(OciDigestMalformed, match="unsupported digest algorithm"):
            compute_hex("md5", b"hello")

    def test_verify_returns_parsed_digest(self):
        digest = compute_digest(b"content")
        parsed = verify_digest(digest, b"content")
        assert parsed == Digest.parse(digest)

    def test_verify_mismatch_reports_both_digests(self):
        claimed = compute_digest(b"expected")
        with pytest.raises(OciDigestMismatch) as exc_info:
            verify_digest(claimed, b"actual")
        assert exc_info.value.expected == claimed
        assert exc_info.value.actual == compute_digest(b"actual")
