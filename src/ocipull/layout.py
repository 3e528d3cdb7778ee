"""
OCI Image Layout writer.

Writes the on-disk layout described by the OCI image-spec:

    <dir>/oci-layout                 {"imageLayoutVersion": "1.0.0"}
    <dir>/index.json                 the image index
    <dir>/blobs/<alg>/<hex>          one file per blob, raw content

Every blob is verified against its digest before it touches disk, and every
file is written to a temp file and renamed into place, so an interrupted pull
leaves only complete, correctly addressed files behind.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from .digest import Digest, verify_digest
from .models import ImageIndex
from .storage.oci_errors import LayoutWriteError, OciDecodeError, OciDigestMismatch
from .storage.oci_media_types import (
    OCI_BLOBS_DIR,
    OCI_INDEX_FILE,
    OCI_LAYOUT_FILE,
    OCI_LAYOUT_VERSION,
)

logger = logging.getLogger(__name__)

__all__ = ["ImageLayoutWriter", "write_file_atomically", "read_index", "OCI_LAYOUT_BYTES"]

OCI_LAYOUT_BYTES = json.dumps({"imageLayoutVersion": OCI_LAYOUT_VERSION}).encode()


def write_file_atomically(target_path: Path, content: bytes) -> None:
    """
    Write ``content`` to ``target_path`` via temp file + rename.

    Raises:
        LayoutWriteError: If any filesystem operation fails
    """
    fd = None
    temp_path = None
    try:
        fd, name = tempfile.mkstemp(prefix=".ocipull.tmp.", dir=target_path.parent)
        temp_path = Path(name)
        with os.fdopen(fd, "wb") as out:
            fd = None
            out.write(content)
            out.flush()
            os.fsync(out.fileno())
        os.replace(temp_path, target_path)
    except OSError as e:
        if fd is not None:
            os.close(fd)
        if temp_path is not None:
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass
        raise LayoutWriteError(f"writing to {target_path}: {e}") from e


def _make_dirs(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise LayoutWriteError(f"creating {path}: {e}") from e


class ImageLayoutWriter:
    """
    Owns one image layout directory for the duration of a pull.

    Use ``await ImageLayoutWriter.init(dir, index)`` to create the layout,
    then ``await writer.write_blob(digest, content)`` per blob.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    @classmethod
    async def init(cls, directory: Union[str, Path], index: Union[ImageIndex, bytes]) -> ImageLayoutWriter:
        """
        Create ``directory`` (and parents) and write ``oci-layout`` and ``index.json``.

        ``index`` is written as given when it is the raw document fetched from
        the registry; a parsed ``ImageIndex`` is serialized with wire names.
        Safe to call on an existing layout: both files are rewritten.
        """
        writer = cls(directory)
        await asyncio.to_thread(writer._init_sync, index)
        return writer

    def _init_sync(self, index: Union[ImageIndex, bytes]) -> None:
        data = index if isinstance(index, bytes) else index.to_json().encode()
        _make_dirs(self.directory)
        write_file_atomically(self.directory / OCI_LAYOUT_FILE, OCI_LAYOUT_BYTES)
        write_file_atomically(self.directory / OCI_INDEX_FILE, data)
        logger.debug(f"Initialized image layout at {self.directory}")

    def blob_path(self, digest: Union[str, Digest]) -> Path:
        """Path of the blob for ``digest``: ``blobs/<alg>/<hex>``."""
        parsed = digest if isinstance(digest, Digest) else Digest.parse(digest)
        return self.directory / OCI_BLOBS_DIR / parsed.algorithm / parsed.hex

    def has_blob(self, digest: Union[str, Digest]) -> bool:
        return self.blob_path(digest).is_file()

    async def has_verified_blob(self, digest: Union[str, Digest]) -> bool:
        """
        True if the blob for ``digest`` exists and its content hashes to ``digest``.

        A file that fails verification is left in place for ``write_blob`` to
        replace.
        """
        if not self.has_blob(digest):
            return False
        path = self.blob_path(digest)
        try:
            content = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise LayoutWriteError(f"reading {path}: {e}") from e
        try:
            verify_digest(digest, content)
        except OciDigestMismatch:
            logger.warning(f"Stored blob {digest} does not match its digest; refetching")
            return False
        return True

    async def write_blob(self, digest: Union[str, Digest], content: bytes) -> Path:
        """
        Store ``content`` under ``digest``.

        The hash of ``content`` is recomputed under the digest's algorithm
        first; on mismatch nothing is written. Rewriting an existing blob
        with the same content leaves the file unchanged.

        Returns:
            Path of the written blob

        Raises:
            OciDigestMalformed: If the digest cannot be parsed
            OciDigestMismatch: If the content does not hash to the digest
            LayoutWriteError: If the file cannot be written
        """
        parsed = verify_digest(digest, content)
        path = self.blob_path(parsed)
        await asyncio.to_thread(self._write_blob_sync, path, content)
        logger.debug(f"Wrote blob {parsed} ({len(content)} bytes)")
        return path

    @staticmethod
    def _write_blob_sync(path: Path, content: bytes) -> None:
        _make_dirs(path.parent)
        write_file_atomically(path, content)


def read_index(directory: Union[str, Path]) -> ImageIndex:
    """
    Read ``index.json`` of an existing layout.

    Raises:
        LayoutWriteError: If the file cannot be read
        OciDecodeError: If it is not a valid image index
    """
    path = Path(directory) / OCI_INDEX_FILE
    try:
        data = path.read_bytes()
    except OSError as e:
        raise LayoutWriteError(f"reading {path}: {e}") from e
    try:
        return ImageIndex.parse(data)
    except ValidationError as e:
        raise OciDecodeError(f"Invalid {path}: {e}") from e
