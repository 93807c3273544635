"""Blob storage backends used by the document stores for ``delete_blob``."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

from domain.exceptions import BlobNotFoundError, ConfigurationError

logger = logging.getLogger(__name__)

_SAFE_BLOB_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class BlobStore(Protocol):
    def put(self, blob_id: str, data: bytes) -> None: ...

    def exists(self, blob_id: str) -> bool: ...

    def delete(self, blob_id: str) -> None:
        """Remove a blob; raises ``BlobNotFoundError`` when it is absent."""
        ...


class InMemoryBlobStore:

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    def put(self, blob_id: str, data: bytes) -> None:
        self._blobs[blob_id] = data

    def exists(self, blob_id: str) -> bool:
        return blob_id in self._blobs

    def delete(self, blob_id: str) -> None:
        if self._blobs.pop(blob_id, None) is None:
            raise BlobNotFoundError(blob_id)


class LocalFileBlobStore:
    """Stores each blob as one file directly under *root*."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, blob_id: str) -> Path:
        if not _SAFE_BLOB_ID.match(blob_id):
            raise ConfigurationError(f"unsafe blob id {blob_id!r}")
        return self._root / blob_id

    def put(self, blob_id: str, data: bytes) -> None:
        self._path(blob_id).write_bytes(data)

    def exists(self, blob_id: str) -> bool:
        return self._path(blob_id).is_file()

    def delete(self, blob_id: str) -> None:
        try:
            self._path(blob_id).unlink()
        except FileNotFoundError as exc:
            raise BlobNotFoundError(blob_id) from exc
        logger.debug("Deleted blob %s", blob_id)
