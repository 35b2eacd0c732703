"""
Filesystem document storage.

Storage keys are paths relative to a root directory. Keys that resolve
outside the root are rejected.
"""

import hashlib
import logging
from pathlib import Path
from typing import Optional

from custody.config import settings
from custody.exceptions import NotFoundError, ValidationError
from custody.store.base import DocumentStorage

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


class LocalDocumentStorage(DocumentStorage):
    """Reads document bytes from a local directory tree."""

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root or settings.document_storage_root).resolve()

    def _path(self, storage_key: str) -> Path:
        path = (self.root / storage_key).resolve()
        if not path.is_relative_to(self.root):
            raise ValidationError(f"Storage key escapes storage root: {storage_key}")
        return path

    async def read(self, storage_key: str) -> bytes:
        path = self._path(storage_key)
        if not path.is_file():
            raise NotFoundError("stored document", storage_key)
        return path.read_bytes()

    async def digest(self, storage_key: str) -> str:
        """Calculate SHA-256 hash of a stored file."""
        path = self._path(storage_key)
        if not path.is_file():
            raise NotFoundError("stored document", storage_key)
        sha256 = hashlib.sha256()
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                sha256.update(chunk)
        return sha256.hexdigest()
