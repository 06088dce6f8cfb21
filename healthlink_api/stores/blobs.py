"""
Local filesystem blob store for encrypted artifacts.

Keys are relative paths such as "<submission id>/bundle.enc". Each blob is
written once via a temporary file and an atomic rename, so readers never
see a partially written artifact.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from healthlink_api.errors import StorageError

logger = logging.getLogger(__name__)


class LocalBlobStore:
    def __init__(self, base_path: str | Path):
        self.base_path = Path(base_path).resolve()

    def write(self, key: str, data: bytes) -> None:
        path = self._resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.error("Blob write failed for key %s: %s", key, exc.strerror)
            raise StorageError("blob write failed") from exc
        logger.debug("Wrote %d bytes to blob %s", len(data), key)

    def read(self, key: str) -> bytes:
        path = self._resolve(key)
        try:
            return path.read_bytes()
        except OSError as exc:
            logger.error("Blob read failed for key %s: %s", key, exc.strerror)
            raise StorageError("blob read failed") from exc

    def _resolve(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if not key or path == self.base_path or self.base_path not in path.parents:
            raise StorageError("invalid blob key")
        return path
