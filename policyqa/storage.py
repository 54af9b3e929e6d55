"""
Blob storage for uploaded policy files.

Files live under UPLOAD_DIR and are addressed by the relative ``file_path``
recorded on the document row.
"""

import asyncio
import logging
from pathlib import Path

from policyqa.errors import StorageFailure

logger = logging.getLogger(__name__)


class LocalBlobStore:
    """Reads policy files from a directory on local disk."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def _resolve(self, file_path: str) -> Path:
        path = (self.root / file_path).resolve()
        # Keep reads inside the upload directory (path traversal protection)
        if not path.is_relative_to(self.root):
            raise StorageFailure(f"Invalid file path: {file_path}", phase="download")
        return path

    async def download(self, file_path: str) -> bytes:
        """Return the raw bytes stored at ``file_path``.

        Raises:
            StorageFailure: If the file is missing or unreadable.
        """
        path = self._resolve(file_path)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            logger.error("Blob download failed for %s: %s", file_path, e)
            raise StorageFailure(
                f"Storage download failed: {e}", phase="download"
            ) from e
        logger.info("Downloaded %s (%d bytes)", file_path, len(data))
        return data
