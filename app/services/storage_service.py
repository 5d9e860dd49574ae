"""
Document storage for section uploads and submission receipts.

The application core only keeps the ``DocumentRef`` returned by ``upload``;
it never reads the stored bytes back. ``LocalDocumentStorage`` writes under
``settings.media_root`` and is the default; an object-store implementation
only has to provide the same two methods.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
import logging
import re
import uuid

import aiofiles

from app.core.config import settings
from app.schemas.application import DocumentRef

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: Optional[str]) -> str:
    """
    Reduce a client-supplied filename to a safe basename.

    Example:
        >>> safe_filename("../../My CV (final).pdf")
        'My_CV_final_.pdf'
    """
    name = Path(filename or "").name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "document"


class DocumentStorage(ABC):
    """Narrow interface the lifecycle services depend on."""

    @abstractmethod
    async def upload(
        self,
        folder: str,
        filename: str,
        content: bytes,
        content_type: str
    ) -> DocumentRef:
        ...

    @abstractmethod
    async def delete(self, ref: DocumentRef) -> bool:
        ...


class LocalDocumentStorage(DocumentStorage):
    """Stores files on the local filesystem, served under ``media_base_url``."""

    def __init__(self, base_dir: Optional[Path] = None, base_url: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.media_root)
        self.base_url = (base_url or settings.media_base_url).rstrip("/")

    def _path_for(self, storage_key: str) -> Path:
        path = (self.base_dir / storage_key).resolve()
        if self.base_dir.resolve() not in path.parents:
            raise ValueError(f"Storage key escapes media root: {storage_key}")
        return path

    async def upload(
        self,
        folder: str,
        filename: str,
        content: bytes,
        content_type: str
    ) -> DocumentRef:
        """
        Write ``content`` to ``<media_root>/<folder>/<uuid>_<filename>``.

        Returns:
            DocumentRef with the public URL and file metadata
        """
        original = safe_filename(filename)
        storage_key = f"{folder.strip('/')}/{uuid.uuid4().hex}_{original}"
        file_path = self._path_for(storage_key)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(file_path, "wb") as f:
            await f.write(content)

        logger.info(f"Stored document {storage_key} ({len(content)} bytes)")
        return DocumentRef(
            storage_key=storage_key,
            url=f"{self.base_url}/{storage_key}",
            filename=original,
            content_type=content_type,
            size=len(content),
            uploaded_at=datetime.now(timezone.utc),
        )

    async def delete(self, ref: DocumentRef) -> bool:
        """
        Remove a stored file.

        Returns:
            True if a file was removed, False if it was already gone
        """
        file_path = self._path_for(ref.storage_key)
        if not file_path.exists():
            return False
        file_path.unlink()
        logger.info(f"Deleted document {ref.storage_key}")
        return True


# Global instance
document_storage = LocalDocumentStorage()
