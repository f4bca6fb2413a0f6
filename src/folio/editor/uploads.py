"""Upload collaborator for image and file blocks.

The editor treats uploads as opaque: it hands a file over and stores the
returned ``(url, file_name)`` pair on a new media block.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Protocol, runtime_checkable
from uuid import uuid4

from ..errors import UploadFailedError
from ..settings import settings
from .blocks_models import BlockKind, MediaRef

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".bmp"})


@runtime_checkable
class Uploader(Protocol):
    """Stores a file somewhere addressable and describes where."""

    def upload(self, path: Path) -> MediaRef:
        """Upload a local file.

        Raises:
            UploadFailedError: If the file cannot be stored.
        """
        ...


def media_kind_for(file_name: str) -> BlockKind:
    """Image block for image extensions, file block for everything else."""
    if Path(file_name).suffix.lower() in IMAGE_EXTENSIONS:
        return BlockKind.IMAGE
    return BlockKind.FILE


def _default_upload_dir() -> Path:
    base = Path(os.environ.get("FOLIO_DATA_DIR", settings.data_dir))
    return base / "uploads"


class LocalUploader:
    """Copies uploads into a local directory and returns ``file://`` URLs."""

    def __init__(self, upload_dir: Path | str | None = None) -> None:
        self._upload_dir = Path(upload_dir) if upload_dir else _default_upload_dir()

    @property
    def upload_dir(self) -> Path:
        return self._upload_dir

    def upload(self, path: Path) -> MediaRef:
        source = Path(path)
        if not source.is_file():
            raise UploadFailedError(f"Not a file: {source}", file_name=source.name)

        # Prefix keeps repeated uploads of the same name apart
        target = self._upload_dir / f"{uuid4().hex[:8]}-{source.name}"
        try:
            self._upload_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
        except OSError as e:
            raise UploadFailedError(f"Could not store {source.name}: {e}", file_name=source.name) from e

        logger.info("Uploaded %s -> %s", source.name, target)
        return MediaRef(url=target.resolve().as_uri(), file_name=source.name)
