"""Local filesystem storage backend."""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from .base import Storage, StorageContent
from ..core.errors import StorageError


class FileStorage(Storage):
    """Stores blobs as files below a root directory.

    Content type and cache control are not kept on disk.
    """

    def __init__(self, base_address: str, root_directory: Union[str, Path]):
        super().__init__(base_address)
        self.root_directory = Path(root_directory)

    def path_for(self, uri: str) -> Path:
        """Map a blob URI onto a file path."""
        return self.root_directory.joinpath(*self.relative_name(uri).split("/"))

    async def load(self, uri: str) -> Optional[StorageContent]:
        path = self.path_for(uri)
        try:
            data = await asyncio.to_thread(self._read, path)
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}", uri=uri) from e

        if data is None:
            self.logger.debug("Blob not found", uri=uri, path=str(path))
            return None
        return StorageContent(data=data)

    async def save(self, uri: str, content: StorageContent) -> None:
        path = self.path_for(uri)
        try:
            await asyncio.to_thread(self._write, path, content.data)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}", uri=uri) from e

        self.logger.debug("Saved blob", uri=uri, path=str(path), size=len(content.data))

    def describe(self) -> str:
        return str(self.root_directory)

    @staticmethod
    def _read(path: Path) -> Optional[bytes]:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        # Readers must never observe a partially written blob
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_name, path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
