"""
File-backed key/value store for the plain persistent cache tier.
"""

import asyncio
import os
from pathlib import Path
from urllib.parse import quote, unquote

from loguru import logger

from sahayak.exceptions import CacheIOError

SUFFIX = ".entry"


class FileKeyValueStore:
    """
    One file per key under a directory.

    Key names are percent-encoded so any string is a valid file name.
    Writes go to a temporary file first and are renamed into place, so a
    crash mid-write leaves the previous value intact. Blocking file I/O
    runs in a worker thread to keep the event loop responsive.
    """

    def __init__(self, directory: Path | str):
        """
        Initialize file store.

        Args:
            directory: Directory holding one file per key (created if missing)
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.debug(f"File store at {self.directory}")

    def _path_for(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{SUFFIX}"

    async def read(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(self._read_sync, path)
        except (OSError, UnicodeDecodeError) as e:
            raise CacheIOError(f"Failed to read {path}: {e}", key=key) from e

    async def write(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(self._write_sync, path, value)
        except OSError as e:
            raise CacheIOError(f"Failed to write {path}: {e}", key=key) from e

    async def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as e:
            raise CacheIOError(f"Failed to delete {path}: {e}", key=key) from e

    async def list_keys(self) -> list[str]:
        try:
            names = await asyncio.to_thread(os.listdir, self.directory)
        except OSError as e:
            raise CacheIOError(f"Failed to list {self.directory}: {e}") from e

        return [unquote(name[: -len(SUFFIX)]) for name in names if name.endswith(SUFFIX)]

    async def clear(self) -> None:
        for key in await self.list_keys():
            await self.delete(key)

    @staticmethod
    def _read_sync(path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    @staticmethod
    def _write_sync(path: Path, value: str) -> None:
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(value, encoding="utf-8")
        os.replace(tmp_path, path)
