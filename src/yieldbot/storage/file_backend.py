"""Local file key-value backend for hosts without the managed database.

One JSON document per key, stored as ``.local-kv-{key}.json`` in a directory
(":" and "/" in keys are replaced with "-"). Writes go to a temporary file in
the same directory and are moved into place with os.replace, so a reader never
sees a half-written document.
"""

import asyncio
import os
import re
import tempfile
from pathlib import Path

from yieldbot.logging import get_logger
from yieldbot.storage.backend import KeyValueBackend

logger = get_logger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def key_to_filename(key: str) -> str:
    """Map a store key to its file name, e.g. "strategy:low" -> ".local-kv-strategy-low.json"."""
    return f".local-kv-{_UNSAFE_KEY_CHARS.sub('-', key)}.json"


class FileKeyValueBackend(KeyValueBackend):
    """Durable file fallback keyed by the same string keys as the database backend."""

    def __init__(self, directory: str = "data/kv") -> None:
        self._directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self._directory / key_to_filename(key)

    async def connect(self) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        logger.info("kv_file_backend_ready", directory=str(self._directory))

    async def close(self) -> None:
        return None

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(self._read, self.path_for(key))

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._write, self.path_for(key), value)

    @staticmethod
    def _read(path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _write(self, path: Path, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
