"""
Local Key-Value Storage Implementation

DESIGN DECISION: Data lives on the shop's own machine because:
1. The shop owner owns the data, nothing leaves the device
2. No database setup required
3. Backups are a folder copy

TRADEOFFS:
- Single device only (no sync)
- Whole-blob writes (we're fine for one shop's customers)
- No transactions (we write to a temp file and replace atomically)

One file per key keeps each login's data independent, exactly like
separate local storage entries.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from tanoprego.config import get_settings
from tanoprego.services.storage.interface import KeyValueStore, StorageError


FILE_SUFFIX = ".json"

logger = structlog.get_logger(__name__)


class JsonFileStore(KeyValueStore):
    """
    File-backed key-value store.

    Keys are URL-quoted into file names so any login name is safe
    on disk and can be recovered by keys().
    """

    def __init__(self, data_dir: Optional[str] = None):
        directory = data_dir or get_settings().storage.data_dir
        self._root = Path(directory)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory {self._root}: {e}")

    @property
    def root(self) -> Path:
        return self._root

    def _path_for(self, key: str) -> Path:
        if not key:
            raise StorageError("Storage key cannot be empty")
        return self._root / f"{quote(key, safe='')}{FILE_SUFFIX}"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}")

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _write_atomic(self, path: Path, value: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=".tmp-", suffix=FILE_SUFFIX)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def set_item(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            self._write_atomic(path, value)
        except OSError as e:
            logger.error("storage_write_failed", key=key, error=str(e))
            raise StorageError(f"Failed to write {key}: {e}")

    def remove_item(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to remove {key}: {e}")

    def keys(self) -> list[str]:
        return sorted(
            unquote(path.name[: -len(FILE_SUFFIX)])
            for path in self._root.glob(f"*{FILE_SUFFIX}")
            if not path.name.startswith(".tmp-")
        )


class MemoryStore(KeyValueStore):
    """
    In-memory key-value store.

    Used by tests and as the fallback when the data directory
    cannot be created. Nothing survives a restart.
    """

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not key:
            raise StorageError("Storage key cannot be empty")
        self._items[key] = value

    def remove_item(self, key: str) -> bool:
        return self._items.pop(key, None) is not None

    def keys(self) -> list[str]:
        return sorted(self._items)
