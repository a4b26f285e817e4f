"""
Key-Value Storage Implementations

Two media implement KeyValueStoreInterface:

- InMemoryKeyValueStore: a dict; used in tests and throwaway sessions
- JsonFileKeyValueStore: one file per key in a data directory, the
  desktop equivalent of a browser's localStorage

TRADEOFFS:
- Every set() rewrites the whole value (fine: one blob per user)
- No cross-key transactions (the engine never needs them)
"""

import os
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from savings_sync.services.storage.interface import (
    KeyValueStoreInterface,
    StorageError,
)


class InMemoryKeyValueStore(KeyValueStoreInterface):
    """Dict-backed store. Nothing survives the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileKeyValueStore(KeyValueStoreInterface):
    """
    File-backed store.

    Each key maps to <data_dir>/<percent-encoded key>.json. Writes go to
    a temporary file first and are moved into place, so a crash never
    leaves a half-written value behind.
    """

    SUFFIX = ".json"

    def __init__(self, data_dir: str | Path):
        self._data_dir = Path(data_dir)
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory {self._data_dir}: {e}")

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path_for(self, key: str) -> Path:
        if not key:
            raise StorageError("Storage key must not be empty")
        return self._data_dir / f"{quote(key, safe='')}{self.SUFFIX}"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}")

    def set(self, key: str, value: str) -> None:
        try:
            self._write(self._path_for(key), value)
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, max=1),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    def _write(self, path: Path, value: str) -> None:
        tmp_path = path.with_name(path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(value)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
