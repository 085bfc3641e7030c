from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from marginalia.core.exceptions import StorageError


class KeyValueStore(ABC):
    """Synchronous string key/value persistence used for documents and notes."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value or ``None`` if the key was never set."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store, used in tests and for throwaway sessions."""

    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value


class FileKeyValueStore(KeyValueStore):
    """File system store keeping one UTF-8 file per key."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)

    # ------------------------------------------------------------------
    # public API
    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Failed to read {path}") from exc

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(value, encoding="utf-8")
            # Readers never observe a half-written value
            tmp.replace(path)
        except OSError as exc:
            raise StorageError(f"Failed to write {path}") from exc

    # ------------------------------------------------------------------
    # helpers
    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9._-]+", "_", key).strip("._") or "_"
        return self.base_dir / f"{safe}.txt"


__all__ = ["KeyValueStore", "MemoryKeyValueStore", "FileKeyValueStore"]
