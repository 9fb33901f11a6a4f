"""Scoped key-value stores (JSON + fcntl.flock + atomic write)."""

import asyncio
import fcntl
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from cognify_client.errors import StorageError


class KeyValueStore(ABC):
    """Async string key-value store.

    Implementations raise ``StorageError`` when the backing medium fails.
    """

    @abstractmethod
    async def get_item(self, key: str) -> str | None: ...

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def delete_item(self, key: str) -> None: ...


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store, the equivalent of browser local storage."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete_item(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class FileKeyValueStore(KeyValueStore):
    """All keys of one scope kept in ``<directory>/<scope>.json``.

    Args:
        directory: Directory holding the scope file.
        scope: Scope name, one file per scope.
    """

    def __init__(self, directory: Path, scope: str = "cognify"):
        self.directory = Path(directory)
        self.scope = scope
        self.path = self.directory / f"{scope}.json"
        self._lock_path = self.directory / f"{scope}.json.lock"

    async def get_item(self, key: str) -> str | None:
        data = await asyncio.to_thread(self._read)
        return data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._update, key, value)

    async def delete_item(self, key: str) -> None:
        await asyncio.to_thread(self._update, key, None)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                fcntl.flock(f, fcntl.LOCK_SH)
                data = json.load(f)
                fcntl.flock(f, fcntl.LOCK_UN)
        except (OSError, ValueError) as exc:
            raise StorageError(f"Cannot read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"Unexpected content in {self.path}")
        return data

    def _update(self, key: str, value: str | None) -> None:
        """Set or (with ``value=None``) remove a key under an exclusive lock."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(self._lock_path, "w") as lock_file:
                fcntl.flock(lock_file, fcntl.LOCK_EX)
                data = self._read()
                if value is None:
                    data.pop(key, None)
                else:
                    data[key] = value
                with tempfile.NamedTemporaryFile(
                    "w", dir=self.directory, delete=False, suffix=".json", encoding="utf-8"
                ) as tmp:
                    json.dump(data, tmp, indent=2)
                os.replace(tmp.name, self.path)
        except OSError as exc:
            raise StorageError(f"Cannot write {self.path}: {exc}") from exc
