"""Local key-value cache used by the session store.

Two implementations share the ``LocalCache`` protocol: an in-memory dict
and a JSON file written atomically via a temp-file swap so an interrupted
write never leaves a half-written cache behind.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Protocol


class LocalCache(Protocol):
    """Async string key-value store. Every method may raise on I/O failure."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class MemoryCache:
    """Process-local cache, mainly for tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileCache:
    """Cache persisted as a single JSON object on disk.

    A missing file reads as an empty cache. A corrupted file raises
    ``ValueError`` so the caller can decide how to degrade.

    File access runs in a worker thread. Read-modify-write cycles are
    serialized by a lock so concurrent writers never drop each other's keys.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Corrupted cache file: {self.path}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"Corrupted cache file: {self.path}")
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        """Atomically write *data* to the cache file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(data, indent=2, ensure_ascii=False)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".json.tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_path, self.path)
        except Exception:
            os.unlink(tmp_path)
            raise

    def _set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._write(data)

    def _remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._write(data)

    async def get(self, key: str) -> str | None:
        async with self._lock:
            data = await asyncio.to_thread(self._load)
        return data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._set, key, value)

    async def remove(self, key: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._remove, key)
