"""String-keyed persistent stores backing the local session cache."""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Async key-value store with batched multi-key operations."""

    async def multi_get(self, keys: list[str]) -> dict[str, str | None]: ...

    async def multi_set(self, items: dict[str, str]) -> None: ...

    async def multi_remove(self, keys: list[str]) -> None: ...


class MemoryStore:
    """Process-local store; contents do not survive a restart."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def multi_get(self, keys: list[str]) -> dict[str, str | None]:
        return {key: self._data.get(key) for key in keys}

    async def multi_set(self, items: dict[str, str]) -> None:
        self._data.update(items)

    async def multi_remove(self, keys: list[str]) -> None:
        for key in keys:
            self._data.pop(key, None)


class JsonFileStore:
    """Store persisted as a single JSON object on disk.

    Every batch rewrites the file through a temp file and ``os.replace`` so a
    batch is either fully visible or not at all. File I/O runs in a worker
    thread; batches are serialized with a lock.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"Store file {self.path} does not hold a JSON object")
        return data

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def multi_get(self, keys: list[str]) -> dict[str, str | None]:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        return {key: data.get(key) for key in keys}

    async def multi_set(self, items: dict[str, str]) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data.update(items)
            await asyncio.to_thread(self._write, data)

    async def multi_remove(self, keys: list[str]) -> None:
        async with self._lock:
            try:
                data = await asyncio.to_thread(self._read)
            except ValueError as e:
                logger.warning(f"Resetting unreadable store file {self.path}: {e}")
                await asyncio.to_thread(self._write, {})
                return
            if not any(key in data for key in keys):
                return
            for key in keys:
                data.pop(key, None)
            await asyncio.to_thread(self._write, data)


def create_store(path: str | None) -> KeyValueStore:
    """Build the configured store: a JSON file when a path is set, else memory."""
    if path:
        logger.info(f"Using session store file: {path}")
        return JsonFileStore(path)
    return MemoryStore()
