"""
drivevault/secrets/storage.py

Durable key-value storage for the encrypted credential blob:
  - KeyValueStorage (abstract)
  - MemoryStorage
  - JsonFileStorage

A key that was never written reads back as None so the caller can tell
"not configured" apart from a failure.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from typing import Dict, Optional

import aiofiles

from drivevault.errors import StorageError
from drivevault.models.validator import parse_json_as


class KeyValueStorage(ABC):
    """Abstract base class for reading/writing string values by key."""

    @abstractmethod
    async def read_value(self, key: str) -> Optional[str]:
        """
        Read the value stored under key.

        Returns:
            Optional[str]: The stored value, or None if nothing is stored.

        Raises:
            StorageError: If the backend cannot be read.
        """
        pass

    @abstractmethod
    async def write_value(self, key: str, value: str) -> None:
        """
        Write or overwrite the value stored under key.

        Raises:
            StorageError: If the backend cannot be written.
        """
        pass

    @abstractmethod
    async def delete_value(self, key: str) -> None:
        """
        Remove key. Removing a missing key is not an error.

        Raises:
            StorageError: If the backend cannot be written.
        """
        pass


class MemoryStorage(KeyValueStorage):
    """Keeps values in a dict for the lifetime of the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    async def read_value(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def write_value(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete_value(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """
    Stores all keys in a single JSON object file.

    Writes go to a temporary file in the same directory which then replaces the
    original, so a crash never leaves a half-written file behind. The file is
    created with mode 0600.
    """

    def __init__(self, path: str) -> None:
        self.path = os.path.expanduser(path)
        self._lock = asyncio.Lock()

    async def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                raw = await f.read()
            if not raw.strip():
                return {}
            return parse_json_as(raw, Dict[str, str])
        except (OSError, ValueError) as exc:
            raise StorageError(f"Storage retrieval failed: {exc}") from exc

    async def _save(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(self.path) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".drivevault-")
            os.close(fd)
            os.chmod(tmp_path, 0o600)
            try:
                async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                    await f.write(json.dumps(data, indent=2))
                os.replace(tmp_path, self.path)
            finally:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
        except OSError as exc:
            raise StorageError(f"Storage failed: {exc}") from exc

    async def read_value(self, key: str) -> Optional[str]:
        async with self._lock:
            data = await self._load()
        return data.get(key)

    async def write_value(self, key: str, value: str) -> None:
        async with self._lock:
            data = await self._load()
            data[key] = value
            await self._save(data)

    async def delete_value(self, key: str) -> None:
        async with self._lock:
            data = await self._load()
            if key not in data:
                return
            del data[key]
            await self._save(data)
