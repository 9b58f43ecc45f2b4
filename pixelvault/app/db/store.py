"""Record storage abstraction.

Provides a pluggable key -> JSON document store with a file-backed
implementation (one ``<key>.json`` file per record) and an in-memory one.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pixelvault.app.core.sanitize import is_safe_identifier
from pixelvault.app.exceptions import RecordNotFoundError, StorageFailureError


class RecordStore(ABC):
    """Abstract base class for record stores.

    Keys must be sanitized identifiers; implementations reject anything
    else so a key can never escape the storage root.
    """

    @abstractmethod
    async def put(self, key: str, document: dict[str, Any]) -> None:
        """Store ``document`` under ``key``, replacing any previous value."""

    @abstractmethod
    async def get(self, key: str) -> dict[str, Any]:
        """Return the document stored under ``key``.

        Raises:
            RecordNotFoundError: nothing is stored under ``key``
        """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether a document is stored under ``key``."""

    @abstractmethod
    async def list(self) -> list[str]:
        """Return all stored keys in sorted order."""

    async def check(self) -> None:
        """Raise StorageFailureError if the store is unusable."""


def _require_safe_key(key: str) -> None:
    if not is_safe_identifier(key):
        raise ValueError(f"unsafe record key: {key!r}")


class FileRecordStore(RecordStore):
    """Stores each record as a JSON file under ``root``.

    File I/O runs in worker threads so the event loop is never blocked.
    Writes go to a temporary file first and are moved into place, so a
    reader never sees a half-written record.
    """

    SUFFIX = ".json"

    def __init__(self, root: str | os.PathLike[str]):
        self.root = Path(root)

    def ensure_root(self) -> None:
        """Create the storage directory if needed."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageFailureError(f"cannot create {self.root}: {exc}") from exc

    def _path(self, key: str) -> Path:
        return self.root / f"{key}{self.SUFFIX}"

    def _write(self, key: str, document: dict[str, Any]) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, separators=(",", ":"))
            os.replace(tmp_name, self._path(key))
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def _read(self, key: str) -> dict[str, Any]:
        with self._path(key).open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def _list(self) -> list[str]:
        return sorted(
            path.stem for path in self.root.glob(f"*{self.SUFFIX}")
            if path.is_file() and is_safe_identifier(path.stem)
        )

    async def put(self, key: str, document: dict[str, Any]) -> None:
        _require_safe_key(key)
        try:
            await asyncio.to_thread(self._write, key, document)
        except OSError as exc:
            raise StorageFailureError(f"write {self._path(key)} failed: {exc}") from exc

    async def get(self, key: str) -> dict[str, Any]:
        if not is_safe_identifier(key):
            raise RecordNotFoundError(key)
        try:
            return await asyncio.to_thread(self._read, key)
        except FileNotFoundError as exc:
            raise RecordNotFoundError(key) from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageFailureError(f"read {self._path(key)} failed: {exc}") from exc

    async def exists(self, key: str) -> bool:
        if not is_safe_identifier(key):
            return False
        return await asyncio.to_thread(self._path(key).is_file)

    async def list(self) -> list[str]:
        try:
            return await asyncio.to_thread(self._list)
        except OSError as exc:
            raise StorageFailureError(f"listing {self.root} failed: {exc}") from exc

    async def check(self) -> None:
        is_dir = await asyncio.to_thread(self.root.is_dir)
        if not is_dir or not os.access(self.root, os.W_OK):
            raise StorageFailureError(f"{self.root} is not a writable directory")


class InMemoryRecordStore(RecordStore):
    """In-memory record store.

    Documents are kept serialized so callers can never mutate stored
    state through a returned reference. Data is lost on restart.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def put(self, key: str, document: dict[str, Any]) -> None:
        _require_safe_key(key)
        self._data[key] = json.dumps(document)

    async def get(self, key: str) -> dict[str, Any]:
        try:
            return json.loads(self._data[key])
        except KeyError as exc:
            raise RecordNotFoundError(key) from exc

    async def exists(self, key: str) -> bool:
        return key in self._data

    async def list(self) -> list[str]:
        return sorted(self._data)
