"""Persistent key-value stores for the translation memory.

A store maps a scope key to one JSON-serializable blob. Stores do not merge;
callers load a scope, merge in memory and write the whole blob back.
"""

import asyncio
import copy
import hashlib
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from subflow.core.translation.errors import MemoryStoreError
from subflow.models.database.translation_memory import TranslationMemoryScope

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Scoped get/set of JSON-serializable blobs."""

    @abstractmethod
    async def get(self, scope_key: str) -> Optional[Dict[str, Any]]:
        """Load the blob stored for a scope, or None if there is none.

        Raises:
            MemoryStoreError: If the store cannot be read or the blob is corrupt
        """
        pass

    @abstractmethod
    async def set(self, scope_key: str, value: Dict[str, Any]) -> None:
        """Replace the blob stored for a scope atomically.

        Raises:
            MemoryStoreError: If the blob could not be written
        """
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store for ephemeral runs."""

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, Any]] = {}

    async def get(self, scope_key: str) -> Optional[Dict[str, Any]]:
        value = self._data.get(scope_key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, scope_key: str, value: Dict[str, Any]) -> None:
        self._data[scope_key] = copy.deepcopy(value)


class JsonFileKeyValueStore(KeyValueStore):
    """One JSON file per scope in a directory.

    File names are derived from a hash of the scope key, since scope keys
    are file system paths themselves.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, scope_key: str) -> Path:
        digest = hashlib.sha256(scope_key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    async def get(self, scope_key: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._read, self.path_for(scope_key))

    async def set(self, scope_key: str, value: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, self.path_for(scope_key), value)

    def _read(self, path: Path) -> Optional[Dict[str, Any]]:
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            raise MemoryStoreError(f"Could not read {path.name}: {e}") from e
        if not isinstance(data, dict):
            raise MemoryStoreError(f"Corrupt memory file {path.name}: not an object")
        return data

    def _write(self, path: Path, value: Dict[str, Any]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class DatabaseKeyValueStore(KeyValueStore):
    """One row per scope in the ``translation_memory_scopes`` table."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def get(self, scope_key: str) -> Optional[Dict[str, Any]]:
        async with self.session_maker() as db:
            result = await db.execute(
                select(TranslationMemoryScope).where(
                    TranslationMemoryScope.scope_key == scope_key
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            if not isinstance(row.payload, dict):
                raise MemoryStoreError(f"Corrupt memory scope {scope_key}: not an object")
            return copy.deepcopy(row.payload)

    async def set(self, scope_key: str, value: Dict[str, Any]) -> None:
        async with self.session_maker() as db:
            async with db.begin():
                row = await db.get(TranslationMemoryScope, scope_key)
                if row is None:
                    db.add(TranslationMemoryScope(scope_key=scope_key, payload=value))
                else:
                    row.payload = value
