"""Translation memory service.

Stores translations of canonical theme templates per scope so that the same
opening/ending lines are translated once per series. Every update is
read-merge-write under a per-scope lock; reads fail open.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Set

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from subflow.config import settings
from subflow.core.translation.errors import MemoryStoreError
from .store import KeyValueStore

logger = logging.getLogger(__name__)

MEMORY_FORMAT_VERSION = 1

# Errors that mean "store unavailable or unreadable"
STORE_ERRORS = (MemoryStoreError, SQLAlchemyError, OSError)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_memory_key(
    source_lang: str,
    target_lang: str,
    provider: str,
    model: str,
    signature: str,
) -> str:
    """Entry key within a scope."""
    return f"{source_lang}:{target_lang}:{provider}:{model}:{signature}"


class TranslationMemoryEntry(BaseModel):
    """A remembered translation of one canonical template."""

    signature: str
    source_language: str
    target_language: str
    provider: str
    model: str
    translated_canonical_skeleton: str
    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)
    hit_count: int = Field(default=0, ge=0)


class TranslationMemory:
    """Scoped translation memory backed by a key-value store."""

    def __init__(self, store: KeyValueStore, write_attempts: Optional[int] = None):
        """Initialize translation memory.

        Args:
            store: Persistent store holding one blob per scope
            write_attempts: Attempts per write (defaults to settings)
        """
        self.store = store
        self.write_attempts = max(1, write_attempts or settings.store_write_retries)
        # Lock per scope, dropped once no update holds or waits for it
        self._scope_locks: Dict[str, asyncio.Lock] = {}
        self._scope_lock_users: Dict[str, int] = {}
        self._background: Set["asyncio.Task[None]"] = set()

    async def lookup(self, scope_key: str, keys: Iterable[str]) -> Dict[str, TranslationMemoryEntry]:
        """Find remembered translations.

        Args:
            scope_key: Memory scope
            keys: Entry keys (see build_memory_key)

        Returns:
            Mapping of found keys to entries; empty when the store fails
        """
        keys = list(keys)
        if not keys:
            return {}

        try:
            entries = await self._load_entries(scope_key)
        except STORE_ERRORS as e:
            logger.warning(f"[Translation Memory] Lookup failed for scope {scope_key}, treating as miss: {e}")
            return {}

        found: Dict[str, TranslationMemoryEntry] = {}
        for key in keys:
            raw = entries.get(key)
            if raw is None:
                continue
            try:
                found[key] = TranslationMemoryEntry.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"[Translation Memory] Ignoring corrupt entry {key}: {e.error_count()} error(s)")

        logger.info(f"[Translation Memory] Lookup scope={scope_key}: {len(found)}/{len(keys)} hit(s)")
        return found

    async def touch(self, scope_key: str, keys: Iterable[str]) -> None:
        """Increment hit counters and refresh ``updated_at`` for entries."""
        keys = list(keys)
        if not keys:
            return

        def merge(entries: Dict[str, Any]) -> bool:
            now = _now_iso()
            changed = False
            for key in keys:
                existing = entries.get(key)
                if not isinstance(existing, dict):
                    continue
                entries[key] = {
                    **existing,
                    "updated_at": now,
                    "hit_count": int(existing.get("hit_count", 0)) + 1,
                }
                changed = True
            return changed

        await self._update_scope(scope_key, merge, action="touch")

    def touch_in_background(self, scope_key: str, keys: Iterable[str]) -> "asyncio.Task[None]":
        """Schedule ``touch`` without blocking the caller.

        Returns:
            The scheduled task; callers must await it (or ``drain``) before
            their event loop ends
        """
        task = asyncio.create_task(self.touch(scope_key, list(keys)))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def drain(self) -> None:
        """Wait for pending background updates."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def upsert(self, scope_key: str, entries: Mapping[str, TranslationMemoryEntry]) -> None:
        """Persist new or updated entries.

        Existing entries keep their ``created_at`` and ``hit_count``.
        """
        if not entries:
            return

        def merge(current: Dict[str, Any]) -> bool:
            now = _now_iso()
            for key, entry in entries.items():
                existing = current.get(key) if isinstance(current.get(key), dict) else {}
                current[key] = {
                    **entry.model_dump(),
                    "created_at": existing.get("created_at", now),
                    "updated_at": now,
                    "hit_count": int(existing.get("hit_count", 0)),
                }
            return True

        await self._update_scope(scope_key, merge, action="upsert")

    async def _load_entries(self, scope_key: str) -> Dict[str, Any]:
        data = await self.store.get(scope_key)
        if data is None:
            return {}
        if data.get("version") != MEMORY_FORMAT_VERSION or not isinstance(data.get("entries"), dict):
            raise MemoryStoreError(f"Unrecognized memory format for scope {scope_key}")
        return data["entries"]

    async def _update_scope(
        self,
        scope_key: str,
        merge: Callable[[Dict[str, Any]], bool],
        *,
        action: str,
    ) -> None:
        lock = self._scope_locks.get(scope_key)
        if lock is None:
            lock = self._scope_locks[scope_key] = asyncio.Lock()
        self._scope_lock_users[scope_key] = self._scope_lock_users.get(scope_key, 0) + 1

        try:
            async with lock:
                await self._merge_and_write(scope_key, merge, action=action)
        finally:
            self._scope_lock_users[scope_key] -= 1
            if not self._scope_lock_users[scope_key]:
                del self._scope_lock_users[scope_key]
                del self._scope_locks[scope_key]

    async def _merge_and_write(
        self,
        scope_key: str,
        merge: Callable[[Dict[str, Any]], bool],
        *,
        action: str,
    ) -> None:
        try:
            try:
                entries = await self._load_entries(scope_key)
            except MemoryStoreError as e:
                # An unreadable scope must not be overwritten with a partial view
                logger.warning(f"[Translation Memory] Skipping {action} for scope {scope_key}: {e}")
                return

            if not merge(entries):
                return

            blob = {
                "version": MEMORY_FORMAT_VERSION,
                "updated_at": _now_iso(),
                "entries": entries,
            }
            await self._write_with_retry(scope_key, blob)
        except (RetryError, *STORE_ERRORS) as e:
            logger.warning(f"[Translation Memory] {action} failed for scope {scope_key}: {e}")

    async def _write_with_retry(self, scope_key: str, blob: Dict[str, Any]) -> None:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.write_attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            retry=retry_if_exception_type(STORE_ERRORS),
            reraise=True,
        ):
            with attempt:
                await self.store.set(scope_key, blob)


def create_translation_memory(backend: Optional[str] = None) -> TranslationMemory:
    """Create translation memory for the configured store backend."""
    from .store import DatabaseKeyValueStore, InMemoryKeyValueStore, JsonFileKeyValueStore

    backend = backend or settings.memory_store_backend
    if backend == "memory":
        store: KeyValueStore = InMemoryKeyValueStore()
    elif backend == "json":
        store = JsonFileKeyValueStore(settings.memory_store_dir)
    elif backend == "database":
        from subflow.models.database.base import async_session_maker

        store = DatabaseKeyValueStore(async_session_maker)
    else:
        raise ValueError(f"Unknown memory store backend: {backend}")

    logger.info(f"[Translation Memory] Using {backend} store")
    return TranslationMemory(store)
