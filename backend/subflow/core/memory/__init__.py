"""Translation memory for theme templates."""

from .scope import get_memory_scope_key
from .service import (
    TranslationMemory,
    TranslationMemoryEntry,
    build_memory_key,
    create_translation_memory,
)
from .store import (
    DatabaseKeyValueStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
)

__all__ = [
    "get_memory_scope_key",
    "TranslationMemory",
    "TranslationMemoryEntry",
    "build_memory_key",
    "create_translation_memory",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "DatabaseKeyValueStore",
]
