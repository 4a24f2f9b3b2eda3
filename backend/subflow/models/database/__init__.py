"""Database models package."""

from subflow.models.database.base import Base, async_session_maker, init_db
from subflow.models.database.translation_memory import TranslationMemoryScope

__all__ = [
    # Base
    "Base",
    "async_session_maker",
    "init_db",
    # Models
    "TranslationMemoryScope",
]
