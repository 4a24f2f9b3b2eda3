"""Translation memory database model."""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from subflow.models.database.base import Base


class TranslationMemoryScope(Base):
    """One translation memory scope (a project/series folder).

    The whole scope is stored as a single JSON blob so that a scope can be
    read, merged and written back in one transaction.
    """

    __tablename__ = "translation_memory_scopes"

    scope_key: Mapped[str] = mapped_column(String(1024), primary_key=True)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
