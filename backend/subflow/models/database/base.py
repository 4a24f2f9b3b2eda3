"""Database engine, session factory and declarative base."""

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from subflow.config import settings


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create an async engine for the configured database."""
    return create_async_engine(database_url or settings.database_url, echo=settings.debug)


engine = create_engine()
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """Create all tables."""
    # Import models so they are registered on the metadata
    from subflow.models.database import translation_memory  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
