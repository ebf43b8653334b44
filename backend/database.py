"""
Database connection for PostgreSQL (production) or SQLite (local dev).

Env vars (set in the host's variables or .env):
    DATABASE_URL  -- full postgres:// connection string
    DATABASE_URL_FALLBACK -- optional sqlite+aiosqlite:///./local.db for local dev
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

import config_env


def resolve_database_url(raw_url: str = "", fallback: str = "") -> str:
    """Normalise a deployment URL to an async driver URL."""
    if raw_url:
        # Hosting platforms hand out postgres:// but asyncpg needs postgresql+asyncpg://
        if raw_url.startswith("postgres://"):
            return raw_url.replace("postgres://", "postgresql+asyncpg://", 1)
        if raw_url.startswith("postgresql://"):
            return raw_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return raw_url
    return fallback or "sqlite+aiosqlite:///./magic_admin.db"


def make_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine; SQLite gets foreign keys switched on for cascades."""
    eng = create_async_engine(url, echo=False, **kwargs)
    if url.startswith("sqlite"):

        @event.listens_for(eng.sync_engine, "connect")
        def _sqlite_fk_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return eng


DATABASE_URL = resolve_database_url(config_env.DATABASE_URL, config_env.DATABASE_URL_FALLBACK)

engine = make_engine(DATABASE_URL)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def init_db(bind: AsyncEngine | None = None):
    """Create all tables (safe to call multiple times)."""
    # models must be imported so their tables are registered on Base.metadata
    from backend import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncSession:
    async with async_session() as session:
        yield session
