import logging
import os
from typing import Any, AsyncIterator, Dict

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

logger = logging.getLogger(__name__)

load_dotenv()

# Postgres in deployment (postgresql+asyncpg://...), a local SQLite file otherwise
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./parallelai.db")
SQL_ECHO = (os.getenv("SQL_ECHO", "")).lower() in ("1", "true", "yes", "on")


def _engine_options(url: str) -> Dict[str, Any]:
    opts: Dict[str, Any] = {"echo": SQL_ECHO}
    if url.startswith("sqlite"):
        # aiosqlite connections are bound to the loop that opened them;
        # TestClient and the CLI each run their own loop
        opts["poolclass"] = NullPool
    else:
        opts["pool_pre_ping"] = True
    return opts


def make_engine(url: str = DATABASE_URL) -> AsyncEngine:
    return create_async_engine(url, **_engine_options(url))


engine = make_engine()

SessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


class Base(DeclarativeBase):
    """Declarative base for conversation tables."""


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one session per request, closed afterwards."""
    async with SessionLocal() as session:
        yield session


async def check_connection() -> None:
    async with engine.connect() as conn:
        result = await conn.execute(text("SELECT 1"))
        logger.info("database reachable (%s): SELECT 1 -> %s", engine.url.get_backend_name(), result.scalar_one())
