# src/parallelai_backend/app/db/init_db.py
import asyncio
import logging

from parallelai_backend.app.db import models  # noqa: F401  (conversation tables on Base.metadata)
from parallelai_backend.app.db.session import Base, engine

logger = logging.getLogger(__name__)


async def init_models() -> None:
    """Create conversation_entries / entry_results if absent. Idempotent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("conversation tables ready: %s", ", ".join(sorted(Base.metadata.tables)))


async def drop_models() -> None:
    # tests only: wipes every conversation
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


if __name__ == "__main__":
    # python -m parallelai_backend.app.db.init_db
    asyncio.run(init_models())
