import logging
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from quizwhiz.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Async engine for the fallback cache database
async_engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
)

# Async session factory
async_session_maker = sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if not url.get_backend_name().startswith("sqlite"):
        return
    if not url.database or url.database == ":memory:":
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


async def init_db(engine=None):
    """Create all tables in the database."""
    from quizwhiz.models.cache import FallbackCacheRecord  # noqa: F401

    engine = engine or async_engine
    ensure_sqlite_directory(str(engine.url))
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Fallback cache database ready at %s", engine.url)
