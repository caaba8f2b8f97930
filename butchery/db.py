# db.py
import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base

# Import the centralized settings object
from butchery.settings import settings

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """Rewrites hosted PostgreSQL URLs to the asyncpg driver."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


DATABASE_URL = normalize_database_url(settings.DATABASE_URL)

if DATABASE_URL.startswith("postgresql+asyncpg://"):
    logger.info("✅ Connecting to PostgreSQL database.")
    # --- Connection Pooling (Essential for Production) ---
    # `pool_recycle` keeps idle connections from being dropped by the
    # database or network infrastructure; 1800 seconds is a common value.
    engine_options = {
        "pool_size": 10,
        "max_overflow": 5,
        "pool_timeout": 30,
        "pool_recycle": 1800,
    }
else:
    logger.info("✅ Using local SQLite database for development.")
    engine_options = {}


# --- SQLAlchemy Engine & Session ---

# Create an asynchronous engine for database interaction.
engine = create_async_engine(
    DATABASE_URL,
    echo=False,  # Set to True only for debugging to see generated SQL queries.
    **engine_options,
)

# `expire_on_commit=False` keeps attributes loaded after commit so handlers
# can serialize the object they just saved.
async_session_maker = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Base class for declarative models. All models in `models.py` inherit from this.
Base = declarative_base()


# --- FastAPI Dependency ---

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session to each request.

    A failed request rolls back whatever it left pending before the
    session is closed.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
