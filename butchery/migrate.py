# migrate.py
"""
One-off schema migration: ``python -m butchery.migrate``.

Every step is idempotent, so the script can be re-run on any deployment.
Statements are applied one by one with no rollback across them.
"""

import asyncio
import logging
import sys
from typing import List, Tuple

from dotenv import load_dotenv
from sqlalchemy import func, inspect, select, text
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

# Columns added after the first release: (table, column, SQL type and default).
ADDED_COLUMNS: List[Tuple[str, str, str]] = [
    ("products", "name_ar", "VARCHAR(200)"),
    ("products", "description_ar", "TEXT"),
    ("products", "is_premium", "BOOLEAN NOT NULL DEFAULT FALSE"),
    ("products", "is_featured", "BOOLEAN NOT NULL DEFAULT FALSE"),
    ("products", "tags", "JSON"),
    ("orders", "driver_tip", "NUMERIC(10, 2) NOT NULL DEFAULT 0"),
    ("orders", "discount", "NUMERIC(10, 2) NOT NULL DEFAULT 0"),
    ("orders", "discount_code", "VARCHAR(50)"),
    ("orders", "source", "VARCHAR(20) NOT NULL DEFAULT 'web'"),
    ("orders", "actual_delivery_at", "TIMESTAMP"),
    ("delivery_zones", "express_enabled", "BOOLEAN NOT NULL DEFAULT FALSE"),
    ("delivery_zones", "express_fee", "NUMERIC(10, 2) NOT NULL DEFAULT 25"),
]


def add_column_statement(table: str, column: str, ddl: str, if_not_exists: bool = True) -> str:
    guard = "IF NOT EXISTS " if if_not_exists else ""
    return f"ALTER TABLE {table} ADD COLUMN {guard}{column} {ddl}"


async def create_tables(engine: AsyncEngine) -> None:
    from butchery import models  # noqa: F401
    from butchery.db import Base

    # create_all checks for each table first (CREATE TABLE IF NOT EXISTS).
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("📦 Tables verified/created.")


async def add_columns(engine: AsyncEngine) -> int:
    """Adds any missing columns and returns how many statements ran."""
    applied = 0
    async with engine.begin() as conn:
        if engine.dialect.name == "postgresql":
            for table, column, ddl in ADDED_COLUMNS:
                await conn.execute(text(add_column_statement(table, column, ddl)))
                applied += 1
            return applied

        # SQLite has no ADD COLUMN IF NOT EXISTS; check the live schema instead.
        existing = await conn.run_sync(
            lambda sync_conn: {
                table: {c["name"] for c in inspect(sync_conn).get_columns(table)}
                for table in {t for t, _, _ in ADDED_COLUMNS}
                if inspect(sync_conn).has_table(table)
            }
        )
        for table, column, ddl in ADDED_COLUMNS:
            if table in existing and column not in existing[table]:
                await conn.execute(text(add_column_statement(table, column, ddl, if_not_exists=False)))
                logger.info(f"Added column {table}.{column}.")
                applied += 1
    return applied


async def seed_categories(engine: AsyncEngine) -> int:
    """Inserts the default categories when the table is empty."""
    from butchery.models import ProductCategory
    from butchery.schemas import DEFAULT_CATEGORIES

    async with engine.begin() as conn:
        count = await conn.scalar(select(func.count()).select_from(ProductCategory.__table__))
        if count:
            logger.info(f"✅ {count} categories already present.")
            return 0
        await conn.execute(
            ProductCategory.__table__.insert(),
            [category.model_dump(exclude_none=True) for category in DEFAULT_CATEGORIES],
        )
    logger.info(f"🌱 Seeded {len(DEFAULT_CATEGORIES)} default categories.")
    return len(DEFAULT_CATEGORIES)


async def migrate(engine: AsyncEngine) -> None:
    await create_tables(engine)
    await add_columns(engine)
    await seed_categories(engine)


def main():
    # Load .env if present; hosted environments provide the variables directly.
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    from butchery.db import engine

    logger.info(f"📦 Migrating {engine.url.render_as_string(hide_password=True)}...")
    asyncio.run(migrate(engine))
    logger.info("🎉 Migration complete.")


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        logger.error(f"❌ Migration failed: {e}")
        sys.exit(1)
