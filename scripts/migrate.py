"""
Applies migrations/*.sql in filename order, each file in its own transaction.
Stops at the first failing file.

    python -m scripts.migrate [--dir migrations]
"""
import argparse
import asyncio
import sys
from pathlib import Path

from sqlalchemy.ext.asyncio import create_async_engine

from app.core.config import settings
from app.core.logger import logger, setup_logging

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"

def migration_files(directory: Path):
    return sorted(p for p in directory.iterdir() if p.suffix == ".sql")

async def apply_migrations(url: str, directory: Path) -> int:
    files = migration_files(directory)
    if not files:
        logger.warning(f"⚠️ No migrations found in {directory}")
        return 0

    engine = create_async_engine(url)
    try:
        for path in files:
            sql = path.read_text(encoding="utf-8")
            logger.info(f"Running migration: {path.name}")
            try:
                async with engine.begin() as conn:
                    raw = await conn.get_raw_connection()
                    # asyncpg runs multi-statement scripts only without parameters
                    await raw.driver_connection.execute(sql)
            except Exception as e:
                logger.error(f"❌ Failed {path.name}: {e}")
                return 1
            logger.info(f"✅ {path.name} applied")
    finally:
        await engine.dispose()

    logger.info("All migrations applied successfully.")
    return 0

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Apply SQL migrations")
    parser.add_argument("--dir", type=Path, default=MIGRATIONS_DIR)
    args = parser.parse_args(argv)

    setup_logging()

    url = settings.database_url
    if not url or not url.startswith("postgresql"):
        logger.error("DATABASE_URL (PostgreSQL) not found in environment. Aborting.")
        return 1

    return asyncio.run(apply_migrations(url, args.dir))

if __name__ == "__main__":
    sys.exit(main())
