#!/usr/bin/env python3
"""
Seed demo stores, products and orders.

Creates the tables if needed, then adds the demo stores that are not there
yet (matched by slug). Safe to run multiple times.

Usage:
    export DATABASE_URL="postgresql+asyncpg://localhost:5432/shopfront"
    python scripts/seed_demo.py

    # Only create tables:
    python scripts/seed_demo.py --schema-only
"""

import argparse
import asyncio
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from shopfront.core.db import AsyncSessionLocal, Base, engine
from shopfront.seed import seed_demo_data

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


async def run_seeding(schema_only: bool) -> int:
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Schema ready")

        if schema_only:
            return 0

        async with AsyncSessionLocal() as session:
            return await seed_demo_data(session)
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Seed demo stores for local development")
    parser.add_argument(
        "--schema-only",
        action="store_true",
        help="Create tables without inserting demo data",
    )
    args = parser.parse_args()

    try:
        created = asyncio.run(run_seeding(schema_only=args.schema_only))
        logger.info(f"Done: {created} demo stores created")
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
