#!/usr/bin/env python3
"""
Database initialization script for Inventra.
Creates the schema and, with SEED_REFERENCE_DATA=true, the reference records
(currencies, warehouse, shop, ...) that imports point at.
"""

import logging
import os
import sys
from pathlib import Path

# Project root on the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from app.database.engine import engine
from app.database.init_db import create_tables, init_reference_data
from app.database.session import SessionLocal

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def check_database_exists():
    """True when the import tables are already there"""
    try:
        return inspect(engine).has_table("import_batches")
    except SQLAlchemyError as e:
        logger.info(f"Database not found or unreachable: {e}")
        return False


def seed_reference_data():
    """Seeds reference records when SEED_REFERENCE_DATA is set"""
    if os.getenv("SEED_REFERENCE_DATA", "false").lower() != "true":
        logger.info("Reference data seeding disabled (SEED_REFERENCE_DATA=false)")
        return True

    try:
        with SessionLocal() as db:
            ids = init_reference_data(db)
        logger.info(f"✅ Reference data ready: {ids}")
        return True
    except SQLAlchemyError as e:
        logger.error(f"❌ Failed to seed reference data: {e}")
        return False


def main():
    logger.info("🚀 Initializing Inventra database")

    db_url = os.getenv("DB_URL")
    if not db_url:
        logger.error("❌ DB_URL is not set")
        sys.exit(1)

    logger.info(f"📊 Database: {db_url.split('@')[1] if '@' in db_url else db_url}")

    if check_database_exists():
        logger.info("✅ Database already initialized")
    else:
        logger.info("🆕 Creating tables")
        try:
            create_tables(engine)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to create tables: {e}")
            sys.exit(1)

    if not seed_reference_data():
        sys.exit(1)

    logger.info("🎉 Database initialization finished")


if __name__ == "__main__":
    main()
