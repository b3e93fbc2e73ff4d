#!/usr/bin/env python3
"""
Readiness check for an Inventra deployment.
Checks the database, the message broker, the web app and the import workers.
"""

import logging
import os
import sys
from pathlib import Path

import requests

# Project root on the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def check_database():
    """Database reachable"""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    from app.database.engine import engine

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        logger.info("✅ Database reachable")
        return True
    except SQLAlchemyError as e:
        logger.error(f"❌ Database unreachable: {e}")
        return False


def check_broker():
    """Message broker reachable through the Celery connection"""
    from worker.celery_app import celery_app

    try:
        with celery_app.connection_for_write() as conn:
            conn.ensure_connection(max_retries=1)
        logger.info("✅ Message broker reachable")
        return True
    except Exception as e:
        logger.error(f"❌ Message broker unreachable: {e}")
        return False


def check_web_app():
    """Web application answers /healthz"""
    base_url = os.getenv("APP_BASE_URL", "http://localhost:8000")
    try:
        response = requests.get(f"{base_url}/healthz", timeout=10)
    except requests.RequestException as e:
        logger.error(f"❌ Web application unreachable: {e}")
        return False

    if response.status_code == 200:
        logger.info("✅ Web application reachable")
        return True
    logger.error(f"❌ Web application unhealthy: HTTP {response.status_code}")
    return False


def check_celery_workers():
    """At least one worker answers a ping"""
    from worker.celery_app import celery_app

    try:
        replies = celery_app.control.ping(timeout=5) or []
    except Exception as e:
        logger.warning(f"⚠️ Could not ping Celery workers: {e}")
        return False

    if replies:
        logger.info(f"✅ Celery workers active: {len(replies)}")
        return True
    logger.warning("⚠️ No Celery workers answered")
    return False


def main():
    logger.info("🔍 Checking Inventra readiness")

    checks = [
        ("Database", check_database, True),
        ("Message broker", check_broker, True),
        ("Web application", check_web_app, True),
        ("Celery workers", check_celery_workers, False),
    ]

    results = []
    for name, check_func, critical in checks:
        logger.info(f"Checking {name}...")
        result = check_func()
        results.append((name, result))

        if not result and critical:
            logger.error(f"❌ Critical component {name} unavailable")
            sys.exit(1)

    logger.info("📊 Results:")
    for name, result in results:
        logger.info(f"  {name}: {'✅ OK' if result else '❌ FAIL'}")

    failed_checks = [name for name, result in results if not result]
    if failed_checks:
        logger.warning(f"⚠️ Unavailable components: {', '.join(failed_checks)}")
    else:
        logger.info("🎉 All components ready")


if __name__ == "__main__":
    main()
