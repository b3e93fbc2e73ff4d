"""
Celery Beat tasks for import batch housekeeping.
"""
import logging
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError

from app.services.config_service import config_service
from app.services.import_service import build_import_service

from worker.celery_app import celery_app

logger = logging.getLogger("worker.beat_tasks")


@celery_app.task
def requeue_stale_batches() -> Dict[str, Any]:
    """
    Re-dispatch batches stuck in pending, e.g. after a broker outage
    swallowed the original dispatch.
    """
    logger.info("Starting stale import batch check")

    try:
        requeued = build_import_service().requeue_stale_batches()
        return {
            "status": "success",
            "requeued": requeued,
            "timestamp": config_service.now().isoformat()
        }

    except SQLAlchemyError as e:
        logger.error(f"Error in requeue_stale_batches: {e}")
        return {
            "status": "error",
            "error": str(e),
            "timestamp": config_service.now().isoformat()
        }
