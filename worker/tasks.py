"""
Celery tasks for Inventra.
"""
import logging
from typing import Any, Dict

from sqlalchemy.exc import OperationalError

from app.services.import_service import build_import_service

from worker.celery_app import celery_app

logger = logging.getLogger("worker.tasks")


def dispatch_batch(batch_id: int) -> None:
    """Process a batch in this worker process."""
    # Processing never schedules, so no dispatcher is needed
    service = build_import_service(dispatcher=lambda _batch_id: None)
    service.process_batch(batch_id)


@celery_app.task(bind=True, max_retries=3)
def process_import_batch(self, batch_id: int) -> Dict[str, Any]:
    """
    Process one import batch in the background.

    Args:
        batch_id: Id of a pending import batch
    """
    logger.info(f"Starting import batch processing: {batch_id}")

    try:
        dispatch_batch(batch_id)
    except OperationalError as e:
        # Before the claim the retry processes the batch. After it (final save
        # failed) the retry is a no-op and the batch stays processing.
        logger.error(f"Import batch {batch_id}: database unavailable - {e}")
        raise self.retry(exc=e, countdown=60)

    return {"status": "success", "batch_id": batch_id}
