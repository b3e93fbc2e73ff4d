"""
Import batch service: scheduling, dispatch and status of bulk imports.
"""
import io
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.import_models import BatchStatus, ImportBatch, ImportEntityType
from app.schemas.import_schemas import normalize_rows
from app.services.batch_store import ImportBatchStore
from app.services.config_service import config_service
from app.services.import_errors import (
    BatchCommitError,
    BatchNotFoundError,
    EmptyPayloadError,
    UnsupportedEntityTypeError,
)
from app.services.processors import (
    BATCH_ABORTED_MESSAGE,
    ProcessorRegistry,
    build_summary,
    default_processor_registry,
)

logger = logging.getLogger("app.import")

SPREADSHEET_EXTENSIONS = (".csv", ".xlsx", ".xls")


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_batch(batch: ImportBatch) -> Dict[str, Any]:
    """Public view of a batch."""
    return {
        "id": batch.id,
        "entityType": batch.entity_type,
        "status": batch.status,
        "summary": batch.summary,
        "errorDetails": batch.error_details,
        "criticalError": batch.critical_error,
        "originalFileName": batch.original_file_name,
        "createdByUserId": batch.created_by_user_id,
        "createdAt": _isoformat(batch.created_at),
        "updatedAt": _isoformat(batch.updated_at),
        "startedAt": _isoformat(batch.started_at),
        "completedAt": _isoformat(batch.completed_at),
    }


def read_spreadsheet(content: bytes, filename: str) -> List[Dict[str, Any]]:
    """
    Parse an uploaded CSV or Excel sheet into row dicts.

    Args:
        content: Raw file bytes
        filename: Original name, used to pick the parser

    Returns:
        One dict per data row, empty cells as None
    """
    lowered = filename.lower()
    if lowered.endswith(".csv"):
        df = pd.read_csv(io.BytesIO(content))
    elif lowered.endswith((".xlsx", ".xls")):
        df = pd.read_excel(io.BytesIO(content), sheet_name=0)
    else:
        raise ValueError(f"Unsupported file type: {filename}")

    df = df.dropna(how="all")
    # to_json turns NaN into null and numpy scalars into plain JSON numbers
    return json.loads(df.to_json(orient="records"))


def _void_rows(batch: ImportBatch) -> None:
    rows = batch.payload or []
    batch.summary = build_summary(len(rows), 0, len(rows))
    batch.error_details = [
        {"row": row_number, "data": row, "error": BATCH_ABORTED_MESSAGE}
        for row_number, row in enumerate(rows, start=1)
    ] or None


def celery_dispatcher(batch_id: int) -> None:
    """Hand a batch to the worker queue."""
    from worker.tasks import process_import_batch

    task = process_import_batch.delay(batch_id)
    logger.info(f"Import batch {batch_id} queued, task: {task.id}")


class ImportService:
    """
    Bulk import engine.

    The synchronous side only stores a pending batch and hands its id to the
    dispatcher; ``process_batch`` does the work wherever the dispatcher sends it.
    """

    def __init__(
        self,
        store: ImportBatchStore,
        registry: ProcessorRegistry,
        session_factory: Callable[[], Session],
        dispatcher: Callable[[int], Any],
    ):
        self.store = store
        self.registry = registry
        self.session_factory = session_factory
        self.dispatcher = dispatcher

    # ----------------------------
    # Scheduling
    # ----------------------------

    def schedule_import(
        self,
        entity_type: Any,
        rows: Optional[List[Any]],
        original_file_name: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Store a new pending batch and queue it for processing.

        Args:
            entity_type: ImportEntityType or its value
            rows: Raw rows; must be non-empty
            original_file_name: Descriptive label from the caller
            user_id: Submitting user

        Returns:
            Pending batch view

        Raises:
            EmptyPayloadError: rows missing or empty
            PayloadShapeError: a row does not have the entity's basic shape
            UnsupportedEntityTypeError: unknown entity type
        """
        try:
            entity_type = ImportEntityType(entity_type)
        except ValueError:
            raise UnsupportedEntityTypeError(str(entity_type))

        if not rows:
            raise EmptyPayloadError()

        payload = normalize_rows(entity_type, rows)
        now = config_service.now()

        batch = ImportBatch(
            entity_type=entity_type.value,
            status=BatchStatus.PENDING.value,
            payload=payload,
            summary=build_summary(len(payload), 0, 0),
            original_file_name=original_file_name,
            created_by_user_id=user_id,
            updated_by_user_id=user_id,
            created_at=now,
            updated_at=now,
        )
        batch = self.store.create(batch)
        self._dispatch(batch.id)

        logger.info(f"Import batch ID {batch.id} scheduled for processing.")
        return serialize_batch(batch)

    def _dispatch(self, batch_id: int) -> None:
        try:
            self.dispatcher(batch_id)
        except Exception as e:
            # The batch stays pending; the requeue beat task picks it up
            logger.error(f"Failed to dispatch import batch {batch_id}: {e}")

    # ----------------------------
    # Processing
    # ----------------------------

    def process_batch(self, batch_id: int) -> Optional[ImportBatch]:
        """
        Claim and process one batch.

        Returns:
            Final batch state, or None when the batch was not claimable
        """
        if not self.store.claim(batch_id):
            current = self.store.find_by_id(batch_id)
            logger.warning(
                f"Skipping import batch {batch_id}: not found or not in PENDING status "
                f"(current: {current.status if current else None})."
            )
            return None

        batch = self.store.find_by_id(batch_id)
        processor = None
        try:
            processor = self.registry.get(batch.entity_type)
            with self.session_factory() as session:
                processor.process(batch, session)
            batch.status = BatchStatus.COMPLETED.value
        except BatchCommitError as e:
            batch.status = BatchStatus.FAILED.value
            batch.critical_error = str(e)
            logger.error(f"Import batch {batch_id} failed critically: {e}")
        except Exception as e:
            batch.status = BatchStatus.FAILED.value
            batch.critical_error = str(e) or e.__class__.__name__
            if processor is not None:
                processor.abort(batch)
            else:
                _void_rows(batch)
            logger.exception(f"Import batch {batch_id} failed critically: {e}")
        finally:
            batch.completed_at = config_service.now()
            try:
                batch = self.store.save(batch)
            except SQLAlchemyError as e:
                # Claim already taken, so no retry picks this batch up again
                logger.error(
                    f"Import batch {batch_id} could not be saved as {batch.status}, left in PROCESSING: {e}"
                )
                raise
            logger.info(f"Processing finished for import batch {batch_id}. Status: {batch.status}.")

        return batch

    def requeue_stale_batches(self, older_than_seconds: Optional[int] = None) -> List[int]:
        """
        Re-dispatch batches left pending, e.g. after a worker or broker outage.

        Returns:
            Ids that were dispatched again
        """
        if older_than_seconds is None:
            older_than_seconds = config_service.get_int("IMPORT_REQUEUE_AFTER_SECONDS", 300)
        cutoff = config_service.now() - timedelta(seconds=older_than_seconds)

        pending = self.store.find_ids_by_status(BatchStatus.PENDING, cutoff)
        for batch_id in pending:
            self._dispatch(batch_id)
        if pending:
            logger.info(f"Requeued {len(pending)} stale pending import batches: {pending}")

        stuck = self.store.find_ids_by_status(BatchStatus.PROCESSING, cutoff)
        if stuck:
            logger.warning(f"Import batches still processing since before {cutoff.isoformat()}: {stuck}")

        return pending

    # ----------------------------
    # Status
    # ----------------------------

    def get_import_status(self, batch_id: int) -> Dict[str, Any]:
        """
        Latest stored state of a batch.

        Raises:
            BatchNotFoundError: unknown id
        """
        batch = self.store.find_by_id(batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return serialize_batch(batch)

    def list_batches(
        self,
        entity_type: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        max_limit = config_service.get_int("IMPORT_LIST_LIMIT", 50)
        limit = max_limit if limit is None else max(1, min(limit, max_limit))
        batches, total = self.store.list_batches(entity_type=entity_type, status=status, skip=max(skip, 0), limit=limit)
        return {"items": [serialize_batch(batch) for batch in batches], "total": total}


def build_import_service(
    session_factory: Optional[Callable[[], Session]] = None,
    dispatcher: Optional[Callable[[int], Any]] = None,
    registry: Optional[ProcessorRegistry] = None,
) -> ImportService:
    """Wire an ImportService with production defaults."""
    if session_factory is None:
        from app.database.session import SessionLocal

        session_factory = SessionLocal

    return ImportService(
        store=ImportBatchStore(session_factory),
        registry=registry or default_processor_registry(),
        session_factory=session_factory,
        dispatcher=dispatcher or celery_dispatcher,
    )
