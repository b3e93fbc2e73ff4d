"""
Persistence for import batch records.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.import_models import BatchStatus, ImportBatch
from app.services.config_service import config_service

logger = logging.getLogger("app.import.store")


class ImportBatchStore:
    """
    Batch repository. Every call runs in its own short session and returns
    detached instances, so callers may hold batches across calls.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def create(self, batch: ImportBatch) -> ImportBatch:
        """
        Insert a new batch.

        Args:
            batch: Unsaved batch

        Returns:
            The stored batch with its id assigned
        """
        with self._session_factory() as session:
            session.add(batch)
            session.commit()
            session.refresh(batch)
            session.expunge(batch)

        logger.info(f"Import batch created: {batch.id} ({batch.entity_type}, {batch.total_rows} rows)")
        return batch

    def save(self, batch: ImportBatch) -> ImportBatch:
        """
        Persist the current state of a batch.

        Args:
            batch: Batch previously returned by this store

        Returns:
            Fresh detached copy of the saved batch
        """
        batch.updated_at = config_service.now()
        try:
            with self._session_factory() as session:
                merged = session.merge(batch)
                session.commit()
                session.refresh(merged)
                session.expunge(merged)
        except SQLAlchemyError as e:
            logger.error(f"Error saving import batch {batch.id or 'new'}: {e}")
            raise

        return merged

    def find_by_id(self, batch_id: int) -> Optional[ImportBatch]:
        """Load a batch, ignoring soft-deleted ones."""
        with self._session_factory() as session:
            batch = session.execute(
                select(ImportBatch).where(ImportBatch.id == batch_id, ImportBatch.deleted_at.is_(None))
            ).scalar_one_or_none()
            if batch is not None:
                session.expunge(batch)
        return batch

    def claim(self, batch_id: int) -> bool:
        """
        Move a batch from pending to processing.

        Single conditional UPDATE, so of several concurrent callers exactly
        one sees True.
        """
        now = config_service.now()
        with self._session_factory() as session:
            result = session.execute(
                update(ImportBatch)
                .where(
                    ImportBatch.id == batch_id,
                    ImportBatch.status == BatchStatus.PENDING.value,
                    ImportBatch.deleted_at.is_(None),
                )
                .values(status=BatchStatus.PROCESSING.value, started_at=now, updated_at=now)
            )
            session.commit()

        claimed = result.rowcount == 1
        logger.debug(f"Claim of import batch {batch_id}: {'acquired' if claimed else 'lost'}")
        return claimed

    def list_batches(
        self,
        entity_type: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[ImportBatch], int]:
        """
        List batches newest first.

        Returns:
            (page of batches, total matching count)
        """
        conditions = [ImportBatch.deleted_at.is_(None)]
        if entity_type:
            conditions.append(ImportBatch.entity_type == entity_type)
        if status:
            conditions.append(ImportBatch.status == status)

        with self._session_factory() as session:
            total = session.execute(select(func.count()).select_from(ImportBatch).where(*conditions)).scalar_one()
            batches = list(
                session.execute(
                    select(ImportBatch)
                    .where(*conditions)
                    .order_by(ImportBatch.created_at.desc(), ImportBatch.id.desc())
                    .offset(skip)
                    .limit(limit)
                ).scalars()
            )
            for batch in batches:
                session.expunge(batch)

        return batches, total

    def find_ids_by_status(self, status: BatchStatus, created_before: datetime) -> List[int]:
        """Ids of batches in ``status`` created before the cutoff, oldest first."""
        with self._session_factory() as session:
            rows = session.execute(
                select(ImportBatch.id)
                .where(
                    ImportBatch.status == status.value,
                    ImportBatch.created_at < created_before,
                    ImportBatch.deleted_at.is_(None),
                )
                .order_by(ImportBatch.created_at, ImportBatch.id)
            ).scalars()
            return list(rows)
