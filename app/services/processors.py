"""
Batch processors: one commit protocol per entity type.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.import_models import ImportBatch, ImportEntityType
from app.services.collaborators import (
    BulkEntityCollaborator,
    CompoundEntityCollaborator,
    CustomerCollaborator,
    OpeningStockCollaborator,
    ProductCategoryCollaborator,
    ProductCollaborator,
    PurchaseOrderCollaborator,
    RowContext,
    SalesOrderCollaborator,
    SupplierCollaborator,
)
from app.services.import_errors import BatchCommitError, UnsupportedEntityTypeError
from app.services.row_validator import RowValidator

logger = logging.getLogger("app.import.processors")

TRANSACTION_FAILED_MESSAGE = "Transaction failed due to database error."
BATCH_ABORTED_MESSAGE = "Row not imported: batch processing aborted."


def build_summary(total: int, imported: int, failed: int) -> Dict[str, int]:
    return {"totalRows": total, "successfullyImported": imported, "failedRowsCount": failed}


class BatchProcessor:
    """Base for processors. ``process`` fills ``summary`` and ``error_details``."""

    protocol: str = ""

    def __init__(self, collaborator: Any):
        self.collaborator = collaborator

    @property
    def entity_type(self) -> ImportEntityType:
        return self.collaborator.entity_type

    def process(self, batch: ImportBatch, session: Session) -> None:
        raise NotImplementedError

    def abort(self, batch: ImportBatch, reason: Optional[str] = None) -> None:
        """Make the row-level view consistent after a critical error."""
        raise NotImplementedError


class BulkCommitProcessor(BatchProcessor):
    """
    All-or-nothing: every row is validated first, and a single failing row
    means nothing is written for the whole batch.
    """

    protocol = "bulk_commit"

    def __init__(self, collaborator: BulkEntityCollaborator):
        super().__init__(collaborator)
        self.validator = RowValidator(collaborator)

    def process(self, batch: ImportBatch, session: Session) -> None:
        rows = batch.payload
        outcome = self.validator.validate(rows, session, batch.created_by_user_id)

        if outcome.failed_rows:
            batch.summary = build_summary(len(rows), 0, len(outcome.failed_rows))
            batch.error_details = outcome.failed_rows
            logger.info(
                f"Import batch {batch.id}: {len(outcome.failed_rows)} invalid {self.collaborator.label} rows, "
                f"nothing written"
            )
            return

        if outcome.valid_entities:
            try:
                self.collaborator.commit(session, outcome.valid_entities)
            except SQLAlchemyError as e:
                session.rollback()
                self.abort(batch, TRANSACTION_FAILED_MESSAGE)
                raise BatchCommitError(f"Database error during {self.collaborator.label} bulk insert: {e}") from e

        batch.summary = build_summary(len(rows), len(outcome.valid_entities), 0)
        batch.error_details = None
        logger.info(f"Import batch {batch.id}: {len(outcome.valid_entities)} {self.collaborator.label} rows written")

    def abort(self, batch: ImportBatch, reason: Optional[str] = None) -> None:
        rows = batch.payload
        batch.summary = build_summary(len(rows), 0, len(rows))
        batch.error_details = [
            {"row": row_number, "data": row, "error": reason or BATCH_ABORTED_MESSAGE}
            for row_number, row in enumerate(rows, start=1)
        ]


class IndependentRowProcessor(BatchProcessor):
    """
    Each row is created and committed on its own; a failing row is recorded
    and the next one is attempted.
    """

    protocol = "independent_row"

    collaborator: CompoundEntityCollaborator

    def process(self, batch: ImportBatch, session: Session) -> None:
        rows = batch.payload
        imported = 0
        failed: List[Dict[str, Any]] = []
        batch.summary = build_summary(len(rows), 0, 0)

        for row_number, row in enumerate(rows, start=1):
            context = RowContext(batch_id=batch.id, row_number=row_number, user_id=batch.created_by_user_id)
            try:
                self.collaborator.create_compound(session, row, context)
                session.commit()
                imported += 1
            except Exception as e:
                session.rollback()
                failed.append({"row": row_number, "data": row, "error": str(e)})
                logger.warning(f"Import batch {batch.id} row {row_number} ({self.collaborator.label}) failed: {e}")

            # kept current so abort() knows how far we got
            batch.summary = build_summary(len(rows), imported, len(failed))
            batch.error_details = list(failed) or None

        logger.info(
            f"Import batch {batch.id}: {imported} {self.collaborator.label} rows imported, {len(failed)} failed"
        )

    def abort(self, batch: ImportBatch, reason: Optional[str] = None) -> None:
        rows = batch.payload
        summary = batch.summary or build_summary(len(rows), 0, 0)
        imported = summary["successfullyImported"]
        details = list(batch.error_details or [])
        attempted = imported + len(details)

        for row_number in range(attempted + 1, len(rows) + 1):
            details.append({"row": row_number, "data": rows[row_number - 1], "error": reason or BATCH_ABORTED_MESSAGE})

        batch.summary = build_summary(len(rows), imported, len(details))
        batch.error_details = details or None


class ProcessorRegistry:
    """Maps entity type tags to processors."""

    def __init__(self, processors: Iterable[BatchProcessor] = ()):
        self._processors: Dict[str, BatchProcessor] = {}
        for processor in processors:
            self.register(processor)

    def register(self, processor: BatchProcessor) -> BatchProcessor:
        self._processors[processor.entity_type.value] = processor
        logger.debug(f"Registered {processor.protocol} processor for {processor.entity_type.value}")
        return processor

    def get(self, entity_type: Optional[str]) -> BatchProcessor:
        processor = self._processors.get(entity_type)
        if processor is None:
            raise UnsupportedEntityTypeError(entity_type)
        return processor

    def __contains__(self, entity_type: str) -> bool:
        return entity_type in self._processors

    @property
    def entity_types(self) -> List[str]:
        return sorted(self._processors)


def default_processor_registry() -> ProcessorRegistry:
    """Return a registry with every importable entity type."""
    return ProcessorRegistry(
        [
            BulkCommitProcessor(ProductCollaborator()),
            BulkCommitProcessor(CustomerCollaborator()),
            BulkCommitProcessor(SupplierCollaborator()),
            BulkCommitProcessor(ProductCategoryCollaborator()),
            IndependentRowProcessor(OpeningStockCollaborator()),
            IndependentRowProcessor(SalesOrderCollaborator()),
            IndependentRowProcessor(PurchaseOrderCollaborator()),
        ]
    )
