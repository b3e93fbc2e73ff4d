"""
Exceptions raised by the import batch engine.
"""
from typing import Any, Dict, List, Optional


class BatchImportError(Exception):
    """Base class for import engine errors."""


class EmptyPayloadError(BatchImportError):
    """Submission carried no rows."""

    def __init__(self, message: str = "Import payload cannot be empty."):
        super().__init__(message)


class PayloadShapeError(BatchImportError):
    """Submitted rows do not match the basic shape of their entity type."""

    def __init__(self, entity_type: str, problems: List[Dict[str, Any]]):
        self.entity_type = entity_type
        self.problems = problems
        rows = ", ".join(str(p["row"]) for p in problems[:10])
        super().__init__(f"Malformed {entity_type} rows: {rows}")


class BatchNotFoundError(BatchImportError):
    def __init__(self, batch_id: Any):
        self.batch_id = batch_id
        super().__init__(f"Import batch with ID {batch_id} not found.")


class UnsupportedEntityTypeError(BatchImportError):
    def __init__(self, entity_type: Optional[str]):
        self.entity_type = entity_type
        super().__init__(f"Unsupported entity type for import: {entity_type}")


class BatchCommitError(BatchImportError):
    """The all-or-nothing write of a bulk batch failed at the storage level."""


class RowValidationError(ValueError):
    """A single row cannot be imported. Never aborts the batch."""
