"""
Import batch models.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from app.models.timestamps import timestamp_field


class ImportEntityType(str, Enum):
    """Entity types that can be bulk imported."""

    PRODUCT = "product"
    CUSTOMER = "customer"
    SUPPLIER = "supplier"
    PRODUCT_CATEGORY = "product_category"
    OPENING_STOCK = "opening_stock"
    SALES_ORDER = "sales_order"
    PURCHASE_ORDER = "purchase_order"


class BatchStatus(str, Enum):
    """Batch lifecycle. Moves forward only: pending -> processing -> completed | failed."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"  # may still carry row-level errors
    FAILED = "failed"  # critical error, nothing more will happen

    @property
    def is_terminal(self) -> bool:
        return self in (BatchStatus.COMPLETED, BatchStatus.FAILED)


class ImportBatch(SQLModel, table=True):
    """One submitted import request, tracked through its lifecycle."""

    __tablename__ = "import_batches"

    id: Optional[int] = Field(default=None, primary_key=True)
    entity_type: str = Field(max_length=50, index=True)
    status: str = Field(max_length=30, default=BatchStatus.PENDING.value, index=True)

    # Rows exactly as accepted at submission; never rewritten
    payload: List[Dict[str, Any]] = Field(sa_column=Column(JSON, nullable=False))

    # {totalRows, successfullyImported, failedRowsCount}
    summary: Optional[Dict[str, int]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    # [{row, data, error}], row is 1-based
    error_details: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    critical_error: Optional[str] = Field(default=None)

    original_file_name: Optional[str] = Field(default=None, max_length=255)
    created_by_user_id: Optional[int] = Field(default=None)
    updated_by_user_id: Optional[int] = Field(default=None)

    created_at: datetime = timestamp_field(index=True)
    updated_at: datetime = timestamp_field()
    started_at: Optional[datetime] = timestamp_field(required=False)
    completed_at: Optional[datetime] = timestamp_field(required=False)
    deleted_at: Optional[datetime] = timestamp_field(required=False)

    @property
    def total_rows(self) -> int:
        return len(self.payload or [])
