"""
Row validation shared by the bulk-commit processors.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from sqlalchemy.orm import Session
from sqlmodel import SQLModel

from app.services.collaborators import BulkEntityCollaborator, is_blank
from app.services.import_errors import RowValidationError

logger = logging.getLogger("app.import.validation")


@dataclass
class ValidationOutcome:
    """Entities ready to write and rows that failed, in payload order."""

    valid_entities: List[SQLModel] = field(default_factory=list)
    failed_rows: List[Dict[str, Any]] = field(default_factory=list)


def _fold(value: Any) -> Any:
    # Same folding as lower() in SQL
    return value.lower() if isinstance(value, str) else value


class RowValidator:
    """
    Validates every row of a batch against one bulk collaborator.

    Existing records and referenced ids are fetched once per key before the
    per-row pass. A failing row is recorded and the loop moves on.
    """

    def __init__(self, collaborator: BulkEntityCollaborator):
        self.collaborator = collaborator

    def validate(self, rows: List[Dict[str, Any]], session: Session, user_id: Optional[int]) -> ValidationOutcome:
        outcome = ValidationOutcome()
        taken = self._prefetch_unique(rows, session)
        known = self._prefetch_foreign(rows, session)
        occurrences = self._unique_occurrences(rows)
        claimed: Dict[str, Set[Any]] = {key.field: set() for key in self.collaborator.unique_keys}

        for row_number, row in enumerate(rows, start=1):
            try:
                self._check_required(row)
                self._check_unique(row, taken, occurrences, claimed)
                self._check_foreign(row, known)
                check = self.collaborator.validate_row(row)
                if not check.valid:
                    messages = "; ".join(error.rstrip(".") for error in check.errors)
                    raise RowValidationError(f"Validation failed: {messages}.")
                entity = self.collaborator.create(row, user_id)
            except RowValidationError as e:
                outcome.failed_rows.append({"row": row_number, "data": row, "error": str(e)})
                logger.warning(f"Row {row_number} rejected ({self.collaborator.label}): {e}")
                continue

            outcome.valid_entities.append(entity)
            for key in self.collaborator.unique_keys:
                if not is_blank(row.get(key.field)):
                    claimed[key.field].add(_fold(row[key.field]))

        logger.info(
            f"Validated {len(rows)} {self.collaborator.label} rows: "
            f"{len(outcome.valid_entities)} valid, {len(outcome.failed_rows)} failed"
        )
        return outcome

    def _prefetch_unique(self, rows: List[Dict[str, Any]], session: Session) -> Dict[str, Set[Any]]:
        taken = {}
        for key in self.collaborator.unique_keys:
            values = {row.get(key.field) for row in rows if not is_blank(row.get(key.field))}
            taken[key.field] = (
                self.collaborator.bulk_existence_check(session, key.column, values, fold=True) if values else set()
            )
        return taken

    def _prefetch_foreign(self, rows: List[Dict[str, Any]], session: Session) -> Dict[str, Set[Any]]:
        known = {}
        for key in self.collaborator.foreign_keys:
            values = {row.get(key.field) for row in rows if row.get(key.field) is not None}
            known[key.field] = self.collaborator.bulk_existence_check(session, key.column, values) if values else set()
        return known

    def _unique_occurrences(self, rows: List[Dict[str, Any]]) -> Dict[str, Dict[Any, List[int]]]:
        occurrences: Dict[str, Dict[Any, List[int]]] = {}
        for key in self.collaborator.unique_keys:
            positions: Dict[Any, List[int]] = defaultdict(list)
            for row_number, row in enumerate(rows, start=1):
                value = row.get(key.field)
                if not is_blank(value):
                    positions[value].append(row_number)
            occurrences[key.field] = positions
        return occurrences

    def _check_required(self, row: Dict[str, Any]) -> None:
        required = self.collaborator.required_fields
        if any(is_blank(row.get(name)) for name in required):
            raise RowValidationError(f"Missing required fields: {', '.join(required)}.")

    def _check_unique(
        self,
        row: Dict[str, Any],
        taken: Dict[str, Set[Any]],
        occurrences: Dict[str, Dict[Any, List[int]]],
        claimed: Dict[str, Set[Any]],
    ) -> None:
        for key in self.collaborator.unique_keys:
            value = row.get(key.field)
            if is_blank(value):
                continue
            if _fold(value) in taken[key.field]:
                raise RowValidationError(key.exists_message.format(label=key.label, value=value))
            positions = occurrences[key.field][value]
            if len(positions) > 1:
                rows_text = ", ".join(str(p) for p in positions)
                raise RowValidationError(f"{key.label} '{value}' appears more than once in this batch (rows {rows_text}).")
            if _fold(value) in claimed[key.field]:
                raise RowValidationError(f"{key.label} '{value}' conflicts with an earlier row of this batch.")

    def _check_foreign(self, row: Dict[str, Any], known: Dict[str, Set[Any]]) -> None:
        for key in self.collaborator.foreign_keys:
            value = row.get(key.field)
            if value is not None and value not in known[key.field]:
                raise RowValidationError(f"{key.label} '{value}' does not exist.")
