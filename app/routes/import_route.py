"""
Import routes: batch submission and status.
"""

import logging
import zipfile
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Header, HTTPException, Query, UploadFile

from app.models.import_models import ImportEntityType
from app.schemas.import_schemas import ImportRequest
from app.services.import_errors import (
    BatchNotFoundError,
    EmptyPayloadError,
    PayloadShapeError,
    UnsupportedEntityTypeError,
)
from app.services.import_service import SPREADSHEET_EXTENSIONS, ImportService, build_import_service, read_spreadsheet

router = APIRouter(prefix="/import", tags=["import"])
logger = logging.getLogger("app.import")

RESOURCE_ENTITY_TYPES = {
    "products": ImportEntityType.PRODUCT,
    "customers": ImportEntityType.CUSTOMER,
    "suppliers": ImportEntityType.SUPPLIER,
    "product-categories": ImportEntityType.PRODUCT_CATEGORY,
    "opening-stock": ImportEntityType.OPENING_STOCK,
    "sales-orders": ImportEntityType.SALES_ORDER,
    "purchase-orders": ImportEntityType.PURCHASE_ORDER,
}

# Rows of these types carry nested item lists, which a flat sheet cannot express
NESTED_ENTITY_TYPES = {ImportEntityType.SALES_ORDER, ImportEntityType.PURCHASE_ORDER}

_import_service: Optional[ImportService] = None


def get_import_service() -> ImportService:
    global _import_service
    if _import_service is None:
        _import_service = build_import_service()
    return _import_service


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> int:
    """Submitting user. Authentication happens upstream and forwards the id."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="User not authenticated")
    try:
        return int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user id")


def _resolve_resource(resource: str) -> ImportEntityType:
    entity_type = RESOURCE_ENTITY_TYPES.get(resource)
    if entity_type is None:
        raise HTTPException(status_code=404, detail=f"Unknown import resource: {resource}")
    return entity_type


def _schedule(
    service: ImportService,
    entity_type: ImportEntityType,
    rows: Optional[List[Any]],
    original_file_name: Optional[str],
    user_id: int,
) -> Dict[str, Any]:
    try:
        batch = service.schedule_import(entity_type, rows, original_file_name=original_file_name, user_id=user_id)
    except EmptyPayloadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PayloadShapeError as e:
        raise HTTPException(status_code=400, detail={"message": str(e), "errors": e.problems})
    except UnsupportedEntityTypeError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "status": "success",
        "message": f"{entity_type.value} import batch scheduled for processing",
        "data": batch,
    }


@router.get("/batches")
async def list_batches(
    entity_type: Optional[str] = Query(None, alias="entityType"),
    status: Optional[str] = None,
    skip: int = 0,
    limit: Optional[int] = None,
    service: ImportService = Depends(get_import_service),
) -> Dict[str, Any]:
    """
    List import batches, newest first.
    """
    logger.info(f"Import batches list requested entity_type={entity_type} status={status}")

    result = service.list_batches(entity_type=entity_type, status=status, skip=skip, limit=limit)
    return {"status": "success", "data": result["items"], "total": result["total"]}


@router.get("/batches/{batch_id}")
async def get_batch_status(batch_id: str, service: ImportService = Depends(get_import_service)) -> Dict[str, Any]:
    """
    Current state of one batch.

    Args:
        batch_id: Batch id from the submission response

    Returns:
        Batch view
    """
    try:
        parsed_id = int(batch_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid batch ID format.")
    if parsed_id < 1:
        raise HTTPException(status_code=400, detail="Invalid batch ID format.")

    try:
        batch = service.get_import_status(parsed_id)
    except BatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {"status": "success", "data": batch}


@router.post("/{resource}", status_code=202)
async def submit_import(
    resource: str,
    request: ImportRequest,
    user_id: int = Depends(get_current_user_id),
    service: ImportService = Depends(get_import_service),
) -> Dict[str, Any]:
    """
    Submit a JSON batch of rows for background import.

    Returns:
        The pending batch; poll /import/batches/{id} for the outcome
    """
    entity_type = _resolve_resource(resource)
    logger.info(f"Import submitted resource={resource} rows={len(request.data or [])} user_id={user_id}")

    return _schedule(service, entity_type, request.data, request.original_file_name, user_id)


@router.post("/{resource}/upload", status_code=202)
async def upload_import(
    resource: str,
    file: UploadFile = File(...),
    user_id: int = Depends(get_current_user_id),
    service: ImportService = Depends(get_import_service),
) -> Dict[str, Any]:
    """
    Submit a CSV or Excel sheet for background import.
    """
    entity_type = _resolve_resource(resource)
    logger.info(f"Import file upload requested resource={resource} file={file.filename}")

    if entity_type in NESTED_ENTITY_TYPES:
        raise HTTPException(status_code=400, detail=f"File upload is not supported for {resource}")
    if not file.filename or not file.filename.lower().endswith(SPREADSHEET_EXTENSIONS):
        raise HTTPException(status_code=400, detail="Only CSV or Excel files (.csv, .xlsx, .xls) are allowed")

    content = await file.read()
    try:
        rows = read_spreadsheet(content, file.filename)
    except (ValueError, UnicodeDecodeError, zipfile.BadZipFile) as e:
        logger.error(f"Failed to parse uploaded file {file.filename}: {e}")
        raise HTTPException(status_code=400, detail=f"Could not read file: {e}")

    logger.info(f"Parsed {len(rows)} rows from {file.filename}")
    return _schedule(service, entity_type, rows, file.filename, user_id)
