"""
Dataset API Routes

Endpoints for creating datasets from uploads, row imports and sheet
value grids, and for listing, reading, updating and deleting them.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile

from api.dependencies import (
    get_app_settings,
    get_dataset,
    get_ingestor,
    get_service,
    get_spreadsheet_upload,
    get_store,
)
from api.schemas.requests import RowsImportRequest, RowsUpdateRequest, SheetImportRequest
from api.schemas.responses import (
    DatasetDetail,
    DatasetInfo,
    DatasetListResponse,
    DeleteResponse,
    UploadResponse,
)
from analysis.service import AnalyticsService
from config import Settings
from core.cache import DatasetStore
from core.dataset import Dataset, DatasetSource
from core.errors import MalformedInputError
from core.ingestion import DatasetIngestor
from core.logging_config import api_logger as logger


router = APIRouter()


@router.post("/datasets/upload", response_model=UploadResponse)
async def upload_dataset(
    file: UploadFile = Depends(get_spreadsheet_upload),
    ingestor: DatasetIngestor = Depends(get_ingestor),
    store: DatasetStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> UploadResponse:
    """
    Upload a CSV or Excel file.

    The first worksheet of a workbook is used. Column types are inferred
    from the first rows of the file.
    """
    content = await file.read()

    file_size_mb = len(content) / (1024 * 1024)
    if file_size_mb > settings.max_file_size_mb:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {settings.max_file_size_mb}MB"
        )

    try:
        dataset = ingestor.ingest_file(content, file.filename)
    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    store.set(dataset)
    logger.success(f"Uploaded {file.filename} as dataset {dataset.id}")

    return UploadResponse(
        dataset=DatasetInfo.from_dataset(dataset),
        filename=file.filename,
        file_size_mb=round(file_size_mb, 4),
    )


@router.post("/datasets/import/rows", response_model=DatasetInfo)
async def import_rows(
    request: RowsImportRequest,
    ingestor: DatasetIngestor = Depends(get_ingestor),
    store: DatasetStore = Depends(get_store),
) -> DatasetInfo:
    """Create a dataset from already parsed rows."""
    try:
        dataset = ingestor.ingest(request.rows, request.name, DatasetSource.UPLOAD)
    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    store.set(dataset)
    return DatasetInfo.from_dataset(dataset)


@router.post("/datasets/import/sheet", response_model=DatasetInfo)
async def import_sheet(
    request: SheetImportRequest,
    ingestor: DatasetIngestor = Depends(get_ingestor),
    store: DatasetStore = Depends(get_store),
) -> DatasetInfo:
    """Create a dataset from a spreadsheet value grid (first row = headers)."""
    try:
        dataset = ingestor.ingest_sheet_values(request.values, request.name)
    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    store.set(dataset)
    return DatasetInfo.from_dataset(dataset)


@router.get("/datasets", response_model=DatasetListResponse)
async def list_datasets(
    source: Optional[DatasetSource] = Query(default=None, description="Filter by source"),
    store: DatasetStore = Depends(get_store),
) -> DatasetListResponse:
    """List live datasets."""
    datasets = store.scan("source", source.value) if source else store.scan()
    return DatasetListResponse(
        datasets=[DatasetInfo.from_dataset(d) for d in datasets],
        total=len(datasets),
    )


@router.get("/datasets/{dataset_id}", response_model=DatasetDetail)
async def get_dataset_detail(
    include_rows: bool = Query(default=False, description="Include row data"),
    limit: int = Query(default=100, ge=1, le=10000, description="Max rows to return"),
    dataset: Dataset = Depends(get_dataset),
) -> DatasetDetail:
    """Get dataset metadata, optionally with its first rows."""
    data = dataset.to_dict(include_rows=include_rows)
    if include_rows:
        data["rows"] = data["rows"][:limit]
    return DatasetDetail(**data)


@router.put("/datasets/{dataset_id}/rows", response_model=DatasetInfo)
async def update_dataset_rows(
    request: RowsUpdateRequest,
    dataset: Dataset = Depends(get_dataset),
    ingestor: DatasetIngestor = Depends(get_ingestor),
    store: DatasetStore = Depends(get_store),
) -> DatasetInfo:
    """Replace a dataset's rows. The new version gets a fresh updated_at."""
    try:
        updated = ingestor.update_rows(dataset, request.rows)
    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    store.set(updated)
    return DatasetInfo.from_dataset(updated)


@router.delete("/datasets/{dataset_id}", response_model=DeleteResponse)
async def delete_dataset(
    dataset_id: str,
    store: DatasetStore = Depends(get_store),
) -> DeleteResponse:
    """Delete a dataset."""
    if not store.delete(dataset_id):
        raise HTTPException(status_code=404, detail=f"Dataset {dataset_id} not found")
    return DeleteResponse(id=dataset_id, deleted=True)


@router.post("/datasets/clear-cache")
async def clear_cache(service: AnalyticsService = Depends(get_service)) -> dict:
    """Drop all cached analysis and forecast results."""
    return {"cleared": service.invalidate()}
