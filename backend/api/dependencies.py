"""
API Dependencies

Shared FastAPI dependencies. Components live on ``app.state`` (built in
the application lifespan) and are handed to routes from here.
"""

from fastapi import Depends, File, HTTPException, Request, UploadFile, status

from analysis.service import AnalyticsService
from config import Settings
from core.cache import DatasetStore
from core.dataset import Dataset
from core.ingestion import SUPPORTED_EXTENSIONS, DatasetIngestor


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> DatasetStore:
    return request.app.state.store


def get_ingestor(request: Request) -> DatasetIngestor:
    return request.app.state.ingestor


def get_service(request: Request) -> AnalyticsService:
    return request.app.state.service


def get_dataset(dataset_id: str, store: DatasetStore = Depends(get_store)) -> Dataset:
    """Resolve a dataset id from the path, or 404."""
    dataset = store.get(dataset_id)
    if dataset is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Dataset {dataset_id} not found",
        )
    return dataset


def get_spreadsheet_upload(file: UploadFile = File(...)) -> UploadFile:
    """Validate that the uploaded file is CSV or Excel by extension."""
    filename = (file.filename or "").strip().lower()
    if not filename.endswith(SUPPORTED_EXTENSIONS):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV and Excel (.xlsx, .xls) files are supported",
        )
    return file
