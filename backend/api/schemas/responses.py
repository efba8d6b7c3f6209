"""
API Response Schemas

Pydantic models for API responses.
"""

from datetime import datetime
from typing import Any, Optional

import numpy as np
from pydantic import BaseModel, Field

from core.dataset import Dataset


def convert_numpy(obj: Any) -> Any:
    """Convert numpy types to Python native types."""
    if obj is None:
        return None
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, dict):
        return {k: convert_numpy(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [convert_numpy(v) for v in obj]
    return obj


class ColumnInfo(BaseModel):
    """Inferred schema of one column."""

    name: str
    type: str
    nullable: bool


class DatasetInfo(BaseModel):
    """Dataset metadata without rows."""

    id: str
    name: str
    source: str
    columns: list[ColumnInfo]
    row_count: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_dataset(cls, dataset: Dataset) -> "DatasetInfo":
        return cls(**dataset.to_dict())


class DatasetDetail(DatasetInfo):
    """Dataset metadata with a page of rows."""

    rows: list[dict[str, Any]] = Field(default_factory=list)


class UploadResponse(BaseModel):
    """Response after file upload."""

    dataset: DatasetInfo
    filename: str
    file_size_mb: float
    message: str = "File uploaded successfully"


class DatasetListResponse(BaseModel):
    datasets: list[DatasetInfo]
    total: int


class DeleteResponse(BaseModel):
    id: str
    deleted: bool


class HealthResponse(BaseModel):
    status: str
    app: str
    version: str
    datasets: Optional[int] = None
