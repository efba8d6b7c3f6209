"""
API Request Schemas

Pydantic models for API request validation.
"""

from typing import Any

from pydantic import BaseModel, Field


class RowsImportRequest(BaseModel):
    """Rows already parsed by the caller."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Dataset display name"
    )
    rows: list[dict[str, Any]] = Field(
        ...,
        description="Row mappings; keys of the first row define the columns"
    )


class SheetImportRequest(BaseModel):
    """A spreadsheet range as a 2-D grid of cell values."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Dataset display name"
    )
    values: list[list[Any]] = Field(
        ...,
        description="First row holds the headers"
    )


class RowsUpdateRequest(BaseModel):
    """Replacement rows for a new dataset version."""

    rows: list[dict[str, Any]] = Field(
        ...,
        description="Full replacement row set"
    )
