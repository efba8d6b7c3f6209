"""
Dataset Model

Immutable tabular record set with an inferred column schema.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping


class ColumnType(str, Enum):
    """Semantic column types."""

    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    STRING = "string"


class DatasetSource(str, Enum):
    """Where a dataset came from."""

    UPLOAD = "upload"
    EXTERNAL = "external"


@dataclass(frozen=True)
class ColumnDescriptor:
    """A column's name, inferred type and nullability."""

    name: str
    type: ColumnType
    nullable: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "nullable": self.nullable,
        }


@dataclass(frozen=True)
class Dataset:
    """
    Typed, in-memory dataset.

    Never mutated after creation. A new version of the same dataset
    keeps ``id`` and ``created_at`` and gets a fresh ``updated_at``,
    which makes ``cache_key`` change with every version.
    """

    id: str
    name: str
    source: DatasetSource
    columns: tuple[ColumnDescriptor, ...]
    rows: tuple[Mapping[str, Any], ...]
    created_at: datetime
    updated_at: datetime

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def cache_key(self) -> str:
        return f"{self.id}:{self.updated_at.isoformat()}"

    def column(self, name: str) -> ColumnDescriptor:
        for descriptor in self.columns:
            if descriptor.name == name:
                return descriptor
        raise KeyError(name)

    def to_dict(self, include_rows: bool = False) -> dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "source": self.source.value,
            "columns": [c.to_dict() for c in self.columns],
            "row_count": self.row_count,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if include_rows:
            data["rows"] = [dict(row) for row in self.rows]
        return data
