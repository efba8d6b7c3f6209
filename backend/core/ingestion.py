"""
Dataset Ingestor

Builds typed, immutable Datasets from parsed rows, sheet value grids
and uploaded CSV / Excel files. CSV parsing uses Polars with chardet
encoding detection; every CSV cell is read as text so that the column
type inferencer, not the CSV reader, decides the schema.
"""

import hashlib
import io
import uuid
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Sequence

import chardet
import polars as pl

from config import Settings, get_settings
from core.dataset import ColumnDescriptor, Dataset, DatasetSource
from core.errors import MalformedInputError
from core.logging_config import ingest_logger as logger
from core.type_inference import ColumnTypeInferencer


CSV_EXTENSIONS = {".csv"}
EXCEL_EXTENSIONS = {".xlsx", ".xls"}
SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xls")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_dataset_id() -> str:
    return hashlib.sha256(uuid.uuid4().bytes).hexdigest()[:16]


class DatasetIngestor:
    """Turns raw rows into Datasets."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        inferencer: Optional[ColumnTypeInferencer] = None,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = _new_dataset_id,
    ):
        self.settings = settings or get_settings()
        self.inferencer = inferencer or ColumnTypeInferencer(self.settings)
        self.clock = clock
        self.id_factory = id_factory

    def ingest(
        self,
        raw_rows: Sequence[Mapping[str, Any]],
        name: str,
        source: DatasetSource = DatasetSource.UPLOAD,
    ) -> Dataset:
        """
        Create a Dataset from row mappings.

        Columns are taken from the first row, in its key order.

        Raises:
            MalformedInputError: no rows, no columns, or a row carrying
                keys the first row does not have.
        """
        rows = self._freeze_rows(raw_rows)
        columns = self._infer_columns(rows)
        now = self.clock()

        dataset = Dataset(
            id=self.id_factory(),
            name=name,
            source=DatasetSource(source),
            columns=columns,
            rows=rows,
            created_at=now,
            updated_at=now,
        )
        logger.info(
            f"Ingested '{name}' ({dataset.id}): {dataset.row_count} rows, "
            f"{len(columns)} columns"
        )
        return dataset

    def update_rows(self, dataset: Dataset, raw_rows: Sequence[Mapping[str, Any]]) -> Dataset:
        """Return a new version of ``dataset`` holding ``raw_rows``."""
        rows = self._freeze_rows(raw_rows)
        columns = self._infer_columns(rows)
        updated = Dataset(
            id=dataset.id,
            name=dataset.name,
            source=dataset.source,
            columns=columns,
            rows=rows,
            created_at=dataset.created_at,
            updated_at=self.clock(),
        )
        logger.info(f"Dataset {dataset.id} updated: {updated.row_count} rows")
        return updated

    def ingest_sheet_values(self, values: Sequence[Sequence[Any]], name: str) -> Dataset:
        """
        Create a Dataset from a 2-D value grid whose first row is the header.

        Missing trailing cells become empty strings.
        """
        if not values:
            raise MalformedInputError("No data found in sheet")

        headers = ["" if h is None else str(h) for h in values[0]]
        body = values[1:]
        if not headers or not body:
            raise MalformedInputError("Sheet has no data rows")
        if any(not h.strip() for h in headers):
            raise MalformedInputError("Sheet has an empty header cell")
        duplicates = sorted({h for h in headers if headers.count(h) > 1})
        if duplicates:
            raise MalformedInputError(f"Sheet has duplicate headers: {duplicates}")

        rows = []
        for raw in body:
            row = {}
            for index, header in enumerate(headers):
                cell = raw[index] if index < len(raw) else None
                row[header] = "" if cell is None else cell
            rows.append(row)

        return self.ingest(rows, name, DatasetSource.EXTERNAL)

    def ingest_file(self, data: bytes, filename: str) -> Dataset:
        """Create a Dataset from an uploaded CSV or Excel file."""
        suffix = Path(filename).suffix.lower()
        name = Path(filename).stem or filename

        if suffix in CSV_EXTENSIONS:
            df = self.parse_csv_bytes(data)
        elif suffix in EXCEL_EXTENSIONS:
            df = self.parse_excel_bytes(data)
        else:
            raise MalformedInputError(f"Unsupported file type: {suffix or filename}")

        if df.height == 0 or df.width == 0:
            raise MalformedInputError(f"{filename} contains no data rows")

        return self.ingest(df.to_dicts(), name, DatasetSource.UPLOAD)

    def detect_encoding_from_bytes(self, data: bytes) -> str:
        """Detect encoding from bytes."""
        # Use first 100KB for detection
        sample = data[:102400]
        result = chardet.detect(sample)
        encoding = result.get("encoding", "utf-8")
        return encoding or "utf-8"

    def parse_csv_bytes(self, data: bytes) -> pl.DataFrame:
        """Parse CSV bytes with every column read as text."""
        encoding = self.detect_encoding_from_bytes(data)

        try:
            text = data.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            # Fallback to latin-1 which accepts any byte
            text = data.decode("latin-1")

        try:
            return pl.read_csv(
                io.StringIO(text),
                infer_schema_length=0,
                truncate_ragged_lines=True,
            )
        except pl.exceptions.PolarsError as e:
            raise MalformedInputError(f"Could not parse CSV: {e}") from e

    def parse_excel_bytes(self, data: bytes) -> pl.DataFrame:
        """Parse the first worksheet of an Excel workbook."""
        try:
            return pl.read_excel(io.BytesIO(data), sheet_id=1)
        except Exception as e:
            raise MalformedInputError(f"Could not parse Excel workbook: {e}") from e

    def _freeze_rows(self, raw_rows: Sequence[Mapping[str, Any]]) -> tuple[Mapping[str, Any], ...]:
        if not raw_rows:
            raise MalformedInputError("No data available: dataset has no rows")

        first = raw_rows[0]
        if not isinstance(first, Mapping) or not first:
            raise MalformedInputError("First row has no columns")

        allowed = {str(key) for key in first.keys()}
        frozen = []
        for index, row in enumerate(raw_rows):
            if not isinstance(row, Mapping):
                raise MalformedInputError(f"Row {index} is not a mapping")
            normalized = {str(key): value for key, value in row.items()}
            extra = set(normalized) - allowed
            if extra:
                raise MalformedInputError(
                    f"Row {index} has columns not present in the header: {sorted(extra)}"
                )
            frozen.append(MappingProxyType(normalized))
        return tuple(frozen)

    def _infer_columns(self, rows: Sequence[Mapping[str, Any]]) -> tuple[ColumnDescriptor, ...]:
        sample = self.inferencer.sample(rows)
        columns = []
        for name in rows[0].keys():
            column_type = self.inferencer.infer(sample, name)
            columns.append(ColumnDescriptor(
                name=name,
                type=column_type,
                nullable=self.inferencer.is_nullable(sample, name),
            ))
            logger.debug(f"Column '{name}' inferred as {column_type.value}")
        return tuple(columns)
