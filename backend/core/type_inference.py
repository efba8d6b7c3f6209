"""
Column Type Inferencer

Assigns each column a semantic type by sampling its values.
"""

from typing import Any, Mapping, Optional, Sequence

from config import Settings, get_settings
from core.dataset import ColumnType
from core.values import is_boolean_token, parse_date, parse_number


class ColumnTypeInferencer:
    """
    Sample-based type inference.

    Candidate types are checked in fixed priority order
    number -> date -> boolean; the first whose match ratio over the
    non-null sampled values is strictly greater than the configured
    ratio wins, otherwise the column is a string column. Because the
    numeric check runs first, year-only or epoch-like date columns
    classify as numbers.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def sample_size(self) -> int:
        return self.settings.analysis.inference_sample_size

    def sample(self, rows: Sequence[Mapping[str, Any]]) -> Sequence[Mapping[str, Any]]:
        """First rows used for inference."""
        return rows[:self.sample_size]

    def infer(self, sample_rows: Sequence[Mapping[str, Any]], column_name: str) -> ColumnType:
        """Infer the type of ``column_name`` from ``sample_rows``."""
        values = self._non_null_values(sample_rows, column_name)
        return self.infer_values(values)

    def infer_values(self, values: Sequence[Any]) -> ColumnType:
        """Infer a type from already-sampled, non-null values."""
        if not values:
            return ColumnType.STRING

        threshold = len(values) * self.settings.analysis.inference_match_ratio

        numeric = sum(1 for v in values if parse_number(v) is not None)
        if numeric > threshold:
            return ColumnType.NUMBER

        dates = sum(1 for v in values if parse_date(v) is not None)
        if dates > threshold:
            return ColumnType.DATE

        booleans = sum(1 for v in values if is_boolean_token(v))
        if booleans > threshold:
            return ColumnType.BOOLEAN

        return ColumnType.STRING

    def is_nullable(self, sample_rows: Sequence[Mapping[str, Any]], column_name: str) -> bool:
        """Whether any sampled row lacks a value for the column."""
        return len(self._non_null_values(sample_rows, column_name)) < len(sample_rows)

    @staticmethod
    def _non_null_values(rows: Sequence[Mapping[str, Any]], column_name: str) -> list[Any]:
        return [row.get(column_name) for row in rows if row.get(column_name) is not None]
