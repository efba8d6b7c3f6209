"""
Pipeline Errors

Typed failures raised synchronously by ingestion, analysis and forecasting.
"""

from typing import Optional


class AnalyticsError(Exception):
    """Base class for all pipeline errors."""


class MalformedInputError(AnalyticsError):
    """Input rows are empty or do not form a consistent table."""


class InsufficientDataError(AnalyticsError):
    """
    Too few buckets for the requested computation.

    Callers should present this as "not enough data yet" rather than
    as a failure.
    """

    def __init__(
        self,
        message: str,
        required: Optional[int] = None,
        available: Optional[int] = None,
    ):
        super().__init__(message)
        self.required = required
        self.available = available
