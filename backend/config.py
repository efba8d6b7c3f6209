"""
Sales Analytics Engine - Configuration

Pydantic Settings for the ingestion and analysis pipeline.
Every threshold the pipeline uses lives here with its default.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_role_priorities() -> dict[str, list[str]]:
    return {
        "revenue": ["order_amount", "sales", "revenue", "amount", "total", "price"],
        "customer": ["customer_id", "user_id", "customer", "client_id"],
        "product": ["product_name", "product", "item", "sku"],
        "quantity": ["quantity", "qty", "amount", "count"],
        "date": ["date", "order_date", "created_at", "timestamp", "time"],
    }


class CacheSettings(BaseSettings):
    """Result caching configuration."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    enabled: bool = Field(default=True, description="Enable result caching")
    max_size: int = Field(default=128, description="LRU cache max size")
    analysis_ttl_seconds: int = Field(
        default=3600,
        description="TTL for cached analysis results"
    )
    forecast_ttl_seconds: int = Field(
        default=1800,
        description="TTL for cached forecasts"
    )


class AnalysisSettings(BaseSettings):
    """Analysis pipeline configuration."""

    model_config = SettingsConfigDict(env_prefix="ANALYSIS_")

    # Type inference
    inference_sample_size: int = Field(
        default=100,
        description="Rows sampled per column for type inference"
    )
    inference_match_ratio: float = Field(
        default=0.8,
        description="Share of sampled values a type must exceed"
    )

    # Column roles
    role_priorities: dict[str, list[str]] = Field(
        default_factory=_default_role_priorities,
        description="Substring priority list per semantic role"
    )

    # KPIs
    top_n_products: int = Field(default=5, description="Top-N product breakdowns")

    # Anomaly detection
    global_sigma: float = Field(
        default=2.0,
        description="Std-dev multiplier for the simple global detector"
    )
    outlier_sigma: float = Field(
        default=2.5,
        description="Std-dev multiplier for statistical outliers"
    )
    outlier_high_sigma: float = Field(
        default=3.0,
        description="Std-dev multiplier above which an outlier is high severity"
    )
    local_window: int = Field(default=3, description="Neighbours on each side")
    local_threshold: float = Field(default=2.0, description="Local deviation ratio")
    local_high_threshold: float = Field(default=3.0, description="High severity ratio")
    change_window: int = Field(default=7, description="Change-point window size")
    change_threshold: float = Field(default=0.5, description="Relative change to flag")
    change_high_threshold: float = Field(
        default=1.0,
        description="Relative change at which a change point is high severity"
    )
    min_buckets_global: int = Field(default=3, description="Minimum buckets, global detector")
    min_buckets_statistical: int = Field(
        default=7,
        description="Minimum buckets, statistical/local/change-point detectors"
    )
    max_anomalies: int = Field(default=5, description="Cap on reported anomalies")
    anomaly_strategy: Literal["global", "combined"] = Field(
        default="global",
        description="Detector set used by the orchestrator"
    )

    # Text generation
    max_insights: int = Field(default=5, description="Insights returned")
    max_suggestions: int = Field(default=3, ge=1, le=4, description="Suggestions returned")

    # Time series
    bucket_timezone: Optional[str] = Field(
        default=None,
        description="IANA time zone for date buckets (None = process local time)"
    )


class ForecastSettings(BaseSettings):
    """Forecasting configuration."""

    model_config = SettingsConfigDict(env_prefix="FORECAST_")

    min_points_short: int = Field(default=7, description="Buckets needed, short forecast")
    min_points_ensemble: int = Field(default=14, description="Buckets needed, ensemble")
    short_window: int = Field(default=30, description="Trailing buckets for the short slope")
    short_horizon: int = Field(default=7, description="Short forecast horizon")
    default_horizon: int = Field(default=30, description="Ensemble forecast horizon")
    smoothing_alpha: float = Field(default=0.3, description="Exponential smoothing alpha")
    linear_weight: float = Field(default=0.3)
    smoothing_weight: float = Field(default=0.4)
    seasonal_weight: float = Field(default=0.3)
    season_length: int = Field(default=7, description="Seasonal period in buckets")
    jitter_enabled: bool = Field(
        default=False,
        description="Apply multiplicative jitter to component forecasts"
    )
    jitter_seed: Optional[int] = Field(default=None, description="Seed for jitter draws")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Application
    app_name: str = "Sales Analytics Engine"
    app_version: str = "1.0.0"
    debug: bool = Field(default=False, description="Debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Upload
    max_file_size_mb: int = Field(
        default=50,
        description="Maximum file size in MB"
    )

    # Dataset store
    dataset_ttl_hours: int = Field(
        default=24,
        description="Dataset time-to-live in hours"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Console log level")
    log_dir: Optional[str] = Field(
        default=None,
        description="Directory for rotating log files (None = console only)"
    )

    # Nested settings
    cache: CacheSettings = Field(default_factory=CacheSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    forecast: ForecastSettings = Field(default_factory=ForecastSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
