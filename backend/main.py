"""
Sales Analytics Engine - Main Application

FastAPI server for dataset ingestion and sales analytics.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from analysis.service import AnalyticsService
from api.routes import analysis, datasets
from api.schemas.responses import HealthResponse
from config import Settings, get_settings
from core.cache import DatasetStore
from core.ingestion import DatasetIngestor
from core.logging_config import api_logger as logger


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build the per-application components."""
        app.state.settings = settings
        app.state.store = DatasetStore(ttl_seconds=settings.dataset_ttl_hours * 3600)
        app.state.ingestor = DatasetIngestor(settings)
        app.state.service = AnalyticsService(settings)
        logger.info(f"{settings.app_name} v{settings.app_version} starting...")

        yield

        app.state.service.invalidate()
        logger.info("Shutting down...")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Sales analytics over uploaded spreadsheets: KPIs, time series, anomalies, insights and forecasts",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(datasets.router, prefix="/api/v1", tags=["Datasets"])
    app.include_router(analysis.router, prefix="/api/v1", tags=["Analysis"])

    @app.get("/health", tags=["Health"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            app=settings.app_name,
            version=settings.app_version,
            datasets=len(app.state.store.scan()),
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
