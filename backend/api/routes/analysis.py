"""
Analysis API Routes

Endpoints for the analysis result, forecasts, recommendations, smart
alerts and the executive summary of a dataset.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_dataset, get_service
from api.schemas.responses import convert_numpy
from analysis.service import AnalyticsService
from core.dataset import Dataset
from core.errors import InsufficientDataError, MalformedInputError
from core.logging_config import api_logger as logger


router = APIRouter()


def _not_enough_data(error: InsufficientDataError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={
            "message": f"Not enough data yet: {error}",
            "required": error.required,
            "available": error.available,
        },
    )


@router.get("/analysis/{dataset_id}")
async def get_analysis(
    dataset: Dataset = Depends(get_dataset),
    service: AnalyticsService = Depends(get_service),
) -> dict:
    """
    Full analysis of a dataset.

    Returns KPIs, daily/weekly/monthly series, anomalies, insights,
    suggestions and the column chosen for each role.
    """
    try:
        result = service.analyze(dataset)
    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return convert_numpy({"dataset_id": dataset.id, **result.to_dict()})


@router.get("/analysis/{dataset_id}/forecast")
async def get_forecast(
    horizon: Optional[int] = Query(default=None, ge=1, le=365, description="Forecast horizon in days"),
    mode: Literal["ensemble", "short"] = Query(default="ensemble", description="Forecast model"),
    dataset: Dataset = Depends(get_dataset),
    service: AnalyticsService = Depends(get_service),
) -> dict:
    """Daily revenue forecast."""
    try:
        forecast = service.forecast(dataset, horizon, mode)
    except InsufficientDataError as e:
        logger.info(f"Forecast for {dataset.id} skipped: {e}")
        raise _not_enough_data(e)
    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return convert_numpy({"dataset_id": dataset.id, **forecast.to_dict()})


@router.get("/analysis/{dataset_id}/recommendations")
async def get_recommendations(
    dataset: Dataset = Depends(get_dataset),
    service: AnalyticsService = Depends(get_service),
) -> dict:
    """Prioritized business recommendations."""
    try:
        recommendations = service.recommendations(dataset)
    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "dataset_id": dataset.id,
        "recommendations": convert_numpy([r.to_dict() for r in recommendations]),
    }


@router.get("/analysis/{dataset_id}/alerts")
async def get_alerts(
    dataset: Dataset = Depends(get_dataset),
    service: AnalyticsService = Depends(get_service),
) -> dict:
    """Smart alerts for the dataset."""
    try:
        alerts = service.alerts(dataset)
    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "dataset_id": dataset.id,
        "alerts": convert_numpy([a.to_dict() for a in alerts]),
    }


@router.get("/analysis/{dataset_id}/summary")
async def get_executive_summary(
    dataset: Dataset = Depends(get_dataset),
    service: AnalyticsService = Depends(get_service),
) -> dict:
    """Executive summary with health score."""
    try:
        summary = service.summary(dataset)
    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return convert_numpy({"dataset_id": dataset.id, **summary.to_dict()})
