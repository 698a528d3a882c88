"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status

from app.schemas import (
    AlertModel,
    AnalyticsReport,
    HourlyPattern,
    LiveState,
    MetricConfigModel,
    RangeModel,
    ReadingAccepted,
    ScoringConfigResponse,
    TimeRange,
)
from datastore.telemetry import InMemoryTelemetrySource, build_default_source
from services.analytics import AnalyticsService, build_default_analytics
from services.live import LiveMonitor, build_default_monitor

router = APIRouter()


def get_source() -> InMemoryTelemetrySource:
    return build_default_source()


def get_monitor() -> LiveMonitor:
    return build_default_monitor()


def get_analytics() -> AnalyticsService:
    return build_default_analytics()


@router.post(
    "/readings",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ReadingAccepted,
    summary="Ingest a raw reading and publish it as the latest live value.",
)
async def ingest_reading(
    record: Dict[str, Any] = Body(..., description="Raw sensor record."),
    source: InMemoryTelemetrySource = Depends(get_source),
) -> ReadingAccepted:
    if not record:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Reading payload is empty.",
        )
    key = source.ingest(record)
    return ReadingAccepted(key=key)


@router.get(
    "/score",
    response_model=LiveState,
    summary="Current living condition score from the live feed.",
)
async def get_live_score(monitor: LiveMonitor = Depends(get_monitor)) -> LiveState:
    return monitor.state


@router.get(
    "/alerts",
    response_model=List[AlertModel],
    summary="Recent poor and excellent condition alerts, oldest first.",
)
async def list_alerts(monitor: LiveMonitor = Depends(get_monitor)) -> List[AlertModel]:
    return monitor.recent_alerts()


@router.get(
    "/config",
    response_model=ScoringConfigResponse,
    summary="Scoring weights and ranges in effect.",
)
async def get_scoring_config(
    analytics: AnalyticsService = Depends(get_analytics),
) -> ScoringConfigResponse:
    return ScoringConfigResponse(
        metrics=[
            MetricConfigModel(
                name=metric.name,
                weight=metric.weight,
                polarity=metric.polarity.value,
                optimal=RangeModel(min=metric.optimal.minimum, max=metric.optimal.maximum),
                acceptable=RangeModel(
                    min=metric.acceptable.minimum, max=metric.acceptable.maximum
                ),
                unit=metric.unit,
                decay=metric.decay,
            )
            for metric in analytics.config
        ]
    )


@router.get(
    "/analytics",
    response_model=AnalyticsReport,
    summary="Statistics, hourly pattern, distributions and correlation for a window.",
)
async def get_analytics_report(
    window: TimeRange = Query(TimeRange.last_7d, alias="range"),
    day: Optional[date] = Query(None, description="Day for the hourly pattern."),
    analytics: AnalyticsService = Depends(get_analytics),
) -> AnalyticsReport:
    return analytics.report(window, day=day)


@router.get(
    "/analytics/hourly",
    response_model=HourlyPattern,
    summary="Per-hour averages for one calendar day.",
)
async def get_hourly_pattern(
    day: Optional[date] = Query(None, description="Defaults to today."),
    analytics: AnalyticsService = Depends(get_analytics),
) -> HourlyPattern:
    return analytics.hourly_pattern(day)


@router.get(
    "/analytics/export",
    summary="Download the window's readings as CSV.",
    response_class=Response,
)
async def export_series(
    window: TimeRange = Query(TimeRange.last_7d, alias="range"),
    analytics: AnalyticsService = Depends(get_analytics),
) -> Response:
    body = analytics.export_csv(window)
    if not body:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No data to export.",
        )
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": (
                f'attachment; filename="environmental_analytics_{window.value}.csv"'
            )
        },
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
