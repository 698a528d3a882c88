"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from services.alerts import AlertKind
from services.scoring import MetricStatus


class TimeRange(str, Enum):
    """Historical windows offered by the analytics views."""

    last_24h = "24h"
    last_7d = "7d"
    last_30d = "30d"


class LiveStatus(str, Enum):
    """State of the live reading feed."""

    waiting = "waiting"
    live = "live"
    no_data = "no_data"
    error = "error"


class ReadingAccepted(BaseModel):
    """Immediate response after a live reading has been ingested."""

    key: str = Field(..., description="Identifier of the stored record.")


class MetricScoreModel(BaseModel):
    metric: str
    value: float
    sub_score: float = Field(..., ge=0, le=10)
    weight: float
    status: MetricStatus


class LiveState(BaseModel):
    """Latest live reading and its composite score."""

    status: LiveStatus
    score: float = Field(0.0, ge=0, le=10)
    label: Optional[str] = None
    timestamp: Optional[int] = Field(
        default=None, description="Reading instant in epoch milliseconds."
    )
    metrics: Dict[str, MetricScoreModel] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None
    error: Optional[str] = None


class AlertModel(BaseModel):
    """A poor or excellent condition notice raised by the live monitor."""

    kind: AlertKind
    score: float = Field(..., ge=0, le=10)
    message: str
    raised_at: datetime


class RangeModel(BaseModel):
    min: float
    max: float


class MetricConfigModel(BaseModel):
    name: str
    weight: float
    polarity: str
    optimal: RangeModel
    acceptable: RangeModel
    unit: str
    decay: float


class ScoringConfigResponse(BaseModel):
    metrics: List[MetricConfigModel] = Field(default_factory=list)


class StatisticsModel(BaseModel):
    """Per-metric summary; ``null`` fields mean no valid values were found."""

    avg: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    latest: Optional[float] = None


class HourlyAggregateModel(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    label: str
    averages: Dict[str, float] = Field(default_factory=dict)
    reading_count: int = Field(..., ge=0)


class HourlyPattern(BaseModel):
    day: date
    source: str = Field(..., description="'source' for stored rollups, 'computed' otherwise.")
    hours: List[HourlyAggregateModel] = Field(default_factory=list)


class DistributionBinModel(BaseModel):
    label: str
    lower: Optional[float] = Field(default=None, description="Inclusive; null when unbounded.")
    upper: Optional[float] = Field(default=None, description="Exclusive; null when unbounded.")
    count: int = Field(..., ge=0)


class DistributionModel(BaseModel):
    metric: str
    total: int = Field(..., ge=0)
    has_data: bool
    bins: List[DistributionBinModel] = Field(default_factory=list)


class CorrelationPointModel(BaseModel):
    timestamp: int
    x: float
    y: float


class CorrelationModel(BaseModel):
    x_metric: str
    y_metric: str
    points: List[CorrelationPointModel] = Field(default_factory=list)


class AnalyticsReport(BaseModel):
    """Full analytics output for one historical window."""

    window: TimeRange
    start_ms: int
    generated_at: datetime
    reading_count: int = Field(..., ge=0)
    skipped_count: int = Field(0, ge=0)
    statistics: Dict[str, StatisticsModel] = Field(default_factory=dict)
    hourly: HourlyPattern
    distributions: Dict[str, DistributionModel] = Field(default_factory=dict)
    correlation: CorrelationModel
