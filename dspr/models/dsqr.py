"""
Delivery Service Quality Report (DSQR) view and configuration models.
"""

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .common import Alert, utc_now
from .enums import (
    DeliveryPlatform,
    LetterGrade,
    MetricUnit,
    PlatformPerformanceLevel,
    TrackingStatus,
)

KpiValue = Union[float, str, None]


# =============================================================================
# Configuration
# =============================================================================


class PlatformLevelBands(BaseModel):
    """Percent-on-track bands for platform performance levels."""

    excellent: float = Field(default=95, ge=0, le=100)
    good: float = Field(default=85, ge=0, le=100)
    fair: float = Field(default=70, ge=0, le=100)
    poor: float = Field(default=50, ge=0, le=100)

    @model_validator(mode="after")
    def validate_descending(self) -> "PlatformLevelBands":
        if not self.excellent > self.good > self.fair > self.poor:
            raise ValueError("Platform level bands must be strictly descending")
        return self


class DsqrAlertConfig(BaseModel):
    enable_alerts: bool = True
    max_alerts: int = Field(default=10, ge=0)
    critical_rating_floor: float = Field(
        default=4.0, ge=0, le=5, description="Ratings below this are critical/urgent"
    )
    warning_rating_floor: float = Field(
        default=4.3, ge=0, le=5, description="Ratings below this are error/high"
    )


class DsqrFilter(BaseModel):
    """Selection applied by the filtered-KPI selector; None means no restriction."""

    platforms: Optional[List[DeliveryPlatform]] = None
    statuses: Optional[List[TrackingStatus]] = None
    critical_only: bool = False


class DsqrConfig(BaseModel):
    level_bands: PlatformLevelBands = Field(default_factory=PlatformLevelBands)
    alert_config: DsqrAlertConfig = Field(default_factory=DsqrAlertConfig)


# =============================================================================
# KPI definitions and platform metrics
# =============================================================================


class KpiDefinition(BaseModel):
    """
    One row of a platform KPI table.

    tracking_key is the is_on_track key carrying the server's status; None
    means the KPI is always reported as on track.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    label: str
    unit: MetricUnit
    is_critical: bool = False
    target: Optional[float] = None
    tracking_key: Optional[str] = None
    yes_no: bool = Field(default=False, description="Render the value as Yes/No from == 1")


class PlatformKpi(BaseModel):
    name: str
    label: str
    value: KpiValue = None
    status: TrackingStatus
    unit: MetricUnit
    is_critical: bool
    target: Optional[float] = None


class PlatformMetrics(BaseModel):
    platform: DeliveryPlatform
    overall_rating: Optional[float] = None
    kpis: List[PlatformKpi] = Field(default_factory=list)
    on_track_count: int
    total_applicable_metrics: int
    performance_percentage: float = Field(ge=0, le=100)
    performance_level: PlatformPerformanceLevel


class DsqrSummary(BaseModel):
    average_rating: float
    total_on_track: int
    total_applicable: int
    overall_performance: float = Field(ge=0, le=100)
    performance_grade: LetterGrade
    best_platform: Optional[DeliveryPlatform] = None
    attention_required: Optional[DeliveryPlatform] = None


class DsqrView(BaseModel):
    store_id: str
    business_date: str
    platforms: Dict[DeliveryPlatform, PlatformMetrics]
    summary: DsqrSummary
    alerts: List[Alert] = Field(default_factory=list)
    processed_at: datetime = Field(default_factory=utc_now)
