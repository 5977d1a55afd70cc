"""
Threshold-table models for the shared grading and alert engine.

A module describes its grading as a list of ThresholdRule entries and its
alerting as a list of AlertRule entries; dspr.engine.grading evaluates both.
"""

from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from .enums import (
    AlertCategory,
    AlertImpact,
    AlertPriority,
    AlertSeverity,
    MetricDirection,
)


class GradeBands(BaseModel):
    """Descending score bands mapping 0-100 scores to PerformanceGrade."""

    excellent: float = Field(default=90, ge=0, le=100, description="Minimum score for Excellent")
    good: float = Field(default=75, ge=0, le=100, description="Minimum score for Good")
    fair: float = Field(default=60, ge=0, le=100, description="Minimum score for Fair")
    poor: float = Field(default=45, ge=0, le=100, description="Minimum score for Poor")

    @model_validator(mode="after")
    def validate_descending(self) -> "GradeBands":
        """Bands must be strictly descending."""
        if not self.excellent > self.good > self.fair > self.poor:
            raise ValueError("Grade bands must be strictly descending")
        return self


class AlertSettings(BaseModel):
    """Alert gating shared by every module."""

    enable_alerts: bool = Field(default=True, description="Emit alerts at all")
    min_variance: float = Field(
        default=0.05, ge=0, description="Minimum |variance| vs target, as a fraction"
    )
    max_alerts: int = Field(default=10, ge=0, description="Max alerts per analysis")


class ThresholdRule(BaseModel):
    """
    One graded metric.

    A hard violation subtracts penalty. If only the optional soft threshold
    is violated, soft_penalty is subtracted instead.
    """

    metric: str = Field(description="Key into the metric values mapping")
    label: str = Field(default="", description="Display label")
    threshold: float = Field(description="Hard threshold")
    direction: MetricDirection = Field(description="Which way is good")
    penalty: float = Field(ge=0, description="Points subtracted on hard violation")
    soft_threshold: Optional[float] = Field(default=None, description="Optional early-warning threshold")
    soft_penalty: float = Field(default=0.0, ge=0, description="Points subtracted on soft violation")


class ScoreResult(BaseModel):
    score: float = Field(ge=0, le=100, description="Clamped 0-100 score")
    violations: List[str] = Field(default_factory=list, description="Metrics that cost points")


class AlertRule(BaseModel):
    """
    One alertable metric.

    Severity escalates to escalated_severity once the value passes
    threshold * escalation_factor (factor > 1 for lower-is-better metrics,
    < 1 for higher-is-better ones). Priority becomes urgent when
    |variance| exceeds urgent_variance. Impact follows the first entry of
    impact_bands whose bound |variance| exceeds, else impact.
    """

    metric: str
    title: str
    category: AlertCategory
    direction: MetricDirection
    threshold: float
    severity: AlertSeverity = AlertSeverity.WARNING
    escalation_factor: Optional[float] = None
    escalated_severity: Optional[AlertSeverity] = None
    priority: AlertPriority = AlertPriority.MEDIUM
    urgent_variance: Optional[float] = None
    impact: Optional[AlertImpact] = None
    impact_bands: List[Tuple[float, AlertImpact]] = Field(
        default_factory=list,
        description="(min |variance| %, impact) pairs, highest first; overrides impact when exceeded",
    )
    message: str = Field(
        default="{title}: {actual:.2f} vs target {target:.2f}",
        description="Format template; receives title, actual, target, variance",
    )
    recommendations: List[str] = Field(default_factory=list)
