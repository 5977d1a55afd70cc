"""
Shared grading and alert engine.

Every derivation module describes what it grades and alerts on as a table of
ThresholdRule / AlertRule entries; this module does the arithmetic once:

- score_metrics: start at 100, subtract penalties for violated thresholds, clamp at 0
- grade_from_score: map the score onto descending GradeBands
- generate_alerts: emit alerts for breaches past the minimum variance,
  escalate severity past the escalation factor, rank by priority, cap

Version: grading_v1
"""

from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

import structlog

from dspr.models.common import Alert
from dspr.models.enums import (
    AlertPriority,
    LetterGrade,
    MetricDirection,
    PerformanceGrade,
)
from dspr.models.grading import AlertRule, AlertSettings, GradeBands, ScoreResult, ThresholdRule

logger = structlog.get_logger()

MAX_SCORE = 100.0

LETTER_GRADE_BANDS: Tuple[Tuple[float, LetterGrade], ...] = (
    (97, LetterGrade.A_PLUS),
    (93, LetterGrade.A),
    (90, LetterGrade.B_PLUS),
    (85, LetterGrade.B),
    (80, LetterGrade.C_PLUS),
    (70, LetterGrade.C),
    (60, LetterGrade.D_PLUS),
    (50, LetterGrade.D),
)


def is_violation(value: float, threshold: float, direction: MetricDirection) -> bool:
    """True when value is on the wrong side of threshold."""
    if direction == MetricDirection.LOWER_BETTER:
        return value > threshold
    return value < threshold


def calculate_variance(actual: float, target: float) -> float:
    """Percent variance of actual vs target; 0 when target is 0."""
    if target == 0:
        return 0.0
    return (actual - target) / target * 100


def score_metrics(values: Mapping[str, Optional[float]], rules: Iterable[ThresholdRule]) -> ScoreResult:
    """
    Score metric values against a threshold table.

    Metrics missing from values (or None) are skipped rather than penalized.

    Args:
        values: Metric name -> observed value
        rules: Threshold table

    Returns:
        ScoreResult with the clamped score and the metrics that cost points
    """
    score = MAX_SCORE
    violations: List[str] = []

    for rule in rules:
        value = values.get(rule.metric)
        if value is None:
            continue

        if is_violation(value, rule.threshold, rule.direction):
            score -= rule.penalty
            violations.append(rule.metric)
        elif rule.soft_threshold is not None and is_violation(
            value, rule.soft_threshold, rule.direction
        ):
            score -= rule.soft_penalty
            violations.append(rule.metric)

    return ScoreResult(score=max(0.0, score), violations=violations)


def grade_from_score(score: float, bands: GradeBands) -> PerformanceGrade:
    if score >= bands.excellent:
        return PerformanceGrade.EXCELLENT
    if score >= bands.good:
        return PerformanceGrade.GOOD
    if score >= bands.fair:
        return PerformanceGrade.FAIR
    if score >= bands.poor:
        return PerformanceGrade.POOR
    return PerformanceGrade.CRITICAL


def letter_grade(
    score: float,
    bands: Sequence[Tuple[float, LetterGrade]] = LETTER_GRADE_BANDS,
) -> LetterGrade:
    for minimum, grade in bands:
        if score >= minimum:
            return grade
    return LetterGrade.F


def rank_alerts(alerts: Iterable[Alert], limit: int) -> List[Alert]:
    """Sort by priority descending (stable within a priority) and cap at limit."""
    ranked = sorted(alerts, key=lambda alert: -alert.priority.rank)
    return ranked[: max(0, limit)]


def evaluate_alert_rule(value: float, rule: AlertRule, min_variance: float) -> Optional[Alert]:
    """
    Evaluate a single alert rule.

    Returns None when the value is within threshold or the breach is smaller
    than the minimum variance (a fraction, e.g. 0.05 for 5%).
    """
    if not is_violation(value, rule.threshold, rule.direction):
        return None

    variance = calculate_variance(value, rule.threshold)
    if abs(variance) < min_variance * 100:
        return None

    severity = rule.severity
    if (
        rule.escalation_factor is not None
        and rule.escalated_severity is not None
        and is_violation(value, rule.threshold * rule.escalation_factor, rule.direction)
    ):
        severity = rule.escalated_severity

    priority = rule.priority
    if rule.urgent_variance is not None and abs(variance) > rule.urgent_variance:
        priority = AlertPriority.URGENT

    impact = rule.impact
    for bound, banded in rule.impact_bands:
        if abs(variance) > bound:
            impact = banded
            break

    return Alert(
        severity=severity,
        priority=priority,
        category=rule.category,
        metric=rule.metric,
        title=rule.title,
        message=rule.message.format(
            title=rule.title,
            actual=value,
            target=rule.threshold,
            variance=variance,
            abs_variance=abs(variance),
        ),
        current_value=value,
        target_value=rule.threshold,
        variance=variance,
        impact=impact,
        recommendations=list(rule.recommendations),
    )


def generate_alerts(
    values: Mapping[str, Optional[float]],
    rules: Iterable[AlertRule],
    settings: AlertSettings,
) -> List[Alert]:
    """
    Generate ranked alerts for every breached rule.

    Args:
        values: Metric name -> observed value (None or missing skips the rule)
        rules: Alert table
        settings: Enable flag, minimum variance and max alert count

    Returns:
        Alerts sorted by priority descending, truncated to settings.max_alerts
    """
    if not settings.enable_alerts:
        return []

    alerts: List[Alert] = []
    for rule in rules:
        value = values.get(rule.metric)
        if value is None:
            continue
        alert = evaluate_alert_rule(value, rule, settings.min_variance)
        if alert is not None:
            alerts.append(alert)

    ranked = rank_alerts(alerts, settings.max_alerts)
    if len(ranked) < len(alerts):
        logger.debug("alerts_truncated", emitted=len(alerts), kept=len(ranked))
    return ranked
