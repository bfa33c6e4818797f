"""
Threshold evaluation of sensor readings against the configured ideal ranges.

``evaluate`` averages each metric over the readings it is given and flags the
metrics whose average lies strictly outside the inclusive ``[min, max]`` range.
Callers are responsible for passing only the readings inside the evaluation
window (see ``window_start``).
"""
from datetime import datetime, timedelta
from typing import Dict, Sequence

from .models import (
    INSUFFICIENT_DATA,
    METRICS,
    EvaluationResult,
    MetricAverages,
    MetricRange,
    PlantSettings,
    SensorReading,
    ensure_utc,
)

OPTIMAL = "optimal"
WARNING = "warning"
CRITICAL = "critical"

# Share of the range width treated as the warning band next to each bound
WARNING_BAND = 0.1


def window_start(now: datetime, window_hours: int = 24) -> datetime:
    return ensure_utc(now) - timedelta(hours=window_hours)


def evaluate(readings: Sequence[SensorReading], settings: PlantSettings) -> EvaluationResult:
    if not readings:
        return EvaluationResult(
            isMistreated=False,
            issues=[INSUFFICIENT_DATA],
            averages=MetricAverages(),
        )

    totals: Dict[str, float] = {metric: 0.0 for metric in METRICS}
    for reading in readings:
        for metric, value in reading.metric_values().items():
            totals[metric] += value
    averages = {metric: total / len(readings) for metric, total in totals.items()}

    ranges = settings.ranges()
    issues = [metric for metric in METRICS if _out_of_range(averages[metric], ranges[metric])]

    return EvaluationResult(
        isMistreated=bool(issues),
        issues=issues,
        averages=MetricAverages(**averages),
    )


def _out_of_range(value: float, bounds: MetricRange) -> bool:
    return value < bounds.minimum or value > bounds.maximum


def classify(value: float, bounds: MetricRange) -> str:
    """Dashboard status of a single value: critical outside, warning near a bound."""
    if _out_of_range(value, bounds):
        return CRITICAL
    buffer = (bounds.maximum - bounds.minimum) * WARNING_BAND
    if value < bounds.minimum + buffer or value > bounds.maximum - buffer:
        return WARNING
    return OPTIMAL


def classify_reading(reading: SensorReading, settings: PlantSettings) -> Dict[str, str]:
    ranges = settings.ranges()
    return {metric: classify(value, ranges[metric]) for metric, value in reading.metric_values().items()}
