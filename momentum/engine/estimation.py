"""Personalized time estimates learned from completion history."""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Sequence

from momentum.db.models import CompletionRecord, Confidence, EstimateResult, LearningSettings
from momentum.utils.constants import (
    BLEND_WEIGHT_COMPLEXITY,
    DEFAULT_SENSITIVITY,
    LOW_CONFIDENCE_BELOW,
    MEDIUM_CONFIDENCE_BELOW,
    MIN_P50_MINUTES,
    MIN_P90_SPREAD_MINUTES,
    MIN_RECORDS_FOR_ESTIMATE,
    MIN_RECORDS_FOR_STATS,
    P90_STDDEV_FACTOR,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccuracyStats:
    """How far past estimates were from what actually happened."""

    total_records: int
    avg_deviation_minutes: float


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def ewma(values: Sequence[float], alpha: float = DEFAULT_SENSITIVITY) -> float:
    """Exponentially weighted moving average, seeded with the first value."""
    if not values:
        return 0.0

    average = values[0]
    for value in values:
        average = alpha * value + (1 - alpha) * average
    return average


def adjusted_duration(record: CompletionRecord) -> float:
    """Actual duration normalized by the reported difficulty."""
    return record.actual_duration_minutes / record.difficulty


def confidence_for(record_count: int) -> Confidence:
    if record_count < LOW_CONFIDENCE_BELOW:
        return "low"
    if record_count < MEDIUM_CONFIDENCE_BELOW:
        return "medium"
    return "high"


def estimate(
    history: Dict[str, List[CompletionRecord]],
    category: str,
    sub_step_count: int,
    sensitivity: float = DEFAULT_SENSITIVITY,
) -> EstimateResult | None:
    """Estimate how long a task will take from the user's own history.

    Two models are blended 50/50:

    - complexity: average adjusted minutes per sub-step times the number of
      sub-steps of the new task
    - recency: EWMA of adjusted durations in completion order, with
      ``sensitivity`` as the smoothing factor

    p90 adds 1.3 population standard deviations (around p50) on top of p50.
    p50 is at least 5 minutes and p90 at least p50 + 5.

    Args:
        history: Records keyed by energy category (not modified)
        category: Energy category of the task being estimated
        sub_step_count: Number of sub-steps in the task
        sensitivity: EWMA smoothing factor in (0, 1)

    Returns:
        The estimate, or None when the category has fewer than 5 records or
        no sub-steps at all
    """
    records = history.get(category) or []

    if len(records) < MIN_RECORDS_FOR_ESTIMATE:
        return None

    adjusted = [adjusted_duration(r) for r in records]

    total_sub_steps = sum(r.sub_step_count for r in records)
    if total_sub_steps == 0:
        logger.debug(f"No sub-steps recorded for {category}, cannot estimate")
        return None
    complexity_estimate = sum(adjusted) / total_sub_steps * sub_step_count

    chronological = sorted(records, key=lambda r: r.completed_at)
    recency_estimate = ewma([adjusted_duration(r) for r in chronological], sensitivity)

    p50 = _round_half_up(
        complexity_estimate * BLEND_WEIGHT_COMPLEXITY
        + recency_estimate * (1 - BLEND_WEIGHT_COMPLEXITY)
    )

    variance = sum((d - p50) ** 2 for d in adjusted) / len(adjusted)
    p90 = _round_half_up(p50 + P90_STDDEV_FACTOR * math.sqrt(variance))

    final_p50 = max(MIN_P50_MINUTES, p50)
    final_p90 = max(final_p50 + MIN_P90_SPREAD_MINUTES, p90)

    return EstimateResult(
        p50_minutes=final_p50,
        p90_minutes=final_p90,
        confidence=confidence_for(len(records)),
    )


def estimate_for_settings(
    history: Dict[str, List[CompletionRecord]],
    category: str,
    sub_step_count: int,
    settings: LearningSettings,
) -> EstimateResult | None:
    """Estimate with the user's sensitivity, or nothing if learning is off."""
    if not settings.is_enabled:
        return None
    return estimate(history, category, sub_step_count, settings.sensitivity)


def accuracy_stats(history: Dict[str, List[CompletionRecord]]) -> AccuracyStats | None:
    """Average gap between the estimate shown and the actual duration."""
    records = [r for records in history.values() for r in records]

    if len(records) < MIN_RECORDS_FOR_STATS:
        return None

    total_deviation = sum(
        abs(r.estimated_duration_minutes - r.actual_duration_minutes) for r in records
    )
    return AccuracyStats(
        total_records=len(records),
        avg_deviation_minutes=total_deviation / len(records),
    )
