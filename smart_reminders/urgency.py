"""Weighted multi-factor urgency scoring for tasks."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Iterable, Optional

import numpy as np

from smart_reminders.config import DEFAULT_URGENCY_CONFIG, UrgencyConfig
from smart_reminders.schema import (
    URGENCY_LEVELS,
    Task,
    UrgencyBreakdown,
    UrgencyDistribution,
    UrgencyFactors,
    UrgencyScore,
)

logger = logging.getLogger(__name__)

_PRIORITY_FACTORS = {"urgent": 100.0, "high": 75.0, "medium": 40.0, "low": 15.0}
_LEVEL_INDEX = {level: index for index, level in enumerate(URGENCY_LEVELS)}
OVERDUE_MARKER = "Overdue"


def round_half_up(value: float) -> int:
    """Round halves upward: 64.5 gives 65."""

    return math.floor(value + 0.5)


def _hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600.0


def _interpolate(hours_until: float, upper_hours: float, lower_hours: float, floor: float) -> float:
    progress = (upper_hours - hours_until) / (upper_hours - lower_hours)
    return floor + progress * 30.0


def calculate_deadline_factor(
    deadline: Optional[datetime],
    config: UrgencyConfig = DEFAULT_URGENCY_CONFIG,
    now: Optional[datetime] = None,
) -> float:
    """Score deadline pressure; overdue tasks grow past 100 by 0.5 per hour late."""

    if deadline is None:
        return 0.0

    now = now or datetime.now(timezone.utc)
    hours_until = _hours_between(now, deadline)
    windows = config.deadline_windows

    if hours_until < 0:
        return 100.0 + abs(hours_until) * 0.5
    if hours_until <= windows.critical_hours:
        return 100.0
    if hours_until <= windows.high_hours:
        return _interpolate(hours_until, windows.high_hours, windows.critical_hours, 70.0)
    if hours_until <= windows.medium_hours:
        return _interpolate(hours_until, windows.medium_hours, windows.high_hours, 40.0)
    if hours_until <= windows.low_hours:
        return _interpolate(hours_until, windows.low_hours, windows.medium_hours, 10.0)
    return 0.0


def calculate_priority_factor(priority: str) -> float:
    return _PRIORITY_FACTORS.get(priority, 0.0)


def calculate_age_factor(created_at: datetime, now: Optional[datetime] = None) -> float:
    """Sub-linear growth with age, saturating around 60 days."""

    now = now or datetime.now(timezone.utc)
    days_old = _hours_between(created_at, now) / 24.0
    if days_old <= 0:
        return 0.0
    return min(100.0, (days_old / 60.0) ** 0.8 * 100.0)


def calculate_dependency_factor(blocked_tasks: int, dependency_count: int) -> float:
    blocking_score = min(50, blocked_tasks * 15)
    dependent_penalty = min(20, dependency_count * 5)
    return float(max(0, blocking_score - dependent_penalty))


def calculate_stale_factor(
    last_activity_at: Optional[datetime],
    config: UrgencyConfig = DEFAULT_URGENCY_CONFIG,
    now: Optional[datetime] = None,
) -> float:
    """Score inactivity; unknown activity is treated as moderately stale."""

    if last_activity_at is None:
        return 50.0

    now = now or datetime.now(timezone.utc)
    hours_since = _hours_between(last_activity_at, now)
    if hours_since <= config.stale_threshold_hours:
        return 0.0
    return min(100.0, (hours_since - config.stale_threshold_hours) * 0.5)


def calculate_completion_factor(completion_rate: Optional[float]) -> float:
    if completion_rate is None:
        return 0.0
    return float(round_half_up((1.0 - completion_rate) * 100.0))


def calculate_factors(
    task: Task,
    config: UrgencyConfig = DEFAULT_URGENCY_CONFIG,
    now: Optional[datetime] = None,
) -> UrgencyFactors:
    now = now or datetime.now(timezone.utc)
    return UrgencyFactors(
        deadline=calculate_deadline_factor(task.deadline, config, now),
        priority=calculate_priority_factor(task.priority),
        age=calculate_age_factor(task.created_at, now),
        dependency=calculate_dependency_factor(task.blocked_tasks, task.dependency_count),
        stale=calculate_stale_factor(task.last_activity_at, config, now),
        completion=calculate_completion_factor(task.completion_rate),
    )


def calculate_total_score(factors: UrgencyFactors, config: UrgencyConfig = DEFAULT_URGENCY_CONFIG) -> int:
    """Weight-normalized average of the factors, clamped to [0, 100] after weighting."""

    weights = config.weights
    weighted_sum = (
        factors.deadline * weights.deadline
        + factors.priority * weights.priority
        + factors.age * weights.age
        + factors.dependency * weights.dependency
        + factors.stale * weights.stale
        + factors.completion * weights.completion
    )
    total_weight = weights.total
    if total_weight <= 0:
        return 0
    return max(0, min(100, round_half_up(weighted_sum / total_weight)))


def score_to_level(score: float, config: UrgencyConfig = DEFAULT_URGENCY_CONFIG) -> str:
    thresholds = config.thresholds
    if score >= thresholds.critical:
        return "critical"
    if score >= thresholds.high:
        return "high"
    if score >= thresholds.medium:
        return "medium"
    if score >= thresholds.low:
        return "low"
    return "none"


def _describe_deadline(task: Task, now: datetime) -> str:
    if task.deadline is None:
        return "No deadline"
    hours_until = _hours_between(now, task.deadline)
    if hours_until < 0:
        return f"{OVERDUE_MARKER} by {round_half_up(abs(hours_until))}h"
    if hours_until < 24:
        return f"{round_half_up(hours_until)}h left"
    return f"{round_half_up(hours_until / 24)} days left"


def generate_breakdown(factors: UrgencyFactors, task: Task, now: Optional[datetime] = None) -> UrgencyBreakdown:
    now = now or datetime.now(timezone.utc)
    days_old = round_half_up(_hours_between(task.created_at, now) / 24.0)

    if factors.stale > 50:
        stale = "No recent activity"
    elif factors.stale > 0:
        stale = "Some recent activity"
    else:
        stale = "Recent activity"

    return UrgencyBreakdown(
        deadline=_describe_deadline(task, now),
        priority=f"Priority {task.priority}",
        age=f"Created {days_old} days ago",
        dependency=f"Blocks {task.blocked_tasks} task(s)" if task.blocked_tasks > 0 else "No dependencies",
        stale=stale,
        completion=(
            f"Completion rate: {round_half_up(task.completion_rate * 100)}%"
            if task.completion_rate is not None
            else "Not recurring"
        ),
    )


def generate_recommendations(
    factors: UrgencyFactors,
    task: Task,
    level: str,
    now: Optional[datetime] = None,
) -> tuple[str, ...]:
    """Return follow-up suggestions for the factors that stand out."""

    now = now or datetime.now(timezone.utc)
    recommendations: list[str] = []

    if factors.deadline >= 100:
        if task.deadline is not None and task.deadline < now:
            recommendations.append("This task is overdue - act now")
        else:
            recommendations.append("Deadline is imminent - handle this first")
    elif factors.deadline >= 70:
        recommendations.append("Deadline is close - set aside time today")

    if factors.priority >= 75 and factors.deadline < 40:
        recommendations.append("High priority without deadline pressure - a good time to make progress")
    if factors.stale >= 50:
        recommendations.append("No recent activity on this task - does it need a follow-up?")
    if factors.dependency >= 30:
        recommendations.append("This task blocks other tasks - finishing it frees up work")
    if factors.completion >= 60:
        recommendations.append("Low completion rate on this recurring task - needs attention")
    if factors.age >= 70 and level != "critical":
        recommendations.append("Old task - consider finishing or archiving it")

    if not recommendations:
        if level == "critical":
            recommendations.append("Critical urgency - needs immediate attention")
        elif level == "none":
            recommendations.append("No particular urgency - this can wait")

    return tuple(recommendations)


def _closed_score(task: Task, now: datetime) -> UrgencyScore:
    return UrgencyScore(
        task_id=task.id,
        total_score=0,
        level="none",
        factors=UrgencyFactors(),
        breakdown=UrgencyBreakdown(
            deadline="Task closed",
            priority="-",
            age="-",
            dependency="-",
            stale="-",
            completion="-",
        ),
        recommendations=(),
        calculated_at=now,
    )


def calculate_urgency_score(
    task: Task,
    config: UrgencyConfig = DEFAULT_URGENCY_CONFIG,
    now: Optional[datetime] = None,
) -> UrgencyScore:
    """Compute the full urgency score for a task snapshot."""

    now = now or datetime.now(timezone.utc)
    if task.is_terminal:
        return _closed_score(task, now)

    factors = calculate_factors(task, config, now)
    total_score = calculate_total_score(factors, config)
    level = score_to_level(total_score, config)
    logger.debug("Task %s scored %s (%s).", task.id, total_score, level)

    return UrgencyScore(
        task_id=task.id,
        total_score=total_score,
        level=level,
        factors=factors,
        breakdown=generate_breakdown(factors, task, now),
        recommendations=generate_recommendations(factors, task, level, now),
        calculated_at=now,
    )


def calculate_batch_scores(
    tasks: Iterable[Task],
    config: UrgencyConfig = DEFAULT_URGENCY_CONFIG,
    now: Optional[datetime] = None,
) -> list[UrgencyScore]:
    now = now or datetime.now(timezone.utc)
    return [calculate_urgency_score(task, config, now) for task in tasks]


def sort_by_urgency(scores: Iterable[UrgencyScore], descending: bool = True) -> list[UrgencyScore]:
    return sorted(scores, key=lambda score: score.total_score, reverse=descending)


def filter_by_level(scores: Iterable[UrgencyScore], min_level: str) -> list[UrgencyScore]:
    min_index = _LEVEL_INDEX[min_level]
    return [score for score in scores if _LEVEL_INDEX[score.level] >= min_index]


def get_top_urgent(scores: Iterable[UrgencyScore], count: int) -> list[UrgencyScore]:
    return sort_by_urgency(scores)[: max(0, count)]


def is_overdue_score(score: UrgencyScore) -> bool:
    return score.factors.deadline >= 100 and OVERDUE_MARKER in score.breakdown.deadline


def calculate_distribution(scores: list[UrgencyScore]) -> UrgencyDistribution:
    """Count scores per level and compute the rounded mean score."""

    if not scores:
        return UrgencyDistribution()

    counts = {level: 0 for level in URGENCY_LEVELS}
    for score in scores:
        counts[score.level] += 1

    average = round_half_up(float(np.mean([score.total_score for score in scores])))
    overdue = sum(1 for score in scores if is_overdue_score(score))
    return UrgencyDistribution(**counts, average=average, overdue=overdue)


def calculate_trend(history: Iterable[tuple[datetime, list[UrgencyScore]]]) -> list[tuple[datetime, int]]:
    """Return the rounded mean score of each dated snapshot."""

    trend = []
    for date, scores in history:
        average = round_half_up(float(np.mean([s.total_score for s in scores]))) if scores else 0
        trend.append((date, average))
    return trend
