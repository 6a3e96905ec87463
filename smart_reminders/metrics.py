"""Reminder delivery metrics."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Mapping

from smart_reminders.schema import Reminder


@dataclass(frozen=True)
class ReminderMetrics:
    total_reminders: int = 0
    scheduled_count: int = 0
    sent_count: int = 0
    delivered_count: int = 0
    failed_count: int = 0
    snoozed_count: int = 0
    cancelled_count: int = 0
    average_snooze_count: float = 0.0
    by_type: Mapping[str, int] = field(default_factory=dict)
    by_priority: Mapping[str, int] = field(default_factory=dict)


def calculate_metrics(reminders: list[Reminder]) -> ReminderMetrics:
    """Count reminders by status, type and priority.

    ``sent_count`` includes delivered reminders, since delivery implies sending.
    """

    if not reminders:
        return ReminderMetrics()

    statuses = Counter(reminder.delivery_status for reminder in reminders)
    total_snoozes = sum(reminder.snooze_count for reminder in reminders)

    return ReminderMetrics(
        total_reminders=len(reminders),
        scheduled_count=statuses["scheduled"],
        sent_count=statuses["sent"] + statuses["delivered"],
        delivered_count=statuses["delivered"],
        failed_count=statuses["failed"],
        snoozed_count=statuses["snoozed"],
        cancelled_count=statuses["cancelled"],
        average_snooze_count=total_snoozes / len(reminders),
        by_type=dict(Counter(reminder.type for reminder in reminders)),
        by_priority=dict(Counter(reminder.priority for reminder in reminders)),
    )
