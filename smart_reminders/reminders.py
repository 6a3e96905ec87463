"""Reminder creation rules and delivery status transitions."""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from smart_reminders.config import DEFAULT_REMINDER_CONFIG, DEFAULT_URGENCY_CONFIG, ReminderConfig, UrgencyConfig
from smart_reminders.content import DEFAULT_LANGUAGE, build_reminder_content
from smart_reminders.schema import CHANNELS, PRIORITY_RANK, REMINDER_TYPES, Reminder, Task, UserPreferences
from smart_reminders.urgency import calculate_stale_factor

logger = logging.getLogger(__name__)

TERMINAL_DELIVERY_STATUSES = frozenset({"delivered", "failed", "cancelled"})


class InvalidTransitionError(ValueError):
    """Raised when a reminder is moved to a status its current status cannot reach."""

    def __init__(self, reminder: Reminder, target: str):
        super().__init__(f"Reminder {reminder.id}: cannot move from '{reminder.delivery_status}' to '{target}'")
        self.reminder = reminder
        self.target = target


def generate_reminder_id() -> str:
    return f"rem_{uuid.uuid4().hex[:12]}"


def _at_least(priority: str, floor: str) -> str:
    return priority if PRIORITY_RANK.get(priority, 0) >= PRIORITY_RANK[floor] else floor


def calculate_priority(task: Task, now: Optional[datetime] = None) -> str:
    """Escalate the task's nominal priority by deadline proximity; never downgrade."""

    if task.priority == "urgent":
        return "urgent"

    priority = task.priority if task.priority in PRIORITY_RANK else "low"
    if task.deadline is None:
        return priority

    now = now or datetime.now(timezone.utc)
    hours_until = (task.deadline - now).total_seconds() / 3600.0
    if hours_until < 24:
        return _at_least(priority, "high")
    if hours_until < 72:
        return _at_least(priority, "medium")
    return priority


def create_reminder(
    task: Task,
    user_id: str,
    reminder_type: str,
    scheduled_at: datetime,
    channels: Iterable[str],
    language: str = DEFAULT_LANGUAGE,
    now: Optional[datetime] = None,
) -> Reminder:
    """Build a ``scheduled`` reminder; unknown reminder types or channels raise ``ValueError``."""

    if reminder_type not in REMINDER_TYPES:
        raise ValueError(f"Unknown reminder type: {reminder_type!r}")
    channels = tuple(channels)
    unknown = [channel for channel in channels if channel not in CHANNELS]
    if unknown:
        raise ValueError(f"Unknown channel(s) for reminder: {', '.join(unknown)}")

    now = now or datetime.now(timezone.utc)
    return Reminder(
        id=generate_reminder_id(),
        task_id=task.id,
        user_id=user_id,
        type=reminder_type,
        priority=calculate_priority(task, now),
        channels=channels,
        scheduled_at=scheduled_at,
        content=build_reminder_content(task, reminder_type, language),
        created_at=now,
        updated_at=now,
    )


def _from_preferences(
    task: Task,
    user_id: str,
    reminder_type: str,
    scheduled_at: datetime,
    preferences: UserPreferences,
    now: datetime,
) -> Reminder:
    reminder = create_reminder(
        task,
        user_id,
        reminder_type,
        scheduled_at=max(scheduled_at, now),
        channels=preferences.channels,
        language=preferences.language,
        now=now,
    )
    logger.debug("Created %s reminder %s for task %s at %s.", reminder_type, reminder.id, task.id, reminder.scheduled_at)
    return reminder


def create_deadline_reminder(
    task: Task,
    user_id: str,
    preferences: UserPreferences,
    now: Optional[datetime] = None,
) -> Optional[Reminder]:
    """Remind ``lead_times.deadline`` hours before the deadline, never earlier than now."""

    if task.deadline is None or task.is_terminal:
        return None

    now = now or datetime.now(timezone.utc)
    send_at = task.deadline - timedelta(hours=preferences.lead_times.deadline)
    return _from_preferences(task, user_id, "deadline", send_at, preferences, now)


def create_overdue_reminder(
    task: Task,
    user_id: str,
    preferences: UserPreferences,
    now: Optional[datetime] = None,
) -> Optional[Reminder]:
    if task.deadline is None or task.is_terminal:
        return None

    now = now or datetime.now(timezone.utc)
    if task.deadline > now:
        return None
    return _from_preferences(task, user_id, "overdue", now, preferences, now)


def create_check_in_reminder(
    task: Task,
    user_id: str,
    preferences: UserPreferences,
    now: Optional[datetime] = None,
) -> Optional[Reminder]:
    """Check in on an assigned open task ``lead_times.check_in`` hours after it was created."""

    if task.is_terminal or task.assignee_id is None:
        return None

    now = now or datetime.now(timezone.utc)
    send_at = task.created_at + timedelta(hours=preferences.lead_times.check_in)
    return _from_preferences(task, user_id, "check_in", send_at, preferences, now)


def create_nudge_reminder(
    task: Task,
    user_id: str,
    preferences: UserPreferences,
    now: Optional[datetime] = None,
    urgency_config: UrgencyConfig = DEFAULT_URGENCY_CONFIG,
    config: ReminderConfig = DEFAULT_REMINDER_CONFIG,
) -> Optional[Reminder]:
    if task.is_terminal:
        return None

    now = now or datetime.now(timezone.utc)
    if calculate_stale_factor(task.last_activity_at, urgency_config, now) < config.nudge_stale_factor:
        return None
    return _from_preferences(task, user_id, "nudge", now, preferences, now)


def plan_task_reminders(
    task: Task,
    user_id: str,
    preferences: UserPreferences,
    now: Optional[datetime] = None,
    urgency_config: UrgencyConfig = DEFAULT_URGENCY_CONFIG,
    config: ReminderConfig = DEFAULT_REMINDER_CONFIG,
) -> list[Reminder]:
    """Return every reminder that currently applies to a task."""

    if not preferences.enable_reminders or task.is_terminal:
        return []

    now = now or datetime.now(timezone.utc)
    overdue = create_overdue_reminder(task, user_id, preferences, now)
    candidates = [
        overdue if overdue is not None else create_deadline_reminder(task, user_id, preferences, now),
        create_check_in_reminder(task, user_id, preferences, now),
        create_nudge_reminder(task, user_id, preferences, now, urgency_config, config),
    ]
    return [reminder for reminder in candidates if reminder is not None]


def _transition(reminder: Reminder, allowed_from: frozenset[str], target: str, now: datetime, **changes) -> Reminder:
    if reminder.delivery_status not in allowed_from:
        raise InvalidTransitionError(reminder, target)
    return replace(reminder, delivery_status=target, updated_at=now, **changes)


def mark_sent(reminder: Reminder, now: Optional[datetime] = None) -> Reminder:
    now = now or datetime.now(timezone.utc)
    return _transition(reminder, frozenset({"scheduled"}), "sent", now, sent_at=now)


def mark_delivered(reminder: Reminder, now: Optional[datetime] = None) -> Reminder:
    now = now or datetime.now(timezone.utc)
    return _transition(reminder, frozenset({"sent"}), "delivered", now, delivered_at=now)


def mark_failed(reminder: Reminder, now: Optional[datetime] = None) -> Reminder:
    now = now or datetime.now(timezone.utc)
    return _transition(reminder, frozenset({"scheduled", "sent"}), "failed", now)


def cancel_reminder(reminder: Reminder, now: Optional[datetime] = None) -> Reminder:
    now = now or datetime.now(timezone.utc)
    return _transition(reminder, frozenset({"scheduled", "sent", "snoozed"}), "cancelled", now)


def snooze_reminder(
    reminder: Reminder,
    minutes: Optional[float] = None,
    now: Optional[datetime] = None,
    config: ReminderConfig = DEFAULT_REMINDER_CONFIG,
) -> Reminder:
    """Hold a reminder back for ``minutes`` (``config.default_snooze_minutes`` when omitted).

    The send time moves to the end of the snooze.
    """

    now = now or datetime.now(timezone.utc)
    if minutes is None:
        minutes = config.default_snooze_minutes
    until = now + timedelta(minutes=minutes)
    return _transition(
        reminder,
        frozenset({"scheduled", "snoozed"}),
        "snoozed",
        now,
        snoozed_until=until,
        scheduled_at=until,
        snooze_count=reminder.snooze_count + 1,
    )


def unsnooze_reminder(reminder: Reminder, now: Optional[datetime] = None) -> Reminder:
    now = now or datetime.now(timezone.utc)
    return _transition(reminder, frozenset({"snoozed"}), "scheduled", now, snoozed_until=None)
