"""One periodic scheduling sweep: score, plan, release and optimize."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional, Sequence

from smart_reminders.config import EngineSettings
from smart_reminders.optimizer import optimize_batch
from smart_reminders.reminders import TERMINAL_DELIVERY_STATUSES, plan_task_reminders
from smart_reminders.scheduling import process_due_reminders, release_snoozed
from smart_reminders.schema import (
    EngagementMetric,
    Notification,
    NotificationBatch,
    NotificationContent,
    OptimizationResult,
    RateLimitState,
    Reminder,
    Task,
    UrgencyScore,
    UserActivity,
    UserPreferences,
)
from smart_reminders.store import ReminderStore, add_reminder, create_reminder_store, get_reminders_by_task
from smart_reminders.urgency import calculate_batch_scores

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    scores: list[UrgencyScore]
    store: ReminderStore
    created: list[Reminder]
    deferred: list[Reminder]
    results: list[OptimizationResult]
    batches: list[NotificationBatch]


def reminder_to_notification(reminder: Reminder) -> Notification:
    """Turn a released reminder into a dispatchable notification."""

    metadata = dict(reminder.content.metadata)
    metadata["reminder_id"] = reminder.id
    if reminder.content.action_url:
        metadata["action_url"] = reminder.content.action_url

    return Notification(
        id=f"notif_{reminder.id}",
        user_id=reminder.user_id,
        type=reminder.type,
        priority=reminder.priority,
        channel=reminder.channels[0] if reminder.channels else "push",
        content=NotificationContent(title=reminder.content.title, body=reminder.content.body, metadata=metadata),
        scheduled_at=reminder.scheduled_at,
        original_scheduled_at=reminder.scheduled_at,
        allowed_channels=reminder.channels,
    )


def _has_open_reminder(store: ReminderStore, task_id: str, reminder_type: str) -> bool:
    return any(
        existing.type == reminder_type and existing.delivery_status not in TERMINAL_DELIVERY_STATUSES
        for existing in get_reminders_by_task(store, task_id)
    )


def run_sweep(
    tasks: Iterable[Task],
    preferences_by_user: Mapping[str, UserPreferences],
    activity_by_user: Mapping[str, UserActivity],
    metrics_by_user: Mapping[str, Sequence[EngagementMetric]],
    rate_limits_by_user: Mapping[str, RateLimitState],
    store: Optional[ReminderStore] = None,
    settings: Optional[EngineSettings] = None,
    now: Optional[datetime] = None,
) -> SweepResult:
    """Run a full pass for a set of tasks.

    Reminders are created only for assigned tasks, at most one open reminder
    per (task, type). Delivery times are optimized on each user's local clock
    and never land in their quiet hours.

    Released reminders stay ``scheduled`` in the returned store. The dispatch
    layer must call ``mark_sent`` (or ``mark_failed``) on each of them and
    store the result; until it does, every later sweep releases them again.
    """

    tasks = list(tasks)
    settings = settings or EngineSettings()
    store = store if store is not None else create_reminder_store()
    now = now or datetime.now(timezone.utc)

    scores = calculate_batch_scores(tasks, settings.urgency, now)
    store = release_snoozed(store, now)

    created: list[Reminder] = []
    for task in tasks:
        if task.assignee_id is None:
            continue
        preferences = preferences_by_user.get(task.assignee_id) or UserPreferences(user_id=task.assignee_id)
        for reminder in plan_task_reminders(task, task.assignee_id, preferences, now, settings.urgency, settings.reminders):
            if _has_open_reminder(store, task.id, reminder.type):
                continue
            store = add_reminder(store, reminder)
            created.append(reminder)

    processed = process_due_reminders(store, preferences_by_user, now, settings.reminders)
    released = [r for batch in processed.to_send for r in batch.reminders]
    notifications = [replace(reminder_to_notification(r), scheduled_at=now) for r in released]
    user_preferences = {
        user_id: preferences_by_user.get(user_id) or UserPreferences(user_id=user_id)
        for user_id in {n.user_id for n in notifications}
    }
    optimization = optimize_batch(
        notifications,
        activity_by_user,
        metrics_by_user,
        rate_limits_by_user,
        settings.optimization,
        now,
        user_preferences,
    )

    logger.info(
        "Sweep at %s: %s tasks scored, %s reminders created, %s released, %s deferred, %s batches.",
        now.isoformat(),
        len(scores),
        len(created),
        len(notifications),
        len(processed.deferred),
        len(optimization.batches),
    )
    return SweepResult(
        scores=scores,
        store=processed.store,
        created=created,
        deferred=processed.deferred,
        results=optimization.results,
        batches=optimization.batches,
    )
