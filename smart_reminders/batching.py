"""Group notifications into per-user delivery batches."""

from __future__ import annotations

import uuid
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable

from smart_reminders.config import DEFAULT_OPTIMIZATION_CONFIG, OptimizationConfig
from smart_reminders.schema import PRIORITY_RANK, Notification, NotificationBatch


def generate_batch_id() -> str:
    return f"batch_{uuid.uuid4().hex[:12]}"


def _highest_priority(notifications: list[Notification]) -> str:
    return max((n.priority for n in notifications), key=lambda p: PRIORITY_RANK.get(p, 0), default="low")


def _finalize(notifications: list[Notification], scheduled_at: datetime) -> NotificationBatch:
    batch_id = generate_batch_id()
    members = tuple(replace(n, batch_id=batch_id, scheduled_at=scheduled_at) for n in notifications)
    return NotificationBatch(
        id=batch_id,
        user_id=notifications[0].user_id,
        notifications=members,
        scheduled_at=scheduled_at,
        priority=_highest_priority(notifications),
    )


def _batch_user(notifications: list[Notification], config: OptimizationConfig) -> list[NotificationBatch]:
    batches: list[NotificationBatch] = []
    window = timedelta(minutes=config.batch_window_minutes)
    current: list[Notification] = []
    batch_start = None

    for notification in sorted(notifications, key=lambda n: n.scheduled_at):
        if notification.priority == "urgent":
            if current:
                batches.append(_finalize(current, batch_start))
                current, batch_start = [], None
            batches.append(_finalize([notification], notification.scheduled_at))
            continue

        if batch_start is None:
            current, batch_start = [notification], notification.scheduled_at
            continue

        within_window = notification.scheduled_at - batch_start <= window
        if within_window and len(current) < config.max_batch_size:
            current.append(notification)
        else:
            batches.append(_finalize(current, batch_start))
            current, batch_start = [notification], notification.scheduled_at

    if current:
        batches.append(_finalize(current, batch_start))
    return batches


def create_batches(
    notifications: Iterable[Notification],
    config: OptimizationConfig = DEFAULT_OPTIMIZATION_CONFIG,
) -> list[NotificationBatch]:
    """Batch each user's notifications greedily in time order.

    Urgent notifications always travel alone. Other notifications join the
    open batch while they fall within ``batch_window_minutes`` of its start
    and it holds fewer than ``max_batch_size`` members. Members are rewritten
    to share the batch start time and id.
    """

    by_user: dict[str, list[Notification]] = defaultdict(list)
    for notification in notifications:
        by_user[notification.user_id].append(notification)

    batches: list[NotificationBatch] = []
    for user_notifications in by_user.values():
        batches.extend(_batch_user(user_notifications, config))
    return batches
