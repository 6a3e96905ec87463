"""Immutable in-memory reminder index."""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Optional

from smart_reminders.schema import Reminder


@dataclass(frozen=True)
class ReminderStore:
    """Reminders by id plus task, user and scheduled-queue indexes.

    Every operation returns a new store; the mappings held by an existing
    store are never mutated. ``scheduled`` holds ``(scheduled_at, id)``
    pairs in ascending order for reminders whose status is ``scheduled``.
    """

    reminders: Mapping[str, Reminder] = field(default_factory=dict)
    by_task: Mapping[str, frozenset[str]] = field(default_factory=dict)
    by_user: Mapping[str, frozenset[str]] = field(default_factory=dict)
    scheduled: tuple[tuple[datetime, str], ...] = ()

    def __len__(self) -> int:
        return len(self.reminders)

    def __contains__(self, reminder_id: object) -> bool:
        return reminder_id in self.reminders


def create_reminder_store() -> ReminderStore:
    return ReminderStore()


def _requeue(
    queue: tuple[tuple[datetime, str], ...],
    previous: Optional[Reminder],
    reminder: Reminder,
) -> tuple[tuple[datetime, str], ...]:
    entries = list(queue)
    if previous is not None and previous.delivery_status == "scheduled":
        entries.remove((previous.scheduled_at, previous.id))
    if reminder.delivery_status == "scheduled":
        bisect.insort(entries, (reminder.scheduled_at, reminder.id))
    return tuple(entries)


def _with_id(index: Mapping[str, frozenset[str]], key: str, reminder_id: str) -> dict[str, frozenset[str]]:
    updated = dict(index)
    updated[key] = index.get(key, frozenset()) | {reminder_id}
    return updated


def _without_id(index: Mapping[str, frozenset[str]], key: str, reminder_id: str) -> dict[str, frozenset[str]]:
    updated = dict(index)
    remaining = index.get(key, frozenset()) - {reminder_id}
    if remaining:
        updated[key] = remaining
    else:
        updated.pop(key, None)
    return updated


def add_reminder(store: ReminderStore, reminder: Reminder) -> ReminderStore:
    """Index a reminder; re-adding an existing id replaces it."""

    previous = store.reminders.get(reminder.id)
    reminders = dict(store.reminders)
    reminders[reminder.id] = reminder
    by_task, by_user = store.by_task, store.by_user
    if previous is not None:
        by_task = _without_id(by_task, previous.task_id, reminder.id)
        by_user = _without_id(by_user, previous.user_id, reminder.id)

    return ReminderStore(
        reminders=reminders,
        by_task=_with_id(by_task, reminder.task_id, reminder.id),
        by_user=_with_id(by_user, reminder.user_id, reminder.id),
        scheduled=_requeue(store.scheduled, previous, reminder),
    )


def update_reminder(store: ReminderStore, reminder: Reminder) -> ReminderStore:
    """Replace a stored reminder and keep the scheduled queue in sync with its status."""

    previous = store.reminders.get(reminder.id)
    if previous is None or (previous.task_id, previous.user_id) != (reminder.task_id, reminder.user_id):
        return add_reminder(store, reminder)

    reminders = dict(store.reminders)
    reminders[reminder.id] = reminder
    return ReminderStore(
        reminders=reminders,
        by_task=store.by_task,
        by_user=store.by_user,
        scheduled=_requeue(store.scheduled, previous, reminder),
    )


def get_reminder(store: ReminderStore, reminder_id: str) -> Optional[Reminder]:
    return store.reminders.get(reminder_id)


def _resolve(store: ReminderStore, ids: frozenset[str]) -> list[Reminder]:
    reminders = [store.reminders[reminder_id] for reminder_id in ids if reminder_id in store.reminders]
    return sorted(reminders, key=lambda r: (r.scheduled_at, r.id))


def get_reminders_by_task(store: ReminderStore, task_id: str) -> list[Reminder]:
    return _resolve(store, store.by_task.get(task_id, frozenset()))


def get_reminders_by_user(store: ReminderStore, user_id: str) -> list[Reminder]:
    return _resolve(store, store.by_user.get(user_id, frozenset()))


def get_scheduled_reminders(store: ReminderStore) -> list[Reminder]:
    """Return scheduled reminders, earliest first."""

    return [store.reminders[reminder_id] for _, reminder_id in store.scheduled]
