"""Quiet hours, due-reminder queries and daily admission limits."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import datetime, time, timedelta, timezone
from typing import Iterable, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from smart_reminders.config import DEFAULT_REMINDER_CONFIG, ReminderConfig
from smart_reminders.reminders import unsnooze_reminder
from smart_reminders.schema import PRIORITY_RANK, Reminder, UserPreferences
from smart_reminders.store import ReminderStore, get_scheduled_reminders, update_reminder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderBatch:
    """Reminders released to one user in a single pass."""

    user_id: str
    reminders: tuple[Reminder, ...]
    sent_at: datetime

    @property
    def total_count(self) -> int:
        return len(self.reminders)


@dataclass(frozen=True)
class DailyLimitResult:
    allowed: list[Reminder]
    deferred: list[Reminder]


@dataclass(frozen=True)
class ProcessResult:
    to_send: list[ReminderBatch]
    deferred: list[Reminder]
    store: ReminderStore


def to_local(moment: datetime, tz_name: str) -> datetime:
    """Express an aware datetime on the user's clock; naive datetimes are already local."""

    if moment.tzinfo is None:
        return moment
    try:
        return moment.astimezone(ZoneInfo(tz_name))
    except ZoneInfoNotFoundError:
        logger.warning("Unknown timezone %r; using the datetime's own offset.", tz_name)
        return moment


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def is_quiet_hours(moment: datetime, preferences: UserPreferences) -> bool:
    """Return whether ``moment`` falls in the user's quiet window [start, end)."""

    quiet = preferences.quiet_hours
    if quiet is None or not quiet.enabled:
        return False

    local = to_local(moment, preferences.timezone)
    current = local.hour * 60 + local.minute
    start, end = _minutes(quiet.start), _minutes(quiet.end)

    if start > end:
        return current >= start or current < end
    return start <= current < end


def get_next_send_time(proposed: datetime, preferences: UserPreferences) -> datetime:
    """Move a proposed time out of quiet hours to the end of the quiet window."""

    if not is_quiet_hours(proposed, preferences):
        return proposed

    end = preferences.quiet_hours.end
    local = to_local(proposed, preferences.timezone)
    result = local.replace(hour=end.hour, minute=end.minute, second=0, microsecond=0)
    if result < local:
        result += timedelta(days=1)
    return result


def get_due_reminders(store: ReminderStore, now: Optional[datetime] = None) -> list[Reminder]:
    now = now or datetime.now(timezone.utc)
    return [reminder for reminder in get_scheduled_reminders(store) if reminder.scheduled_at <= now]


def get_reminders_in_window(store: ReminderStore, start: datetime, end: datetime) -> list[Reminder]:
    return [reminder for reminder in get_scheduled_reminders(store) if start <= reminder.scheduled_at <= end]


def release_snoozed(store: ReminderStore, now: Optional[datetime] = None) -> ReminderStore:
    """Return snoozed reminders whose snooze has expired to the scheduled queue."""

    now = now or datetime.now(timezone.utc)
    for reminder in list(store.reminders.values()):
        if reminder.delivery_status != "snoozed":
            continue
        if reminder.snoozed_until is not None and reminder.snoozed_until > now:
            continue
        store = update_reminder(store, unsnooze_reminder(reminder, now))
    return store


def group_by_user(reminders: Iterable[Reminder]) -> dict[str, list[Reminder]]:
    groups: dict[str, list[Reminder]] = defaultdict(list)
    for reminder in reminders:
        groups[reminder.user_id].append(reminder)
    return dict(groups)


def apply_daily_limit(reminders: Iterable[Reminder], limit: int) -> DailyLimitResult:
    """Admit the ``limit`` most important reminders, urgent first, then earliest."""

    ranked = sorted(
        reminders,
        key=lambda r: (-PRIORITY_RANK.get(r.priority, 0), r.scheduled_at),
    )
    limit = max(0, limit)
    return DailyLimitResult(allowed=ranked[:limit], deferred=ranked[limit:])


def _next_day_at(now: datetime, hour: int, tz_name: str) -> datetime:
    local = to_local(now, tz_name)
    return (local + timedelta(days=1)).replace(hour=hour, minute=0, second=0, microsecond=0)


def process_due_reminders(
    store: ReminderStore,
    preferences_by_user: Mapping[str, UserPreferences],
    now: Optional[datetime] = None,
    config: ReminderConfig = DEFAULT_REMINDER_CONFIG,
) -> ProcessResult:
    """Split due reminders into per-user send batches and rescheduled leftovers.

    Reminders over the user's daily cap move to the next day at
    ``config.deferred_send_hour``; admitted reminders falling in quiet hours
    move to the end of the quiet window.
    """

    now = now or datetime.now(timezone.utc)
    batches: list[ReminderBatch] = []
    deferred: list[Reminder] = []

    for user_id, due in group_by_user(get_due_reminders(store, now)).items():
        preferences = preferences_by_user.get(user_id)
        limit = preferences.max_reminders_per_day if preferences else config.default_daily_limit
        admission = apply_daily_limit(due, limit)

        quiet = preferences is not None and is_quiet_hours(now, preferences)
        if quiet:
            resume_at = get_next_send_time(now, preferences)
            for reminder in admission.allowed:
                rescheduled = replace(reminder, scheduled_at=resume_at, updated_at=now)
                store = update_reminder(store, rescheduled)
                deferred.append(rescheduled)
        elif admission.allowed:
            batches.append(ReminderBatch(user_id=user_id, reminders=tuple(admission.allowed), sent_at=now))

        tz_name = preferences.timezone if preferences else "UTC"
        next_day = _next_day_at(now, config.deferred_send_hour, tz_name)
        for reminder in admission.deferred:
            rescheduled = replace(reminder, scheduled_at=next_day, updated_at=now)
            store = update_reminder(store, rescheduled)
            deferred.append(rescheduled)

        logger.debug(
            "User %s: %s due, %s released, %s over daily limit, quiet=%s.",
            user_id,
            len(due),
            0 if quiet else len(admission.allowed),
            len(admission.deferred),
            quiet,
        )

    return ProcessResult(to_send=batches, deferred=deferred, store=store)
