from datetime import datetime, time, timedelta, timezone

from smart_reminders.config import ReminderConfig
from smart_reminders.reminders import snooze_reminder
from smart_reminders.scheduling import (
    apply_daily_limit,
    get_due_reminders,
    get_next_send_time,
    get_reminders_in_window,
    group_by_user,
    is_quiet_hours,
    process_due_reminders,
    release_snoozed,
)
from smart_reminders.schema import QuietHours, UserPreferences
from smart_reminders.store import add_reminder, create_reminder_store, get_reminder, update_reminder

NOW = datetime(2025, 1, 6, 10, 0)
NIGHT = UserPreferences(user_id="u1", quiet_hours=QuietHours(True, time(22, 0), time(7, 0)))
LUNCH = UserPreferences(user_id="u1", quiet_hours=QuietHours(True, time(13, 0), time(14, 0)))


def _store(reminders):
    store = create_reminder_store()
    for reminder in reminders:
        store = add_reminder(store, reminder)
    return store


def test_quiet_hours_wrap_midnight():
    assert is_quiet_hours(datetime(2025, 1, 6, 23, 0), NIGHT)
    assert is_quiet_hours(datetime(2025, 1, 6, 6, 59), NIGHT)
    assert not is_quiet_hours(datetime(2025, 1, 6, 7, 0), NIGHT)
    assert not is_quiet_hours(datetime(2025, 1, 6, 12, 0), NIGHT)


def test_quiet_hours_disabled_or_missing():
    disabled = UserPreferences(user_id="u1", quiet_hours=QuietHours(False, time(0, 0), time(23, 59)))
    assert not is_quiet_hours(NOW, disabled)
    assert not is_quiet_hours(NOW, UserPreferences(user_id="u1"))


def test_next_send_time_leaves_quiet_window():
    assert get_next_send_time(datetime(2025, 1, 6, 23, 0), NIGHT) == datetime(2025, 1, 7, 7, 0)
    assert get_next_send_time(datetime(2025, 1, 6, 3, 15), NIGHT) == datetime(2025, 1, 6, 7, 0)
    assert get_next_send_time(datetime(2025, 1, 6, 13, 30), LUNCH) == datetime(2025, 1, 6, 14, 0)
    assert get_next_send_time(NOW, NIGHT) == NOW


def test_quiet_hours_use_user_timezone():
    late_utc = datetime(2025, 1, 6, 22, 30, tzinfo=timezone.utc)
    assert is_quiet_hours(late_utc, NIGHT)
    assert get_next_send_time(late_utc, NIGHT) == datetime(2025, 1, 7, 6, 0, tzinfo=timezone.utc)
    assert not is_quiet_hours(datetime(2025, 1, 6, 6, 30, tzinfo=timezone.utc), NIGHT)


def test_daily_limit_admits_by_priority_then_time(make_reminder):
    reminders = [make_reminder(task_id=f"t{i}", scheduled_at=NOW + timedelta(minutes=i)) for i in range(14)]
    urgent = make_reminder(task_id="late", priority="urgent", scheduled_at=NOW + timedelta(hours=5))
    result = apply_daily_limit(reminders + [urgent], 10)

    assert len(result.allowed) == 10
    assert len(result.deferred) == 5
    assert result.allowed[0] == urgent
    assert [r.scheduled_at for r in result.allowed[1:]] == sorted(r.scheduled_at for r in result.allowed[1:])


def test_due_and_window_queries(make_reminder):
    past = make_reminder(task_id="a", scheduled_at=NOW - timedelta(minutes=5))
    exact = make_reminder(task_id="b", scheduled_at=NOW)
    future = make_reminder(task_id="c", scheduled_at=NOW + timedelta(hours=2))
    store = _store([future, past, exact])

    assert [r.id for r in get_due_reminders(store, NOW)] == [past.id, exact.id]
    window = get_reminders_in_window(store, NOW, NOW + timedelta(hours=3))
    assert [r.id for r in window] == [exact.id, future.id]


def test_snoozed_reminder_due_only_after_release(make_reminder):
    reminder = make_reminder(scheduled_at=NOW)
    store = _store([reminder])
    store = update_reminder(store, snooze_reminder(reminder, 30, NOW))

    assert get_due_reminders(store, NOW + timedelta(minutes=45)) == []
    assert release_snoozed(store, NOW + timedelta(minutes=10)) == store

    released = release_snoozed(store, NOW + timedelta(minutes=45))
    due = get_due_reminders(released, NOW + timedelta(minutes=45))
    assert [r.id for r in due] == [reminder.id]
    assert due[0].snoozed_until is None
    assert due[0].snooze_count == 1


def test_group_by_user(make_reminder):
    groups = group_by_user([make_reminder(user_id="u1"), make_reminder(user_id="u2"), make_reminder(user_id="u1")])
    assert sorted(groups) == ["u1", "u2"]
    assert len(groups["u1"]) == 2


def test_process_due_reminders_defers_overflow(make_reminder):
    reminders = [make_reminder(task_id=f"t{i}", scheduled_at=NOW - timedelta(minutes=i)) for i in range(3)]
    prefs = {"u1": UserPreferences(user_id="u1", max_reminders_per_day=2)}
    result = process_due_reminders(_store(reminders), prefs, NOW, ReminderConfig(deferred_send_hour=9))

    assert len(result.to_send) == 1
    assert result.to_send[0].total_count == 2
    assert len(result.deferred) == 1
    deferred = result.deferred[0]
    assert deferred.scheduled_at == datetime(2025, 1, 7, 9, 0)
    assert get_reminder(result.store, deferred.id).scheduled_at == datetime(2025, 1, 7, 9, 0)


def test_process_due_reminders_respects_quiet_hours(make_reminder):
    night = datetime(2025, 1, 6, 23, 0)
    reminder = make_reminder(scheduled_at=night - timedelta(minutes=1))
    result = process_due_reminders(_store([reminder]), {"u1": NIGHT}, night)

    assert result.to_send == []
    assert [r.scheduled_at for r in result.deferred] == [datetime(2025, 1, 7, 7, 0)]
    assert get_due_reminders(result.store, night) == []
