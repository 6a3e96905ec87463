from datetime import datetime, time, timedelta, timezone

import pytest

from smart_reminders.reminders import mark_sent
from smart_reminders.scheduling import is_quiet_hours
from smart_reminders.schema import QuietHours, Task, UserPreferences
from smart_reminders.store import get_scheduled_reminders, update_reminder
from smart_reminders.sweep import reminder_to_notification, run_sweep

NOW = datetime(2025, 1, 6, 10, 0)


def sample_tasks():
    return [
        Task("t1", "Take out the bins", "urgent", NOW + timedelta(hours=1), NOW - timedelta(hours=2), assignee_id="u1",
             last_activity_at=NOW),
        Task("t2", "Book dentist", "medium", NOW - timedelta(hours=6), NOW - timedelta(hours=20), assignee_id="u1",
             last_activity_at=NOW),
        Task("t3", "Clean gutters", "low", None, NOW - timedelta(days=40)),
        Task("t4", "Pay rent", "high", NOW - timedelta(days=1), NOW - timedelta(days=5), status="completed",
             assignee_id="u1"),
    ]


def test_sweep_scores_plans_and_batches():
    prefs = {"u1": UserPreferences(user_id="u1", language="en")}
    result = run_sweep(sample_tasks(), prefs, {}, {}, {}, now=NOW)

    assert [s.task_id for s in result.scores] == ["t1", "t2", "t3", "t4"]
    assert sorted((r.task_id, r.type) for r in result.created) == [
        ("t1", "check_in"),
        ("t1", "deadline"),
        ("t2", "check_in"),
        ("t2", "overdue"),
    ]

    due = [r for r in result.created if r.scheduled_at <= NOW]
    notifications = [n for batch in result.batches for n in batch.notifications]
    assert sorted(n.id for n in notifications) == sorted(f"notif_{r.id}" for r in due)
    assert {r.type for r in due} == {"deadline", "overdue"}
    urgent = [b for b in result.batches if b.priority == "urgent"]
    assert len(urgent) == 1
    assert urgent[0].scheduled_at == NOW


def test_second_sweep_does_not_duplicate():
    prefs = {"u1": UserPreferences(user_id="u1")}
    first = run_sweep(sample_tasks(), prefs, {}, {}, {}, now=NOW)
    second = run_sweep(sample_tasks(), prefs, {}, {}, {}, store=first.store, now=NOW + timedelta(minutes=5))
    assert second.created == []
    assert len(second.store) == len(first.store)

    released = sorted(n.id for b in first.batches for n in b.notifications)
    assert sorted(n.id for b in second.batches for n in b.notifications) == released

    store = second.store
    for reminder in get_scheduled_reminders(store):
        if reminder.scheduled_at <= NOW:
            store = update_reminder(store, mark_sent(reminder, NOW))
    third = run_sweep(sample_tasks(), prefs, {}, {}, {}, store=store, now=NOW + timedelta(minutes=10))
    assert third.batches == []
    assert third.created == []


def test_reminder_to_notification(make_reminder):
    reminder = make_reminder(priority="high")
    notification = reminder_to_notification(reminder)
    assert notification.priority == "high"
    assert notification.channel == "push"
    assert notification.allowed_channels == ("push",)
    assert notification.original_scheduled_at == reminder.scheduled_at
    assert notification.content.metadata["reminder_id"] == reminder.id
    assert notification.content.metadata["action_url"] == "/tasks/t1"
    assert notification.batch_id is None


@pytest.mark.parametrize(
    "quiet_start, quiet_end, expected",
    [
        # best slot is 09:00 local the next morning, outside 22:00-07:00
        (time(22, 0), time(7, 0), datetime(2025, 1, 7, 17, 0, tzinfo=timezone.utc)),
        # 09:00 local falls inside 08:00-10:00, so delivery waits for 10:00 local
        (time(8, 0), time(10, 0), datetime(2025, 1, 7, 18, 0, tzinfo=timezone.utc)),
    ],
)
def test_sweep_schedules_on_the_users_clock(quiet_start, quiet_end, expected):
    now = datetime(2025, 1, 6, 20, 0, tzinfo=timezone.utc)  # 12:00 in Los Angeles
    task = Task("t1", "Renew car insurance", "medium", now - timedelta(hours=2), now - timedelta(hours=1),
                assignee_id="u1", last_activity_at=now)
    prefs = UserPreferences(
        user_id="u1",
        timezone="America/Los_Angeles",
        quiet_hours=QuietHours(enabled=True, start=quiet_start, end=quiet_end),
    )

    result = run_sweep([task], {"u1": prefs}, {}, {}, {}, now=now)

    notifications = [n for batch in result.batches for n in batch.notifications]
    assert [n.type for n in notifications] == ["overdue"]
    assert notifications[0].scheduled_at == expected
    assert result.batches[0].scheduled_at == expected
    for batch in result.batches:
        assert not is_quiet_hours(batch.scheduled_at, prefs)
