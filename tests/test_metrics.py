from datetime import datetime

from smart_reminders.metrics import calculate_metrics
from smart_reminders.reminders import cancel_reminder, mark_delivered, mark_failed, mark_sent, snooze_reminder

NOW = datetime(2025, 1, 6, 10, 0)


def test_metrics_by_status_type_and_priority(make_reminder):
    delivered = mark_delivered(mark_sent(make_reminder(task_id="a"), NOW), NOW)
    sent = mark_sent(make_reminder(task_id="b", priority="urgent"), NOW)
    failed = mark_failed(make_reminder(task_id="c", reminder_type="overdue"), NOW)
    snoozed = snooze_reminder(snooze_reminder(make_reminder(task_id="d"), 10, NOW), 10, NOW)
    cancelled = cancel_reminder(make_reminder(task_id="e"), NOW)
    scheduled = make_reminder(task_id="f")

    metrics = calculate_metrics([delivered, sent, failed, snoozed, cancelled, scheduled])
    assert metrics.total_reminders == 6
    assert metrics.sent_count == 2
    assert metrics.delivered_count == 1
    assert metrics.failed_count == 1
    assert metrics.snoozed_count == 1
    assert metrics.cancelled_count == 1
    assert metrics.scheduled_count == 1
    assert metrics.average_snooze_count == 2 / 6
    assert metrics.by_type == {"deadline": 5, "overdue": 1}
    assert metrics.by_priority == {"low": 5, "urgent": 1}


def test_metrics_empty():
    metrics = calculate_metrics([])
    assert metrics.total_reminders == 0
    assert metrics.average_snooze_count == 0.0
