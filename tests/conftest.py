from datetime import datetime, timedelta

import pytest

from smart_reminders.reminders import create_reminder
from smart_reminders.schema import Task

NOW = datetime(2025, 1, 6, 10, 0)


@pytest.fixture
def make_reminder():
    def factory(task_id="t1", user_id="u1", priority="low", scheduled_at=NOW, reminder_type="deadline"):
        task = Task(
            id=task_id,
            title=f"Task {task_id}",
            priority=priority,
            deadline=None,
            created_at=NOW - timedelta(days=1),
        )
        return create_reminder(task, user_id, reminder_type, scheduled_at, ("push",), "en", NOW)

    return factory
