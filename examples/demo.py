"""Demo script for smart-reminders."""

import sys
from datetime import datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from smart_reminders.logging_config import configure_logging
from smart_reminders.schema import Task, UserPreferences
from smart_reminders.sweep import run_sweep


def main() -> None:
    configure_logging("INFO")
    now = datetime(2025, 3, 4, 10, 0)
    tasks = [
        Task("t1", "Take out the bins", "urgent", now + timedelta(hours=1), now - timedelta(days=2), assignee_id="u1"),
        Task("t2", "Book dentist", "medium", now - timedelta(hours=6), now - timedelta(days=10), assignee_id="u1"),
        Task("t3", "Clean gutters", "low", None, now - timedelta(days=40), assignee_id="u2"),
    ]
    preferences = {"u1": UserPreferences(user_id="u1", language="en"), "u2": UserPreferences(user_id="u2")}
    result = run_sweep(tasks, preferences, {}, {}, {}, now=now)

    for score in result.scores:
        print("Score:", score.task_id, score.total_score, score.level)
    for batch in result.batches:
        print("Batch:", batch.user_id, batch.scheduled_at, [n.content.title for n in batch.notifications])


if __name__ == "__main__":
    main()
