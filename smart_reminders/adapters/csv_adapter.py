"""CSV adapter for task snapshots."""

from __future__ import annotations

import csv

from smart_reminders.adapters.fields import (
    missing_fields,
    optional_text,
    parse_datetime,
    parse_number,
    parse_priority,
    parse_status,
)
from smart_reminders.schema import Task


def _parse_row(row: dict, row_number: int) -> Task:
    context = f"Row {row_number}"
    missing = missing_fields(row)
    if missing:
        raise ValueError(f"{context}: missing required fields {missing}")

    completion_rate = parse_number(row.get("completion_rate"), "completion_rate", context)
    if completion_rate is not None and not 0.0 <= completion_rate <= 1.0:
        raise ValueError(f"{context}: completion_rate must be between 0 and 1")

    return Task(
        id=row["id"].strip(),
        title=row["title"].strip(),
        priority=parse_priority(row["priority"], context),
        deadline=parse_datetime(row.get("deadline"), "deadline", context),
        created_at=parse_datetime(row["created_at"], "created_at", context),
        status=parse_status(row.get("status"), context),
        estimated_minutes=parse_number(row.get("estimated_minutes"), "estimated_minutes", context),
        assignee_id=optional_text(row.get("assignee_id")),
        dependency_count=parse_number(row.get("dependency_count"), "dependency_count", context, int) or 0,
        blocked_tasks=parse_number(row.get("blocked_tasks"), "blocked_tasks", context, int) or 0,
        last_activity_at=parse_datetime(row.get("last_activity_at"), "last_activity_at", context),
        completion_rate=completion_rate,
        description=optional_text(row.get("description")),
    )


def parse(file_path: str) -> list[Task]:
    """Parse CSV file into a list of task snapshots."""

    with open(file_path, newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            return []

        tasks: list[Task] = []
        for row_number, row in enumerate(reader, start=2):
            tasks.append(_parse_row(row, row_number))
        return tasks
