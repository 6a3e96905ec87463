"""JSON adapter for task snapshots."""

from __future__ import annotations

import json

from smart_reminders.adapters.fields import (
    missing_fields,
    optional_text,
    parse_datetime,
    parse_number,
    parse_priority,
    parse_status,
)
from smart_reminders.schema import Task


def _parse_item(item: dict, index: int) -> Task:
    context = f"Item {index}"
    if not isinstance(item, dict):
        raise ValueError(f"{context}: expected an object")

    missing = missing_fields(item)
    if missing:
        raise ValueError(f"{context}: missing required fields {missing}")

    completion_rate = parse_number(item.get("completion_rate"), "completion_rate", context)
    if completion_rate is not None and not 0.0 <= completion_rate <= 1.0:
        raise ValueError(f"{context}: completion_rate must be between 0 and 1")

    return Task(
        id=str(item["id"]).strip(),
        title=str(item["title"]).strip(),
        priority=parse_priority(item["priority"], context),
        deadline=parse_datetime(item.get("deadline"), "deadline", context),
        created_at=parse_datetime(item["created_at"], "created_at", context),
        status=parse_status(item.get("status"), context),
        estimated_minutes=parse_number(item.get("estimated_minutes"), "estimated_minutes", context),
        assignee_id=optional_text(item.get("assignee_id")),
        dependency_count=parse_number(item.get("dependency_count"), "dependency_count", context, int) or 0,
        blocked_tasks=parse_number(item.get("blocked_tasks"), "blocked_tasks", context, int) or 0,
        last_activity_at=parse_datetime(item.get("last_activity_at"), "last_activity_at", context),
        completion_rate=completion_rate,
        description=optional_text(item.get("description")),
    )


def parse(file_path: str) -> list[Task]:
    """Parse JSON file into task snapshots."""

    with open(file_path, encoding="utf-8") as handle:
        payload = json.load(handle)

    if isinstance(payload, dict):
        payload = payload.get("tasks")
    if not isinstance(payload, list):
        raise ValueError("JSON payload must be a list of task objects or an object with a 'tasks' list")

    return [_parse_item(item, i) for i, item in enumerate(payload, start=1)]
