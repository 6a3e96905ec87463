"""Field converters shared by the task snapshot adapters."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from smart_reminders.schema import PRIORITIES, TASK_STATUSES

REQUIRED_FIELDS = ("id", "title", "priority", "created_at")


def missing_fields(record: dict) -> list[str]:
    return [name for name in REQUIRED_FIELDS if record.get(name) in (None, "")]


def parse_datetime(raw: Any, name: str, context: str) -> Optional[datetime]:
    if raw in (None, ""):
        return None
    try:
        return datetime.fromisoformat(str(raw).strip())
    except ValueError as exc:
        raise ValueError(f"{context}: malformed {name}") from exc


def parse_number(raw: Any, name: str, context: str, cast=float):
    if raw in (None, ""):
        return None
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{context}: invalid {name}") from exc


def parse_choice(raw: Any, name: str, context: str, choices: tuple[str, ...]) -> str:
    value = str(raw).strip()
    if value not in choices:
        raise ValueError(f"{context}: invalid {name} '{value}'")
    return value


def parse_priority(raw: Any, context: str) -> str:
    return parse_choice(raw, "priority", context, PRIORITIES)


def parse_status(raw: Any, context: str) -> str:
    if raw in (None, ""):
        return "pending"
    return parse_choice(raw, "status", context, TASK_STATUSES)


def optional_text(raw: Any) -> Optional[str]:
    if raw in (None, ""):
        return None
    text = str(raw).strip()
    return text or None
