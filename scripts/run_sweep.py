"""Run one scheduling sweep over a CSV/JSON task file."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from smart_reminders.adapters import csv_adapter, json_adapter
from smart_reminders.config import load_settings
from smart_reminders.logging_config import configure_logging
from smart_reminders.sweep import run_sweep
from smart_reminders.urgency import calculate_distribution


def _load_tasks(path: Path):
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return csv_adapter.parse(str(path))
    if suffix == ".json":
        return json_adapter.parse(str(path))
    raise ValueError("Unsupported input format, expected .csv or .json")


def _summary(result) -> dict:
    distribution = calculate_distribution(result.scores)
    return {
        "distribution": vars(distribution),
        "scores": [
            {"task_id": s.task_id, "score": s.total_score, "level": s.level, "recommendations": list(s.recommendations)}
            for s in result.scores
        ],
        "created_reminders": [
            {"id": r.id, "task_id": r.task_id, "type": r.type, "scheduled_at": r.scheduled_at.isoformat()}
            for r in result.created
        ],
        "deferred_reminders": [{"id": r.id, "scheduled_at": r.scheduled_at.isoformat()} for r in result.deferred],
        "batches": [
            {
                "id": b.id,
                "user_id": b.user_id,
                "priority": b.priority,
                "scheduled_at": b.scheduled_at.isoformat(),
                "notifications": [
                    {"id": n.id, "channel": n.channel, "title": n.content.title} for n in b.notifications
                ],
            }
            for b in result.batches
        ],
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a smart-reminders scheduling sweep")
    parser.add_argument("--data", required=True, help="Path to CSV/JSON task snapshots")
    parser.add_argument("--user", help="Only sweep tasks assigned to this user id")
    parser.add_argument("--config", help="Optional YAML settings file")
    parser.add_argument("--now", help="ISO timestamp to evaluate at (defaults to current UTC time)")
    args = parser.parse_args()

    settings = load_settings(args.config)
    configure_logging(settings.log_level)

    tasks = _load_tasks(Path(args.data))
    if args.user:
        tasks = [task for task in tasks if task.assignee_id == args.user]
    now = datetime.fromisoformat(args.now) if args.now else datetime.now(timezone.utc)
    result = run_sweep(tasks, {}, {}, {}, {}, settings=settings, now=now)

    print(json.dumps(_summary(result), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
