"""Localized reminder content templates."""

from __future__ import annotations

from smart_reminders.schema import ReminderContent, Task

DEFAULT_LANGUAGE = "fr"

_TEMPLATES: dict[str, dict[str, tuple[str, str]]] = {
    "deadline": {
        "fr": ("Échéance proche", 'La tâche "{task_title}" arrive à échéance le {deadline}'),
        "en": ("Deadline approaching", 'Task "{task_title}" is due on {deadline}'),
    },
    "overdue": {
        "fr": ("Tâche en retard", 'La tâche "{task_title}" est en retard depuis le {deadline}'),
        "en": ("Task overdue", 'Task "{task_title}" was due on {deadline}'),
    },
    "recurring": {
        "fr": ("Tâche récurrente", 'C\'est l\'heure de faire "{task_title}"'),
        "en": ("Recurring task", 'Time to do "{task_title}"'),
    },
    "follow_up": {
        "fr": ("Suivi de tâche", 'Comment avance la tâche "{task_title}" ?'),
        "en": ("Task follow-up", 'How is "{task_title}" going?'),
    },
    "check_in": {
        "fr": ("Point sur la tâche", 'N\'oubliez pas la tâche "{task_title}"'),
        "en": ("Task check-in", 'Don\'t forget about "{task_title}"'),
    },
    "nudge": {
        "fr": ("Petit rappel", 'La tâche "{task_title}" attend toujours votre attention'),
        "en": ("Gentle reminder", 'Task "{task_title}" is still waiting for your attention'),
    },
    "celebration": {
        "fr": ("Bravo !", 'Vous avez terminé "{task_title}" !'),
        "en": ("Well done!", 'You completed "{task_title}"!'),
    },
    "weekly_summary": {
        "fr": ("Résumé de la semaine", "Voici votre bilan de la semaine"),
        "en": ("Weekly summary", "Here's your week in review"),
    },
}


def supported_languages() -> tuple[str, ...]:
    return tuple(sorted({language for templates in _TEMPLATES.values() for language in templates}))


def build_reminder_content(task: Task, reminder_type: str, language: str = DEFAULT_LANGUAGE) -> ReminderContent:
    """Render the title and body for a reminder; unknown languages fall back to French."""

    if language not in supported_languages():
        language = DEFAULT_LANGUAGE
    title, body = _TEMPLATES.get(reminder_type, {}).get(language, ("", ""))

    variables = {
        "task_title": task.title,
        "deadline": task.deadline.date().isoformat() if task.deadline else "",
        "priority": task.priority,
    }

    return ReminderContent(
        title=title.format(**variables),
        body=body.format(**variables),
        action_url=f"/tasks/{task.id}",
        metadata={"task_id": task.id, "task_title": task.title, "type": reminder_type},
    )
