"""Core data schema for tasks, reminders and notifications."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Mapping, Optional

PRIORITIES = ("low", "medium", "high", "urgent")
TASK_STATUSES = ("pending", "in_progress", "completed", "cancelled")
TERMINAL_TASK_STATUSES = frozenset({"completed", "cancelled"})
CHANNELS = ("push", "email", "sms", "in_app")
URGENCY_LEVELS = ("none", "low", "medium", "high", "critical")
REMINDER_TYPES = (
    "deadline",
    "overdue",
    "recurring",
    "follow_up",
    "check_in",
    "nudge",
    "celebration",
    "weekly_summary",
)

PRIORITY_RANK = {priority: rank for rank, priority in enumerate(PRIORITIES)}


@dataclass(frozen=True)
class Task:
    """Read-only task snapshot supplied by the task-management system."""

    id: str
    title: str
    priority: str
    deadline: Optional[datetime]
    created_at: datetime
    status: str = "pending"
    estimated_minutes: Optional[float] = None
    assignee_id: Optional[str] = None
    dependency_count: int = 0
    blocked_tasks: int = 0
    last_activity_at: Optional[datetime] = None
    completion_rate: Optional[float] = None
    description: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TASK_STATUSES


@dataclass(frozen=True)
class UrgencyFactors:
    deadline: float = 0.0
    priority: float = 0.0
    age: float = 0.0
    dependency: float = 0.0
    stale: float = 0.0
    completion: float = 0.0


@dataclass(frozen=True)
class UrgencyBreakdown:
    """Human-readable explanation of each urgency factor."""

    deadline: str
    priority: str
    age: str
    dependency: str
    stale: str
    completion: str


@dataclass(frozen=True)
class UrgencyScore:
    task_id: str
    total_score: int
    level: str
    factors: UrgencyFactors
    breakdown: UrgencyBreakdown
    recommendations: tuple[str, ...]
    calculated_at: datetime


@dataclass(frozen=True)
class UrgencyDistribution:
    none: int = 0
    low: int = 0
    medium: int = 0
    high: int = 0
    critical: int = 0
    average: int = 0
    overdue: int = 0


@dataclass(frozen=True)
class QuietHours:
    """Local-clock window during which reminders are held back."""

    enabled: bool
    start: time
    end: time


@dataclass(frozen=True)
class ReminderLeadTimes:
    """Lead times in hours, per reminder type."""

    deadline: float = 24
    recurring: float = 1
    check_in: float = 48


@dataclass(frozen=True)
class UserPreferences:
    user_id: str
    enable_reminders: bool = True
    channels: tuple[str, ...] = ("push", "in_app")
    quiet_hours: Optional[QuietHours] = None
    timezone: str = "Europe/Paris"
    language: str = "fr"
    lead_times: ReminderLeadTimes = field(default_factory=ReminderLeadTimes)
    max_reminders_per_day: int = 10


@dataclass(frozen=True)
class ReminderContent:
    title: str
    body: str
    action_url: Optional[str] = None
    metadata: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Reminder:
    """Scheduled reminder for one task and one user."""

    id: str
    task_id: str
    user_id: str
    type: str
    priority: str
    channels: tuple[str, ...]
    scheduled_at: datetime
    content: ReminderContent
    created_at: datetime
    updated_at: datetime
    delivery_status: str = "scheduled"
    snooze_count: int = 0
    snoozed_until: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


@dataclass(frozen=True)
class NotificationContent:
    title: str
    body: str
    metadata: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Notification:
    """Channel-specific payload handed to the dispatch layer."""

    id: str
    user_id: str
    type: str
    priority: str
    channel: str
    content: NotificationContent
    scheduled_at: datetime
    original_scheduled_at: datetime
    batch_id: Optional[str] = None
    optimization_applied: bool = False
    allowed_channels: tuple[str, ...] = ()

    def candidate_channels(self) -> tuple[str, ...]:
        return self.allowed_channels or (self.channel,)


@dataclass(frozen=True)
class UserActivity:
    """Historical activity profile. Days use 0 = Sunday."""

    user_id: str
    last_active_at: Optional[datetime]
    active_hours: tuple[int, ...]
    active_days: tuple[int, ...]
    average_session_minutes: float = 0.0
    preferred_channels: tuple[str, ...] = ("push", "in_app")
    device_types: tuple[str, ...] = ("mobile",)


@dataclass(frozen=True)
class EngagementMetric:
    """Open/response statistics for one hour-of-day and day-of-week (0 = Sunday)."""

    user_id: str
    hour_of_day: int
    day_of_week: int
    open_rate: float
    response_rate: float
    sample_size: int
    average_response_time_minutes: float = 0.0
    channel: Optional[str] = None


@dataclass(frozen=True)
class OptimizationResult:
    notification: Notification
    original_time: datetime
    optimized_time: datetime
    reason: str
    confidence: float


@dataclass(frozen=True)
class NotificationBatch:
    id: str
    user_id: str
    notifications: tuple[Notification, ...]
    scheduled_at: datetime
    priority: str


@dataclass(frozen=True)
class RateLimitState:
    """Per-user delivery counters and cooldown timestamps."""

    user_id: str
    hourly_count: int = 0
    daily_count: int = 0
    last_sent_at: Optional[datetime] = None
    last_interaction_at: Optional[datetime] = None
    last_failed_at: Optional[datetime] = None


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    reason: Optional[str] = None
    next_allowed: Optional[datetime] = None


def day_of_week(moment: datetime) -> int:
    """Return the weekday with Sunday as 0, the convention of activity data."""

    return (moment.weekday() + 1) % 7
