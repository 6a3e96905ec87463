"""Per-user notification rate limits and cooldowns."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Optional

from smart_reminders.config import DEFAULT_OPTIMIZATION_CONFIG, OptimizationConfig
from smart_reminders.schema import RateLimitDecision, RateLimitState

logger = logging.getLogger(__name__)

HOURLY_LIMIT_REACHED = "hourly_limit_reached"
DAILY_LIMIT_REACHED = "daily_limit_reached"
INTERACTION_COOLDOWN = "post_interaction_cooldown"
FAILURE_COOLDOWN = "failed_delivery_cooldown"


def create_rate_limit_state(user_id: str) -> RateLimitState:
    return RateLimitState(user_id=user_id)


def _cooldown_end(since: Optional[datetime], minutes: float) -> Optional[datetime]:
    if since is None:
        return None
    return since + timedelta(minutes=minutes)


def can_send_notification(
    state: RateLimitState,
    config: OptimizationConfig = DEFAULT_OPTIMIZATION_CONFIG,
    now: Optional[datetime] = None,
) -> RateLimitDecision:
    """Check hourly cap, daily cap, interaction cooldown and failure cooldown, in that order.

    The daily check resumes at the default delivery window start on the next
    day, ignoring preferred windows that may open earlier.
    """

    now = now or datetime.now(timezone.utc)

    if state.hourly_count >= config.max_notifications_per_hour:
        next_hour = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
        return RateLimitDecision(allowed=False, reason=HOURLY_LIMIT_REACHED, next_allowed=next_hour)

    if state.daily_count >= config.max_notifications_per_day:
        next_day = (now + timedelta(days=1)).replace(
            hour=config.default_delivery_window.start, minute=0, second=0, microsecond=0
        )
        return RateLimitDecision(allowed=False, reason=DAILY_LIMIT_REACHED, next_allowed=next_day)

    interaction_end = _cooldown_end(state.last_interaction_at, config.post_interaction_cooldown_minutes)
    if interaction_end is not None and now < interaction_end:
        return RateLimitDecision(allowed=False, reason=INTERACTION_COOLDOWN, next_allowed=interaction_end)

    failure_end = _cooldown_end(state.last_failed_at, config.failed_delivery_cooldown_minutes)
    if failure_end is not None and now < failure_end:
        return RateLimitDecision(allowed=False, reason=FAILURE_COOLDOWN, next_allowed=failure_end)

    return RateLimitDecision(allowed=True)


def record_notification_sent(state: RateLimitState, now: Optional[datetime] = None) -> RateLimitState:
    now = now or datetime.now(timezone.utc)
    return replace(
        state,
        hourly_count=state.hourly_count + 1,
        daily_count=state.daily_count + 1,
        last_sent_at=now,
    )


def record_user_interaction(state: RateLimitState, now: Optional[datetime] = None) -> RateLimitState:
    return replace(state, last_interaction_at=now or datetime.now(timezone.utc))


def record_failed_delivery(state: RateLimitState, now: Optional[datetime] = None) -> RateLimitState:
    """Start the failure cooldown; the dispatch layer calls this when delivery fails."""

    now = now or datetime.now(timezone.utc)
    logger.info("Delivery failed for user %s; cooling down.", state.user_id)
    return replace(state, last_failed_at=now)


def reset_hourly_count(state: RateLimitState) -> RateLimitState:
    return replace(state, hourly_count=0)


def reset_daily_count(state: RateLimitState) -> RateLimitState:
    return replace(state, hourly_count=0, daily_count=0)
