"""Delivery-time and channel optimization for notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, Mapping, Optional, Sequence

import numpy as np

from smart_reminders.batching import create_batches
from smart_reminders.config import DEFAULT_OPTIMIZATION_CONFIG, DeliveryWindow, OptimizationConfig
from smart_reminders.rate_limit import can_send_notification, create_rate_limit_state
from smart_reminders.scheduling import get_next_send_time, to_local
from smart_reminders.schema import (
    EngagementMetric,
    Notification,
    NotificationBatch,
    OptimizationResult,
    RateLimitState,
    UserActivity,
    UserPreferences,
    day_of_week,
)

logger = logging.getLogger(__name__)

NEUTRAL_ENGAGEMENT = 0.5
LOW_CONFIDENCE = 0.3
INACTIVE_CONFIDENCE_FACTOR = 0.7
SEARCH_HORIZON = timedelta(hours=24)

REASON_RATE_LIMITED = "rate_limited"
REASON_URGENT = "urgent_not_optimized"
REASON_ALREADY_OPTIMAL = "proposed_time_optimal"
REASON_ENGAGEMENT = "optimized_for_engagement"
REASON_ACTIVE_HOURS = "moved_to_active_hours"
REASON_DELIVERY_WINDOW = "moved_into_delivery_window"


@dataclass(frozen=True)
class TimeChoice:
    time: datetime
    confidence: float
    reason: str


@dataclass(frozen=True)
class ChannelChoice:
    channel: str
    confidence: float


@dataclass(frozen=True)
class BatchOptimization:
    results: list[OptimizationResult]
    batches: list[NotificationBatch]


def default_user_activity(user_id: str, now: Optional[datetime] = None) -> UserActivity:
    """Activity profile assumed for users without history: weekday office and evening hours."""

    return UserActivity(
        user_id=user_id,
        last_active_at=now,
        active_hours=(9, 10, 11, 14, 15, 18, 19),
        active_days=(1, 2, 3, 4, 5),
        average_session_minutes=15,
        preferred_channels=("push", "in_app"),
        device_types=("mobile",),
    )


def is_within_delivery_window(moment: datetime, window: DeliveryWindow) -> bool:
    hour = moment.hour
    if window.start > window.end:
        return hour >= window.start or hour < window.end
    return window.start <= hour < window.end


def get_window_weight(moment: datetime, config: OptimizationConfig = DEFAULT_OPTIMIZATION_CONFIG) -> float:
    """Weight of the first preferred window containing ``moment``, else the default window's, else 0."""

    for window in config.preferred_delivery_windows:
        if is_within_delivery_window(moment, window):
            return window.weight
    if is_within_delivery_window(moment, config.default_delivery_window):
        return config.default_delivery_window.weight
    return 0.0


def get_next_window_time(start: datetime, config: OptimizationConfig = DEFAULT_OPTIMIZATION_CONFIG) -> datetime:
    """Next opening of a delivery window after ``start``, best-weighted window first."""

    ranked = sorted(config.preferred_delivery_windows, key=lambda w: w.weight, reverse=True)
    midnight = start.replace(hour=0, minute=0, second=0, microsecond=0)

    for window in (*ranked, config.default_delivery_window):
        opening = midnight.replace(hour=window.start)
        if opening > start:
            return opening

    first = ranked[0] if ranked else config.default_delivery_window
    return (midnight + timedelta(days=1)).replace(hour=first.start)


def calculate_engagement_score(moment: datetime, metrics: Iterable[EngagementMetric]) -> float:
    """Sample-size weighted mean of (open + response) / 2 for the slot's hour and weekday."""

    hour, day = moment.hour, day_of_week(moment)
    matching = [m for m in metrics if m.hour_of_day == hour and m.day_of_week == day]
    if not matching:
        return NEUTRAL_ENGAGEMENT

    weights = np.array([m.sample_size for m in matching], dtype=float)
    if weights.sum() <= 0:
        return NEUTRAL_ENGAGEMENT

    scores = np.array([(m.open_rate + m.response_rate) / 2.0 for m in matching], dtype=float)
    return float(np.average(scores, weights=weights))


def find_best_time_slot(
    start: datetime,
    end: datetime,
    metrics: Sequence[EngagementMetric],
    config: OptimizationConfig = DEFAULT_OPTIMIZATION_CONFIG,
) -> tuple[datetime, float]:
    """Scan hourly from ``start`` to ``end`` and return the best (time, score).

    Only times inside a delivery window are candidates. The earliest time wins
    ties. When no candidate exists the result is ``(start, -1.0)``.
    """

    best_time, best_score = start, -1.0
    current = start
    while current <= end:
        weight = get_window_weight(current, config)
        if weight > 0:
            score = calculate_engagement_score(current, metrics) * weight
            if score > best_score:
                best_time, best_score = current, score
        current += timedelta(hours=1)
    return best_time, best_score


def is_user_likely_active(moment: datetime, activity: UserActivity) -> bool:
    return moment.hour in activity.active_hours and day_of_week(moment) in activity.active_days


def get_optimal_time_for_user(
    proposed: datetime,
    activity: UserActivity,
    metrics: Sequence[EngagementMetric],
    config: OptimizationConfig = DEFAULT_OPTIMIZATION_CONFIG,
) -> TimeChoice:
    proposed_weight = get_window_weight(proposed, config)
    proposed_engagement = calculate_engagement_score(proposed, metrics)
    proposed_active = is_user_likely_active(proposed, activity)

    if proposed_weight > 0.7 and proposed_engagement > 0.6 and proposed_active:
        return TimeChoice(time=proposed, confidence=0.9, reason=REASON_ALREADY_OPTIMAL)

    best_time, best_score = find_best_time_slot(proposed, proposed + SEARCH_HORIZON, metrics, config)
    active = is_user_likely_active(best_time, activity)
    confidence = max(0.0, best_score) * (1.0 if active else INACTIVE_CONFIDENCE_FACTOR)

    reason = REASON_ENGAGEMENT
    if not proposed_active and active:
        reason = REASON_ACTIVE_HOURS
    elif proposed_weight < 0.3:
        reason = REASON_DELIVERY_WINDOW
    return TimeChoice(time=best_time, confidence=confidence, reason=reason)


def _channel_open_rate(channel: str, user_id: str, metrics: Sequence[EngagementMetric]) -> float:
    rates = [
        m.open_rate
        for m in metrics
        if m.user_id == user_id and (m.channel is None or m.channel == channel)
    ]
    if not rates:
        return NEUTRAL_ENGAGEMENT
    return float(np.mean(rates))


def select_best_channel(
    channels: Sequence[str],
    activity: UserActivity,
    metrics: Sequence[EngagementMetric],
    config: OptimizationConfig = DEFAULT_OPTIMIZATION_CONFIG,
) -> ChannelChoice:
    """Pick the preferred channel with the best open rate.

    Channels below ``min_open_rate_for_channel`` score 0. When none of the
    preferred channels clears the threshold, the first candidate is used at
    low confidence.
    """

    available = [channel for channel in channels if channel in activity.preferred_channels]
    if not available:
        return ChannelChoice(channel=channels[0] if channels else "push", confidence=LOW_CONFIDENCE)

    scored = []
    for channel in available:
        open_rate = _channel_open_rate(channel, activity.user_id, metrics)
        scored.append((channel, open_rate if open_rate >= config.min_open_rate_for_channel else 0.0))

    if all(score == 0.0 for _, score in scored):
        return ChannelChoice(channel=available[0], confidence=LOW_CONFIDENCE)

    best_channel, best_score = max(scored, key=lambda item: item[1])
    return ChannelChoice(channel=best_channel, confidence=best_score)


def optimize_notification(
    notification: Notification,
    activity: UserActivity,
    metrics: Sequence[EngagementMetric],
    rate_limit_state: RateLimitState,
    config: OptimizationConfig = DEFAULT_OPTIMIZATION_CONFIG,
    now: Optional[datetime] = None,
) -> OptimizationResult:
    """Choose the send time and channel for one notification.

    A rate-limit refusal reschedules to the next allowed time and nothing
    else. Urgent notifications are never moved for engagement reasons.
    """

    now = now or datetime.now(timezone.utc)
    original = notification.scheduled_at

    decision = can_send_notification(rate_limit_state, config, now)
    if not decision.allowed and decision.next_allowed is not None:
        logger.debug("Notification %s rate limited (%s).", notification.id, decision.reason)
        return OptimizationResult(
            notification=replace(notification, scheduled_at=decision.next_allowed, optimization_applied=True),
            original_time=original,
            optimized_time=decision.next_allowed,
            reason=decision.reason or REASON_RATE_LIMITED,
            confidence=0.5,
        )

    if notification.priority == "urgent":
        return OptimizationResult(
            notification=replace(notification, optimization_applied=False),
            original_time=original,
            optimized_time=original,
            reason=REASON_URGENT,
            confidence=1.0,
        )

    timing = get_optimal_time_for_user(original, activity, metrics, config)
    channel = select_best_channel(notification.candidate_channels(), activity, metrics, config)
    logger.debug(
        "Notification %s: %s -> %s via %s (%s).",
        notification.id,
        original,
        timing.time,
        channel.channel,
        timing.reason,
    )

    return OptimizationResult(
        notification=replace(
            notification,
            scheduled_at=timing.time,
            channel=channel.channel,
            optimization_applied=True,
        ),
        original_time=original,
        optimized_time=timing.time,
        reason=timing.reason,
        confidence=(timing.confidence + channel.confidence) / 2.0,
    )


def _outside_quiet_hours(result: OptimizationResult, preferences: UserPreferences) -> OptimizationResult:
    moved = get_next_send_time(result.optimized_time, preferences)
    if moved == result.optimized_time:
        return result
    logger.debug("Notification %s moved out of quiet hours to %s.", result.notification.id, moved)
    return replace(
        result,
        notification=replace(result.notification, scheduled_at=moved, optimization_applied=True),
        optimized_time=moved,
    )


def optimize_batch(
    notifications: Iterable[Notification],
    activity_by_user: Mapping[str, UserActivity],
    metrics_by_user: Mapping[str, Sequence[EngagementMetric]],
    rate_limits_by_user: Mapping[str, RateLimitState],
    config: OptimizationConfig = DEFAULT_OPTIMIZATION_CONFIG,
    now: Optional[datetime] = None,
    preferences_by_user: Optional[Mapping[str, UserPreferences]] = None,
) -> BatchOptimization:
    """Optimize every notification, then group the results into delivery batches.

    Windows, engagement slots and active hours are read off the clock the
    datetimes carry. For users in ``preferences_by_user`` that clock is their
    own timezone, and optimized times are moved out of their quiet hours
    before batching.
    """

    now = now or datetime.now(timezone.utc)
    preferences_by_user = preferences_by_user or {}
    results = []
    for notification in notifications:
        user_id = notification.user_id
        activity = activity_by_user.get(user_id) or default_user_activity(user_id, now)
        metrics = metrics_by_user.get(user_id, ())
        state = rate_limits_by_user.get(user_id) or create_rate_limit_state(user_id)

        preferences = preferences_by_user.get(user_id)
        if preferences is None:
            results.append(optimize_notification(notification, activity, metrics, state, config, now))
            continue

        local = replace(notification, scheduled_at=to_local(notification.scheduled_at, preferences.timezone))
        result = optimize_notification(local, activity, metrics, state, config, to_local(now, preferences.timezone))
        results.append(_outside_quiet_hours(result, preferences))

    batches = create_batches([result.notification for result in results], config)
    return BatchOptimization(results=results, batches=batches)
