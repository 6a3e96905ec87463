from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from smart_reminders.config import DeliveryWindow, OptimizationConfig
from smart_reminders.optimizer import (
    REASON_ACTIVE_HOURS,
    REASON_ALREADY_OPTIMAL,
    REASON_URGENT,
    calculate_engagement_score,
    default_user_activity,
    find_best_time_slot,
    get_next_window_time,
    get_window_weight,
    is_user_likely_active,
    is_within_delivery_window,
    optimize_batch,
    optimize_notification,
    select_best_channel,
)
from smart_reminders.rate_limit import HOURLY_LIMIT_REACHED, create_rate_limit_state
from smart_reminders.schema import EngagementMetric, Notification, NotificationContent, RateLimitState

MONDAY_10 = datetime(2025, 1, 6, 10, 0)
CONFIG = OptimizationConfig()
ACTIVITY = default_user_activity("u1", MONDAY_10)


def make_notification(priority="medium", scheduled_at=MONDAY_10, **overrides):
    fields = {
        "id": "n1",
        "user_id": "u1",
        "type": "deadline",
        "priority": priority,
        "channel": "push",
        "content": NotificationContent(title="Deadline approaching", body="Soon"),
        "scheduled_at": scheduled_at,
        "original_scheduled_at": scheduled_at,
    }
    fields.update(overrides)
    return Notification(**fields)


def metric(hour, day, open_rate, response_rate, sample_size=10, channel=None):
    return EngagementMetric("u1", hour, day, open_rate, response_rate, sample_size, channel=channel)


def test_wrapping_delivery_window():
    window = DeliveryWindow(start=22, end=6, weight=0.4)
    assert is_within_delivery_window(datetime(2025, 1, 6, 23, 0), window)
    assert is_within_delivery_window(datetime(2025, 1, 6, 5, 0), window)
    assert not is_within_delivery_window(datetime(2025, 1, 6, 6, 0), window)
    assert not is_within_delivery_window(datetime(2025, 1, 6, 12, 0), window)


def test_window_weight():
    assert get_window_weight(MONDAY_10, CONFIG) == 0.9
    assert get_window_weight(MONDAY_10.replace(hour=15), CONFIG) == 0.7
    assert get_window_weight(MONDAY_10.replace(hour=13), CONFIG) == 0.5
    assert get_window_weight(MONDAY_10.replace(hour=22), CONFIG) == 0.0


def test_next_window_time():
    assert get_next_window_time(MONDAY_10.replace(hour=7), CONFIG) == MONDAY_10.replace(hour=9)
    assert get_next_window_time(MONDAY_10, CONFIG) == MONDAY_10.replace(hour=18)
    assert get_next_window_time(MONDAY_10.replace(hour=19), CONFIG) == datetime(2025, 1, 7, 9, 0)


def test_engagement_score():
    assert calculate_engagement_score(MONDAY_10, []) == 0.5
    metrics = [
        metric(10, 1, 0.8, 0.6, sample_size=30),
        metric(10, 1, 0.2, 0.2, sample_size=10),
        metric(10, 2, 0.0, 0.0, sample_size=100),
    ]
    assert calculate_engagement_score(MONDAY_10, metrics) == pytest.approx(0.575)
    assert calculate_engagement_score(MONDAY_10, [metric(10, 1, 0.9, 0.9, sample_size=0)]) == 0.5


def test_best_slot_follows_engagement():
    metrics = [metric(18, 1, 1.0, 1.0)]
    best, score = find_best_time_slot(MONDAY_10, MONDAY_10 + timedelta(hours=24), metrics, CONFIG)
    assert best == MONDAY_10.replace(hour=18)
    assert score == pytest.approx(0.8)


def test_best_slot_first_wins_ties():
    start = MONDAY_10.replace(hour=8)
    best, score = find_best_time_slot(start, start + timedelta(hours=24), [], CONFIG)
    assert best == MONDAY_10.replace(hour=9)
    assert score == pytest.approx(0.45)


def test_user_activity_gate():
    assert is_user_likely_active(MONDAY_10, ACTIVITY)
    assert not is_user_likely_active(MONDAY_10.replace(hour=12), ACTIVITY)
    assert not is_user_likely_active(datetime(2025, 1, 5, 10, 0), ACTIVITY)


def test_select_best_channel():
    preferred = replace(ACTIVITY, preferred_channels=("push", "email"))
    metrics = [metric(10, 1, 0.05, 0.0, channel="push"), metric(10, 1, 0.4, 0.0, channel="email")]
    choice = select_best_channel(("push", "email", "sms"), preferred, metrics, CONFIG)
    assert choice.channel == "email"
    assert choice.confidence == pytest.approx(0.4)

    weak = [metric(10, 1, 0.01, 0.0)]
    fallback = select_best_channel(("sms", "push", "email"), preferred, weak, CONFIG)
    assert fallback.channel == "push"
    assert fallback.confidence == pytest.approx(0.3)

    unmatched = select_best_channel(("sms",), preferred, metrics, CONFIG)
    assert unmatched.channel == "sms"


def test_urgent_notification_is_not_moved():
    notification = make_notification(priority="urgent", scheduled_at=MONDAY_10.replace(hour=23))
    result = optimize_notification(notification, ACTIVITY, [], create_rate_limit_state("u1"), CONFIG, MONDAY_10)
    assert result.notification.optimization_applied is False
    assert result.notification.scheduled_at == notification.scheduled_at
    assert result.optimized_time == result.original_time
    assert result.reason == REASON_URGENT


def test_rate_limit_takes_precedence_even_for_urgent():
    state = RateLimitState(user_id="u1", hourly_count=3)
    result = optimize_notification(make_notification(priority="urgent"), ACTIVITY, [], state, CONFIG, MONDAY_10)
    assert result.reason == HOURLY_LIMIT_REACHED
    assert result.notification.scheduled_at == MONDAY_10.replace(hour=11)
    assert result.notification.optimization_applied is True


def test_optimal_time_is_kept():
    metrics = [metric(10, 1, 0.8, 0.8)]
    result = optimize_notification(make_notification(), ACTIVITY, metrics, create_rate_limit_state("u1"), CONFIG, MONDAY_10)
    assert result.reason == REASON_ALREADY_OPTIMAL
    assert result.optimized_time == MONDAY_10
    assert result.notification.optimization_applied is True


def test_night_notification_moves_to_active_hours():
    night = MONDAY_10.replace(hour=22)
    result = optimize_notification(
        make_notification(scheduled_at=night), ACTIVITY, [], create_rate_limit_state("u1"), CONFIG, MONDAY_10
    )
    assert result.optimized_time == datetime(2025, 1, 7, 9, 0)
    assert result.reason == REASON_ACTIVE_HOURS
    assert result.notification.original_scheduled_at == night
    assert 0.0 <= result.confidence <= 1.0


def test_optimize_batch_uses_defaults_for_unknown_users():
    notifications = [
        make_notification(id="n1", user_id="u1"),
        make_notification(id="n2", user_id="u2", priority="urgent"),
    ]
    outcome = optimize_batch(notifications, {}, {}, {}, CONFIG, MONDAY_10)
    assert len(outcome.results) == 2
    assert sum(len(batch.notifications) for batch in outcome.batches) == 2
    assert all(n.batch_id == batch.id for batch in outcome.batches for n in batch.notifications)
