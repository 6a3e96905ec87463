"""Configuration models and loading for the reminder engine."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class UrgencyWeights(BaseModel):
    """Relative weight of each urgency factor."""

    model_config = ConfigDict(frozen=True)

    deadline: float = 35
    priority: float = 25
    age: float = 10
    dependency: float = 15
    stale: float = 10
    completion: float = 5

    @model_validator(mode="after")
    def check_weights(self) -> "UrgencyWeights":
        """Reject negative weights and an all-zero weighting."""
        values = self.model_dump().values()
        if any(value < 0 for value in values):
            raise ValueError("urgency weights must be non-negative")
        if sum(values) <= 0:
            raise ValueError("urgency weights must not sum to zero")
        return self

    @property
    def total(self) -> float:
        return float(sum(self.model_dump().values()))


class UrgencyThresholds(BaseModel):
    """Minimum score for each urgency level."""

    model_config = ConfigDict(frozen=True)

    critical: float = 85
    high: float = 65
    medium: float = 40
    low: float = 20

    @model_validator(mode="after")
    def check_order(self) -> "UrgencyThresholds":
        if not self.critical > self.high > self.medium > self.low >= 0:
            raise ValueError("thresholds must satisfy critical > high > medium > low >= 0")
        return self


class DeadlineWindows(BaseModel):
    """Hours-until-deadline boundaries of the deadline factor bands."""

    model_config = ConfigDict(frozen=True)

    critical_hours: float = 2
    high_hours: float = 24
    medium_hours: float = 72
    low_hours: float = 168

    @model_validator(mode="after")
    def check_order(self) -> "DeadlineWindows":
        if not 0 <= self.critical_hours < self.high_hours < self.medium_hours < self.low_hours:
            raise ValueError("deadline windows must be strictly increasing")
        return self


class UrgencyConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    weights: UrgencyWeights = Field(default_factory=UrgencyWeights)
    thresholds: UrgencyThresholds = Field(default_factory=UrgencyThresholds)
    deadline_windows: DeadlineWindows = Field(default_factory=DeadlineWindows)
    stale_threshold_hours: float = Field(default=48, ge=0)


class DeliveryWindow(BaseModel):
    """Hour range [start, end) with a preference weight; start > end wraps midnight."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(ge=0, le=23)
    end: int = Field(ge=0, le=23)
    weight: float = Field(ge=0, le=1)


def _default_preferred_windows() -> tuple[DeliveryWindow, ...]:
    return (
        DeliveryWindow(start=9, end=12, weight=0.9),
        DeliveryWindow(start=14, end=16, weight=0.7),
        DeliveryWindow(start=18, end=20, weight=0.8),
    )


class OptimizationConfig(BaseModel):
    """Delivery windows, batching, rate limits and cooldowns."""

    model_config = ConfigDict(frozen=True)

    default_delivery_window: DeliveryWindow = DeliveryWindow(start=8, end=21, weight=0.5)
    preferred_delivery_windows: tuple[DeliveryWindow, ...] = Field(default_factory=_default_preferred_windows)

    batch_window_minutes: float = Field(default=15, ge=0)
    max_batch_size: int = Field(default=5, ge=1)

    max_notifications_per_hour: int = Field(default=3, ge=0)
    max_notifications_per_day: int = Field(default=10, ge=0)

    min_open_rate_for_channel: float = Field(default=0.1, ge=0, le=1)

    post_interaction_cooldown_minutes: float = Field(default=30, ge=0)
    failed_delivery_cooldown_minutes: float = Field(default=120, ge=0)


class ReminderConfig(BaseModel):
    """Reminder engine knobs not carried by user preferences."""

    model_config = ConfigDict(frozen=True)

    default_daily_limit: int = Field(default=10, ge=1)
    deferred_send_hour: int = Field(default=9, ge=0, le=23)
    default_snooze_minutes: float = Field(default=60, gt=0)
    nudge_stale_factor: float = Field(default=50, ge=0, le=100)


class EngineSettings(BaseSettings):
    """Top-level settings, overridable with SMART_REMINDERS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SMART_REMINDERS_",
        env_nested_delimiter="__",
        frozen=True,
    )

    urgency: UrgencyConfig = Field(default_factory=UrgencyConfig)
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)
    optimization: OptimizationConfig = Field(default_factory=OptimizationConfig)
    log_level: str = "INFO"


DEFAULT_URGENCY_CONFIG = UrgencyConfig()
DEFAULT_REMINDER_CONFIG = ReminderConfig()
DEFAULT_OPTIMIZATION_CONFIG = OptimizationConfig()


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from disk, returning an empty mapping if missing."""
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def load_settings(path: str | Path | None = None) -> EngineSettings:
    """Build settings from an optional YAML file on top of defaults and environment."""
    data = _load_yaml(Path(path)) if path is not None else {}
    return EngineSettings(**data)
