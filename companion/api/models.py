"""Pydantic wire models for the Momentum server API.

Field names are snake_case in Python and camelCase on the wire.  Serialize
request bodies with ``model_dump(by_alias=True, mode="json")``.
"""

from __future__ import annotations

import datetime as dt

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MomentumBase(BaseModel):
    """Base model with shared config for all wire schemas."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ---------- Auth ----------


class LoginRequest(MomentumBase):
    email: str
    password: str


class UserInfo(MomentumBase):
    id: str
    email: str
    name: str = ""


class LoginResponse(MomentumBase):
    # Servers have answered with either key
    token: str = Field(validation_alias=AliasChoices("accessToken", "token"))
    user: UserInfo | None = None
    expires_at: str | None = None


# ---------- Health sync payload ----------


class DailyMetric(MomentumBase):
    date: dt.date
    steps: int | None = None
    active_calories: int | None = None
    active_minutes: int | None = None


class ActivityRecord(MomentumBase):
    source_record_id: str = Field(alias="hcRecordId")
    date: dt.date
    start_time: dt.datetime
    end_time: dt.datetime
    activity_type: str
    title: str | None = None
    duration_minutes: float
    calories: float | None = None
    distance: float | None = None
    heart_rate_avg: int | None = None
    source_app: str | None = None


class SleepStage(MomentumBase):
    stage: str
    start_time: dt.datetime
    end_time: dt.datetime


class SleepRecord(MomentumBase):
    date: dt.date
    start_time: dt.datetime
    end_time: dt.datetime
    duration_minutes: float
    score: int | None = None
    stages: list[SleepStage] | None = None


class HealthSyncRequest(MomentumBase):
    device_name: str
    synced_at: dt.datetime
    daily_metrics: list[DailyMetric] = Field(default_factory=list)
    activities: list[ActivityRecord] = Field(default_factory=list)
    sleep_sessions: list[SleepRecord] = Field(default_factory=list)


class SyncedCounts(MomentumBase):
    daily_metrics: int
    activities: int
    sleep_sessions: int


class DeviceInfo(MomentumBase):
    id: str
    last_sync_at: str


class HealthSyncResponse(MomentumBase):
    synced: SyncedCounts
    device: DeviceInfo


# ---------- Status ----------

DEFAULT_GOAL_STEPS = 10000
DEFAULT_GOAL_CALORIES = 500
DEFAULT_GOAL_MINUTES = 90


def default_goals() -> dict[str, int]:
    """Goals used when the server has none configured or cannot be reached."""
    return {
        "steps": DEFAULT_GOAL_STEPS,
        "active_calories": DEFAULT_GOAL_CALORIES,
        "active_minutes": DEFAULT_GOAL_MINUTES,
    }


class TrackableInfo(MomentumBase):
    id: str
    goal_value: int | None = None


class TrackablesStatus(MomentumBase):
    steps: TrackableInfo | None = None
    active_calories: TrackableInfo | None = None
    active_minutes: TrackableInfo | None = None
    sleep_duration: TrackableInfo | None = None


class SyncStatusResponse(MomentumBase):
    configured: bool
    last_sync: str | None = None
    trackables: TrackablesStatus | None = None

    def goals(self) -> dict[str, int]:
        """Daily goals, falling back to defaults the server did not set."""
        t = self.trackables or TrackablesStatus()

        def _goal(info: TrackableInfo | None, default: int) -> int:
            if info is None or info.goal_value is None:
                return default
            return info.goal_value

        return {
            "steps": _goal(t.steps, DEFAULT_GOAL_STEPS),
            "active_calories": _goal(t.active_calories, DEFAULT_GOAL_CALORIES),
            "active_minutes": _goal(t.active_minutes, DEFAULT_GOAL_MINUTES),
        }
