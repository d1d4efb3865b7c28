"""Read-only view models handed to the rendering layer."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from quotasync.models.settings import Settings
from quotasync.models.snapshot import ApiUsageSnapshot, UsageSnapshot


class StatusLevel(StrEnum):
    SAFE = "safe"
    MODERATE = "moderate"
    CRITICAL = "critical"


class DisplayFamily(StrEnum):
    """Display tile sizes. Large tiles refresh less often."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class MetricView(BaseModel):
    """Derived values for a single quota metric."""

    model_config = ConfigDict(frozen=True)

    percentage: float
    status: StatusLevel
    color: str
    reset_time: str = ""
    time_remaining: str = ""


class DerivedMetrics(BaseModel):
    """Display values computed from a snapshot and settings."""

    model_config = ConfigDict(frozen=True)

    session: MetricView
    weekly: MetricView
    models: dict[str, MetricView] = Field(default_factory=dict)
    extra: MetricView | None = None
    extra_display: str = ""
    slots: dict[str, MetricView] = Field(default_factory=dict)


class RenderModel(BaseModel):
    """Everything a display needs for one render. No side effects."""

    model_config = ConfigDict(frozen=True)

    profile_id: str | None = None
    snapshot: UsageSnapshot | None = None
    settings: Settings = Field(default_factory=Settings)
    derived: DerivedMetrics | None = None
    api_usage: ApiUsageSnapshot | None = None
    rendered_at: datetime

    @property
    def has_data(self) -> bool:
        return self.snapshot is not None


class TimelineEntry(BaseModel):
    """One rendered snapshot plus the earliest time the host should re-invoke."""

    model_config = ConfigDict(frozen=True)

    rendered: RenderModel
    next_refresh_at: datetime
