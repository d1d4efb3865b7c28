"""Pydantic models for quotasync."""

from quotasync.models.profiles import Profile, ProfileCredentials, ProfileDisplayMode
from quotasync.models.render import (
    DerivedMetrics,
    DisplayFamily,
    MetricView,
    RenderModel,
    StatusLevel,
    TimelineEntry,
)
from quotasync.models.settings import (
    DEFAULT_CUSTOM_COLOR_HEX,
    ColorMode,
    ExtraUsageFormat,
    Settings,
    StatuslineColorMode,
    StatuslineSettings,
    WidgetMetric,
)
from quotasync.models.snapshot import (
    MODEL_OPUS,
    MODEL_SONNET,
    ApiUsageSnapshot,
    ExtraUsage,
    UsageSnapshot,
    next_weekly_reset,
)

__all__ = [
    "ApiUsageSnapshot",
    "ColorMode",
    "DerivedMetrics",
    "DisplayFamily",
    "ExtraUsage",
    "ExtraUsageFormat",
    "MetricView",
    "Profile",
    "ProfileCredentials",
    "ProfileDisplayMode",
    "RenderModel",
    "Settings",
    "StatusLevel",
    "StatuslineColorMode",
    "StatuslineSettings",
    "TimelineEntry",
    "UsageSnapshot",
    "WidgetMetric",
    "DEFAULT_CUSTOM_COLOR_HEX",
    "MODEL_OPUS",
    "MODEL_SONNET",
    "next_weekly_reset",
]
