"""Display and behavior preferences."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from quotasync.config import BACKGROUND_POLL_SECONDS

logger = logging.getLogger(__name__)

DEFAULT_CUSTOM_COLOR_HEX = "#00BFFF"


class WidgetMetric(StrEnum):
    """Which quota value feeds a tile slot."""

    SESSION = "session"
    WEEKLY = "weekly"
    OPUS = "opus"
    SONNET = "sonnet"
    EXTRA = "extra"


class ColorMode(StrEnum):
    MULTI_COLOR = "multiColor"
    MONOCHROME = "monochrome"
    SINGLE_COLOR = "singleColor"


class StatuslineColorMode(StrEnum):
    COLORED = "colored"
    MONOCHROME = "monochrome"
    SINGLE_COLOR = "singleColor"


class ExtraUsageFormat(StrEnum):
    PERCENTAGE = "percentage"
    CURRENCY = "currency"
    BOTH = "both"


_CHOICE_FIELDS: dict[str, type[StrEnum]] = {
    "small_metric": WidgetMetric,
    "medium_left_metric": WidgetMetric,
    "medium_right_metric": WidgetMetric,
    "color_mode": ColorMode,
    "extra_usage_format": ExtraUsageFormat,
}


def _drop_unknown_choices(data: Any, choices: dict[str, type[StrEnum]]) -> Any:
    """Remove enum values this reader does not know so the field falls back to its default."""
    if not isinstance(data, dict):
        return data
    cleaned = dict(data)
    for name, enum_cls in choices.items():
        value = cleaned.get(name)
        if value is None or isinstance(value, enum_cls):
            continue
        if value not in {member.value for member in enum_cls}:
            logger.debug("Ignoring unknown %s value: %r", name, value)
            cleaned.pop(name)
    return cleaned


class StatuslineSettings(BaseModel):
    """Per-field visibility toggles for the companion status line."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    show_directory: bool = True
    show_branch: bool = True
    show_usage: bool = True
    show_progress_bar: bool = True
    show_reset_time: bool = True
    use_24_hour_time: bool = False
    show_usage_label: bool = True
    show_reset_label: bool = True
    color_mode: StatuslineColorMode = StatuslineColorMode.COLORED
    single_color_hex: str = DEFAULT_CUSTOM_COLOR_HEX

    @model_validator(mode="before")
    @classmethod
    def _known_choices(cls, data: Any) -> Any:
        return _drop_unknown_choices(data, {"color_mode": StatuslineColorMode})


class Settings(BaseModel):
    """Settings bundle. Last write wins; no history is kept.

    Instances are frozen, so a cached copy can be handed to every reader.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    refresh_interval: float = float(BACKGROUND_POLL_SECONDS)
    small_metric: WidgetMetric = WidgetMetric.SESSION
    medium_left_metric: WidgetMetric = WidgetMetric.SESSION
    medium_right_metric: WidgetMetric = WidgetMetric.WEEKLY
    color_mode: ColorMode = ColorMode.MULTI_COLOR
    single_color_hex: str = DEFAULT_CUSTOM_COLOR_HEX
    extra_usage_format: ExtraUsageFormat = ExtraUsageFormat.PERCENTAGE
    notifications_enabled: bool = False
    statusline: StatuslineSettings = StatuslineSettings()

    @model_validator(mode="before")
    @classmethod
    def _known_choices(cls, data: Any) -> Any:
        return _drop_unknown_choices(data, _CHOICE_FIELDS)

    @field_validator("refresh_interval", mode="before")
    @classmethod
    def _positive_interval(cls, value: object) -> object:
        # Unset intervals were historically stored as 0.
        if isinstance(value, int | float) and value <= 0:
            return float(BACKGROUND_POLL_SECONDS)
        return value
