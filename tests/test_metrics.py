"""Derived metrics tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from quotasync.models.render import StatusLevel
from quotasync.models.settings import ColorMode, ExtraUsageFormat, Settings, WidgetMetric
from quotasync.models.snapshot import ExtraUsage, UsageSnapshot
from quotasync.services.metrics import (
    CRITICAL_COLOR,
    DEFAULT_CUSTOM_COLOR,
    MODERATE_COLOR,
    MONOCHROME_COLOR,
    SAFE_COLOR,
    Color,
    clamp_percentage,
    derive_metrics,
    extra_percentage,
    format_currency,
    format_extra_usage,
    format_reset_time,
    format_time_remaining,
    format_time_remaining_hours,
    metric_percentage,
    resolve_color,
    round_to_nearest_minute,
    status_level,
)


@pytest.mark.parametrize(
    ("percentage", "expected"),
    [
        (0.0, StatusLevel.SAFE),
        (49.99, StatusLevel.SAFE),
        (50.0, StatusLevel.MODERATE),
        (79.99, StatusLevel.MODERATE),
        (80.0, StatusLevel.CRITICAL),
        (150.0, StatusLevel.CRITICAL),
        (-5.0, StatusLevel.SAFE),
        (float("nan"), StatusLevel.SAFE),
    ],
)
def test_status_level_thresholds(percentage: float, expected: StatusLevel) -> None:
    assert status_level(percentage) == expected


def test_clamp_percentage() -> None:
    assert clamp_percentage(-3.0) == 0.0
    assert clamp_percentage(104.2) == 100.0
    assert clamp_percentage(float("nan")) == 0.0
    assert clamp_percentage(42.5) == 42.5


def test_extra_percentage() -> None:
    assert extra_percentage(25, 100) == 25.0
    assert extra_percentage(10, 0) is None
    assert extra_percentage(0, 0) is None
    assert extra_percentage(5, -1) is None


def test_resolve_color_modes() -> None:
    assert resolve_color(10, ColorMode.MULTI_COLOR) == SAFE_COLOR
    assert resolve_color(60, ColorMode.MULTI_COLOR) == MODERATE_COLOR
    assert resolve_color(95, ColorMode.MULTI_COLOR) == CRITICAL_COLOR
    assert resolve_color(95, ColorMode.MONOCHROME) == MONOCHROME_COLOR
    assert resolve_color(95, ColorMode.SINGLE_COLOR, "#112233") == Color(0x11, 0x22, 0x33)
    assert resolve_color(5, ColorMode.SINGLE_COLOR, "abcdef").hex == "#ABCDEF"


def test_resolve_color_invalid_custom_color_uses_default() -> None:
    assert resolve_color(10, ColorMode.SINGLE_COLOR, "not-a-color") == DEFAULT_CUSTOM_COLOR
    assert resolve_color(10, ColorMode.SINGLE_COLOR, "") == DEFAULT_CUSTOM_COLOR
    assert DEFAULT_CUSTOM_COLOR.hex == "#00BFFF"


def test_resolve_color_clamps_before_threshold() -> None:
    assert resolve_color(-20, ColorMode.MULTI_COLOR) == SAFE_COLOR
    assert resolve_color(400, ColorMode.MULTI_COLOR) == CRITICAL_COLOR


def test_round_to_nearest_minute() -> None:
    base = datetime(2026, 3, 4, 18, 59, tzinfo=UTC)
    assert round_to_nearest_minute(base.replace(second=29, microsecond=999)) == base
    assert round_to_nearest_minute(base.replace(second=30)) == datetime(
        2026, 3, 4, 19, 0, tzinfo=UTC
    )


def test_format_reset_time_day_labels(now) -> None:
    today = now.replace(hour=15, minute=59)
    assert format_reset_time(today, now) == "Today, 3:59PM"
    assert format_reset_time(now + timedelta(days=1), now) == "Tomorrow, 9:15AM"
    # 2026-03-06 is a Friday.
    assert format_reset_time(now + timedelta(days=2), now) == "Friday, 9:15AM"


def test_format_reset_time_rounding_prevents_flicker(now) -> None:
    late = now.replace(hour=18, minute=59, second=45)
    assert format_reset_time(late, now) == "Today, 7:00PM"
    midnight_edge = now.replace(hour=23, minute=59, second=40)
    assert format_reset_time(midnight_edge, now) == "Tomorrow, 12:00AM"


def test_format_reset_time_options(now) -> None:
    ts = now.replace(hour=7, minute=5)
    assert format_reset_time(ts, now, use_24_hour=True) == "Today, 07:05"
    assert format_reset_time(ts, now, compact=True) == "7:05AM"


def test_format_reset_time_uses_now_timezone(now) -> None:
    tokyo = timezone(timedelta(hours=9))
    local_now = now.astimezone(tokyo)  # 18:15 local
    ts = now + timedelta(hours=6)  # 00:15 next day in Tokyo
    assert format_reset_time(ts, local_now) == "Tomorrow, 12:15AM"


def test_format_time_remaining(now) -> None:
    assert format_time_remaining(now - timedelta(seconds=1), now) == "Reset now"
    assert format_time_remaining(now + timedelta(seconds=20), now) == "< 1m"
    assert format_time_remaining(now + timedelta(minutes=12), now) == "12m"
    assert format_time_remaining(now + timedelta(hours=3), now) == "3h"
    assert format_time_remaining(now + timedelta(hours=3, minutes=45), now) == "3h 45m"
    assert format_time_remaining(now + timedelta(days=1, hours=2), now) == "1 day"
    assert format_time_remaining(now + timedelta(days=4), now) == "4 days"


def test_format_time_remaining_hours(now) -> None:
    assert format_time_remaining_hours(now - timedelta(hours=1), now) == "→<1H"
    assert format_time_remaining_hours(now + timedelta(minutes=59), now) == "→<1H"
    assert format_time_remaining_hours(now + timedelta(hours=1), now) == "→1H"
    assert format_time_remaining_hours(now + timedelta(hours=1, minutes=1), now) == "→2H"


def test_format_currency() -> None:
    assert format_currency(2.25, "USD") == "$2.25"
    assert format_currency(1234.5, "eur") == "€1,234.50"
    assert format_currency(3, "SEK") == "SEK 3.00"


def test_format_extra_usage_converts_minor_units() -> None:
    assert format_extra_usage(22.5, 225, "USD", ExtraUsageFormat.PERCENTAGE) == "22%"
    assert format_extra_usage(22.5, 225, "USD", ExtraUsageFormat.CURRENCY) == "$2.25"
    assert format_extra_usage(22.5, 225, "USD", ExtraUsageFormat.BOTH) == "22% • $2.25"


def test_format_extra_usage_without_data_is_neutral() -> None:
    assert format_extra_usage(None, None, None, ExtraUsageFormat.PERCENTAGE) == "0%"
    assert format_extra_usage(None, None, None, ExtraUsageFormat.CURRENCY) == "$0.00"
    assert format_extra_usage(None, None, None, ExtraUsageFormat.BOTH) == "0% • $0.00"


def test_format_extra_usage_clamps_percentage_and_non_finite_amount() -> None:
    assert format_extra_usage(250.0, 2500, "USD", ExtraUsageFormat.PERCENTAGE) == "100%"
    assert format_extra_usage(-12.0, 0, "USD", ExtraUsageFormat.PERCENTAGE) == "0%"
    nan = float("nan")
    assert format_extra_usage(nan, nan, "USD", ExtraUsageFormat.BOTH) == "0% • $0.00"
    assert format_extra_usage(None, float("inf"), "USD", ExtraUsageFormat.CURRENCY) == "$0.00"


def test_metric_percentage(sample_snapshot: UsageSnapshot) -> None:
    assert metric_percentage(sample_snapshot, WidgetMetric.SESSION) == 45.0
    assert metric_percentage(sample_snapshot, WidgetMetric.WEEKLY) == 32.0
    assert metric_percentage(sample_snapshot, WidgetMetric.OPUS) == 28.0
    assert metric_percentage(sample_snapshot, WidgetMetric.SONNET) == 35.0
    assert metric_percentage(sample_snapshot, WidgetMetric.EXTRA) == 22.5
    without_extra = sample_snapshot.model_copy(update={"extra_usage": None})
    assert metric_percentage(without_extra, WidgetMetric.EXTRA) == 0.0


def test_derive_metrics(sample_snapshot: UsageSnapshot, now) -> None:
    settings = Settings(
        small_metric=WidgetMetric.OPUS,
        medium_right_metric=WidgetMetric.EXTRA,
        extra_usage_format=ExtraUsageFormat.BOTH,
    )
    derived = derive_metrics(sample_snapshot, settings, now)
    assert derived.session.status == StatusLevel.SAFE
    assert derived.session.reset_time == "Today, 11:15AM"
    assert derived.session.time_remaining == "2h"
    assert derived.weekly.reset_time == "Saturday, 9:15AM"
    assert derived.extra is not None and derived.extra.percentage == 22.5
    assert derived.extra_display == "22% • $2.25"
    assert derived.slots["small"].percentage == 28.0
    assert derived.slots["medium_left"] == derived.session
    assert derived.slots["medium_right"].percentage == 22.5


def test_derive_metrics_clamps_out_of_range(now) -> None:
    snapshot = UsageSnapshot(session_percentage=130.0, weekly_percentage=-4.0, captured_at=now)
    derived = derive_metrics(snapshot, Settings(), now)
    assert derived.session.percentage == 100.0
    assert derived.session.status == StatusLevel.CRITICAL
    assert derived.weekly.percentage == 0.0
    assert derived.extra is None
    assert derived.extra_display == "0%"


def test_derive_metrics_with_nan_extra_usage(now) -> None:
    extra = ExtraUsage(amount_used=float("nan"), amount_limit=1000, currency_code="USD")
    snapshot = UsageSnapshot(
        session_percentage=float("nan"),
        weekly_percentage=10.0,
        extra_usage=extra,
        captured_at=now,
    )
    derived = derive_metrics(snapshot, Settings(extra_usage_format=ExtraUsageFormat.BOTH), now)
    assert derived.session.percentage == 0.0
    assert derived.session.status == StatusLevel.SAFE
    assert derived.extra is not None and derived.extra.percentage == 0.0
    assert derived.extra_display == "0% • $0.00"


def test_derive_metrics_caps_extra_usage_over_limit(sample_snapshot: UsageSnapshot, now) -> None:
    over = ExtraUsage(amount_used=2500, amount_limit=1000, currency_code="USD")
    snapshot = sample_snapshot.model_copy(update={"extra_usage": over})
    derived = derive_metrics(snapshot, Settings(), now)
    assert derived.extra is not None and derived.extra.percentage == 100.0
    assert derived.extra_display == "100%"
