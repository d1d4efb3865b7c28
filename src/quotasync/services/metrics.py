"""Derived display metrics shared by the background process and every display.

All functions are pure. Status thresholds are defined once here.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from quotasync.models.render import DerivedMetrics, MetricView, StatusLevel
from quotasync.models.settings import (
    DEFAULT_CUSTOM_COLOR_HEX,
    ColorMode,
    ExtraUsageFormat,
    Settings,
    WidgetMetric,
)
from quotasync.models.snapshot import MODEL_OPUS, MODEL_SONNET, UsageSnapshot

MODERATE_THRESHOLD = 50.0
CRITICAL_THRESHOLD = 80.0

_HEX_RE = re.compile(r"^#?([0-9A-Fa-f]{6})$")

# Symbols for common currencies; anything else renders as "<CODE> 1.23".
CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
    "INR": "₹",
    "CHF": "CHF ",
}


@dataclass(frozen=True)
class Color:
    """An sRGB color."""

    red: int
    green: int
    blue: int

    @classmethod
    def from_hex(cls, value: str) -> Color | None:
        match = _HEX_RE.match(value.strip()) if isinstance(value, str) else None
        if match is None:
            return None
        digits = match.group(1)
        return cls(int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))

    @property
    def hex(self) -> str:
        return f"#{self.red:02X}{self.green:02X}{self.blue:02X}"


SAFE_COLOR = Color(0x34, 0xC7, 0x59)
MODERATE_COLOR = Color(0xFF, 0x95, 0x00)
CRITICAL_COLOR = Color(0xFF, 0x3B, 0x30)
MONOCHROME_COLOR = Color(0x8E, 0x8E, 0x93)
DEFAULT_CUSTOM_COLOR = Color.from_hex(DEFAULT_CUSTOM_COLOR_HEX) or Color(0x00, 0xBF, 0xFF)

_LEVEL_COLORS = {
    StatusLevel.SAFE: SAFE_COLOR,
    StatusLevel.MODERATE: MODERATE_COLOR,
    StatusLevel.CRITICAL: CRITICAL_COLOR,
}


def clamp_percentage(value: float) -> float:
    """Clamp to [0, 100]. NaN reads as 0."""
    if math.isnan(value):
        return 0.0
    return max(0.0, min(100.0, value))


def status_level(percentage: float) -> StatusLevel:
    """safe below 50, moderate from 50 up to 80, critical from 80. NaN is safe."""
    if math.isnan(percentage):
        return StatusLevel.SAFE
    if percentage < MODERATE_THRESHOLD:
        return StatusLevel.SAFE
    if percentage < CRITICAL_THRESHOLD:
        return StatusLevel.MODERATE
    return StatusLevel.CRITICAL


def extra_percentage(used: float, limit: float) -> float | None:
    if limit > 0:
        return (used / limit) * 100.0
    return None


def resolve_color(percentage: float, mode: ColorMode, custom_color: str = "") -> Color:
    if mode == ColorMode.MONOCHROME:
        return MONOCHROME_COLOR
    if mode == ColorMode.SINGLE_COLOR:
        return Color.from_hex(custom_color) or DEFAULT_CUSTOM_COLOR
    return _LEVEL_COLORS[status_level(clamp_percentage(percentage))]


# --- time formatting ----------------------------------------------------------


def round_to_nearest_minute(ts: datetime) -> datetime:
    """30 seconds and above round up."""
    floored = ts.replace(second=0, microsecond=0)
    if ts.second >= 30:
        return floored + timedelta(minutes=1)
    return floored


def _clock(ts: datetime, use_24_hour: bool) -> str:
    if use_24_hour:
        return f"{ts.hour:02d}:{ts.minute:02d}"
    hour = ts.hour % 12 or 12
    suffix = "AM" if ts.hour < 12 else "PM"
    return f"{hour}:{ts.minute:02d}{suffix}"


def format_reset_time(
    ts: datetime,
    now: datetime,
    *,
    use_24_hour: bool = False,
    compact: bool = False,
) -> str:
    """Render a reset time as "Today, 3:59PM", "Tomorrow, ..." or "Wednesday, ...".

    ``ts`` is shown in ``now``'s timezone. ``compact`` drops the day prefix.
    """
    rounded = round_to_nearest_minute(ts)
    if now.tzinfo is not None and rounded.tzinfo is not None:
        rounded = rounded.astimezone(now.tzinfo)
    clock = _clock(rounded, use_24_hour)
    if compact:
        return clock
    days = (rounded.date() - now.date()).days
    if days == 0:
        day = "Today"
    elif days == 1:
        day = "Tomorrow"
    else:
        day = rounded.strftime("%A")
    return f"{day}, {clock}"


def format_time_remaining(ts: datetime, now: datetime) -> str:
    seconds = (ts - now).total_seconds()
    if seconds < 0:
        return "Reset now"
    total = int(seconds)
    hours = total // 3600
    minutes = (total % 3600) // 60
    days = hours // 24
    if days > 0:
        return "1 day" if days == 1 else f"{days} days"
    if hours > 0:
        return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"
    if minutes > 0:
        return f"{minutes}m"
    return "< 1m"


def format_time_remaining_hours(ts: datetime, now: datetime) -> str:
    seconds = (ts - now).total_seconds()
    if seconds < 3600:
        return "→<1H"
    return f"→{math.ceil(seconds / 3600)}H"


# --- currency -----------------------------------------------------------------


def format_currency(amount: float, currency: str) -> str:
    """Format a major-unit amount with two decimals and the currency's symbol."""
    code = (currency or "USD").upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    sign = "-" if amount < 0 else ""
    number = f"{abs(amount):,.2f}"
    if symbol is None:
        return f"{sign}{code} {number}"
    return f"{sign}{symbol}{number}"


def format_extra_usage(
    percentage: float | None,
    used_amount: float | None,
    currency: str | None,
    fmt: ExtraUsageFormat,
) -> str:
    """Render extra usage. ``used_amount`` is in minor units (cents).

    The percentage is clamped to [0, 100] and a non-finite amount renders as zero.
    """
    percent_text = f"{round(clamp_percentage(percentage))}%" if percentage is not None else "0%"
    code = currency or "USD"
    if used_amount is None or not math.isfinite(used_amount):
        currency_text = format_currency(0.0, code)
    else:
        currency_text = format_currency(used_amount / 100.0, code)
    if fmt == ExtraUsageFormat.CURRENCY:
        return currency_text
    if fmt == ExtraUsageFormat.BOTH:
        return f"{percent_text} • {currency_text}"
    return percent_text


# --- snapshot-level derivation ------------------------------------------------


def metric_percentage(snapshot: UsageSnapshot, metric: WidgetMetric) -> float:
    """Raw percentage feeding a tile slot. Extra is 0 when not configured."""
    if metric == WidgetMetric.SESSION:
        return snapshot.session_percentage
    if metric == WidgetMetric.WEEKLY:
        return snapshot.weekly_percentage
    if metric == WidgetMetric.OPUS:
        return snapshot.model_percentage(MODEL_OPUS)
    if metric == WidgetMetric.SONNET:
        return snapshot.model_percentage(MODEL_SONNET)
    extra = snapshot.extra_usage
    if extra is None:
        return 0.0
    return extra_percentage(extra.amount_used, extra.amount_limit) or 0.0


def _view(
    percentage: float,
    settings: Settings,
    reset_at: datetime | None = None,
    now: datetime | None = None,
) -> MetricView:
    clamped = clamp_percentage(percentage)
    reset_time = ""
    remaining = ""
    if reset_at is not None and now is not None:
        reset_time = format_reset_time(
            reset_at, now, use_24_hour=settings.statusline.use_24_hour_time
        )
        remaining = format_time_remaining(reset_at, now)
    return MetricView(
        percentage=clamped,
        status=status_level(clamped),
        color=resolve_color(clamped, settings.color_mode, settings.single_color_hex).hex,
        reset_time=reset_time,
        time_remaining=remaining,
    )


def derive_metrics(snapshot: UsageSnapshot, settings: Settings, now: datetime) -> DerivedMetrics:
    """Compute every display value for one snapshot."""
    session = _view(snapshot.session_percentage, settings, snapshot.session_reset_at, now)
    weekly = _view(snapshot.weekly_percentage, settings, snapshot.weekly_reset_at, now)
    models = {
        name: _view(value, settings, snapshot.weekly_reset_at, now)
        for name, value in snapshot.model_percentages.items()
    }

    extra_view = None
    extra = snapshot.extra_usage
    extra_pct = None
    if extra is not None:
        extra_pct = extra_percentage(extra.amount_used, extra.amount_limit)
        extra_view = _view(extra_pct or 0.0, settings)
    extra_display = format_extra_usage(
        extra_pct,
        extra.amount_used if extra is not None else None,
        extra.currency_code if extra is not None else None,
        settings.extra_usage_format,
    )

    def slot(metric: WidgetMetric) -> MetricView:
        if metric == WidgetMetric.SESSION:
            return session
        if metric == WidgetMetric.WEEKLY:
            return weekly
        if metric == WidgetMetric.EXTRA:
            return extra_view or _view(0.0, settings)
        return _view(metric_percentage(snapshot, metric), settings, snapshot.weekly_reset_at, now)

    slots = {
        "small": slot(settings.small_metric),
        "medium_left": slot(settings.medium_left_metric),
        "medium_right": slot(settings.medium_right_metric),
    }
    return DerivedMetrics(
        session=session,
        weekly=weekly,
        models=models,
        extra=extra_view,
        extra_display=extra_display,
        slots=slots,
    )
