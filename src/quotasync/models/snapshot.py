"""Usage snapshot models shared by the background writer and display readers."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

MODEL_OPUS = "opus"
MODEL_SONNET = "sonnet"

_EXTRA_FIELDS = ("amount_used", "amount_limit", "currency_code")


class ExtraUsage(BaseModel):
    """Pay-as-you-go spend. Amounts are integer minor units (cents)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    amount_used: float
    amount_limit: float
    currency_code: str


class UsageSnapshot(BaseModel):
    """Quota state at a captured instant.

    The session and weekly percentages are required, so an object of some
    other shape never decodes as an all-zero snapshot.
    """

    model_config = ConfigDict(extra="ignore")

    session_percentage: float
    session_reset_at: datetime | None = None
    weekly_percentage: float
    weekly_reset_at: datetime | None = None
    model_percentages: dict[str, float] = Field(
        default_factory=lambda: {MODEL_OPUS: 0.0, MODEL_SONNET: 0.0}
    )
    extra_usage: ExtraUsage | None = None
    captured_at: datetime = EPOCH

    @field_validator("session_reset_at", "weekly_reset_at", "captured_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @model_validator(mode="before")
    @classmethod
    def _drop_partial_extra_usage(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        extra = data.get("extra_usage")
        if extra is None:
            return data
        if not isinstance(extra, dict) or any(extra.get(f) is None for f in _EXTRA_FIELDS):
            logger.debug("Ignoring partial extra usage payload: %r", extra)
            return {**data, "extra_usage": None}
        return data

    def model_percentage(self, model: str) -> float:
        return self.model_percentages.get(model, 0.0)

    @classmethod
    def empty(cls, now: datetime | None = None) -> UsageSnapshot:
        """All-zero snapshot used when nothing has been captured yet."""
        current = now or datetime.now(UTC)
        return cls(
            session_percentage=0.0,
            session_reset_at=current + timedelta(hours=5),
            weekly_percentage=0.0,
            weekly_reset_at=next_weekly_reset(current),
            captured_at=current,
        )


class ApiUsageSnapshot(BaseModel):
    """API console spend, stored alongside the quota snapshot."""

    model_config = ConfigDict(extra="ignore")

    current_spend_cents: int = 0
    prepaid_credits_cents: int = 0
    currency: str = "USD"
    resets_at: datetime | None = None

    @property
    def used_amount(self) -> float:
        return self.current_spend_cents / 100.0

    @property
    def total_credits(self) -> float:
        return self.used_amount + self.prepaid_credits_cents / 100.0

    @property
    def usage_percentage(self) -> float:
        total = self.total_credits
        return (self.used_amount / total) * 100.0 if total > 0 else 0.0


def next_weekly_reset(now: datetime) -> datetime:
    """Next Monday at 12:59 in the timezone of ``now`` (a week out on Mondays)."""
    local = now if now.tzinfo is not None else now.replace(tzinfo=UTC)
    days_ahead = (7 - local.weekday()) % 7 or 7
    target = local + timedelta(days=days_ahead)
    return target.replace(hour=12, minute=59, second=0, microsecond=0)
