"""Versioned JSON codec for snapshots, settings and profiles.

Every payload written by this package is UTF-8 JSON wrapped in an envelope::

    {"schema": 1, "kind": "snapshot", "data": {...}}

Decoders also accept the bare ``data`` value (unversioned writers) and ignore
unknown fields, so a reader never fails on data from a newer writer. The
key-value tier may additionally hold the camelCase shape produced by older
writers; ``decode_compat_snapshot`` maps that shape onto ``UsageSnapshot``.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from result import Err, Ok, Result

from quotasync.data.errors import DecodeError, DecodeFailure
from quotasync.models.profiles import Profile
from quotasync.models.settings import Settings
from quotasync.models.snapshot import (
    EPOCH,
    MODEL_OPUS,
    MODEL_SONNET,
    ApiUsageSnapshot,
    ExtraUsage,
    UsageSnapshot,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

KIND_SNAPSHOT = "snapshot"
KIND_SETTINGS = "settings"
KIND_PROFILES = "profiles"
KIND_API_USAGE = "api_usage"

# Older writers encoded dates as seconds since this instant.
REFERENCE_DATE = datetime(2001, 1, 1, tzinfo=UTC)

M = TypeVar("M", bound=BaseModel)

_PROFILES_ADAPTER = TypeAdapter(list[Profile])


def encode(kind: str, payload: BaseModel | list[BaseModel]) -> bytes:
    """Wrap a model (or list of models) in a versioned envelope."""
    if isinstance(payload, list):
        data: Any = [item.model_dump(mode="json") for item in payload]
    else:
        data = payload.model_dump(mode="json")
    envelope = {"schema": SCHEMA_VERSION, "kind": kind, "data": data}
    return json.dumps(envelope, separators=(",", ":")).encode("utf-8")


def encode_snapshot(snapshot: UsageSnapshot) -> bytes:
    return encode(KIND_SNAPSHOT, snapshot)


def encode_settings(settings: Settings) -> bytes:
    return encode(KIND_SETTINGS, settings)


def encode_profiles(profiles: list[Profile]) -> bytes:
    return encode(KIND_PROFILES, list(profiles))


def encode_api_usage(usage: ApiUsageSnapshot) -> bytes:
    return encode(KIND_API_USAGE, usage)


def _load_json(data: bytes) -> Result[Any, DecodeError]:
    try:
        return Ok(json.loads(data.decode("utf-8")))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        return Err(DecodeError(DecodeFailure.MALFORMED, str(exc)))


def _is_envelope(value: Any) -> bool:
    return isinstance(value, dict) and "kind" in value and "data" in value


def _unwrap(data: bytes, kind: str) -> Result[tuple[Any, bool], DecodeError]:
    """Return ``(payload, was_enveloped)`` for ``kind``."""
    loaded = _load_json(data)
    if isinstance(loaded, Err):
        return loaded
    value = loaded.ok_value
    if not _is_envelope(value):
        return Ok((value, False))
    if value["kind"] != kind:
        detail = f"expected {kind}, got {value['kind']!r}"
        return Err(DecodeError(DecodeFailure.WRONG_KIND, detail))
    schema = value.get("schema")
    if isinstance(schema, int) and schema > SCHEMA_VERSION:
        logger.debug("Reading %s written with newer schema %s", kind, schema)
    return Ok((value["data"], True))


def _validate(model: type[M], payload: Any) -> Result[M, DecodeError]:
    if not isinstance(payload, dict):
        detail = f"expected object, got {type(payload).__name__}"
        return Err(DecodeError(DecodeFailure.MALFORMED, detail))
    try:
        return Ok(model.model_validate(payload))
    except ValidationError as exc:
        return Err(DecodeError(DecodeFailure.MALFORMED, _summarize(exc)))


def _summarize(exc: ValidationError) -> str:
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = ".".join(str(part) for part in first.get("loc", ()))
    return f"{len(errors)} validation error(s); first at {loc or '<root>'}: {first.get('msg', '')}"


def decode_snapshot(data: bytes) -> Result[UsageSnapshot, DecodeError]:
    """Decode the canonical snapshot shape."""
    unwrapped = _unwrap(data, KIND_SNAPSHOT)
    if isinstance(unwrapped, Err):
        return unwrapped
    payload, _ = unwrapped.ok_value
    return _validate(UsageSnapshot, payload)


def decode_settings(data: bytes) -> Result[Settings, DecodeError]:
    unwrapped = _unwrap(data, KIND_SETTINGS)
    if isinstance(unwrapped, Err):
        return unwrapped
    payload, _ = unwrapped.ok_value
    return _validate(Settings, payload)


def decode_profiles(data: bytes) -> Result[list[Profile], DecodeError]:
    unwrapped = _unwrap(data, KIND_PROFILES)
    if isinstance(unwrapped, Err):
        return unwrapped
    payload, _ = unwrapped.ok_value
    if not isinstance(payload, list):
        return Err(DecodeError(DecodeFailure.MALFORMED, "expected a list of profiles"))
    try:
        return Ok(_PROFILES_ADAPTER.validate_python(payload))
    except ValidationError as exc:
        return Err(DecodeError(DecodeFailure.MALFORMED, _summarize(exc)))


# --- Compatibility shapes -----------------------------------------------------


def _reference_date(value: Any) -> Any:
    if isinstance(value, int | float) and not isinstance(value, bool):
        return REFERENCE_DATE + timedelta(seconds=value)
    return value


class _CompatUsage(BaseModel):
    """camelCase usage payload written by older producers."""

    model_config = ConfigDict(extra="ignore", alias_generator=to_camel)

    session_percentage: float
    session_reset_time: datetime | None = None
    weekly_percentage: float
    weekly_reset_time: datetime | None = None
    opus_weekly_percentage: float = 0.0
    sonnet_weekly_percentage: float = 0.0
    cost_used: float | None = None
    cost_limit: float | None = None
    cost_currency: str | None = None
    last_updated: datetime = EPOCH

    @field_validator("session_reset_time", "weekly_reset_time", "last_updated", mode="before")
    @classmethod
    def _reference_dates(cls, value: Any) -> Any:
        return _reference_date(value)

    def to_snapshot(self) -> UsageSnapshot:
        extra = None
        if (
            self.cost_used is not None
            and self.cost_limit is not None
            and self.cost_currency is not None
        ):
            extra = ExtraUsage(
                amount_used=self.cost_used,
                amount_limit=self.cost_limit,
                currency_code=self.cost_currency,
            )
        return UsageSnapshot(
            session_percentage=self.session_percentage,
            session_reset_at=self.session_reset_time,
            weekly_percentage=self.weekly_percentage,
            weekly_reset_at=self.weekly_reset_time,
            model_percentages={
                MODEL_OPUS: self.opus_weekly_percentage,
                MODEL_SONNET: self.sonnet_weekly_percentage,
            },
            extra_usage=extra,
            captured_at=self.last_updated,
        )


class _CompatApiUsage(BaseModel):
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    current_spend_cents: int = 0
    prepaid_credits_cents: int = 0
    currency: str = "USD"
    resets_at: datetime | None = None

    @field_validator("resets_at", mode="before")
    @classmethod
    def _reference_dates(cls, value: Any) -> Any:
        return _reference_date(value)


def decode_compat_snapshot(data: bytes) -> Result[UsageSnapshot, DecodeError]:
    """Decode a key-value tier snapshot.

    Enveloped payloads use the canonical shape. Bare payloads are read as the
    camelCase compat shape first, then as a bare canonical object. Fields the
    compat shape lacks (such as extra usage) decode to absent rather than zero.
    """
    unwrapped = _unwrap(data, KIND_SNAPSHOT)
    if isinstance(unwrapped, Err):
        return unwrapped
    payload, enveloped = unwrapped.ok_value
    if enveloped:
        return _validate(UsageSnapshot, payload)
    compat = _validate(_CompatUsage, payload)
    if isinstance(compat, Ok):
        return Ok(compat.ok_value.to_snapshot())
    canonical = _validate(UsageSnapshot, payload)
    if isinstance(canonical, Ok):
        return canonical
    return compat


def decode_api_usage(data: bytes) -> Result[ApiUsageSnapshot, DecodeError]:
    unwrapped = _unwrap(data, KIND_API_USAGE)
    if isinstance(unwrapped, Err):
        return unwrapped
    payload, _ = unwrapped.ok_value
    compat = _validate(_CompatApiUsage, payload)
    if isinstance(compat, Err):
        return compat
    return Ok(ApiUsageSnapshot.model_validate(compat.ok_value.model_dump()))
