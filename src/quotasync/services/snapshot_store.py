"""Snapshot store: tier selection on read, tier replication on write."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import ValidationError
from result import Err, Ok, Result

from quotasync.data import codec
from quotasync.data.errors import DecodeError, NotFound, ReadFailed, WriteFailed
from quotasync.models.settings import Settings
from quotasync.models.snapshot import ApiUsageSnapshot, UsageSnapshot

if TYPE_CHECKING:
    from quotasync.data.cache import TTLCache
    from quotasync.data.protocols import TierProtocol

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Shared-file tier keys.
SNAPSHOT_FILE_KEY = "snapshot"
SETTINGS_FILE_KEY = "settings"

# Key-value tier keys.
SNAPSHOT_KV_KEY = "claudeUsageData"
SETTINGS_KV_KEY = "widgetSettings"
API_USAGE_KV_KEY = "apiUsageData"

# Per-field keys written by single-profile installs, mapped to Settings paths.
LEGACY_SETTINGS_KEYS: dict[str, tuple[str, ...]] = {
    "smallWidgetMetric": ("small_metric",),
    "mediumWidgetLeftMetric": ("medium_left_metric",),
    "mediumWidgetRightMetric": ("medium_right_metric",),
    "widgetColorMode": ("color_mode",),
    "widgetSingleColorHex": ("single_color_hex",),
    "extraUsageDisplayFormat": ("extra_usage_format",),
    "statuslineShowDirectory": ("statusline", "show_directory"),
    "statuslineShowBranch": ("statusline", "show_branch"),
    "statuslineShowUsage": ("statusline", "show_usage"),
    "statuslineShowProgressBar": ("statusline", "show_progress_bar"),
    "statuslineShowResetTime": ("statusline", "show_reset_time"),
    "statuslineUse24HourTime": ("statusline", "use_24_hour_time"),
    "statuslineShowUsageLabel": ("statusline", "show_usage_label"),
    "statuslineShowResetLabel": ("statusline", "show_reset_label"),
    "statuslineColorMode": ("statusline", "color_mode"),
    "statuslineSingleColorHex": ("statusline", "single_color_hex"),
}

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


def scoped_key(key: str, profile_id: str | None) -> str:
    """Per-profile key. ``None`` addresses the legacy single-profile slot."""
    return f"{key}.{profile_id}" if profile_id else key


class SnapshotStore:
    """Publishes and reads usage snapshots and settings across processes.

    Snapshot reads try the shared-file tier first and fall back to the
    key-value tier. Settings live primarily in the key-value tier behind a
    short TTL cache. Tier failures are absorbed here: readers get ``None`` or
    defaults, writers get a ``Result``.
    """

    def __init__(
        self,
        file_tier: TierProtocol,
        kv_tier: TierProtocol,
        settings_cache: TTLCache,
        mirror_snapshot: bool = True,
    ) -> None:
        self._file = file_tier
        self._kv = kv_tier
        self._settings_cache = settings_cache
        self._mirror_snapshot = mirror_snapshot
        self._write_lock = asyncio.Lock()

    # -- snapshot -------------------------------------------------------------

    async def load_snapshot(self, profile_id: str | None = None) -> UsageSnapshot | None:
        """Latest snapshot from the first tier that yields a decodable payload."""
        file_key = scoped_key(SNAPSHOT_FILE_KEY, profile_id)
        snapshot = await self._read_decoded(self._file, file_key, codec.decode_snapshot)
        if snapshot is not None:
            return snapshot

        kv_key = scoped_key(SNAPSHOT_KV_KEY, profile_id)
        return await self._read_decoded(self._kv, kv_key, codec.decode_compat_snapshot)

    async def save_snapshot(
        self, profile_id: str | None, snapshot: UsageSnapshot
    ) -> Result[bool, WriteFailed]:
        """Persist ``snapshot`` unless an equal-or-newer one is already stored.

        Returns ``Ok(False)`` when the write was discarded as older.
        """
        async with self._write_lock:
            current = await self.load_snapshot(profile_id)
            if current is not None and snapshot.captured_at < current.captured_at:
                logger.info(
                    "Discarding snapshot captured at %s; stored one is from %s",
                    snapshot.captured_at.isoformat(),
                    current.captured_at.isoformat(),
                )
                return Ok(False)

            data = codec.encode_snapshot(snapshot)
            file_result = await self._file.write(scoped_key(SNAPSHOT_FILE_KEY, profile_id), data)
            if self._mirror_snapshot:
                await self._kv.write(scoped_key(SNAPSHOT_KV_KEY, profile_id), data)
            if isinstance(file_result, Err):
                return file_result
            return Ok(True)

    async def delete_snapshot(self, profile_id: str | None) -> Result[None, WriteFailed]:
        file_result = await self._file.delete(scoped_key(SNAPSHOT_FILE_KEY, profile_id))
        kv_result = await self._kv.delete(scoped_key(SNAPSHOT_KV_KEY, profile_id))
        if isinstance(file_result, Err):
            return file_result
        return kv_result

    # -- settings -------------------------------------------------------------

    async def load_settings(self, profile_id: str | None = None) -> Settings:
        """Settings bundle for the profile; defaults when nothing is stored."""
        key = scoped_key(SETTINGS_KV_KEY, profile_id)
        return await self._settings_cache.get_or_load(
            key, lambda: self._load_settings_uncached(profile_id)
        )

    async def _load_settings_uncached(self, profile_id: str | None) -> Settings:
        settings = await self._read_decoded(
            self._kv, scoped_key(SETTINGS_KV_KEY, profile_id), codec.decode_settings
        )
        if settings is not None:
            return settings

        settings = await self._read_decoded(
            self._file, scoped_key(SETTINGS_FILE_KEY, profile_id), codec.decode_settings
        )
        if settings is not None:
            return settings

        return await self._load_legacy_settings()

    async def save_settings(
        self, profile_id: str | None, settings: Settings
    ) -> Result[None, WriteFailed]:
        """Write the bundle. Visible to other processes once this returns."""
        data = codec.encode_settings(settings)
        kv_result = await self._kv.write(scoped_key(SETTINGS_KV_KEY, profile_id), data)
        await self._file.write(scoped_key(SETTINGS_FILE_KEY, profile_id), data)
        self._settings_cache.invalidate(scoped_key(SETTINGS_KV_KEY, profile_id))
        return kv_result

    async def delete_settings(self, profile_id: str | None) -> Result[None, WriteFailed]:
        kv_result = await self._kv.delete(scoped_key(SETTINGS_KV_KEY, profile_id))
        await self._file.delete(scoped_key(SETTINGS_FILE_KEY, profile_id))
        self._settings_cache.invalidate(scoped_key(SETTINGS_KV_KEY, profile_id))
        return kv_result

    async def _load_legacy_settings(self) -> Settings:
        data: dict[str, Any] = {}
        for legacy_key, path in LEGACY_SETTINGS_KEYS.items():
            raw = await self.read_legacy_value(legacy_key)
            if raw is None:
                continue
            target = data
            for part in path[:-1]:
                target = target.setdefault(part, {})
            target[path[-1]] = _legacy_value(raw)
        if not data:
            return Settings()
        try:
            settings = Settings.model_validate(data)
        except ValidationError as exc:
            logger.warning("Ignoring unreadable legacy settings: %s", exc)
            return Settings()
        logger.debug("Loaded settings from legacy keys")
        return settings

    async def read_legacy_value(self, key: str) -> str | None:
        result = await self._kv.read(key)
        if isinstance(result, Err):
            return None
        try:
            return result.ok_value.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Legacy value %r is not text", key)
            return None

    async def write_legacy_value(self, key: str, value: str | bool) -> Result[None, WriteFailed]:
        text = ("true" if value else "false") if isinstance(value, bool) else value
        result = await self._kv.write(key, text.encode("utf-8"))
        self._settings_cache.invalidate()
        return result

    # -- API console usage ----------------------------------------------------

    async def load_api_usage(self, profile_id: str | None = None) -> ApiUsageSnapshot | None:
        return await self._read_decoded(
            self._kv, scoped_key(API_USAGE_KV_KEY, profile_id), codec.decode_api_usage
        )

    async def save_api_usage(
        self, profile_id: str | None, usage: ApiUsageSnapshot
    ) -> Result[None, WriteFailed]:
        return await self._kv.write(
            scoped_key(API_USAGE_KV_KEY, profile_id), codec.encode_api_usage(usage)
        )

    async def delete_api_usage(self, profile_id: str | None) -> Result[None, WriteFailed]:
        return await self._kv.delete(scoped_key(API_USAGE_KV_KEY, profile_id))

    # -- helpers --------------------------------------------------------------

    async def _read_decoded(
        self,
        tier: TierProtocol,
        key: str,
        decode: Callable[[bytes], Result[T, DecodeError]],
    ) -> T | None:
        raw = await tier.read(key)
        if isinstance(raw, Err):
            _log_missing(raw.err_value)
            return None
        decoded = decode(raw.ok_value)
        if isinstance(decoded, Err):
            logger.warning(
                "Discarding undecodable %r from %s: %s", key, _tier_name(tier), decoded.err_value
            )
            return None
        return decoded.ok_value


def _log_missing(error: NotFound | ReadFailed) -> None:
    if isinstance(error, ReadFailed):
        logger.warning("Treating failed read as missing: %s", error)
    else:
        logger.debug("No stored data: %s", error)


def _tier_name(tier: object) -> str:
    return type(tier).__name__


def _legacy_value(raw: str) -> str | bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    return raw
