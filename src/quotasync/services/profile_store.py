"""Profile store: N tracked accounts persisted as one collection in the key-value tier."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from result import Err, Ok, Result

from quotasync.data import codec
from quotasync.data.errors import (
    CannotDeleteLastProfile,
    ProfileCollectionCorrupt,
    ProfileError,
    ProfileNotFound,
    ReadFailed,
    WriteFailed,
)
from quotasync.models.profiles import Profile, ProfileCredentials, ProfileDisplayMode

if TYPE_CHECKING:
    from quotasync.data.protocols import TierProtocol
    from quotasync.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

PROFILES_KEY = "profiles_v3"
ACTIVE_PROFILE_KEY = "activeProfileId"
DISPLAY_MODE_KEY = "profileDisplayMode"


class ProfileStore:
    """Owns every Profile record.

    Reads distinguish "no profiles yet" (``Ok([])``) from "the stored
    collection is unreadable" (``Err(ProfileCollectionCorrupt)``) and from a
    failed tier read (``Err(ReadFailed)``). Mutations
    refuse to run on top of an unreadable collection; only ``save(...,
    force=True)`` may replace it.
    """

    def __init__(self, kv_tier: TierProtocol, snapshot_store: SnapshotStore) -> None:
        self._kv = kv_tier
        self._snapshots = snapshot_store
        self._lock = asyncio.Lock()

    async def list(self) -> Result[list[Profile], ProfileCollectionCorrupt | ReadFailed]:
        raw = await self._kv.read(PROFILES_KEY)
        if isinstance(raw, Err):
            if isinstance(raw.err_value, ReadFailed):
                logger.warning("Profile collection could not be read: %s", raw.err_value)
                return Err(raw.err_value)
            return Ok([])
        decoded = codec.decode_profiles(raw.ok_value)
        if isinstance(decoded, Err):
            logger.warning("Profile collection is unreadable: %s", decoded.err_value)
            return Err(ProfileCollectionCorrupt(str(decoded.err_value)))
        return Ok(decoded.ok_value)

    async def get(
        self, profile_id: str
    ) -> Result[Profile, ProfileNotFound | ProfileCollectionCorrupt | ReadFailed]:
        listed = await self.list()
        if isinstance(listed, Err):
            return listed
        for profile in listed.ok_value:
            if profile.id == profile_id:
                return Ok(profile)
        return Err(ProfileNotFound(profile_id))

    async def save(
        self, profiles: list[Profile], *, force: bool = False
    ) -> Result[None, ProfileCollectionCorrupt | ReadFailed | WriteFailed]:
        """Replace the stored collection.

        Without ``force`` the write is refused when the existing collection
        cannot be decoded or read, so a read failure never turns into data loss.
        """
        if not force:
            existing = await self.list()
            if isinstance(existing, Err):
                return existing
        result = await self._kv.write(PROFILES_KEY, codec.encode_profiles(profiles))
        if isinstance(result, Ok):
            logger.debug("Saved %d profiles", len(profiles))
        return result

    async def create(
        self, name: str, credentials: ProfileCredentials | None = None
    ) -> Result[Profile, ProfileError]:
        async with self._lock:
            listed = await self.list()
            if isinstance(listed, Err):
                return listed
            profile = Profile(name=name, credentials=credentials or ProfileCredentials())
            saved = await self._kv.write(
                PROFILES_KEY, codec.encode_profiles([*listed.ok_value, profile])
            )
            if isinstance(saved, Err):
                return saved
            if await self.get_active() is None:
                await self._kv.write(ACTIVE_PROFILE_KEY, profile.id.encode("utf-8"))
            logger.info("Created profile %s", profile.id)
            return Ok(profile)

    async def update(self, profile: Profile) -> Result[Profile, ProfileError]:
        """Replace the stored record that has ``profile.id``."""
        async with self._lock:
            listed = await self.list()
            if isinstance(listed, Err):
                return listed
            profiles = listed.ok_value
            for index, existing in enumerate(profiles):
                if existing.id == profile.id:
                    profiles[index] = profile
                    break
            else:
                return Err(ProfileNotFound(profile.id))
            saved = await self._kv.write(PROFILES_KEY, codec.encode_profiles(profiles))
            if isinstance(saved, Err):
                return saved
            return Ok(profile)

    async def update_credentials(
        self, profile_id: str, credentials: ProfileCredentials
    ) -> Result[Profile, ProfileError]:
        found = await self.get(profile_id)
        if isinstance(found, Err):
            return found
        updated = found.ok_value.model_copy(update={"credentials": credentials})
        return await self.update(updated)

    async def delete(self, profile_id: str) -> Result[None, ProfileError]:
        """Remove a profile with its credentials, cached snapshot and settings."""
        async with self._lock:
            listed = await self.list()
            if isinstance(listed, Err):
                return listed
            profiles = listed.ok_value
            remaining = [p for p in profiles if p.id != profile_id]
            if len(remaining) == len(profiles):
                return Err(ProfileNotFound(profile_id))
            if not remaining:
                return Err(CannotDeleteLastProfile())

            saved = await self._kv.write(PROFILES_KEY, codec.encode_profiles(remaining))
            if isinstance(saved, Err):
                return saved
            await self._snapshots.delete_snapshot(profile_id)
            await self._snapshots.delete_settings(profile_id)
            await self._snapshots.delete_api_usage(profile_id)

            if await self._load_active_id() == profile_id:
                await self._kv.write(ACTIVE_PROFILE_KEY, remaining[0].id.encode("utf-8"))
            logger.info("Deleted profile %s", profile_id)
            return Ok(None)

    async def set_active(self, profile_id: str) -> Result[None, ProfileError]:
        found = await self.get(profile_id)
        if isinstance(found, Err):
            return found
        updated = found.ok_value.model_copy(update={"last_used_at": datetime.now(UTC)})
        touched = await self.update(updated)
        if isinstance(touched, Err):
            return touched
        return await self._kv.write(ACTIVE_PROFILE_KEY, profile_id.encode("utf-8"))

    async def get_active(self) -> Profile | None:
        """The active profile, or None when unset or pointing at a missing profile."""
        active_id = await self._load_active_id()
        if active_id is None:
            return None
        found = await self.get(active_id)
        if isinstance(found, Err):
            logger.debug("Active profile unavailable: %s", found.err_value)
            return None
        return found.ok_value

    async def _load_active_id(self) -> str | None:
        raw = await self._kv.read(ACTIVE_PROFILE_KEY)
        if isinstance(raw, Err):
            return None
        value = raw.ok_value.decode("utf-8", errors="replace").strip()
        return value or None

    async def load_display_mode(self) -> ProfileDisplayMode:
        raw = await self._kv.read(DISPLAY_MODE_KEY)
        if isinstance(raw, Err):
            return ProfileDisplayMode.SINGLE
        value = raw.ok_value.decode("utf-8", errors="replace").strip()
        try:
            return ProfileDisplayMode(value)
        except ValueError:
            return ProfileDisplayMode.SINGLE

    async def save_display_mode(self, mode: ProfileDisplayMode) -> Result[None, WriteFailed]:
        return await self._kv.write(DISPLAY_MODE_KEY, mode.value.encode("utf-8"))

    async def profiles_for_display(self) -> list[Profile]:
        """[active] in single mode, otherwise every profile selected for display."""
        if await self.load_display_mode() == ProfileDisplayMode.SINGLE:
            active = await self.get_active()
            return [active] if active is not None else []
        listed = await self.list()
        if isinstance(listed, Err):
            return []
        return [p for p in listed.ok_value if p.is_selected_for_display]
