"""Store container with DI wiring."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from quotasync.data.cache import TTLCache
from quotasync.data.file_tier import SharedFileTier
from quotasync.data.kv_tier import KeyValueTier
from quotasync.models.render import DisplayFamily
from quotasync.services.profile_store import ProfileStore
from quotasync.services.render_service import RenderService
from quotasync.services.scheduler import RefreshScheduler
from quotasync.services.snapshot_store import SnapshotStore

if TYPE_CHECKING:
    from quotasync.config import Config


@dataclass
class StoreContainer:
    """Holds the per-process stores. Built once at startup and passed explicitly."""

    file_tier: SharedFileTier
    kv_tier: KeyValueTier
    snapshot_store: SnapshotStore
    profile_store: ProfileStore
    render_service: RenderService

    @classmethod
    async def create(cls, config: Config) -> StoreContainer:
        """Async factory that wires all dependencies."""
        file_tier = SharedFileTier(config.shared_dir)
        kv_tier = KeyValueTier(config.kv_path, busy_timeout=config.busy_timeout)
        await kv_tier.connect()

        snapshot_store = SnapshotStore(
            file_tier,
            kv_tier,
            TTLCache(config.settings_cache_ttl),
            mirror_snapshot=config.mirror_snapshot_to_key_value,
        )
        profile_store = ProfileStore(kv_tier, snapshot_store)
        render_service = RenderService(snapshot_store)

        return cls(
            file_tier=file_tier,
            kv_tier=kv_tier,
            snapshot_store=snapshot_store,
            profile_store=profile_store,
            render_service=render_service,
        )

    def scheduler(self, family: DisplayFamily) -> RefreshScheduler:
        return RefreshScheduler(self.render_service, family)

    async def close(self) -> None:
        """Release the key-value connection."""
        await self.kv_tier.close()
