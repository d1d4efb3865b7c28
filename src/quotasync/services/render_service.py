"""Builds the read-only render model handed to display code."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from quotasync.models.render import RenderModel
from quotasync.services.metrics import derive_metrics

if TYPE_CHECKING:
    from quotasync.services.protocols import SnapshotStoreProtocol

logger = logging.getLogger(__name__)


class RenderService:
    """Reads the latest snapshot and settings and derives display values."""

    def __init__(self, store: SnapshotStoreProtocol) -> None:
        self._store = store

    async def render_model(
        self, profile_id: str | None = None, now: datetime | None = None
    ) -> RenderModel:
        """Never raises for missing or unreadable data; renders "no data" instead."""
        current = now or datetime.now(UTC)
        snapshot = await self._store.load_snapshot(profile_id)
        settings = await self._store.load_settings(profile_id)
        api_usage = await self._store.load_api_usage(profile_id)
        derived = derive_metrics(snapshot, settings, current) if snapshot is not None else None
        if snapshot is None:
            logger.debug("No snapshot available for profile %s", profile_id)
        return RenderModel(
            profile_id=profile_id,
            snapshot=snapshot,
            settings=settings,
            derived=derived,
            api_usage=api_usage,
            rendered_at=current,
        )
