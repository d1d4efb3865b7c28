"""Protocol definitions for services and external collaborators."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from result import Result

from quotasync.data.errors import WriteFailed
from quotasync.models.render import RenderModel
from quotasync.models.settings import Settings
from quotasync.models.snapshot import ApiUsageSnapshot, UsageSnapshot


class UsageFetcherProtocol(Protocol):
    """The remote polling client. Only the background process calls it."""

    async def __call__(self) -> Result[UsageSnapshot, str]: ...


class SnapshotStoreProtocol(Protocol):
    """Interface for snapshot and settings persistence."""

    async def load_snapshot(self, profile_id: str | None = None) -> UsageSnapshot | None: ...

    async def save_snapshot(
        self, profile_id: str | None, snapshot: UsageSnapshot
    ) -> Result[bool, WriteFailed]: ...

    async def load_settings(self, profile_id: str | None = None) -> Settings: ...

    async def load_api_usage(self, profile_id: str | None = None) -> ApiUsageSnapshot | None: ...

    async def save_settings(
        self, profile_id: str | None, settings: Settings
    ) -> Result[None, WriteFailed]: ...


class RenderServiceProtocol(Protocol):
    """Interface consumed by rendering code."""

    async def render_model(
        self, profile_id: str | None = None, now: datetime | None = None
    ) -> RenderModel: ...
