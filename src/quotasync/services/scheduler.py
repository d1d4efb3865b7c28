"""Display-side refresh scheduling.

A display process does not persist between invocations and runs no timer of
its own. The host invokes it, it renders once, and it returns the earliest
time the host should invoke it again.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING

from quotasync.config import COMPACT_DISPLAY_REFRESH_SECONDS, LARGE_DISPLAY_REFRESH_SECONDS
from quotasync.models.render import DisplayFamily, RenderModel, TimelineEntry
from quotasync.models.settings import Settings

if TYPE_CHECKING:
    from quotasync.services.protocols import RenderServiceProtocol

logger = logging.getLogger(__name__)

REFRESH_INTERVALS: dict[DisplayFamily, timedelta] = {
    DisplayFamily.SMALL: timedelta(seconds=COMPACT_DISPLAY_REFRESH_SECONDS),
    DisplayFamily.MEDIUM: timedelta(seconds=COMPACT_DISPLAY_REFRESH_SECONDS),
    DisplayFamily.LARGE: timedelta(seconds=LARGE_DISPLAY_REFRESH_SECONDS),
}


class SchedulerState(StrEnum):
    IDLE = "idle"
    RENDERING = "rendering"
    SCHEDULED = "scheduled"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RefreshScheduler:
    """Idle -> Rendering -> Scheduled on each host-issued invocation."""

    def __init__(
        self,
        render_service: RenderServiceProtocol,
        family: DisplayFamily = DisplayFamily.SMALL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._render_service = render_service
        self._family = family
        self._clock = clock
        self._state = SchedulerState.IDLE
        self._next_refresh_at: datetime | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def family(self) -> DisplayFamily:
        return self._family

    @property
    def interval(self) -> timedelta:
        return REFRESH_INTERVALS[self._family]

    @property
    def next_refresh_at(self) -> datetime | None:
        return self._next_refresh_at

    async def invoke(self, profile_id: str | None = None) -> TimelineEntry:
        """Render once and return the entry plus the next allowed invocation time."""
        self._state = SchedulerState.RENDERING
        now = self._clock()
        try:
            rendered = await self._render_service.render_model(profile_id, now=now)
        except Exception:
            self._state = SchedulerState.IDLE
            raise
        self._next_refresh_at = now + self.interval
        self._state = SchedulerState.SCHEDULED
        logger.debug(
            "Rendered %s display for %s; next refresh at %s",
            self._family,
            profile_id,
            self._next_refresh_at.isoformat(),
        )
        return TimelineEntry(rendered=rendered, next_refresh_at=self._next_refresh_at)

    def placeholder(self) -> TimelineEntry:
        """A no-data entry that touches no storage, for host previews."""
        now = self._clock()
        rendered = RenderModel(settings=Settings(), rendered_at=now)
        return TimelineEntry(rendered=rendered, next_refresh_at=now + self.interval)
