"""Background writer: polls the remote service and publishes snapshots."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from result import Err, Ok, Result

from quotasync.config import BACKGROUND_POLL_SECONDS

if TYPE_CHECKING:
    from quotasync.services.protocols import SnapshotStoreProtocol, UsageFetcherProtocol

logger = logging.getLogger(__name__)

BACKOFF_AFTER_ERRORS = 3
MAX_BACKOFF_SECONDS = 300.0


class UsagePublisher:
    """Sole writer of usage snapshots. Fetch errors are logged and returned, never raised."""

    def __init__(self, store: SnapshotStoreProtocol, fetch: UsageFetcherProtocol) -> None:
        self._store = store
        self._fetch = fetch
        self._consecutive_errors = 0

    @property
    def consecutive_errors(self) -> int:
        return self._consecutive_errors

    async def publish_once(self, profile_id: str | None = None) -> Result[bool, str]:
        """Fetch and save one snapshot. ``Ok(False)`` means the store kept a newer one."""
        fetched = await self._fetch()
        if isinstance(fetched, Err):
            self._consecutive_errors += 1
            logger.warning(
                "Usage fetch failed (%d in a row): %s", self._consecutive_errors, fetched.err_value
            )
            return fetched
        self._consecutive_errors = 0
        saved = await self._store.save_snapshot(profile_id, fetched.ok_value)
        if isinstance(saved, Err):
            return Err(str(saved.err_value))
        return Ok(saved.ok_value)

    def next_delay(self, interval: float) -> float:
        """Poll delay, backing off exponentially after repeated failures."""
        if self._consecutive_errors < BACKOFF_AFTER_ERRORS:
            return interval
        exponent = self._consecutive_errors - BACKOFF_AFTER_ERRORS + 1
        return min(interval * (2**exponent), MAX_BACKOFF_SECONDS)

    async def run(
        self,
        profile_id: str | None = None,
        interval: float = BACKGROUND_POLL_SECONDS,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """Poll until ``stop_event`` is set."""
        stop = stop_event or asyncio.Event()
        while not stop.is_set():
            await self.publish_once(profile_id)
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.next_delay(interval))
            except TimeoutError:
                continue
