"""Shared fixtures for quotasync tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from quotasync.config import Config
from quotasync.data.cache import TTLCache
from quotasync.data.file_tier import SharedFileTier
from quotasync.data.kv_tier import KeyValueTier
from quotasync.models.snapshot import ExtraUsage, UsageSnapshot
from quotasync.services.profile_store import ProfileStore
from quotasync.services.snapshot_store import SnapshotStore

NOW = datetime(2026, 3, 4, 9, 15, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant (a Wednesday)."""
    return NOW


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Config pointing at temporary directories."""
    return Config(state_dir=tmp_path / "state", shared_dir=tmp_path / "shared")


@pytest.fixture
def file_tier(test_config: Config) -> SharedFileTier:
    return SharedFileTier(test_config.shared_dir)


@pytest.fixture
async def kv_tier(test_config: Config) -> AsyncGenerator[KeyValueTier]:
    """A real aiosqlite-backed key-value tier under tmp_path."""
    kv = KeyValueTier(test_config.kv_path)
    await kv.__aenter__()
    yield kv  # type: ignore[misc]
    await kv.__aexit__(None, None, None)


@pytest.fixture
def store(file_tier: SharedFileTier, kv_tier: KeyValueTier) -> SnapshotStore:
    return SnapshotStore(file_tier, kv_tier, TTLCache(1.0))


@pytest.fixture
def profile_store(kv_tier: KeyValueTier, store: SnapshotStore) -> ProfileStore:
    return ProfileStore(kv_tier, store)


@pytest.fixture
def sample_snapshot() -> UsageSnapshot:
    return UsageSnapshot(
        session_percentage=45.0,
        session_reset_at=NOW + timedelta(hours=2),
        weekly_percentage=32.0,
        weekly_reset_at=NOW + timedelta(days=3),
        model_percentages={"opus": 28.0, "sonnet": 35.0},
        extra_usage=ExtraUsage(amount_used=225, amount_limit=1000, currency_code="USD"),
        captured_at=NOW,
    )
