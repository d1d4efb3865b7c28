"""Configuration for quotasync."""

from dataclasses import dataclass, field
from pathlib import Path

# Refresh policy (seconds).
BACKGROUND_POLL_SECONDS = 30
COMPACT_DISPLAY_REFRESH_SECONDS = 15 * 60
LARGE_DISPLAY_REFRESH_SECONDS = 30 * 60

DEFAULT_SETTINGS_CACHE_TTL = 1.0


def _default_state_dir() -> Path:
    return Path.home() / ".local" / "share" / "quotasync"


@dataclass(frozen=True)
class Config:
    """Per-process store configuration. Built once and passed explicitly."""

    state_dir: Path = field(default_factory=_default_state_dir)
    shared_dir: Path = field(default_factory=lambda: _default_state_dir() / "shared")
    settings_cache_ttl: float = DEFAULT_SETTINGS_CACHE_TTL
    mirror_snapshot_to_key_value: bool = True
    busy_timeout: float = 5.0

    @property
    def kv_path(self) -> Path:
        return self.state_dir / "defaults.db"
