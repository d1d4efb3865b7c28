"""Error values returned through ``result.Err`` by tiers and stores."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class DecodeFailure(StrEnum):
    MALFORMED = "malformed"
    WRONG_KIND = "wrong_kind"


@dataclass(frozen=True)
class NotFound:
    """The tier holds no data for the key. Normal, not an error condition."""

    key: str

    def __str__(self) -> str:
        return f"no data for {self.key!r}"


@dataclass(frozen=True)
class ReadFailed:
    """The tier may hold data but the read itself failed (locked, I/O error)."""

    key: str
    detail: str = ""

    def __str__(self) -> str:
        return f"read of {self.key!r} failed: {self.detail}"


@dataclass(frozen=True)
class DecodeError:
    """Data was present but could not be parsed."""

    reason: DecodeFailure
    detail: str = ""

    def __str__(self) -> str:
        return f"{self.reason}: {self.detail}" if self.detail else str(self.reason)


@dataclass(frozen=True)
class WriteFailed:
    key: str
    detail: str = ""

    def __str__(self) -> str:
        return f"write to {self.key!r} failed: {self.detail}"


@dataclass(frozen=True)
class ProfileNotFound:
    profile_id: str

    def __str__(self) -> str:
        return f"profile {self.profile_id!r} not found"


@dataclass(frozen=True)
class ProfileCollectionCorrupt:
    """The stored profile collection exists but cannot be decoded."""

    detail: str = ""

    def __str__(self) -> str:
        return f"stored profile collection is unreadable: {self.detail}"


@dataclass(frozen=True)
class CannotDeleteLastProfile:
    def __str__(self) -> str:
        return "cannot delete the last remaining profile"


ProfileError = (
    ProfileNotFound | ProfileCollectionCorrupt | CannotDeleteLastProfile | ReadFailed | WriteFailed
)
