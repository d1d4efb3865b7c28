"""Tracked account profiles."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(UTC)


class ProfileDisplayMode(StrEnum):
    SINGLE = "single"
    MULTI = "multi"


class ProfileCredentials(BaseModel):
    """Credential bundle for one account."""

    model_config = ConfigDict(extra="ignore")

    session_key: str | None = None
    organization_id: str | None = None
    api_session_key: str | None = None
    api_organization_id: str | None = None

    @property
    def has_session(self) -> bool:
        return bool(self.session_key and self.organization_id)

    @property
    def has_api(self) -> bool:
        return bool(self.api_session_key and self.api_organization_id)


class Profile(BaseModel):
    """One tracked account. Credentials are embedded in the record."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    credentials: ProfileCredentials = Field(default_factory=ProfileCredentials)
    is_selected_for_display: bool = True
    created_at: datetime = Field(default_factory=_now)
    last_used_at: datetime = Field(default_factory=_now)
