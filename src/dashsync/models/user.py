"""Authenticated operator profile."""

from __future__ import annotations

from pydantic import field_validator

from dashsync.models._base import DashBaseModel, EpochSeconds


class UserProfile(DashBaseModel):
    """Identity returned by ``/auth/login`` and ``/auth/me``."""

    id: str
    username: str
    email: str | None = None
    role: str | None = None
    last_login: EpochSeconds = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> str:
        return str(value)
