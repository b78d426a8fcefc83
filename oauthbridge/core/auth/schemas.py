"""Schemas returned by completed OAuth flows."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class UserProfile(BaseModel):
    """Basic user information fetched from a provider after authorization."""

    provider: str
    user_id: str = ""
    email: str = ""
    name: str = ""
    first_name: str = ""
    last_name: str = ""
    nick_name: str = ""
    description: str = ""
    avatar_url: str = ""
    location: str = ""
    access_token: str = ""
    access_token_secret: str = ""
    refresh_token: str = ""
    expires_at: Optional[datetime] = None
    id_token: str = ""
    raw_data: Dict[str, Any] = Field(default_factory=dict)


def serialize_profile(profile: UserProfile) -> dict:
    """Public view of a profile; credentials stay server-side."""
    return profile.model_dump(
        mode="json",
        exclude={"access_token", "access_token_secret", "refresh_token", "id_token"},
    )


__all__ = ["UserProfile", "serialize_profile"]
