"""User row models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from feedsync.shared.constants.validation import DisplayNames


class UserSummary(BaseModel):
    """Public projection of a user row used in lists and joins."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    username: str | None = None
    nickname: str | None = None
    bio: str | None = None
    is_anonymous: bool = False
    school_name: str | None = None

    @property
    def display_name(self) -> str:
        """Name shown next to content authored by this user."""
        if self.is_anonymous:
            return DisplayNames.ANONYMOUS
        return self.nickname or "User"


class UserProfile(UserSummary):
    """Full user row as stored remotely."""

    email: str | None = None
    school_id: str | None = None
    location_radius: int | None = None
    onboarding_completed: bool = False
    created_at: str | None = None
    updated_at: str | None = None


class ProfileStats(BaseModel):
    """Aggregate counters shown on a profile."""

    model_config = ConfigDict(frozen=True)

    post_count: int = Field(default=0, ge=0)
    follower_count: int = Field(default=0, ge=0)
    following_count: int = Field(default=0, ge=0)
