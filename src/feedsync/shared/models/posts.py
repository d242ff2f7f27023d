"""Post and comment row models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Post(BaseModel):
    """A location-tagged post as returned by the feed procedure."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    user_id: str
    content: str
    latitude: float | None = None
    longitude: float | None = None
    location_name: str | None = None
    score: int = 0
    comment_count: int = 0
    created_at: str | None = None
    distance_meters: float | None = None
    author_nickname: str | None = None


class Comment(BaseModel):
    """A comment on a post."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    post_id: str
    user_id: str
    content: str
    score: int = 0
    created_at: str | None = None
    author_nickname: str | None = None
