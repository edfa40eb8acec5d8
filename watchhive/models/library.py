"""Watched history, wishlist and profile tables."""

from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from watchhive.models.media import MediaType
from watchhive.models.progress import utc_now


class WatchedContent(SQLModel, table=True):
    """Unified watched record for movies and completed series."""

    __tablename__ = "watched_content"
    __table_args__ = (UniqueConstraint("user_id", "content_id", "media_type"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    content_id: int
    media_type: MediaType
    date_watched: datetime = Field(default_factory=utc_now)
    times_watched: int = 1


class WishlistItem(SQLModel, table=True):
    __tablename__ = "wishlist"
    __table_args__ = (UniqueConstraint("user_id", "content_id", "media_type"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    content_id: int
    media_type: MediaType
    date_added: datetime = Field(default_factory=utc_now)


class Profile(SQLModel, table=True):
    """Public profile of an auth identity; ``id`` is the auth user id."""

    __tablename__ = "profiles"

    id: str = Field(primary_key=True)
    email: Optional[str] = None
    display_name: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)
