"""Custom list tables."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from watchhive.models.media import MediaType
from watchhive.models.progress import utc_now


class Permission(str, Enum):
    """Collaborator permission on a custom list."""

    VIEWER = "viewer"
    EDITOR = "editor"
    ADMIN = "admin"


class CustomList(SQLModel, table=True):
    __tablename__ = "custom_lists"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    name: str
    description: Optional[str] = None
    is_public: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class CustomListItem(SQLModel, table=True):
    __tablename__ = "custom_list_items"
    __table_args__ = (UniqueConstraint("list_id", "content_id", "media_type"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    list_id: int = Field(foreign_key="custom_lists.id", index=True)
    content_id: int
    media_type: MediaType
    title: str
    date_added: datetime = Field(default_factory=utc_now)


class ListCollaborator(SQLModel, table=True):
    __tablename__ = "list_collaborators"
    __table_args__ = (UniqueConstraint("list_id", "user_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    list_id: int = Field(foreign_key="custom_lists.id", index=True)
    user_id: str = Field(index=True)
    permission: Permission = Permission.VIEWER
    created_at: datetime = Field(default_factory=utc_now)
