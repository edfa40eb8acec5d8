"""Series progress tables: series, seasons and episode watch-marks."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SeriesProgress(SQLModel, table=True):
    """One row per (user, series)."""

    __tablename__ = "series_progress"
    __table_args__ = (UniqueConstraint("user_id", "series_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    series_id: int = Field(index=True)
    completed: bool = False
    last_watched: datetime = Field(default_factory=utc_now)


class SeasonProgress(SQLModel, table=True):
    """Per-season completion flag, owned by a SeriesProgress row."""

    __tablename__ = "series_seasons"
    __table_args__ = (UniqueConstraint("series_progress_id", "season_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    series_progress_id: int = Field(foreign_key="series_progress.id", index=True)
    season_number: int = Field(ge=0)
    completed: bool = False


class EpisodeMark(SQLModel, table=True):
    """Presence of a row means the episode was watched."""

    __tablename__ = "series_episodes"
    __table_args__ = (UniqueConstraint("series_season_id", "episode_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    series_season_id: int = Field(foreign_key="series_seasons.id", index=True)
    episode_number: int = Field(ge=0)
    watched_at: datetime = Field(default_factory=utc_now)
