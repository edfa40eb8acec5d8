"""Persistence for series progress: series rows, seasons and episode marks.

Rows are created lazily (series, then season, then episode). Every write
refreshes the owning series' ``last_watched``. Methods only flush; the
caller owns the transaction (see ``unit_of_work``).
"""

from typing import Iterable, List, Optional

from sqlalchemy import delete
from sqlmodel import Session, select

from watchhive.models.library import WatchedContent
from watchhive.models.media import MediaType
from watchhive.models.progress import EpisodeMark, SeasonProgress, SeriesProgress, utc_now


class ProgressStore:
    """CRUD over ``series_progress``, ``series_seasons`` and ``series_episodes``."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # --- series ---

    def get_series_progress(self, user_id: str, series_id: int) -> Optional[SeriesProgress]:
        statement = select(SeriesProgress).where(
            SeriesProgress.user_id == user_id, SeriesProgress.series_id == series_id
        )
        return self.session.exec(statement).first()

    def get_or_create_series_progress(self, user_id: str, series_id: int) -> SeriesProgress:
        progress = self.get_series_progress(user_id, series_id)
        if progress is None:
            progress = SeriesProgress(
                user_id=user_id, series_id=series_id, completed=False, last_watched=utc_now()
            )
            self.session.add(progress)
            self.session.flush()
        return progress

    def all_series_progress(self, user_id: str) -> List[SeriesProgress]:
        statement = (
            select(SeriesProgress)
            .where(SeriesProgress.user_id == user_id)
            .order_by(SeriesProgress.last_watched.desc())
        )
        return list(self.session.exec(statement).all())

    def touch(self, series_progress_id: int) -> None:
        progress = self.session.get(SeriesProgress, series_progress_id)
        if progress is not None:
            progress.last_watched = utc_now()
            self.session.add(progress)
            self.session.flush()

    def set_series_completed(self, series_progress_id: int, completed: bool) -> None:
        progress = self.session.get(SeriesProgress, series_progress_id)
        progress.completed = completed
        progress.last_watched = utc_now()
        self.session.add(progress)
        self.session.flush()

    # --- seasons ---

    def get_season_progress(
        self, series_progress_id: int, season_number: int
    ) -> Optional[SeasonProgress]:
        statement = select(SeasonProgress).where(
            SeasonProgress.series_progress_id == series_progress_id,
            SeasonProgress.season_number == season_number,
        )
        return self.session.exec(statement).first()

    def get_or_create_season_progress(
        self, series_progress_id: int, season_number: int
    ) -> SeasonProgress:
        season = self.get_season_progress(series_progress_id, season_number)
        if season is None:
            season = SeasonProgress(
                series_progress_id=series_progress_id,
                season_number=season_number,
                completed=False,
            )
            self.session.add(season)
            self.session.flush()
            self.touch(series_progress_id)
        return season

    def list_seasons(self, series_progress_ids: Iterable[int]) -> List[SeasonProgress]:
        ids = list(series_progress_ids)
        if not ids:
            return []
        statement = (
            select(SeasonProgress)
            .where(SeasonProgress.series_progress_id.in_(ids))
            .order_by(SeasonProgress.season_number)
        )
        return list(self.session.exec(statement).all())

    def set_season_completed(self, season_progress_id: int, completed: bool) -> None:
        season = self.session.get(SeasonProgress, season_progress_id)
        season.completed = completed
        self.session.add(season)
        self.session.flush()
        self.touch(season.series_progress_id)

    # --- episodes ---

    def list_episodes(self, season_progress_ids: Iterable[int]) -> List[EpisodeMark]:
        ids = list(season_progress_ids)
        if not ids:
            return []
        statement = (
            select(EpisodeMark)
            .where(EpisodeMark.series_season_id.in_(ids))
            .order_by(EpisodeMark.episode_number)
        )
        return list(self.session.exec(statement).all())

    def episode_numbers(self, season_progress_id: int) -> List[int]:
        return [mark.episode_number for mark in self.list_episodes([season_progress_id])]

    def set_episode_watched(
        self, season_progress_id: int, episode_number: int, watched: bool
    ) -> bool:
        """Insert or delete the mark. Returns False when already in that state."""
        statement = select(EpisodeMark).where(
            EpisodeMark.series_season_id == season_progress_id,
            EpisodeMark.episode_number == episode_number,
        )
        existing = self.session.exec(statement).first()
        changed = False
        if watched and existing is None:
            self.session.add(
                EpisodeMark(series_season_id=season_progress_id, episode_number=episode_number)
            )
            changed = True
        elif not watched and existing is not None:
            self.session.delete(existing)
            changed = True
        self.session.flush()
        self._touch_for_season(season_progress_id)
        return changed

    def replace_episodes(self, season_progress_id: int, episode_numbers: Iterable[int]) -> None:
        """Make the season's marks exactly ``episode_numbers``."""
        self.session.execute(
            delete(EpisodeMark).where(EpisodeMark.series_season_id == season_progress_id)
        )
        watched_at = utc_now()
        for number in sorted(set(episode_numbers)):
            self.session.add(
                EpisodeMark(
                    series_season_id=season_progress_id,
                    episode_number=number,
                    watched_at=watched_at,
                )
            )
        self.session.flush()
        self._touch_for_season(season_progress_id)

    def clear_episodes(self, season_progress_id: int) -> None:
        self.replace_episodes(season_progress_id, [])

    def _touch_for_season(self, season_progress_id: int) -> None:
        season = self.session.get(SeasonProgress, season_progress_id)
        if season is not None:
            self.touch(season.series_progress_id)

    # --- watched_content mirror ---

    def upsert_watched_series(self, user_id: str, series_id: int) -> WatchedContent:
        statement = select(WatchedContent).where(
            WatchedContent.user_id == user_id,
            WatchedContent.content_id == series_id,
            WatchedContent.media_type == MediaType.SERIES,
        )
        record = self.session.exec(statement).first()
        if record is None:
            record = WatchedContent(
                user_id=user_id, content_id=series_id, media_type=MediaType.SERIES
            )
        else:
            record.date_watched = utc_now()
        self.session.add(record)
        self.session.flush()
        return record

    def delete_watched_series(self, user_id: str, series_id: int) -> None:
        self.session.execute(
            delete(WatchedContent).where(
                WatchedContent.user_id == user_id,
                WatchedContent.content_id == series_id,
                WatchedContent.media_type == MediaType.SERIES,
            )
        )
        self.session.flush()

    # --- account removal ---

    def delete_all_for_user(self, user_id: str) -> None:
        """Remove every progress row the user owns (episodes, seasons, series)."""
        progress_ids = [p.id for p in self.all_series_progress(user_id)]
        season_ids = [s.id for s in self.list_seasons(progress_ids)]
        if season_ids:
            self.session.execute(
                delete(EpisodeMark).where(EpisodeMark.series_season_id.in_(season_ids))
            )
        if progress_ids:
            self.session.execute(
                delete(SeasonProgress).where(
                    SeasonProgress.series_progress_id.in_(progress_ids)
                )
            )
        self.session.execute(delete(SeriesProgress).where(SeriesProgress.user_id == user_id))
        self.session.flush()
