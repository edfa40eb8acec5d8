"""Series progress reconciliation.

Keeps episode marks, season completion flags and the series completion flag
consistent when a user marks or unmarks an episode, a season or a whole
series. Completion operations take the authoritative episode list from the
metadata gateway and only ever mark released episodes.

Gateway failures inside a completion are recovered locally: the operation
falls back to caller-provided data, or to writing the completion flag
without touching episode rows. Only store failures fail the request.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from watchhive.core.database import unit_of_work
from watchhive.core.errors import NotFoundError, UnreleasedEpisodeError, UpstreamFetchError, ValidationError
from watchhive.models.progress import SeriesProgress
from watchhive.services.progress_store import ProgressStore
from watchhive.services.release import is_released, is_season_released, released_episodes
from watchhive.services.tmdb import MetadataGateway

logger = logging.getLogger(__name__)

# season_number -> released episode numbers, or None for "flag only"
CompletionPlan = Dict[int, Optional[List[int]]]


def _require_non_negative(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer")


def _episode_numbers(entries: Iterable[Any], release_filter: bool = False) -> List[int]:
    """Episode numbers from ints or ``{"episode_number": ..}`` dicts."""
    numbers = []
    for entry in entries:
        if isinstance(entry, dict):
            if release_filter and not is_released(entry):
                continue
            entry = entry.get("episode_number")
        if not isinstance(entry, int) or isinstance(entry, bool) or entry < 0:
            raise ValidationError("Episode numbers must be non-negative integers")
        numbers.append(entry)
    return numbers


def _normalize_seasons_fallback(seasons_data: Optional[dict]) -> Dict[int, List[int]]:
    """``{season: [eps] | {"episodes": [eps]}}`` -> ``{int: [int]}``."""
    normalized: Dict[int, List[int]] = {}
    for key, value in (seasons_data or {}).items():
        try:
            season_number = int(key)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid season number in seasonsData: {key!r}")
        _require_non_negative("seasonNumber", season_number)
        if isinstance(value, dict):
            value = value.get("episodes") or []
        normalized[season_number] = _episode_numbers(value or [])
    return normalized


class ProgressReconciler:
    """State machine over series/season/episode progress for one user."""

    def __init__(self, store: ProgressStore, gateway: MetadataGateway) -> None:
        self.store = store
        self.gateway = gateway

    # --- transitions ---

    async def mark_episode(
        self,
        user_id: str,
        series_id: int,
        season_number: int,
        episode_number: int,
        watched: bool,
    ) -> dict:
        """Mark or unmark a single episode."""
        _require_non_negative("seriesId", series_id)
        _require_non_negative("seasonNumber", season_number)
        _require_non_negative("episodeNumber", episode_number)

        if watched:
            await self._check_episode_released(series_id, season_number, episode_number)

        store = self.store
        with unit_of_work(store.session):
            progress = store.get_or_create_series_progress(user_id, series_id)
            season = store.get_or_create_season_progress(progress.id, season_number)
            if season.completed and not watched:
                store.set_season_completed(season.id, False)
            store.set_episode_watched(season.id, episode_number, watched)
            store.touch(progress.id)

        return {"success": True}

    async def mark_season(
        self,
        user_id: str,
        series_id: int,
        season_number: int,
        completed: bool,
        episodes_fallback: Optional[List[Any]] = None,
    ) -> dict:
        """Mark a season complete (released episodes only) or clear it."""
        _require_non_negative("seriesId", series_id)
        _require_non_negative("seasonNumber", season_number)

        released = None
        if completed:
            released = await self._released_episode_numbers(
                series_id, season_number, episodes_fallback
            )

        store = self.store
        with unit_of_work(store.session):
            progress = store.get_or_create_series_progress(user_id, series_id)
            season = store.get_or_create_season_progress(progress.id, season_number)
            if completed:
                self._complete_season(season.id, released)
            else:
                store.clear_episodes(season.id)
                store.set_season_completed(season.id, False)
            store.touch(progress.id)

        return {"success": True}

    async def mark_series_complete(
        self,
        user_id: str,
        series_id: int,
        completed: bool,
        seasons_fallback: Optional[dict] = None,
    ) -> dict:
        """Mark a whole series complete across every released season, or clear it."""
        _require_non_negative("seriesId", series_id)

        plan: CompletionPlan = {}
        if completed:
            plan = await self._series_completion_plan(series_id, seasons_fallback)

        store = self.store
        with unit_of_work(store.session):
            progress = store.get_or_create_series_progress(user_id, series_id)
            store.set_series_completed(progress.id, completed)
            if completed:
                for season_number in sorted(plan):
                    season = store.get_or_create_season_progress(progress.id, season_number)
                    self._complete_season(season.id, plan[season_number])
                store.upsert_watched_series(user_id, series_id)
            else:
                for season in store.list_seasons([progress.id]):
                    store.clear_episodes(season.id)
                    store.set_season_completed(season.id, False)
                store.delete_watched_series(user_id, series_id)

        return {"success": True}

    # --- queries ---

    def get_series_progress(self, user_id: str, series_id: int) -> dict:
        with unit_of_work(self.store.session):
            progress = self.store.get_series_progress(user_id, series_id)
            if progress is None:
                return {
                    "seriesId": series_id,
                    "completed": False,
                    "lastWatched": None,
                    "seasons": {},
                }
            return self._build_progress_map([progress])[progress.series_id]

    def get_all_progress(self, user_id: str) -> Dict[int, dict]:
        with unit_of_work(self.store.session):
            return self._build_progress_map(self.store.all_series_progress(user_id))

    # --- helpers ---

    def _build_progress_map(self, progress_rows: List[SeriesProgress]) -> Dict[int, dict]:
        seasons = self.store.list_seasons(p.id for p in progress_rows)
        marks = self.store.list_episodes(s.id for s in seasons)

        episodes_by_season: Dict[int, List[int]] = {}
        for mark in marks:
            episodes_by_season.setdefault(mark.series_season_id, []).append(mark.episode_number)

        seasons_by_progress: Dict[int, dict] = {}
        for season in seasons:
            seasons_by_progress.setdefault(season.series_progress_id, {})[season.season_number] = {
                "episodes": sorted(episodes_by_season.get(season.id, [])),
                "completed": season.completed,
            }

        result: Dict[int, dict] = {}
        for progress in progress_rows:
            result[progress.series_id] = {
                "seriesId": progress.series_id,
                "completed": progress.completed,
                "lastWatched": progress.last_watched.isoformat() if progress.last_watched else None,
                "seasons": seasons_by_progress.get(progress.id, {}),
            }
        return result

    def _complete_season(self, season_progress_id: int, released: Optional[List[int]]) -> None:
        store = self.store
        if released is None:
            # No authoritative episode list: write the flag, leave marks alone
            store.set_season_completed(season_progress_id, True)
        elif released:
            store.replace_episodes(season_progress_id, released)
            store.set_season_completed(season_progress_id, True)
        else:
            # Nothing has aired yet, so the season cannot be complete
            store.set_season_completed(season_progress_id, False)

    async def _check_episode_released(
        self, series_id: int, season_number: int, episode_number: int
    ) -> None:
        try:
            season = await self.gateway.get_season(series_id, season_number)
        except UpstreamFetchError as exc:
            logger.warning(
                "Release check skipped for %s S%sE%s: %s",
                series_id,
                season_number,
                episode_number,
                exc,
            )
            return

        episode = next(
            (ep for ep in season.episodes if ep.episode_number == episode_number), None
        )
        if episode is None:
            raise NotFoundError(
                f"Episode {episode_number} of season {season_number} is not catalogued yet"
            )
        if not is_released(episode, season):
            raise UnreleasedEpisodeError(
                f"Episode {episode_number} of season {season_number} has not aired yet"
            )

    async def _released_episode_numbers(
        self,
        series_id: int,
        season_number: int,
        episodes_fallback: Optional[List[Any]],
    ) -> Optional[List[int]]:
        """Released episode numbers of a season, or None to write the flag only."""
        # Parse caller data before any fetch so malformed input is rejected early
        fallback = _episode_numbers(episodes_fallback or [], release_filter=True)
        try:
            season = await self.gateway.get_season(series_id, season_number)
        except UpstreamFetchError as exc:
            logger.warning(
                "Recovered from season fetch failure for %s S%s: %s",
                series_id,
                season_number,
                exc,
            )
            if episodes_fallback:
                return fallback
            return None
        return [ep.episode_number for ep in released_episodes(season.episodes, season)]

    async def _series_completion_plan(
        self, series_id: int, seasons_fallback: Optional[dict]
    ) -> CompletionPlan:
        fallback = _normalize_seasons_fallback(seasons_fallback)

        try:
            series = await self.gateway.get_series_details(series_id)
        except UpstreamFetchError as exc:
            logger.warning(
                "Recovered from series fetch failure for %s, using caller data: %s",
                series_id,
                exc,
            )
            return {number: (eps or None) for number, eps in fallback.items()}

        async def plan_season(season_number: int):
            try:
                season = await self.gateway.get_season(series_id, season_number)
            except UpstreamFetchError as exc:
                logger.warning(
                    "Recovered from season fetch failure for %s S%s: %s",
                    series_id,
                    season_number,
                    exc,
                )
                return season_number, (fallback.get(season_number) or None)
            released = released_episodes(season.episodes, season)
            return season_number, [ep.episode_number for ep in released]

        aired = [s.season_number for s in series.seasons if is_season_released(s)]
        results = await asyncio.gather(*[plan_season(n) for n in aired])
        return dict(results)
