"""TMDB metadata gateway: series, seasons, recommendations and search."""

import asyncio
import logging
from functools import lru_cache
from operator import attrgetter
from typing import Any, List

import requests
import tmdbsimple as tmdb
from cachetools import TTLCache, cachedmethod
from tmdbsimple.base import TMDB

from watchhive.core.config import get_settings
from watchhive.core.errors import UpstreamFetchError
from watchhive.models.media import Episode, MediaType, Season, TVSeries

logger = logging.getLogger(__name__)


class _PathResource(TMDB):
    """Arbitrary TMDB path, for lookups tmdbsimple has no wrapper for."""

    def get(self, path: str, params: dict[str, Any] | None = None) -> dict:
        return self._GET(path.lstrip("/"), params or {})


def _parse_episode(ep: dict) -> Episode:
    return Episode(
        episode_number=ep["episode_number"],
        name=ep.get("name") or f"Episode {ep['episode_number']}",
        overview=ep.get("overview") or "",
        air_date=ep.get("air_date") or None,
        runtime=ep.get("runtime"),
    )


def _parse_season(info: dict) -> Season:
    episodes = [_parse_episode(ep) for ep in info.get("episodes") or []]
    return Season(
        season_number=info["season_number"],
        name=info.get("name") or f"Season {info['season_number']}",
        episode_count=info.get("episode_count") or len(episodes),
        air_date=info.get("air_date") or None,
        overview=info.get("overview") or "",
        episodes=episodes,
    )


def _parse_series(info: dict) -> TVSeries:
    poster_path = info.get("poster_path")
    return TVSeries(
        id=info["id"],
        title=info.get("name", "Unknown"),
        overview=info.get("overview", ""),
        poster_url=f"https://image.tmdb.org/t/p/w500{poster_path}"
        if poster_path
        else None,
        first_air_date=info.get("first_air_date") or None,
        vote_average=info.get("vote_average", 0.0),
        number_of_seasons=info.get("number_of_seasons", 0),
        number_of_episodes=info.get("number_of_episodes", 0),
        # Specials (season 0) are kept; they are tracked like any other season
        seasons=[
            _parse_season(s)
            for s in info.get("seasons") or []
            if s.get("season_number") is not None
        ],
        status=info.get("status", ""),
    )


class MetadataGateway:
    """Read-only client for the TMDB metadata API.

    Blocking tmdbsimple calls run in a worker thread; every async lookup is
    bounded by ``timeout`` seconds and fails with ``UpstreamFetchError``.
    """

    def __init__(self, api_key: str, timeout: float = 5.0, cache_ttl: int = 1800):
        tmdb.API_KEY = api_key
        tmdb.REQUESTS_TIMEOUT = timeout
        self.timeout = timeout
        self._series_cache: TTLCache = TTLCache(maxsize=100, ttl=cache_ttl)
        self._season_cache: TTLCache = TTLCache(maxsize=500, ttl=cache_ttl)

    # --- synchronous lookups ---

    def fetch_sync(self, path: str, **params: Any) -> dict:
        """GET any TMDB path and return the parsed JSON body."""
        try:
            return _PathResource().get(path, params)
        except (requests.exceptions.RequestException, ValueError) as exc:
            logger.error("TMDB request for %s failed: %s", path, exc)
            raise UpstreamFetchError(f"TMDB request for {path} failed", exc) from exc

    @cachedmethod(attrgetter("_series_cache"))
    def _series_details_sync(self, series_id: int) -> TVSeries:
        try:
            info = tmdb.TV(series_id).info()
            return _parse_series(info)
        except Exception as exc:
            logger.error("Failed to fetch series details for ID %s: %s", series_id, exc)
            raise UpstreamFetchError(
                f"Failed to fetch series details for ID {series_id}", exc
            ) from exc

    @cachedmethod(attrgetter("_season_cache"))
    def _season_sync(self, series_id: int, season_number: int) -> Season:
        try:
            info = tmdb.TV_Seasons(series_id, season_number).info()
            return _parse_season(info)
        except Exception as exc:
            logger.error(
                "Failed to fetch season for ID %s S%s: %s",
                series_id,
                season_number,
                exc,
            )
            raise UpstreamFetchError(
                f"Failed to fetch season for ID {series_id} S{season_number}", exc
            ) from exc

    def _recommendations_sync(
        self, media_type: MediaType, content_id: int
    ) -> List[dict]:
        try:
            if media_type == MediaType.MOVIE:
                data = tmdb.Movies(content_id).recommendations(page=1)
            else:
                data = tmdb.TV(content_id).recommendations(page=1)
        except Exception as exc:
            logger.error(
                "Failed to fetch recommendations for %s %s: %s",
                media_type.value,
                content_id,
                exc,
            )
            raise UpstreamFetchError(
                f"Failed to fetch recommendations for {media_type.value} {content_id}",
                exc,
            ) from exc
        return data.get("results") or []

    def _search_sync(self, query: str, media_type: MediaType | None) -> List[dict]:
        search = tmdb.Search()
        try:
            if media_type == MediaType.MOVIE:
                search.movie(query=query, page=1)
            elif media_type == MediaType.SERIES:
                search.tv(query=query, page=1)
            else:
                search.multi(query=query, page=1)
        except Exception as exc:
            logger.error("Error searching TMDB for '%s': %s", query, exc)
            raise UpstreamFetchError(f"TMDB search for '{query}' failed", exc) from exc
        return list(search.results or [])

    # --- async API ---

    async def _run(self, func, *args):
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            logger.warning("TMDB lookup timed out after %ss", self.timeout)
            raise UpstreamFetchError(
                f"TMDB lookup timed out after {self.timeout}s", exc
            ) from exc

    async def fetch(self, path: str, **params: Any) -> dict:
        return await self._run(lambda: self.fetch_sync(path, **params))

    async def get_series_details(self, series_id: int) -> TVSeries:
        """Series detail including the season list (no episodes)."""
        return await self._run(self._series_details_sync, series_id)

    async def get_season(self, series_id: int, season_number: int) -> Season:
        """Season detail including its episodes."""
        return await self._run(self._season_sync, series_id, season_number)

    async def get_recommendations(
        self, media_type: MediaType, content_id: int
    ) -> List[dict]:
        return await self._run(self._recommendations_sync, media_type, content_id)

    async def search(
        self, query: str, media_type: MediaType | None = None
    ) -> List[dict]:
        return await self._run(self._search_sync, query, media_type)


@lru_cache
def get_metadata_gateway() -> MetadataGateway:
    """Dependency providing the application's gateway instance."""
    settings = get_settings()
    return MetadataGateway(
        api_key=settings.tmdb_api_key,
        timeout=settings.metadata_timeout,
        cache_ttl=settings.metadata_cache_ttl,
    )
