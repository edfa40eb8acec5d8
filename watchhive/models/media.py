"""Media models for TMDB data."""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel


class MediaType(str, Enum):
    """Media type of a title."""

    MOVIE = "movie"
    SERIES = "tv"


class Episode(BaseModel):
    """An episode in a TV series."""

    episode_number: int
    name: str = ""
    overview: str = ""
    air_date: Optional[str] = None
    runtime: Optional[int] = None


class Season(BaseModel):
    """A season of a TV series."""

    season_number: int
    name: str = ""
    episode_count: int = 0
    episodes: List[Episode] = []
    air_date: Optional[str] = None
    overview: str = ""


class TVSeries(BaseModel):
    """A TV series with its season list (episodes are fetched per season)."""

    id: int
    title: str
    overview: str = ""
    poster_url: Optional[str] = None
    first_air_date: Optional[str] = None
    vote_average: float = 0.0
    number_of_seasons: int = 0
    number_of_episodes: int = 0
    seasons: List[Season] = []
    status: str = ""  # e.g., "Returning Series", "Ended"


class Recommendation(BaseModel):
    """A ranked recommendation returned to the client."""

    id: int
    media_type: MediaType
    title: str
    overview: str = ""
    poster_path: Optional[str] = None
    release_date: Optional[str] = None
    vote_average: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    source_ids: List[int] = []
    similarity: Optional[float] = None
