import os
from datetime import date, timedelta
from unittest.mock import MagicMock

os.environ.setdefault("TMDB_API_KEY", "test-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from watchhive.core.auth import IdentityClient, get_identity_client
from watchhive.core.database import get_session
from watchhive.core.errors import UpstreamFetchError
from watchhive.main import app
from watchhive.models import library, lists, progress  # noqa: F401
from watchhive.models.media import Episode, MediaType, Season, TVSeries
from watchhive.services.tmdb import get_metadata_gateway

USER_ID = "user-1"
AUTH_HEADERS = {"X-User-Id": USER_ID, "X-User-Email": "user1@example.com"}


def days_ago(days: int = 30) -> str:
    return (date.today() - timedelta(days=days)).isoformat()


def days_ahead(days: int = 30) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def make_season(season_number, episodes, air_date=None) -> Season:
    """``episodes`` is a list of ``(episode_number, air_date)`` pairs."""
    return Season(
        season_number=season_number,
        air_date=air_date,
        episode_count=len(episodes),
        episodes=[Episode(episode_number=n, air_date=d) for n, d in episodes],
    )


class FakeGateway:
    """In-memory stand-in for ``MetadataGateway``."""

    def __init__(self):
        self.series = {}
        self.seasons = {}
        self.recommendations = {}
        self.search_results = {}
        self.failing = set()
        self.calls = []

    def add_series(self, series_id, seasons):
        self.series[series_id] = TVSeries(
            id=series_id,
            title=f"Series {series_id}",
            number_of_seasons=len(seasons),
            seasons=[s.model_copy(update={"episodes": []}) for s in seasons],
        )
        for season in seasons:
            self.seasons[(series_id, season.season_number)] = season

    def _check(self, key):
        self.calls.append(key)
        if key in self.failing:
            raise UpstreamFetchError(f"upstream failure for {key}")

    async def get_series_details(self, series_id):
        self._check(("series", series_id))
        if series_id not in self.series:
            raise UpstreamFetchError(f"series {series_id} unknown")
        return self.series[series_id]

    async def get_season(self, series_id, season_number):
        self._check(("season", series_id, season_number))
        if (series_id, season_number) not in self.seasons:
            raise UpstreamFetchError(f"season {series_id}/{season_number} unknown")
        return self.seasons[(series_id, season_number)]

    async def get_recommendations(self, media_type: MediaType, content_id):
        self._check(("recommendations", media_type, content_id))
        return self.recommendations.get((media_type, content_id), [])

    async def search(self, query, media_type=None):
        self._check(("search", query))
        return self.search_results.get(query, [])


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def identity_client():
    return MagicMock(spec=IdentityClient)


@pytest.fixture
def client(session, gateway, identity_client):
    """TestClient wired to the in-memory store and fake collaborators."""

    def override_session():
        yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_metadata_gateway] = lambda: gateway
    app.dependency_overrides[get_identity_client] = lambda: identity_client
    yield TestClient(app)
    app.dependency_overrides.clear()
