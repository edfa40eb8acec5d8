"""Series progress API: episode, season and series watch state."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from watchhive.core.auth import AuthUser, get_current_user
from watchhive.core.database import get_session
from watchhive.services.progress_store import ProgressStore
from watchhive.services.reconciler import ProgressReconciler
from watchhive.services.tmdb import MetadataGateway, get_metadata_gateway

router = APIRouter(prefix="/series-progress", tags=["series-progress"])


def get_reconciler(
    session: Session = Depends(get_session),
    gateway: MetadataGateway = Depends(get_metadata_gateway),
) -> ProgressReconciler:
    return ProgressReconciler(ProgressStore(session), gateway)


class EpisodeUpdate(BaseModel):
    """Request body for marking a single episode."""

    model_config = ConfigDict(populate_by_name=True)

    season_number: int = Field(alias="seasonNumber", ge=0)
    episode_number: int = Field(alias="episodeNumber", ge=0)
    watched: bool


class SeasonUpdate(BaseModel):
    """Request body for completing or clearing a season.

    ``episodes`` is only used when the metadata service is unavailable.
    """

    model_config = ConfigDict(populate_by_name=True)

    season_number: int = Field(alias="seasonNumber", ge=0)
    completed: bool
    episodes: Optional[List[Any]] = None


class SeriesUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    completed: bool
    seasons_data: Optional[Dict[str, Any]] = Field(default=None, alias="seasonsData")


@router.get("")
async def get_all_progress(
    user: AuthUser = Depends(get_current_user),
    reconciler: ProgressReconciler = Depends(get_reconciler),
):
    """All series progress for the user, most recently watched first."""
    return reconciler.get_all_progress(user.user_id)


@router.get("/{series_id}")
async def get_series_progress(
    series_id: int,
    user: AuthUser = Depends(get_current_user),
    reconciler: ProgressReconciler = Depends(get_reconciler),
):
    return reconciler.get_series_progress(user.user_id, series_id)


@router.post("/{series_id}/episodes")
async def mark_episode(
    series_id: int,
    body: EpisodeUpdate,
    user: AuthUser = Depends(get_current_user),
    reconciler: ProgressReconciler = Depends(get_reconciler),
):
    """Mark an episode as watched or unwatched."""
    return await reconciler.mark_episode(
        user.user_id, series_id, body.season_number, body.episode_number, body.watched
    )


@router.post("/{series_id}/seasons")
async def mark_season(
    series_id: int,
    body: SeasonUpdate,
    user: AuthUser = Depends(get_current_user),
    reconciler: ProgressReconciler = Depends(get_reconciler),
):
    """Mark a season as completed or uncompleted."""
    return await reconciler.mark_season(
        user.user_id, series_id, body.season_number, body.completed, body.episodes
    )


@router.post("/{series_id}/complete")
async def mark_series_complete(
    series_id: int,
    body: SeriesUpdate,
    user: AuthUser = Depends(get_current_user),
    reconciler: ProgressReconciler = Depends(get_reconciler),
):
    """Mark an entire series as completed or uncompleted."""
    return await reconciler.mark_series_complete(
        user.user_id, series_id, body.completed, body.seasons_data
    )
