"""API routes for recommendations, watched history, wishlist and the user account."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from watchhive.core.auth import AuthUser, IdentityClient, get_current_user, get_identity_client
from watchhive.core.config import get_settings
from watchhive.core.database import get_session
from watchhive.models.media import MediaType, Recommendation
from watchhive.services.accounts import AccountService
from watchhive.services.library import LibraryService
from watchhive.services.recommendations import RecommendationScorer
from watchhive.services.tmdb import MetadataGateway, get_metadata_gateway

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "watchhive"}


# --- Recommendations ---


class RecommendationRequest(BaseModel):
    """Seeds for a recommendation query."""

    model_config = ConfigDict(populate_by_name=True)

    movie_ids: List[int] = Field(default_factory=list, alias="movieIds")
    series_ids: List[int] = Field(default_factory=list, alias="seriesIds")
    titles: List[str] = Field(default_factory=list)
    media_type: Optional[MediaType] = Field(default=None, alias="mediaType")


class RecommendationResponse(BaseModel):
    recommendations: List[Recommendation]


@router.post("/recommendations", response_model=RecommendationResponse)
async def recommendations(
    request: RecommendationRequest,
    gateway: MetadataGateway = Depends(get_metadata_gateway),
):
    """Merged, ranked recommendations for the given seed titles."""
    scorer = RecommendationScorer(gateway, limit=get_settings().recommendation_limit)
    results = await scorer.recommend(
        movie_ids=request.movie_ids,
        series_ids=request.series_ids,
        titles=request.titles,
        media_type=request.media_type,
    )
    return {"recommendations": results}


# --- Watched & wishlist ---


class LibraryEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: int = Field(alias="itemId")
    media_type: str = Field(alias="mediaType")
    date: Optional[datetime] = Field(default=None, alias="dateWatched")


class WishlistEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: int = Field(alias="itemId")
    media_type: str = Field(alias="mediaType")
    date: Optional[datetime] = Field(default=None, alias="dateAdded")


def get_library(session: Session = Depends(get_session)) -> LibraryService:
    return LibraryService(session)


@router.get("/watched")
async def list_watched(
    user: AuthUser = Depends(get_current_user),
    library: LibraryService = Depends(get_library),
):
    return {"watched": library.list_watched(user.user_id)}


@router.post("/watched")
async def add_watched(
    entry: LibraryEntry,
    user: AuthUser = Depends(get_current_user),
    library: LibraryService = Depends(get_library),
):
    record = library.add_watched(user.user_id, entry.item_id, entry.media_type, entry.date)
    return {"watched": record, "success": True}


@router.delete("/watched")
async def remove_watched(
    item_id: int = Query(..., alias="itemId"),
    media_type: str = Query(..., alias="mediaType"),
    user: AuthUser = Depends(get_current_user),
    library: LibraryService = Depends(get_library),
):
    library.remove_watched(user.user_id, item_id, media_type)
    return {"success": True}


@router.get("/wishlist")
async def list_wishlist(
    user: AuthUser = Depends(get_current_user),
    library: LibraryService = Depends(get_library),
):
    return {"wishlist": library.list_wishlist(user.user_id)}


@router.post("/wishlist")
async def add_to_wishlist(
    entry: WishlistEntry,
    user: AuthUser = Depends(get_current_user),
    library: LibraryService = Depends(get_library),
):
    item = library.add_to_wishlist(user.user_id, entry.item_id, entry.media_type, entry.date)
    return {"wishlist": item, "success": True}


@router.delete("/wishlist")
async def remove_from_wishlist(
    item_id: int = Query(..., alias="itemId"),
    media_type: str = Query(..., alias="mediaType"),
    user: AuthUser = Depends(get_current_user),
    library: LibraryService = Depends(get_library),
):
    library.remove_from_wishlist(user.user_id, item_id, media_type)
    return {"success": True}


# --- User account ---


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = None


def get_accounts(
    session: Session = Depends(get_session),
    identity_client: IdentityClient = Depends(get_identity_client),
) -> AccountService:
    return AccountService(session, identity_client)


@router.get("/user/stats")
async def user_stats(
    user: AuthUser = Depends(get_current_user),
    library: LibraryService = Depends(get_library),
):
    return library.stats(user.user_id)


@router.get("/user/profile")
async def get_profile(
    user: AuthUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_accounts),
):
    profile = accounts.get_profile(user)
    return {
        "user": {
            "id": user.user_id,
            "email": user.email,
            "display_name": profile.display_name if profile else None,
        }
    }


@router.put("/user/profile")
async def update_profile(
    update: ProfileUpdate,
    user: AuthUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_accounts),
):
    profile = accounts.update_profile(user, update.display_name)
    return {
        "success": True,
        "user": {
            "id": profile.id,
            "email": user.email,
            "display_name": profile.display_name,
        },
    }


@router.delete("/user")
async def delete_account(
    user: AuthUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_accounts),
):
    accounts.delete_account(user)
    return {"success": True, "message": "Account deleted successfully"}
