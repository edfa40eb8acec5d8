"""Custom lists API: lists, list items and collaborators."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from watchhive.core.auth import AuthUser, get_current_user
from watchhive.core.database import get_session
from watchhive.services.custom_lists import CustomListService

router = APIRouter(prefix="/custom-lists", tags=["custom-lists"])


def get_list_service(session: Session = Depends(get_session)) -> CustomListService:
    return CustomListService(session)


class ListCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    is_public: bool = Field(default=False, alias="isPublic")


class ListUpdate(BaseModel):
    """Partial update; an explicit ``"description": null`` clears the description."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    is_public: Optional[bool] = Field(default=None, alias="isPublic")


class ItemCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content_id: Optional[int] = Field(default=None, alias="contentId")
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    title: Optional[str] = None


class CollaboratorUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")
    permission: Optional[str] = None


@router.get("")
async def list_custom_lists(
    include_public: bool = Query(False, alias="includePublic"),
    user: AuthUser = Depends(get_current_user),
    lists: CustomListService = Depends(get_list_service),
):
    return {"lists": lists.lists_for_user(user.user_id, include_public=include_public)}


@router.post("")
async def create_custom_list(
    body: ListCreate,
    user: AuthUser = Depends(get_current_user),
    lists: CustomListService = Depends(get_list_service),
):
    created = lists.create_list(user.user_id, body.name, body.description, body.is_public)
    return {"list": created, "success": True}


@router.get("/{list_id}")
async def get_custom_list(
    list_id: int,
    user: AuthUser = Depends(get_current_user),
    lists: CustomListService = Depends(get_list_service),
):
    return {"list": lists.get_list(user.user_id, list_id)}


@router.put("/{list_id}")
async def update_custom_list(
    list_id: int,
    body: ListUpdate,
    user: AuthUser = Depends(get_current_user),
    lists: CustomListService = Depends(get_list_service),
):
    updated = lists.update_list(
        user.user_id,
        list_id,
        name=body.name,
        description=body.description,
        is_public=body.is_public,
        clear_description="description" in body.model_fields_set and body.description is None,
    )
    return {"list": updated, "success": True}


@router.delete("/{list_id}")
async def delete_custom_list(
    list_id: int,
    user: AuthUser = Depends(get_current_user),
    lists: CustomListService = Depends(get_list_service),
):
    lists.delete_list(user.user_id, list_id)
    return {"success": True}


# --- Items ---


@router.get("/{list_id}/items")
async def list_items(
    list_id: int,
    user: AuthUser = Depends(get_current_user),
    lists: CustomListService = Depends(get_list_service),
):
    return {"items": lists.list_items(user.user_id, list_id)}


@router.post("/{list_id}/items")
async def add_item(
    list_id: int,
    body: ItemCreate,
    user: AuthUser = Depends(get_current_user),
    lists: CustomListService = Depends(get_list_service),
):
    item = lists.add_item(user.user_id, list_id, body.content_id, body.media_type, body.title)
    return {"item": item, "success": True}


@router.delete("/{list_id}/items")
async def remove_item(
    list_id: int,
    content_id: int = Query(..., alias="contentId"),
    media_type: str = Query(..., alias="mediaType"),
    user: AuthUser = Depends(get_current_user),
    lists: CustomListService = Depends(get_list_service),
):
    lists.remove_item(user.user_id, list_id, content_id, media_type)
    return {"success": True}


# --- Collaborators ---


@router.get("/{list_id}/collaborators")
async def list_collaborators(
    list_id: int,
    user: AuthUser = Depends(get_current_user),
    lists: CustomListService = Depends(get_list_service),
):
    return {"collaborators": lists.list_collaborators(user.user_id, list_id)}


@router.post("/{list_id}/collaborators")
async def add_collaborator(
    list_id: int,
    body: CollaboratorUpdate,
    user: AuthUser = Depends(get_current_user),
    lists: CustomListService = Depends(get_list_service),
):
    collaborator = lists.add_collaborator(user.user_id, list_id, body.user_id, body.permission)
    return {"collaborator": collaborator, "success": True}


@router.delete("/{list_id}/collaborators")
async def remove_collaborator(
    list_id: int,
    collaborator_id: str = Query(..., alias="userId"),
    user: AuthUser = Depends(get_current_user),
    lists: CustomListService = Depends(get_list_service),
):
    lists.remove_collaborator(user.user_id, list_id, collaborator_id)
    return {"success": True}
