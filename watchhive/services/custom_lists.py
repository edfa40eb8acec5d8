"""Custom lists, their items and collaborators.

Access rules:
- the owner can do everything;
- ``admin`` collaborators can edit list details and manage collaborators;
- ``editor`` and ``admin`` collaborators can add and remove items;
- any collaborator, and anyone for a public list, can view items;
- only the owner can delete the list.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import delete
from sqlmodel import Session, select

from watchhive.core.database import unit_of_work
from watchhive.core.errors import ForbiddenError, NotFoundError, ValidationError
from watchhive.models.lists import CustomList, CustomListItem, ListCollaborator, Permission
from watchhive.models.progress import utc_now
from watchhive.services.library import parse_media_type

logger = logging.getLogger(__name__)

_EDIT_ITEMS = (Permission.EDITOR, Permission.ADMIN)
_MANAGE = (Permission.ADMIN,)


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def _parse_permission(value) -> Permission:
    try:
        return Permission(value)
    except ValueError:
        raise ValidationError("Invalid permission. Must be viewer, editor, or admin")


class CustomListService:
    def __init__(self, session: Session) -> None:
        self.session = session

    # --- access checks ---

    def _get_list(self, list_id: int) -> CustomList:
        custom_list = self.session.get(CustomList, list_id)
        if custom_list is None:
            raise NotFoundError(f"List {list_id} not found")
        return custom_list

    def _collaborator(self, list_id: int, user_id: str) -> Optional[ListCollaborator]:
        return self.session.exec(
            select(ListCollaborator).where(
                ListCollaborator.list_id == list_id, ListCollaborator.user_id == user_id
            )
        ).first()

    def _require(
        self,
        custom_list: CustomList,
        user_id: str,
        permissions: Iterable[Permission] = (),
        allow_public: bool = False,
        any_collaborator: bool = False,
    ) -> None:
        if custom_list.user_id == user_id:
            return
        if allow_public and custom_list.is_public:
            return
        collaborator = self._collaborator(custom_list.id, user_id)
        if collaborator is not None and (
            any_collaborator or collaborator.permission in tuple(permissions)
        ):
            return
        raise ForbiddenError("Forbidden")

    # --- lists ---

    def lists_for_user(self, user_id: str, include_public: bool = False) -> List[CustomList]:
        with unit_of_work(self.session):
            lists = list(
                self.session.exec(
                    select(CustomList)
                    .where(CustomList.user_id == user_id)
                    .order_by(CustomList.created_at.desc())
                ).all()
            )
            if include_public:
                lists += self.session.exec(
                    select(CustomList)
                    .where(CustomList.is_public == True, CustomList.user_id != user_id)  # noqa: E712
                    .order_by(CustomList.created_at.desc())
                ).all()
            return lists

    def create_list(
        self,
        user_id: str,
        name: Optional[str],
        description: Optional[str] = None,
        is_public: bool = False,
    ) -> CustomList:
        name = _clean_text(name)
        if not name:
            raise ValidationError("List name is required")

        custom_list = CustomList(
            user_id=user_id,
            name=name,
            description=_clean_text(description),
            is_public=bool(is_public),
        )
        with unit_of_work(self.session):
            self.session.add(custom_list)
        self.session.refresh(custom_list)
        return custom_list

    def get_list(self, user_id: str, list_id: int) -> dict:
        """The list with its items, newest first."""
        with unit_of_work(self.session):
            custom_list = self._get_list(list_id)
            self._require(custom_list, user_id, allow_public=True, any_collaborator=True)
            items = self._items(list_id)
            return {**custom_list.model_dump(), "items": [i.model_dump() for i in items]}

    def update_list(
        self,
        user_id: str,
        list_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        is_public: Optional[bool] = None,
        clear_description: bool = False,
    ) -> CustomList:
        with unit_of_work(self.session):
            custom_list = self._get_list(list_id)
            self._require(custom_list, user_id, _MANAGE)

            if name is not None:
                name = _clean_text(name)
                if not name:
                    raise ValidationError("List name cannot be empty")
                custom_list.name = name
            if description is not None or clear_description:
                custom_list.description = _clean_text(description)
            if is_public is not None:
                custom_list.is_public = is_public
            custom_list.updated_at = utc_now()
            self.session.add(custom_list)

        self.session.refresh(custom_list)
        return custom_list

    def delete_list(self, user_id: str, list_id: int) -> None:
        with unit_of_work(self.session):
            custom_list = self._get_list(list_id)
            if custom_list.user_id != user_id:
                raise ForbiddenError("Only the owner can delete a list")
            self._delete_lists([list_id])

    def _delete_lists(self, list_ids: List[int]) -> None:
        if not list_ids:
            return
        self.session.execute(delete(CustomListItem).where(CustomListItem.list_id.in_(list_ids)))
        self.session.execute(
            delete(ListCollaborator).where(ListCollaborator.list_id.in_(list_ids))
        )
        self.session.execute(delete(CustomList).where(CustomList.id.in_(list_ids)))
        self.session.flush()

    # --- items ---

    def _items(self, list_id: int) -> List[CustomListItem]:
        return list(
            self.session.exec(
                select(CustomListItem)
                .where(CustomListItem.list_id == list_id)
                .order_by(CustomListItem.date_added.desc())
            ).all()
        )

    def list_items(self, user_id: str, list_id: int) -> List[CustomListItem]:
        with unit_of_work(self.session):
            custom_list = self._get_list(list_id)
            self._require(custom_list, user_id, allow_public=True, any_collaborator=True)
            return self._items(list_id)

    def add_item(
        self,
        user_id: str,
        list_id: int,
        content_id: int,
        media_type,
        title: Optional[str],
    ) -> CustomListItem:
        title = _clean_text(title)
        if not content_id or not title:
            raise ValidationError("contentId, mediaType, and title are required")
        media_type = parse_media_type(media_type)

        with unit_of_work(self.session):
            custom_list = self._get_list(list_id)
            self._require(custom_list, user_id, _EDIT_ITEMS)

            item = self.session.exec(
                select(CustomListItem).where(
                    CustomListItem.list_id == list_id,
                    CustomListItem.content_id == content_id,
                    CustomListItem.media_type == media_type,
                )
            ).first()
            if item is None:
                item = CustomListItem(
                    list_id=list_id, content_id=content_id, media_type=media_type, title=title
                )
                self.session.add(item)
                custom_list.updated_at = utc_now()
                self.session.add(custom_list)

        self.session.refresh(item)
        return item

    def remove_item(self, user_id: str, list_id: int, content_id: int, media_type) -> None:
        media_type = parse_media_type(media_type)
        with unit_of_work(self.session):
            custom_list = self._get_list(list_id)
            self._require(custom_list, user_id, _EDIT_ITEMS)
            self.session.execute(
                delete(CustomListItem).where(
                    CustomListItem.list_id == list_id,
                    CustomListItem.content_id == content_id,
                    CustomListItem.media_type == media_type,
                )
            )

    # --- collaborators ---

    def list_collaborators(self, user_id: str, list_id: int) -> List[ListCollaborator]:
        with unit_of_work(self.session):
            custom_list = self._get_list(list_id)
            self._require(custom_list, user_id, any_collaborator=True)
            return list(
                self.session.exec(
                    select(ListCollaborator)
                    .where(ListCollaborator.list_id == list_id)
                    .order_by(ListCollaborator.created_at)
                ).all()
            )

    def add_collaborator(
        self, user_id: str, list_id: int, collaborator_id: Optional[str], permission
    ) -> ListCollaborator:
        """Add a collaborator, or change the permission of an existing one."""
        if not collaborator_id or permission is None:
            raise ValidationError("userId and permission are required")
        permission = _parse_permission(permission)

        with unit_of_work(self.session):
            custom_list = self._get_list(list_id)
            self._require(custom_list, user_id, _MANAGE)
            if collaborator_id == custom_list.user_id:
                raise ValidationError("The list owner cannot be added as a collaborator")

            collaborator = self._collaborator(list_id, collaborator_id)
            if collaborator is None:
                collaborator = ListCollaborator(
                    list_id=list_id, user_id=collaborator_id, permission=permission
                )
            else:
                collaborator.permission = permission
            self.session.add(collaborator)

        self.session.refresh(collaborator)
        logger.info(
            "User %s granted %s on list %s", collaborator_id, permission.value, list_id
        )
        return collaborator

    def remove_collaborator(self, user_id: str, list_id: int, collaborator_id: str) -> None:
        if not collaborator_id:
            raise ValidationError("userId is required")
        with unit_of_work(self.session):
            custom_list = self._get_list(list_id)
            self._require(custom_list, user_id, _MANAGE)
            self.session.execute(
                delete(ListCollaborator).where(
                    ListCollaborator.list_id == list_id,
                    ListCollaborator.user_id == collaborator_id,
                )
            )

    # --- account removal ---

    def delete_all_for_user(self, user_id: str) -> None:
        """Drop the user's own lists and their memberships on other lists."""
        owned = [
            row.id
            for row in self.session.exec(
                select(CustomList).where(CustomList.user_id == user_id)
            ).all()
        ]
        self._delete_lists(owned)
        self.session.execute(delete(ListCollaborator).where(ListCollaborator.user_id == user_id))
        self.session.flush()
