"""Watched history, wishlist and per-user statistics."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func
from sqlmodel import Session, select

from watchhive.core.database import unit_of_work
from watchhive.core.errors import ValidationError
from watchhive.models.library import WatchedContent, WishlistItem
from watchhive.models.media import MediaType
from watchhive.models.progress import SeriesProgress, utc_now


def parse_media_type(value) -> MediaType:
    try:
        return MediaType(value)
    except ValueError:
        raise ValidationError("mediaType must be 'movie' or 'tv'")


def _require_content_id(content_id) -> None:
    if not isinstance(content_id, int) or isinstance(content_id, bool) or content_id <= 0:
        raise ValidationError("itemId must be a positive integer")


class LibraryService:
    """Per-user watched records and wishlist."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # --- watched ---

    def list_watched(self, user_id: str) -> List[WatchedContent]:
        statement = (
            select(WatchedContent)
            .where(WatchedContent.user_id == user_id)
            .order_by(WatchedContent.date_watched.desc())
        )
        with unit_of_work(self.session):
            return list(self.session.exec(statement).all())

    def add_watched(
        self,
        user_id: str,
        content_id: int,
        media_type,
        date_watched: Optional[datetime] = None,
    ) -> WatchedContent:
        """Record a watch; a repeat watch bumps ``times_watched``."""
        _require_content_id(content_id)
        media_type = parse_media_type(media_type)

        with unit_of_work(self.session):
            record = self.session.exec(
                select(WatchedContent).where(
                    WatchedContent.user_id == user_id,
                    WatchedContent.content_id == content_id,
                    WatchedContent.media_type == media_type,
                )
            ).first()
            if record is None:
                record = WatchedContent(
                    user_id=user_id,
                    content_id=content_id,
                    media_type=media_type,
                    date_watched=date_watched or utc_now(),
                    times_watched=1,
                )
            else:
                record.times_watched += 1
                record.date_watched = date_watched or utc_now()
            self.session.add(record)

        self.session.refresh(record)
        return record

    def remove_watched(self, user_id: str, content_id: int, media_type) -> None:
        _require_content_id(content_id)
        media_type = parse_media_type(media_type)
        with unit_of_work(self.session):
            self.session.execute(
                delete(WatchedContent).where(
                    WatchedContent.user_id == user_id,
                    WatchedContent.content_id == content_id,
                    WatchedContent.media_type == media_type,
                )
            )

    # --- wishlist ---

    def list_wishlist(self, user_id: str) -> List[WishlistItem]:
        statement = (
            select(WishlistItem)
            .where(WishlistItem.user_id == user_id)
            .order_by(WishlistItem.date_added.desc())
        )
        with unit_of_work(self.session):
            return list(self.session.exec(statement).all())

    def add_to_wishlist(
        self,
        user_id: str,
        content_id: int,
        media_type,
        date_added: Optional[datetime] = None,
    ) -> WishlistItem:
        """Add an item; adding it twice returns the existing row."""
        _require_content_id(content_id)
        media_type = parse_media_type(media_type)

        with unit_of_work(self.session):
            item = self.session.exec(
                select(WishlistItem).where(
                    WishlistItem.user_id == user_id,
                    WishlistItem.content_id == content_id,
                    WishlistItem.media_type == media_type,
                )
            ).first()
            if item is None:
                item = WishlistItem(
                    user_id=user_id,
                    content_id=content_id,
                    media_type=media_type,
                    date_added=date_added or utc_now(),
                )
                self.session.add(item)

        self.session.refresh(item)
        return item

    def remove_from_wishlist(self, user_id: str, content_id: int, media_type) -> None:
        _require_content_id(content_id)
        media_type = parse_media_type(media_type)
        with unit_of_work(self.session):
            self.session.execute(
                delete(WishlistItem).where(
                    WishlistItem.user_id == user_id,
                    WishlistItem.content_id == content_id,
                    WishlistItem.media_type == media_type,
                )
            )

    # --- stats ---

    def stats(self, user_id: str) -> dict:
        def count(statement) -> int:
            return self.session.exec(statement).one()

        with unit_of_work(self.session):
            return {
                "watchedCount": count(
                    select(func.count()).select_from(WatchedContent).where(
                        WatchedContent.user_id == user_id
                    )
                ),
                "wishlistCount": count(
                    select(func.count()).select_from(WishlistItem).where(
                        WishlistItem.user_id == user_id
                    )
                ),
                "seriesInProgress": count(
                    select(func.count()).select_from(SeriesProgress).where(
                        SeriesProgress.user_id == user_id,
                        SeriesProgress.completed == False,  # noqa: E712
                    )
                ),
                "completedSeries": count(
                    select(func.count()).select_from(SeriesProgress).where(
                        SeriesProgress.user_id == user_id,
                        SeriesProgress.completed == True,  # noqa: E712
                    )
                ),
            }

    # --- account removal ---

    def delete_all_for_user(self, user_id: str) -> None:
        self.session.execute(delete(WatchedContent).where(WatchedContent.user_id == user_id))
        self.session.execute(delete(WishlistItem).where(WishlistItem.user_id == user_id))
        self.session.flush()
