"""Profiles and account removal."""

import logging
from typing import Optional

from sqlmodel import Session, select

from watchhive.core.auth import AuthUser, IdentityClient
from watchhive.core.database import unit_of_work
from watchhive.core.errors import ValidationError
from watchhive.models.library import Profile
from watchhive.services.custom_lists import CustomListService
from watchhive.services.library import LibraryService
from watchhive.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)

MIN_DISPLAY_NAME_LENGTH = 2


class AccountService:
    def __init__(self, session: Session, identity_client: IdentityClient) -> None:
        self.session = session
        self.identity_client = identity_client

    def get_profile(self, user: AuthUser) -> Optional[Profile]:
        with unit_of_work(self.session):
            return self.session.get(Profile, user.user_id)

    def update_profile(self, user: AuthUser, display_name: Optional[str]) -> Profile:
        """Create or update the user's profile in a single transaction."""
        display_name = (display_name or "").strip()
        if len(display_name) < MIN_DISPLAY_NAME_LENGTH:
            raise ValidationError(
                f"Display name must be at least {MIN_DISPLAY_NAME_LENGTH} characters long"
            )

        with unit_of_work(self.session):
            taken = self.session.exec(
                select(Profile).where(
                    Profile.display_name == display_name, Profile.id != user.user_id
                )
            ).first()
            if taken is not None:
                raise ValidationError(
                    "This display name is already taken. Please choose another."
                )

            profile = self.session.get(Profile, user.user_id)
            if profile is None:
                profile = Profile(id=user.user_id, email=user.email, display_name=display_name)
            else:
                profile.display_name = display_name
                if user.email:
                    profile.email = user.email
            self.session.add(profile)

        self.session.refresh(profile)
        return profile

    def delete_account(self, user: AuthUser) -> None:
        """Remove all of the user's data, then their auth identity."""
        with unit_of_work(self.session):
            LibraryService(self.session).delete_all_for_user(user.user_id)
            ProgressStore(self.session).delete_all_for_user(user.user_id)
            CustomListService(self.session).delete_all_for_user(user.user_id)
            profile = self.session.get(Profile, user.user_id)
            if profile is not None:
                self.session.delete(profile)

        logger.info("Deleted data for user %s", user.user_id)
        self.identity_client.delete_identity(user.user_id)
