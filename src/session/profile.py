"""
Profile Synchronizer

Mirrors users/{uid} into the client state and edit buffers, and writes the
profile document on sign-up, sign-in and save.

Known race: an incoming remote update overwrites the display-name and
native-language buffers even while the learner has unsaved edits. Setting
PROFILE_GUARD_LOCAL_EDITS keeps dirty buffers instead.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from src.models import Profile, ProfileUpdate, UserSession, profile_path
from src.services.firebase import SERVER_TIMESTAMP, DocumentStoreError, Subscription, friendly_storage_message
from src.session.state import ErrorRaised, ProfileEdited, ProfileReceived, ProfileSaved
from src.session.store import StateStore

logger = logging.getLogger(__name__)

PROFILE_SAVED_MESSAGE = "Profile saved."
PROFILE_INVALID_MESSAGE = "Please enter a display name and a valid language code (e.g. \"en\" or \"pt-BR\")."
PROFILE_SIGNED_OUT_MESSAGE = "You need to be signed in to save your profile."
PROFILE_LOAD_FAILED_MESSAGE = "Could not load your profile. Please refresh and try again."


class ProfileSynchronizer:
    def __init__(self, documents, store: StateStore, guard_local_edits: bool = False,
                 default_language: str = "en", app_logger=None):
        self.documents = documents
        self.store = store
        self.guard_local_edits = guard_local_edits
        self.default_language = default_language
        self.app_logger = app_logger
        self._subscription: Optional[Subscription] = None

    # Listener

    def attach(self, uid: str):
        self.detach()
        self._subscription = self.documents.subscribe_document(
            profile_path(uid), self._on_profile, self._on_error
        )

    def detach(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _on_profile(self, data):
        try:
            profile = Profile.model_validate(data) if data else None
        except ValidationError as e:
            logger.warning(f"⚠️ Malformed profile document ignored: {e}")
            return
        self.store.dispatch(ProfileReceived(profile, guard_local_edits=self.guard_local_edits))

    def _on_error(self, error: DocumentStoreError):
        logger.error(f"❌ Profile listener failed: {error}")
        self.store.dispatch(ErrorRaised(PROFILE_LOAD_FAILED_MESSAGE))

    # Editing

    def edit(self, display_name: Optional[str] = None, native_language: Optional[str] = None):
        self.store.dispatch(ProfileEdited(display_name=display_name, native_language=native_language))

    async def save(self, display_name: Optional[str] = None, native_language: Optional[str] = None) -> bool:
        """
        Persist display name and native language with a partial update.

        Falls back to the edit buffers for values not given. Re-saving the
        stored values writes the same fields again, which changes nothing.

        Returns:
            True if the update was written
        """
        state = self.store.state
        session = state.session
        if session is None:
            self.store.dispatch(ErrorRaised(PROFILE_SIGNED_OUT_MESSAGE))
            return False

        try:
            update = ProfileUpdate(
                display_name=(state.display_name_draft if display_name is None else display_name).strip(),
                native_language=(state.native_language_draft if native_language is None else native_language).strip(),
            )
        except ValidationError:
            self.store.dispatch(ErrorRaised(PROFILE_INVALID_MESSAGE))
            return False

        try:
            await self.documents.update_document(profile_path(session.uid), update.model_dump(by_alias=True))
        except DocumentStoreError as e:
            logger.error(f"❌ Profile save failed for {session.uid}: {e}")
            self.store.dispatch(ErrorRaised(friendly_storage_message(e.code)))
            return False

        self.store.dispatch(ProfileSaved(PROFILE_SAVED_MESSAGE))
        return True

    # Writes driven by authentication

    async def create_for_sign_up(self, user: UserSession):
        """Full profile document for a new email/password account"""
        await self._write(user, {
            "email": user.email,
            "displayName": user.display_name or "",
            "photoURL": user.photo_url or "",
            "nativeLanguage": self.default_language,
            "currentStreak": 0,
            "totalXP": 0,
            "lastLogin": SERVER_TIMESTAMP,
        }, merge=False)

    async def merge_for_social_sign_in(self, user: UserSession):
        """Refresh identity fields from the provider; counters and language are kept"""
        await self._write(user, {
            "email": user.email,
            "displayName": user.display_name or "",
            "photoURL": user.photo_url or "",
            "lastLogin": SERVER_TIMESTAMP,
        }, merge=True)

    async def touch_last_login(self, user: UserSession):
        await self._write(user, {"lastLogin": SERVER_TIMESTAMP}, merge=True)

    async def _write(self, user: UserSession, data, merge: bool):
        try:
            await self.documents.set_document(profile_path(user.uid), data, merge=merge)
        except DocumentStoreError as e:
            # The sign-in itself succeeded; only the profile write is reported
            logger.error(f"❌ Profile write failed for {user.uid}: {e}")
            self.store.dispatch(ErrorRaised(friendly_storage_message(e.code)))
