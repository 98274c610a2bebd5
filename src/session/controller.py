"""
Client session: everything one browser connection needs.

A ClientSession is built per WebSocket connection from injected services
(AuthClient, document store, event emitter) and owns the view state, the
auth-state subscription and every document listener for that connection.
"""

import logging
from typing import Any, Callable, Dict, Optional

from src.config.limits import PASSWORD_MIN_LENGTH
from src.services.auth_errors import GENERIC_AUTH_MESSAGE, friendly_auth_message
from src.services.events import EVENT_STATE_CHANGED
from src.services.identity import SOCIAL_PROVIDERS, AuthClient, AuthError, ProviderCredential
from src.session.browser import StoryBrowser
from src.session.linking import LinkingCoordinator
from src.session.observer import SessionObserver
from src.session.profile import ProfileSynchronizer
from src.session.state import AppState, AttemptStarted, ErrorRaised, snapshot
from src.session.store import StateStore

logger = logging.getLogger(__name__)

MISSING_CREDENTIALS_MESSAGE = "Please enter your email and password."


class ClientSession:
    def __init__(self, client_id: str, auth: AuthClient, documents, emitter=None,
                 guard_local_edits: bool = False, default_language: str = "en", app_logger=None):
        self.client_id = client_id
        self.auth = auth
        self.emitter = emitter
        self.app_logger = app_logger

        self.store = StateStore()
        self.profile = ProfileSynchronizer(
            documents, self.store,
            guard_local_edits=guard_local_edits,
            default_language=default_language,
            app_logger=app_logger,
        )
        self.browser = StoryBrowser(documents, self.store)
        self.linking = LinkingCoordinator(auth, self.store, app_logger=app_logger)
        self.observer = SessionObserver(auth, self.store, self.profile, self.browser)
        self._unsubscribe_store = self.store.subscribe(self._publish)

    @property
    def state(self) -> AppState:
        return self.store.state

    def start(self):
        self.observer.start()

    def close(self):
        self.observer.stop()
        self._unsubscribe_store()

    def subscribe(self, callback: Callable[[AppState], None]) -> Callable[[], None]:
        return self.store.subscribe(callback)

    def snapshot(self) -> Dict[str, Any]:
        return snapshot(self.store.state)

    def _publish(self, state: AppState):
        if self.emitter is not None:
            self.emitter.emit(EVENT_STATE_CHANGED, self.client_id, snapshot(state))

    def _fail(self, message: str):
        self.store.dispatch(ErrorRaised(message))

    def report_unexpected(self, error: Exception):
        """Outermost handler for failures nothing else caught"""
        logger.error(f"❌ Unexpected error in session {self.client_id}: {error}", exc_info=error)
        self._fail(GENERIC_AUTH_MESSAGE)

    # Top-level authentication

    async def sign_up(self, email: str, password: str) -> bool:
        self.store.dispatch(AttemptStarted())
        if not email or not password:
            self._fail(MISSING_CREDENTIALS_MESSAGE)
            return False
        if len(password) < PASSWORD_MIN_LENGTH:
            self._fail(friendly_auth_message("weak-password"))
            return False
        try:
            user = await self.auth.create_user_with_email_and_password(email, password)
        except AuthError as e:
            logger.error(f"❌ Error signing up: {e.code} {e.message}")
            self._fail(friendly_auth_message(e.code))
            return False
        if self.app_logger:
            self.app_logger.auth_event("signed up", user.email)
        await self.profile.create_for_sign_up(user)
        return True

    async def sign_in(self, email: str, password: str) -> bool:
        self.store.dispatch(AttemptStarted())
        if not email or not password:
            self._fail(MISSING_CREDENTIALS_MESSAGE)
            return False
        try:
            user = await self.auth.sign_in_with_email_and_password(email, password)
        except AuthError as e:
            logger.error(f"❌ Error signing in: {e.code} {e.message}")
            self._fail(friendly_auth_message(e.code))
            return False
        if self.app_logger:
            self.app_logger.auth_event("signed in", user.email)
        await self.profile.touch_last_login(user)
        return True

    async def sign_out(self):
        self.store.dispatch(AttemptStarted())
        await self.auth.sign_out()
        if self.app_logger:
            self.app_logger.auth_event("signed out")

    async def social_sign_in(self, provider_id: str, credential: Optional[ProviderCredential] = None,
                             popup_error: Optional[str] = None) -> bool:
        """
        Finish a Google/Facebook sign-in.

        The browser runs the provider popup and sends either the resulting
        credential or the popup's error code.
        """
        self.store.dispatch(AttemptStarted())
        if provider_id not in SOCIAL_PROVIDERS:
            self._fail(f"Unsupported sign-in provider: {provider_id}")
            return False
        if popup_error:
            logger.warning(f"⚠️ {provider_id} popup failed: {popup_error}")
            self._fail(friendly_auth_message(popup_error, provider_id))
            return False
        if credential is None:
            self._fail(friendly_auth_message("invalid-credential"))
            return False

        try:
            user = await self.auth.sign_in_with_credential(credential)
        except AuthError as e:
            if await self.linking.handle_social_failure(provider_id, e):
                return False
            logger.error(f"❌ Social sign-in failed ({provider_id}): {e.code} {e.message}")
            self._fail(friendly_auth_message(e.code, provider_id))
            return False

        if self.app_logger:
            self.app_logger.auth_event("signed in", user.email, provider_id)
        await self.profile.merge_for_social_sign_in(user)
        return True

    # Linking

    async def link_with_method(self, method: str, password: Optional[str] = None,
                               credential: Optional[ProviderCredential] = None,
                               popup_error: Optional[str] = None) -> bool:
        return await self.linking.sign_in_for_linking(method, password=password, credential=credential,
                                                      popup_error=popup_error)

    def cancel_linking(self):
        self.linking.cancel()

    # Profile

    def edit_profile(self, display_name: Optional[str] = None, native_language: Optional[str] = None):
        self.profile.edit(display_name, native_language)

    async def save_profile(self, display_name: Optional[str] = None, native_language: Optional[str] = None) -> bool:
        return await self.profile.save(display_name, native_language)

    # Stories

    def select_story(self, story_id: str) -> bool:
        return self.browser.select_story(story_id)

    def deselect_story(self):
        self.browser.deselect_story()

    def next_page(self):
        self.browser.next_page()

    def previous_page(self):
        self.browser.previous_page()

    def click_vocabulary(self, token: str):
        self.browser.click_vocabulary(token)

    def close_vocabulary(self):
        self.browser.close_vocabulary()
