"""
Session Observer

Subscribes once, for the lifetime of a client session, to auth-state
changes. Each notification tears down every document listener, resets the
view state and, when someone is signed in, attaches the profile and story
listeners again. All of it happens synchronously inside the notification, so
no snapshot from an old listener can land after the new session is visible.
"""

import logging
from typing import Callable, Optional

from src.models import UserSession
from src.services.identity import AuthClient
from src.session.browser import StoryBrowser
from src.session.profile import ProfileSynchronizer
from src.session.state import AuthStateChanged
from src.session.store import StateStore

logger = logging.getLogger(__name__)


class SessionObserver:
    def __init__(self, auth: AuthClient, store: StateStore, profile: ProfileSynchronizer,
                 browser: StoryBrowser):
        self.auth = auth
        self.store = store
        self.profile = profile
        self.browser = browser
        self._unsubscribe: Optional[Callable[[], None]] = None

    def start(self):
        if self._unsubscribe is None:
            self._unsubscribe = self.auth.on_auth_state_changed(self._on_auth_state_changed)

    def stop(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._detach_listeners()

    def _detach_listeners(self):
        self.profile.detach()
        self.browser.detach_all()

    def _on_auth_state_changed(self, user: Optional[UserSession]):
        self._detach_listeners()
        self.store.dispatch(AuthStateChanged(user))
        if user is None:
            logger.info("👤 No user signed in")
            return
        logger.info(f"👤 Current user: {user.email} ({user.uid})")
        self.profile.attach(user.uid)
        self.browser.attach_stories()
