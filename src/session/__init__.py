"""Per-connection client session: view state, auth observer, linking, profile and stories"""

from .state import (
    AppState,
    Authenticated,
    LinkingPending,
    LinkingRequest,
    Unauthenticated,
    VocabularyPopup,
    reduce,
    snapshot,
)
from .store import StateStore
from .linking import LinkingCoordinator, infer_sign_in_methods
from .profile import ProfileSynchronizer
from .browser import StoryBrowser
from .observer import SessionObserver
from .controller import ClientSession

__all__ = [
    "AppState",
    "Authenticated",
    "LinkingPending",
    "LinkingRequest",
    "Unauthenticated",
    "VocabularyPopup",
    "reduce",
    "snapshot",
    "StateStore",
    "LinkingCoordinator",
    "infer_sign_in_methods",
    "ProfileSynchronizer",
    "StoryBrowser",
    "SessionObserver",
    "ClientSession",
]
