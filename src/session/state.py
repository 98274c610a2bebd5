"""
Client view state and its reducer.

The top-level view is a tagged union:

    Unauthenticated            no session, sign-in forms
    Authenticated(session)     signed in, profile and stories
    LinkingPending(request)    a social sign-in collided with an existing
                               account; the learner must sign in with one of
                               the existing methods. A session from a prior
                               method may still be held alongside.

Everything the browser renders lives in AppState, and AppState only changes
through reduce(). Every AuthStateChanged starts from a blank state, so no
flag can outlive the session that produced it.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple, Union

from src.models import Page, Profile, Story, UserSession
from src.services.auth_errors import provider_display_name
from src.services.identity import ProviderCredential


# ============================================================================
# Views
# ============================================================================

@dataclass(frozen=True)
class LinkingRequest:
    """A pending account link: the credential that collided and where it can go"""
    email: str
    pending_credential: ProviderCredential
    existing_methods: Tuple[str, ...]


@dataclass(frozen=True)
class Unauthenticated:
    name = "unauthenticated"


@dataclass(frozen=True)
class Authenticated:
    session: UserSession
    name = "authenticated"


@dataclass(frozen=True)
class LinkingPending:
    request: LinkingRequest
    session: Optional[UserSession] = None
    name = "linking"


ViewState = Union[Unauthenticated, Authenticated, LinkingPending]


def _view_for(session: Optional[UserSession]) -> ViewState:
    return Authenticated(session) if session is not None else Unauthenticated()


@dataclass(frozen=True)
class VocabularyPopup:
    word: str
    token: str
    translation: str


def placeholder_translation(word: str, token: str) -> str:
    return f'Translation for "{word}" (token {token}) coming soon.'


@dataclass(frozen=True)
class AppState:
    view: ViewState = field(default_factory=Unauthenticated)
    profile: Optional[Profile] = None
    display_name_draft: str = ""
    native_language_draft: str = ""
    drafts_dirty: bool = False
    stories: Tuple[Story, ...] = ()
    selected_story_id: Optional[str] = None
    pages: Tuple[Page, ...] = ()
    page_index: int = 0
    vocabulary: Optional[VocabularyPopup] = None
    error: Optional[str] = None
    status: Optional[str] = None

    @property
    def session(self) -> Optional[UserSession]:
        if isinstance(self.view, (Authenticated, LinkingPending)):
            return self.view.session
        return None

    @property
    def linking(self) -> Optional[LinkingRequest]:
        if isinstance(self.view, LinkingPending):
            return self.view.request
        return None

    @property
    def current_page(self) -> Optional[Page]:
        if 0 <= self.page_index < len(self.pages):
            return self.pages[self.page_index]
        return None


# ============================================================================
# Actions
# ============================================================================

@dataclass(frozen=True)
class AuthStateChanged:
    session: Optional[UserSession]


@dataclass(frozen=True)
class AttemptStarted:
    """A new top-level sign-in, sign-up or social attempt"""


@dataclass(frozen=True)
class ErrorRaised:
    message: str


@dataclass(frozen=True)
class ErrorCleared:
    pass


@dataclass(frozen=True)
class LinkingStarted:
    request: LinkingRequest
    message: Optional[str] = None
    session: Optional[UserSession] = None


@dataclass(frozen=True)
class LinkingCancelled:
    pass


@dataclass(frozen=True)
class LinkingCompleted:
    pass


@dataclass(frozen=True)
class ProfileReceived:
    profile: Optional[Profile]
    guard_local_edits: bool = False


@dataclass(frozen=True)
class ProfileEdited:
    display_name: Optional[str] = None
    native_language: Optional[str] = None


@dataclass(frozen=True)
class ProfileSaved:
    message: str


@dataclass(frozen=True)
class StoriesReceived:
    stories: Tuple[Story, ...]


@dataclass(frozen=True)
class StorySelected:
    story_id: str


@dataclass(frozen=True)
class StoryDeselected:
    pass


@dataclass(frozen=True)
class PagesReceived:
    story_id: str
    pages: Tuple[Page, ...]


@dataclass(frozen=True)
class PageMoved:
    delta: int


@dataclass(frozen=True)
class VocabularyClicked:
    token: str


@dataclass(frozen=True)
class VocabularyClosed:
    pass


Action = Union[
    AuthStateChanged, AttemptStarted, ErrorRaised, ErrorCleared,
    LinkingStarted, LinkingCancelled, LinkingCompleted,
    ProfileReceived, ProfileEdited, ProfileSaved,
    StoriesReceived, StorySelected, StoryDeselected, PagesReceived,
    PageMoved, VocabularyClicked, VocabularyClosed,
]


# ============================================================================
# Reducer
# ============================================================================

def _leave_linking(state: AppState) -> AppState:
    if isinstance(state.view, LinkingPending):
        return replace(state, view=_view_for(state.view.session))
    return state


def reduce(state: AppState, action: Action) -> AppState:
    """Return the state that follows `action`. Never mutates `state`."""
    if isinstance(action, AuthStateChanged):
        return AppState(view=_view_for(action.session))

    if isinstance(action, AttemptStarted):
        return replace(_leave_linking(state), error=None, status=None)

    if isinstance(action, ErrorRaised):
        return replace(state, error=action.message, status=None)

    if isinstance(action, ErrorCleared):
        return replace(state, error=None)

    if isinstance(action, LinkingStarted):
        return replace(
            state,
            view=LinkingPending(action.request, action.session),
            error=action.message,
            status=None,
        )

    if isinstance(action, (LinkingCancelled, LinkingCompleted)):
        return replace(_leave_linking(state), error=None)

    if isinstance(action, ProfileReceived):
        profile = action.profile
        if action.guard_local_edits and state.drafts_dirty:
            return replace(state, profile=profile)
        return replace(
            state,
            profile=profile,
            display_name_draft=(profile.display_name or "") if profile else "",
            native_language_draft=(profile.native_language or "") if profile else "",
            drafts_dirty=False,
        )

    if isinstance(action, ProfileEdited):
        return replace(
            state,
            display_name_draft=state.display_name_draft if action.display_name is None else action.display_name,
            native_language_draft=state.native_language_draft if action.native_language is None else action.native_language,
            drafts_dirty=True,
        )

    if isinstance(action, ProfileSaved):
        return replace(state, status=action.message, error=None, drafts_dirty=False)

    if isinstance(action, StoriesReceived):
        return replace(state, stories=tuple(action.stories))

    if isinstance(action, StorySelected):
        return replace(state, selected_story_id=action.story_id, pages=(), page_index=0, vocabulary=None)

    if isinstance(action, StoryDeselected):
        return replace(state, selected_story_id=None, pages=(), page_index=0, vocabulary=None)

    if isinstance(action, PagesReceived):
        # A late snapshot for a story that is no longer selected
        if action.story_id != state.selected_story_id:
            return state
        pages = tuple(action.pages)
        page_index = min(state.page_index, max(len(pages) - 1, 0))
        return replace(state, pages=pages, page_index=page_index)

    if isinstance(action, PageMoved):
        target = state.page_index + action.delta
        if target < 0 or target >= len(state.pages):
            return state
        return replace(state, page_index=target, vocabulary=None)

    if isinstance(action, VocabularyClicked):
        page = state.current_page
        vocab = page.find_token(action.token) if page else None
        if vocab is None:
            return state
        return replace(state, vocabulary=VocabularyPopup(
            word=vocab.word,
            token=vocab.token,
            translation=placeholder_translation(vocab.word, vocab.token),
        ))

    if isinstance(action, VocabularyClosed):
        return replace(state, vocabulary=None)

    raise TypeError(f"Unknown action: {type(action).__name__}")


# ============================================================================
# Wire format
# ============================================================================

def _session_dict(session: Optional[UserSession]) -> Optional[Dict[str, Any]]:
    if session is None:
        return None
    return {
        "uid": session.uid,
        "email": session.email,
        "displayName": session.display_name,
        "photoURL": session.photo_url,
        "providerId": session.provider_id,
    }


def snapshot(state: AppState) -> Dict[str, Any]:
    """JSON-ready rendering of the state for the browser"""
    linking = state.linking
    methods: List[Dict[str, str]] = []
    if linking:
        methods = [{"id": m, "label": provider_display_name(m)} for m in linking.existing_methods]

    return {
        "view": state.view.name,
        "session": _session_dict(state.session),
        "linking": {
            "email": linking.email,
            "provider": linking.pending_credential.provider_id,
            "methods": methods,
        } if linking else None,
        "profile": state.profile.model_dump(mode="json", by_alias=True) if state.profile else None,
        "drafts": {
            "displayName": state.display_name_draft,
            "nativeLanguage": state.native_language_draft,
            "dirty": state.drafts_dirty,
        },
        "stories": [s.model_dump(mode="json", by_alias=True) for s in state.stories],
        "selectedStoryId": state.selected_story_id,
        "pages": [p.model_dump(mode="json", by_alias=True) for p in state.pages],
        "pageIndex": state.page_index,
        "pageCount": len(state.pages),
        "vocabulary": {
            "word": state.vocabulary.word,
            "token": state.vocabulary.token,
            "translation": state.vocabulary.translation,
        } if state.vocabulary else None,
        "error": state.error,
        "status": state.status,
    }
