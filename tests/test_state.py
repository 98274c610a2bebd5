"""
Unit tests for the view-state reducer - pure functions, no services.

Run with: python -m pytest tests/test_state.py -v
"""

import sys
from dataclasses import replace
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.models import Page, Profile, Story, UserSession, VocabularyToken
from src.services.identity import ProviderCredential
from src.session.state import (
    AppState,
    AttemptStarted,
    Authenticated,
    AuthStateChanged,
    ErrorRaised,
    LinkingCancelled,
    LinkingPending,
    LinkingRequest,
    LinkingStarted,
    PageMoved,
    PagesReceived,
    ProfileEdited,
    ProfileReceived,
    StoriesReceived,
    StorySelected,
    Unauthenticated,
    VocabularyClicked,
    reduce,
    snapshot,
)

ANA = UserSession(uid="uid-ana", email="ana@example.com", provider_id="password")


def make_pages(count):
    return tuple(
        Page(
            id=f"p{i}",
            page_number=i + 1,
            text_english=f"Page {i + 1}",
            vocabulary_tokens=[VocabularyToken(word=f"word{i}", token=f"t{i}")],
        )
        for i in range(count)
    )


def reading_state(page_index=0, count=5):
    return AppState(
        view=Authenticated(ANA),
        selected_story_id="s1",
        pages=make_pages(count),
        page_index=page_index,
    )


def linking_request(methods=("password",)):
    return LinkingRequest(
        email="ana@example.com",
        pending_credential=ProviderCredential(provider_id="facebook.com", access_token="fb"),
        existing_methods=tuple(methods),
    )


class TestPagination:

    def test_next_page_moves_forward(self):
        state = reduce(reading_state(page_index=2), PageMoved(1))
        assert state.page_index == 3

    def test_next_page_on_last_page_is_noop(self):
        state = reading_state(page_index=4)
        assert reduce(state, PageMoved(1)) is state

    def test_previous_page_on_first_page_is_noop(self):
        state = reading_state(page_index=0)
        assert reduce(state, PageMoved(-1)) is state

    def test_noop_move_keeps_popup(self):
        state = reduce(reading_state(page_index=4), VocabularyClicked("t4"))
        assert reduce(state, PageMoved(1)).vocabulary is not None

    def test_real_move_closes_popup(self):
        state = reduce(reading_state(page_index=2), VocabularyClicked("t2"))
        assert reduce(state, PageMoved(-1)).vocabulary is None


class TestVocabulary:

    def test_click_opens_placeholder_popup(self):
        state = reduce(reading_state(page_index=1), VocabularyClicked("t1"))
        assert state.vocabulary.word == "word1"
        assert state.vocabulary.translation == 'Translation for "word1" (token t1) coming soon.'

    def test_token_from_another_page_is_ignored(self):
        state = reading_state(page_index=1)
        assert reduce(state, VocabularyClicked("t3")) is state


class TestPagesAndStories:

    def test_late_pages_for_other_story_are_ignored(self):
        state = reading_state()
        assert reduce(state, PagesReceived("other", make_pages(2))) is state

    def test_shrinking_page_list_clamps_index(self):
        state = reduce(reading_state(page_index=4), PagesReceived("s1", make_pages(2)))
        assert state.page_index == 1

    def test_selection_resets_reading_position(self):
        state = reduce(reading_state(page_index=3), StorySelected("s2"))
        assert state.selected_story_id == "s2"
        assert state.pages == ()
        assert state.page_index == 0

    def test_stories_replace_the_list(self):
        stories = (Story(id="s1", title="La Casa"), Story(id="s2", title="El Perro"))
        state = reduce(AppState(view=Authenticated(ANA)), StoriesReceived(stories))
        assert [s.title for s in state.stories] == ["La Casa", "El Perro"]


class TestSessionTransitions:

    def test_auth_change_starts_from_blank_state(self):
        dirty = replace(reading_state(page_index=3), error="boom", status="saved")
        state = reduce(dirty, AuthStateChanged(None))
        assert state == AppState()
        assert isinstance(state.view, Unauthenticated)

    def test_auth_change_to_user(self):
        state = reduce(AppState(), AuthStateChanged(ANA))
        assert state.view == Authenticated(ANA)
        assert state.session == ANA

    def test_linking_started_shows_message(self):
        state = reduce(AppState(), LinkingStarted(linking_request(), "conflict"))
        assert isinstance(state.view, LinkingPending)
        assert state.linking.email == "ana@example.com"
        assert state.session is None
        assert state.error == "conflict"

    def test_new_attempt_leaves_linking(self):
        pending = reduce(AppState(), LinkingStarted(linking_request(), "conflict"))
        state = reduce(pending, AttemptStarted())
        assert isinstance(state.view, Unauthenticated)
        assert state.error is None

    def test_cancel_keeps_existing_session(self):
        pending = reduce(AppState(view=Authenticated(ANA)), LinkingStarted(linking_request(), "x", session=ANA))
        state = reduce(pending, LinkingCancelled())
        assert state.view == Authenticated(ANA)
        assert state.error is None

    def test_unknown_action_raises(self):
        with pytest.raises(TypeError):
            reduce(AppState(), object())


class TestProfileBuffers:

    def setup_method(self):
        self.profile = Profile.model_validate({"displayName": "Ana", "nativeLanguage": "es", "totalXP": 40})
        self.state = reduce(AppState(view=Authenticated(ANA)), ProfileReceived(self.profile))

    def test_profile_fills_buffers(self):
        assert self.state.display_name_draft == "Ana"
        assert self.state.native_language_draft == "es"
        assert not self.state.drafts_dirty

    def test_remote_update_overwrites_unsaved_edits(self):
        edited = reduce(self.state, ProfileEdited(display_name="Ana Maria"))
        remote = self.profile.model_copy(update={"total_xp": 50})
        state = reduce(edited, ProfileReceived(remote))
        assert state.display_name_draft == "Ana"
        assert state.profile.total_xp == 50

    def test_guard_keeps_unsaved_edits(self):
        edited = reduce(self.state, ProfileEdited(display_name="Ana Maria"))
        remote = self.profile.model_copy(update={"total_xp": 50})
        state = reduce(edited, ProfileReceived(remote, guard_local_edits=True))
        assert state.display_name_draft == "Ana Maria"
        assert state.profile.total_xp == 50

    def test_error_clears_status(self):
        state = reduce(replace(self.state, status="Profile saved."), ErrorRaised("nope"))
        assert state.error == "nope"
        assert state.status is None


class TestSnapshot:

    def test_unauthenticated_snapshot(self):
        data = snapshot(AppState())
        assert data["view"] == "unauthenticated"
        assert data["session"] is None
        assert data["linking"] is None
        assert data["pageCount"] == 0

    def test_linking_methods_have_labels(self):
        state = reduce(AppState(), LinkingStarted(linking_request(("password", "google.com")), "conflict"))
        data = snapshot(state)
        assert data["view"] == "linking"
        assert data["linking"]["provider"] == "facebook.com"
        assert data["linking"]["methods"] == [
            {"id": "password", "label": "Email/Password"},
            {"id": "google.com", "label": "Google"},
        ]

    def test_session_tokens_are_not_exposed(self):
        user = ANA.model_copy(update={"id_token": "secret-token"})
        data = snapshot(AppState(view=Authenticated(user)))
        assert "secret-token" not in str(data)
        assert data["session"]["email"] == "ana@example.com"

    def test_pages_use_stored_field_names(self):
        data = snapshot(reading_state(count=2))
        assert data["pages"][0]["pageNumber"] == 1
        assert data["pages"][0]["vocabularyTokens"] == [{"word": "word0", "token": "t0"}]
