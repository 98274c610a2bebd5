"""
Session observer tests: one auth subscription per session, listeners torn
down and rebuilt on every auth-state change, snapshots pushed to the
client's event queue.

Run with: python -m pytest tests/test_observer.py -v
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.services.events import EVENT_STATE_CHANGED
from src.services.identity import AuthClient
from src.session import ClientSession
from src.session.state import Authenticated, Unauthenticated


@pytest.fixture
def accounts(identity):
    identity.add_account("ana@example.com", password="secret1")
    identity.add_account("ben@example.com", password="secret2")
    return identity


class TestSessionObserver:

    def test_starts_signed_out_without_listeners(self, session, documents):
        assert isinstance(session.state.view, Unauthenticated)
        assert documents.subscriptions == []

    def test_start_twice_subscribes_once(self, identity, documents):
        auth = AuthClient(identity)
        client = ClientSession("client-2", auth, documents)
        client.start()
        client.start()
        assert len(auth._listeners) == 1
        client.close()
        assert auth._listeners == []

    @pytest.mark.asyncio
    async def test_sign_in_attaches_profile_and_stories(self, session, documents, accounts):
        await session.sign_in("ana@example.com", "secret1")

        assert isinstance(session.state.view, Authenticated)
        assert documents.latest("users/uid-ana") is not None
        assert documents.latest("stories") is not None

    @pytest.mark.asyncio
    async def test_sign_out_detaches_everything(self, session, documents, accounts):
        await session.sign_in("ana@example.com", "secret1")
        session.select_story("s1")
        await session.sign_out()

        assert isinstance(session.state.view, Unauthenticated)
        assert all(s.closed for s in documents.subscriptions)
        assert session.state.stories == ()
        assert session.state.selected_story_id is None

    @pytest.mark.asyncio
    async def test_switching_users_drops_previous_profile(self, session, documents, accounts):
        await session.sign_in("ana@example.com", "secret1")
        ana_listener = documents.latest("users/uid-ana")
        ana_listener.emit({"displayName": "Ana", "totalXP": 10})

        await session.sign_in("ben@example.com", "secret2")
        ana_listener.emit({"displayName": "Ana", "totalXP": 11})

        assert ana_listener.closed
        assert session.state.session.email == "ben@example.com"
        assert session.state.profile is None

    @pytest.mark.asyncio
    async def test_close_stops_listening(self, session, documents, accounts):
        await session.sign_in("ana@example.com", "secret1")
        session.close()

        assert all(s.closed for s in documents.subscriptions)
        await session.auth.sign_out()
        assert isinstance(session.state.view, Authenticated)


class TestStatePublishing:

    @pytest.mark.asyncio
    async def test_changes_are_queued_for_the_client(self, session, emitter, accounts):
        queue = emitter.create_client_queue("client-1")
        await session.sign_in("ana@example.com", "secret1")

        event = queue.get_nowait()
        assert event.event_type == EVENT_STATE_CHANGED
        payload = event.to_dict()
        assert payload["type"] == "state"
        assert payload["data"]["view"] == "authenticated"
        assert payload["data"]["session"]["email"] == "ana@example.com"

    @pytest.mark.asyncio
    async def test_unchanged_state_is_not_republished(self, session, emitter):
        queue = emitter.create_client_queue("client-1")
        session.next_page()
        session.close_vocabulary()
        assert queue.empty()

    @pytest.mark.asyncio
    async def test_unexpected_error_shows_generic_message(self, session):
        session.report_unexpected(RuntimeError("boom"))
        assert session.state.error == "An unexpected error occurred. Please try again."
