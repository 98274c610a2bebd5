"""
Unit tests for the Firestore service: error translation and listener delivery.

The Firestore client is a MagicMock; snapshots are pushed by calling the
captured on_snapshot callback the way Firestore's watch thread would.

Run with: python -m pytest tests/test_firebase.py -v
"""

import asyncio
import sys
from pathlib import Path
from unittest import mock

import pytest
from google.api_core import exceptions as google_exceptions

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.services.firebase import (
    GENERIC_STORAGE_MESSAGE,
    DocumentStoreError,
    FirebaseService,
    friendly_storage_message,
)


def _snapshot(doc_id, data, exists=True):
    snap = mock.MagicMock()
    snap.id = doc_id
    snap.exists = exists
    snap.to_dict.return_value = data
    return snap


class TestStorageMessages:

    def test_known_codes(self):
        assert friendly_storage_message("permission-denied") == "You do not have permission to make this change."
        assert friendly_storage_message("unavailable") == (
            "Network error. Please check your connection and try again."
        )

    def test_unknown_code(self):
        assert friendly_storage_message("unknown") == GENERIC_STORAGE_MESSAGE
        assert friendly_storage_message(None) == GENERIC_STORAGE_MESSAGE


class TestFirebaseService:

    def setup_method(self):
        self.service = FirebaseService()
        self.service.db = mock.MagicMock()
        self.target = mock.MagicMock()
        self.watch = mock.MagicMock()
        self.target.on_snapshot.return_value = self.watch
        self.service.db.document.return_value = self.target
        self.service.db.collection.return_value = self.target
        self.target.order_by.return_value = self.target
        self.received = []
        self.errors = []

    def teardown_method(self):
        self.service.shutdown()

    def _push(self, snapshots):
        callback = self.target.on_snapshot.call_args[0][0]
        callback(snapshots, [], None)

    @pytest.mark.asyncio
    async def test_update_translates_google_errors(self):
        self.target.update.side_effect = google_exceptions.PermissionDenied("denied")
        with pytest.raises(DocumentStoreError) as exc_info:
            await self.service.update_document("users/u1", {"displayName": "Ana"})
        assert exc_info.value.code == "permission-denied"
        assert exc_info.value.path == "users/u1"

    @pytest.mark.asyncio
    async def test_document_snapshot_is_delivered_on_the_loop(self):
        self.service.subscribe_document("users/u1", self.received.append, self.errors.append)
        self._push([_snapshot("u1", {"displayName": "Ana"})])
        await asyncio.sleep(0)
        assert self.received == [{"displayName": "Ana"}]

    @pytest.mark.asyncio
    async def test_missing_document_is_none(self):
        self.service.subscribe_document("users/u1", self.received.append, self.errors.append)
        self._push([_snapshot("u1", None, exists=False)])
        await asyncio.sleep(0)
        assert self.received == [None]

    @pytest.mark.asyncio
    async def test_snapshot_queued_before_unsubscribe_is_dropped(self):
        subscription = self.service.subscribe_document("users/u1", self.received.append, self.errors.append)
        self._push([_snapshot("u1", {"displayName": "Ana"})])
        subscription.unsubscribe()
        subscription.unsubscribe()
        await asyncio.sleep(0)

        assert self.received == []
        self.watch.unsubscribe.assert_called_once()

    @pytest.mark.asyncio
    async def test_collection_snapshot_includes_ids_and_ordering(self):
        self.service.subscribe_collection("stories/s1/pages", self.received.append, self.errors.append,
                                          order_by="pageNumber")
        self._push([_snapshot("p1", {"pageNumber": 1}), _snapshot("p2", {"pageNumber": 2})])
        await asyncio.sleep(0)

        self.target.order_by.assert_called_once_with("pageNumber")
        assert self.received == [[{"id": "p1", "pageNumber": 1}, {"id": "p2", "pageNumber": 2}]]

    @pytest.mark.asyncio
    async def test_attach_failure_goes_to_error_callback(self):
        self.target.on_snapshot.side_effect = RuntimeError("no network")
        subscription = self.service.subscribe_document("users/u1", self.received.append, self.errors.append)

        assert subscription.closed
        assert len(self.errors) == 1
        assert isinstance(self.errors[0], DocumentStoreError)


class TestWatchHealth:

    def setup_method(self):
        self.service = FirebaseService(watch_check_interval=0.01)
        self.service.db = mock.MagicMock()
        self.target = mock.MagicMock()
        self.watch = mock.MagicMock()
        self.watch.is_active = True
        self.watch._closed = False
        self.target.on_snapshot.return_value = self.watch
        self.service.db.document.return_value = self.target
        self.errors = []

    def teardown_method(self):
        self.service.shutdown()

    @pytest.mark.asyncio
    async def test_stopped_stream_is_reported_once(self):
        subscription = self.service.subscribe_document("stories", mock.Mock(), self.errors.append)
        await asyncio.sleep(0.03)
        assert self.errors == []

        # The watch thread closed the stream after a permission error
        self.watch.is_active = False
        await asyncio.sleep(0.05)

        assert len(self.errors) == 1
        assert self.errors[0].code == "unavailable"
        assert self.errors[0].path == "stories"
        assert subscription.closed

    @pytest.mark.asyncio
    async def test_closed_flag_counts_as_stopped(self):
        self.service.subscribe_document("users/u1", mock.Mock(), self.errors.append)
        self.watch._closed = True
        await asyncio.sleep(0.03)

        assert [error.code for error in self.errors] == ["unavailable"]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_checking(self):
        subscription = self.service.subscribe_document("users/u1", mock.Mock(), self.errors.append)
        subscription.unsubscribe()
        self.watch.is_active = False
        await asyncio.sleep(0.03)

        assert self.errors == []
        assert subscription._health_check is None
