"""
Firebase service for LinguaVerse

Handles Cloud Firestore document operations and real-time listeners for
profiles, stories, pages and messages.
"""

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions
from typing import Optional, Dict, Any, List, Callable
import asyncio
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)

# Sentinel replaced by the server's commit time
SERVER_TIMESTAMP = firestore.SERVER_TIMESTAMP


class DocumentStoreError(Exception):
    """Firestore read, write or listener failure"""

    def __init__(self, message: str, code: str = "unknown", path: Optional[str] = None):
        self.code = code
        self.path = path
        super().__init__(message)


# google.api_core exception class -> storage error code
STORAGE_ERROR_CODES = {
    "NotFound": "not-found",
    "PermissionDenied": "permission-denied",
    "Unauthenticated": "unauthenticated",
    "ServiceUnavailable": "unavailable",
    "DeadlineExceeded": "deadline-exceeded",
    "TooManyRequests": "resource-exhausted",
    "ResourceExhausted": "resource-exhausted",
    "InvalidArgument": "invalid-argument",
}

STORAGE_ERROR_MESSAGES = {
    "not-found": "Your profile could not be found. Please sign out and sign in again.",
    "permission-denied": "You do not have permission to make this change.",
    "unauthenticated": "Your session has expired. Please sign in again.",
    "unavailable": "Network error. Please check your connection and try again.",
    "deadline-exceeded": "Network error. Please check your connection and try again.",
    "resource-exhausted": "Too many requests. Please try again later.",
    "invalid-argument": "Some of the values could not be saved. Please check them and try again.",
}

GENERIC_STORAGE_MESSAGE = "Could not save your changes. Please try again."


def friendly_storage_message(code: Optional[str]) -> str:
    return STORAGE_ERROR_MESSAGES.get(code or "", GENERIC_STORAGE_MESSAGE)


def _wrap_google_error(error: Exception, path: str) -> DocumentStoreError:
    code = STORAGE_ERROR_CODES.get(type(error).__name__, "unknown")
    return DocumentStoreError(str(error), code=code, path=path)


class Subscription:
    """
    Handle for a real-time listener.

    unsubscribe() is idempotent. Once it has been called no further
    notification is delivered, including ones already queued on the loop.
    A watch stream that ends on its own (for example after a permission
    error) closes the subscription and is reported once through on_error.
    """

    def __init__(self, path: str):
        self.path = path
        self.closed = False
        self._watch = None
        self._health_check = None

    def attach(self, watch):
        self._watch = watch
        # Closed while the listener was being attached
        if self.closed:
            watch.unsubscribe()

    def unsubscribe(self):
        if self.closed:
            return
        self.closed = True
        if self._health_check is not None:
            self._health_check.cancel()
            self._health_check = None
        if self._watch is not None:
            self._watch.unsubscribe()
            self._watch = None
        logger.debug(f"Listener detached: {self.path}")

    def watch_stopped(self) -> bool:
        """True when the watch stream has ended while still subscribed"""
        if self.closed or self._watch is None:
            return False
        return (getattr(self._watch, "is_active", True) is False
                or getattr(self._watch, "_closed", False) is True)


DocumentCallback = Callable[[Optional[Dict[str, Any]]], None]
CollectionCallback = Callable[[List[Dict[str, Any]]], None]
ErrorCallback = Callable[[DocumentStoreError], None]


class FirebaseService:
    """Service for Cloud Firestore operations"""

    def __init__(self, credentials_dict: Optional[Dict[str, Any]] = None, credentials_path: Optional[str] = None,
                 project_id: Optional[str] = None, logger=None, watch_check_interval: float = 5.0):
        """
        Initialize Firebase service.

        Args:
            credentials_dict: Optional service-account dict (project_id, client_email, private_key)
            credentials_path: Optional path to a service account JSON file
            project_id: Firebase project id, used with Application Default Credentials
            logger: Optional logger instance for debug logging
            watch_check_interval: Seconds between checks that a listener's watch stream is still running
        """
        self.credentials_dict = credentials_dict
        self.credentials_path = credentials_path
        self.project_id = project_id
        self.logger = logger
        self.watch_check_interval = watch_check_interval
        self.db = None
        self._initialized = False
        # firebase_admin is synchronous
        self._executor = ThreadPoolExecutor(max_workers=10, thread_name_prefix="firestore")

    async def _run_sync(self, func, *args, **kwargs):
        """Run a synchronous Firestore operation in the thread pool to avoid blocking."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, lambda: func(*args, **kwargs))

    async def _call(self, path: str, func):
        """Run a Firestore call, translating Google API errors to DocumentStoreError"""
        try:
            return await self._run_sync(func)
        except google_exceptions.GoogleAPICallError as e:
            raise _wrap_google_error(e, path) from e

    def shutdown(self):
        """Shutdown the thread pool executor. Call during app shutdown."""
        if self._executor:
            self._executor.shutdown(wait=True)
            self._executor = None

    def initialize(self):
        """Initialize Firebase app (call once at startup)"""
        if self._initialized:
            return

        try:
            app = firebase_admin.get_app()
            logger.info("   Firebase app already initialized")
        except ValueError:
            options = {"projectId": self.project_id} if self.project_id else None
            if self.credentials_dict:
                logger.info("   Initializing Firebase with credentials from environment variables")
                cred = credentials.Certificate(self.credentials_dict)
            elif self.credentials_path and os.path.exists(self.credentials_path):
                logger.info("   Initializing Firebase with credentials file: [REDACTED]")
                cred = credentials.Certificate(self.credentials_path)
            else:
                logger.info("   Initializing Firebase with Application Default Credentials")
                cred = credentials.ApplicationDefault()
            app = firebase_admin.initialize_app(cred, options)

        self.db = firestore.client(app)
        self._initialized = True

    # Document Operations

    async def set_document(self, path: str, data: Dict[str, Any], merge: bool = False):
        """Create or overwrite a document; with merge=True only the given fields change"""
        start_time = time.time()
        await self._call(path, lambda: self.db.document(path).set(data, merge=merge))
        self._log_write("merge" if merge else "set", path, data, start_time)

    async def update_document(self, path: str, data: Dict[str, Any]):
        """Partial update of an existing document"""
        start_time = time.time()
        await self._call(path, lambda: self.db.document(path).update(data))
        self._log_write("update", path, data, start_time)

    async def add_document(self, collection: str, data: Dict[str, Any]) -> str:
        """
        Add a document with a server-assigned id.

        Returns:
            The new document id
        """
        start_time = time.time()
        _, doc_ref = await self._call(collection, lambda: self.db.collection(collection).add(data))
        self._log_write("add", f"{collection}/{doc_ref.id}", data, start_time)
        return doc_ref.id

    def _log_write(self, operation: str, path: str, data: Dict[str, Any], start_time: float):
        if self.logger:
            self.logger.storage_operation(
                operation=operation,
                path=path,
                data_summary=", ".join(sorted(data.keys())),
                size_bytes=len(str(data)),
                duration=time.time() - start_time
            )

    # Real-time Listeners

    def subscribe_document(self, path: str, on_next: DocumentCallback,
                           on_error: ErrorCallback) -> Subscription:
        """
        Listen to a document.

        Must be called from the event loop; callbacks run on that loop.
        on_next receives the document fields, or None when it does not exist.
        """
        def parse(snapshots):
            if not snapshots or not snapshots[0].exists:
                return None
            return snapshots[0].to_dict()

        return self._listen(path, self.db.document(path), parse, on_next, on_error)

    def subscribe_collection(self, path: str, on_next: CollectionCallback,
                             on_error: ErrorCallback, order_by: Optional[str] = None) -> Subscription:
        """
        Listen to a collection, optionally ordered ascending by a field.

        on_next receives every document as a dict with its id under "id".
        """
        query = self.db.collection(path)
        if order_by:
            query = query.order_by(order_by)

        def parse(snapshots):
            return [{"id": snap.id, **(snap.to_dict() or {})} for snap in snapshots]

        return self._listen(path, query, parse, on_next, on_error)

    def _listen(self, path: str, target, parse, on_next, on_error) -> Subscription:
        loop = asyncio.get_running_loop()
        subscription = Subscription(path)

        def deliver(snapshots):
            if subscription.closed:
                return
            try:
                payload = parse(snapshots)
            except Exception as e:
                on_error(DocumentStoreError(f"Could not read {path}: {e}", path=path))
                return
            if self.logger:
                self.logger.storage_read(path=path, result_summary="snapshot", size_bytes=len(str(payload)))
            on_next(payload)

        def on_snapshot(snapshots, changes, read_time):
            # Firestore calls this from its watch thread
            if not subscription.closed:
                loop.call_soon_threadsafe(deliver, snapshots)

        # Firestore ends a failed watch stream on its own thread without calling on_snapshot
        def check_watch():
            subscription._health_check = None
            if subscription.closed:
                return
            if subscription.watch_stopped():
                subscription.closed = True
                subscription._watch = None
                logger.error(f"❌ Listener for {path} stopped")
                on_error(DocumentStoreError(f"Listener for {path} stopped", code="unavailable", path=path))
                return
            subscription._health_check = loop.call_later(self.watch_check_interval, check_watch)

        try:
            subscription.attach(target.on_snapshot(on_snapshot))
        except Exception as e:
            subscription.closed = True
            logger.error(f"❌ Failed to attach listener to {path}: {e}")
            on_error(DocumentStoreError(f"Could not listen to {path}: {e}", path=path))
            return subscription

        if not subscription.closed:
            subscription._health_check = loop.call_later(self.watch_check_interval, check_watch)
        return subscription
