"""
Shared fakes for session tests.

FakeDocumentStore stands in for FirebaseService and FakeIdentity for
IdentityService; both record what they were asked to do so tests can assert
on it. The real AuthClient runs on top of FakeIdentity.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.services.events import EventEmitter
from src.services.firebase import DocumentStoreError, Subscription
from src.services.identity import (
    ACCOUNT_EXISTS_WITH_DIFFERENT_CREDENTIAL,
    AuthClient,
    AuthError,
)
from src.session import ClientSession


class FakeSubscription(Subscription):
    """Listener handle whose snapshots are pushed by the test"""

    def __init__(self, path, on_next, on_error, order_by=None):
        super().__init__(path)
        self.on_next = on_next
        self.on_error = on_error
        self.order_by = order_by

    def emit(self, payload):
        if not self.closed:
            self.on_next(payload)

    def fail(self, error: DocumentStoreError):
        if not self.closed:
            self.on_error(error)


class FakeDocumentStore:
    def __init__(self):
        self.documents = {}
        self.writes = []
        self.subscriptions = []
        self.write_error = None

    def _record(self, operation, path, data, merge=False):
        if self.write_error is not None:
            raise self.write_error
        self.writes.append((operation, path, data, merge))

    async def set_document(self, path, data, merge=False):
        self._record("set", path, data, merge)
        if merge:
            self.documents.setdefault(path, {}).update(data)
        else:
            self.documents[path] = dict(data)

    async def update_document(self, path, data):
        self._record("update", path, data)
        self.documents.setdefault(path, {}).update(data)

    async def add_document(self, collection, data):
        self._record("add", collection, data)
        doc_id = f"doc{len(self.writes)}"
        self.documents[f"{collection}/{doc_id}"] = dict(data)
        return doc_id

    def subscribe_document(self, path, on_next, on_error):
        subscription = FakeSubscription(path, on_next, on_error)
        self.subscriptions.append(subscription)
        return subscription

    def subscribe_collection(self, path, on_next, on_error, order_by=None):
        subscription = FakeSubscription(path, on_next, on_error, order_by=order_by)
        self.subscriptions.append(subscription)
        return subscription

    def active(self, path):
        """Open subscriptions for a path"""
        return [s for s in self.subscriptions if s.path == path and not s.closed]

    def latest(self, path):
        matches = self.active(path)
        return matches[-1] if matches else None


class FakeIdentity:
    """
    In-memory Identity Toolkit.

    accounts: email -> {"uid", "password", "methods"}
    idp_users: provider id -> email the provider asserts
    """

    def __init__(self):
        self.accounts = {}
        self.idp_users = {}
        self.calls = []
        self.methods_override = None
        self.methods_error = None
        self.link_error = None
        self.strip_collision_tokens = False

    def add_account(self, email, password=None, methods=("password",), uid=None):
        self.accounts[email] = {
            "uid": uid or f"uid-{email.split('@')[0]}",
            "password": password,
            "methods": list(methods),
        }

    def _response(self, email, provider_id=None):
        account = self.accounts[email]
        return {
            "localId": account["uid"],
            "email": email,
            "displayName": f"{email.split('@')[0].title()}",
            "providerId": provider_id,
            "idToken": f"id-token-{account['uid']}",
            "refreshToken": f"refresh-{account['uid']}",
        }

    async def sign_up(self, email, password):
        self.calls.append(("sign_up", email))
        if email in self.accounts:
            raise AuthError("email-already-in-use", "EMAIL_EXISTS")
        if len(password) < 6:
            raise AuthError("weak-password", "WEAK_PASSWORD : Password should be at least 6 characters")
        self.add_account(email, password)
        return self._response(email, "password")

    async def sign_in_with_password(self, email, password):
        self.calls.append(("sign_in_with_password", email))
        account = self.accounts.get(email)
        if account is None or account["password"] != password:
            raise AuthError("invalid-credential", "INVALID_LOGIN_CREDENTIALS")
        return self._response(email, "password")

    async def sign_in_with_idp(self, credential, id_token=None):
        self.calls.append(("sign_in_with_idp", credential.provider_id, id_token))
        if id_token is not None:
            if self.link_error is not None:
                raise self.link_error
            return {"localId": "linked", "idToken": f"{id_token}-linked"}

        email = self.idp_users[credential.provider_id]
        account = self.accounts.get(email)
        if account is not None and credential.provider_id not in account["methods"]:
            custom_data = {"email": email, "needConfirmation": True}
            if not self.strip_collision_tokens:
                custom_data["oauthIdToken"] = credential.id_token
                custom_data["oauthAccessToken"] = credential.access_token
            raise AuthError(ACCOUNT_EXISTS_WITH_DIFFERENT_CREDENTIAL, "needConfirmation",
                            email=email, custom_data=custom_data)
        if account is None:
            self.add_account(email, methods=(credential.provider_id,))
        return self._response(email, credential.provider_id)

    async def fetch_sign_in_methods(self, email):
        self.calls.append(("fetch_sign_in_methods", email))
        if self.methods_error is not None:
            raise self.methods_error
        if self.methods_override is not None:
            return list(self.methods_override)
        account = self.accounts.get(email)
        return list(account["methods"]) if account else []


@pytest.fixture
def documents():
    return FakeDocumentStore()


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def emitter():
    return EventEmitter()


@pytest.fixture
def session(identity, documents, emitter):
    client = ClientSession("client-1", AuthClient(identity), documents, emitter=emitter)
    client.start()
    yield client
    client.close()

