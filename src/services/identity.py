"""
Firebase Authentication client for LinguaVerse

Talks to the Identity Toolkit REST API (the same backend the Firebase web SDK
uses) and keeps per-connection sign-in state in AuthClient, which plays the
role of the web SDK's `auth` object: it knows the current user and notifies
auth-state listeners whenever that user changes.
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

import requests

from src.models import UserSession
from src.services.auth_errors import (
    PROVIDER_PASSWORD,
    PROVIDER_GOOGLE,
    PROVIDER_FACEBOOK,
)

logger = logging.getLogger(__name__)


# Error code raised when a social sign-in hits an email owned by another provider
ACCOUNT_EXISTS_WITH_DIFFERENT_CREDENTIAL = "account-exists-with-different-credential"

# Identity Toolkit error strings -> auth error codes
REST_ERROR_CODES = {
    "EMAIL_EXISTS": "email-already-in-use",
    "EMAIL_NOT_FOUND": "user-not-found",
    "INVALID_PASSWORD": "wrong-password",
    "INVALID_LOGIN_CREDENTIALS": "invalid-credential",
    "INVALID_IDP_RESPONSE": "invalid-credential",
    "INVALID_EMAIL": "invalid-email",
    "MISSING_PASSWORD": "missing-password",
    "WEAK_PASSWORD": "weak-password",
    "USER_DISABLED": "user-disabled",
    "OPERATION_NOT_ALLOWED": "operation-not-allowed",
    "PASSWORD_LOGIN_DISABLED": "operation-not-allowed",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "too-many-requests",
    "FEDERATED_USER_ID_ALREADY_LINKED": "credential-already-in-use",
    "PROVIDER_ALREADY_LINKED": "provider-already-linked",
    "CREDENTIAL_TOO_OLD_LOGIN_AGAIN": "requires-recent-login",
    "TOKEN_EXPIRED": "user-token-expired",
    "INVALID_ID_TOKEN": "invalid-user-token",
    "USER_NOT_FOUND": "user-not-found",
}

SOCIAL_PROVIDERS = (PROVIDER_GOOGLE, PROVIDER_FACEBOOK)


class AuthError(Exception):
    """
    Authentication failure reported by Firebase.

    Attributes:
        code: Auth error code without the `auth/` prefix
        email: Email involved in the failure, when the backend reports one
        custom_data: Raw response payload (holds the IdP tokens on collisions)
    """

    def __init__(self, code: str, message: Optional[str] = None,
                 email: Optional[str] = None, custom_data: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message or code
        self.email = email
        self.custom_data = custom_data or {}
        super().__init__(f"{code}: {self.message}")


def map_rest_error(raw_message: str) -> str:
    """Translate an Identity Toolkit error string ("WEAK_PASSWORD : ...") to a code"""
    key = (raw_message or "").split(" : ", 1)[0].strip()
    return REST_ERROR_CODES.get(key, "internal-error")


# ============================================================================
# Credentials
# ============================================================================

@dataclass(frozen=True)
class ProviderCredential:
    """OAuth proof from a social provider popup (Google id token, Facebook access token)"""
    provider_id: str
    id_token: Optional[str] = None
    access_token: Optional[str] = None

    def to_post_body(self) -> str:
        params = {"providerId": self.provider_id}
        if self.id_token:
            params["id_token"] = self.id_token
        if self.access_token:
            params["access_token"] = self.access_token
        return urlencode(params)


def credential_from_error(provider_id: str, error: AuthError) -> Optional[ProviderCredential]:
    """
    Rebuild the credential a failed social sign-in attempted.

    Only social providers can be rebuilt, and only when the error payload
    still carries an OAuth token.
    """
    if provider_id not in SOCIAL_PROVIDERS:
        return None
    data = error.custom_data or {}
    id_token = data.get("oauthIdToken")
    access_token = data.get("oauthAccessToken")
    if not id_token and not access_token:
        return None
    return ProviderCredential(provider_id=provider_id, id_token=id_token, access_token=access_token)


def _session_from_response(data: Dict[str, Any], provider_id: Optional[str]) -> UserSession:
    return UserSession(
        uid=data["localId"],
        email=data.get("email"),
        display_name=data.get("displayName") or None,
        photo_url=data.get("photoUrl") or None,
        provider_id=data.get("providerId") or provider_id,
        id_token=data.get("idToken"),
        refresh_token=data.get("refreshToken"),
    )


# ============================================================================
# Identity Toolkit REST client
# ============================================================================

class IdentityService:
    """Stateless Identity Toolkit client shared by all connections"""

    def __init__(self, api_key: str, base_url: str = "https://identitytoolkit.googleapis.com/v1",
                 request_uri: str = "http://localhost", timeout: int = 30, logger=None):
        """
        Initialize identity service.

        Args:
            api_key: Firebase web API key
            base_url: Identity Toolkit base URL (Auth emulator URL in development)
            request_uri: Authorized continue/request URI for IdP calls
            timeout: HTTP timeout in seconds
            logger: Optional LinguaVerseLogger for debug logging
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.request_uri = request_uri
        self.timeout = timeout
        self.logger = logger
        # requests is synchronous
        self._executor = ThreadPoolExecutor(max_workers=10, thread_name_prefix="identity")

    async def _run_sync(self, func, *args, **kwargs):
        """Run a blocking HTTP call in the thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, lambda: func(*args, **kwargs))

    def shutdown(self):
        """Shutdown the thread pool executor. Call during app shutdown."""
        if self._executor:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/accounts:{endpoint}"
        start_time = time.time()
        try:
            response = requests.post(url, params={"key": self.api_key}, json=payload, timeout=self.timeout)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            self._log_call(endpoint, "network-error", start_time)
            raise AuthError("network-request-failed", str(e)) from e
        except requests.exceptions.RequestException as e:
            self._log_call(endpoint, "error", start_time)
            raise AuthError("internal-error", str(e)) from e

        if not response.ok:
            try:
                raw = response.json().get("error", {}).get("message", "")
            except ValueError:
                raw = response.text[:200]
            code = map_rest_error(raw)
            self._log_call(endpoint, code, start_time)
            raise AuthError(code, raw)

        self._log_call(endpoint, "success", start_time)
        return response.json()

    def _log_call(self, endpoint: str, status: str, start_time: float):
        if self.logger:
            self.logger.auth_call(endpoint=endpoint, status=status, duration=time.time() - start_time)

    async def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        return await self._run_sync(self._post, "signUp", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })

    async def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        return await self._run_sync(self._post, "signInWithPassword", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })

    async def sign_in_with_idp(self, credential: ProviderCredential,
                               id_token: Optional[str] = None) -> Dict[str, Any]:
        """
        Sign in (or link, when id_token is given) with a social provider credential.

        Raises:
            AuthError: `account-exists-with-different-credential` when the email
                already belongs to an account using another provider; the
                raw payload is attached as custom_data.
        """
        payload = {
            "postBody": credential.to_post_body(),
            "requestUri": self.request_uri,
            "returnSecureToken": True,
            "returnIdpCredential": True,
        }
        if id_token:
            payload["idToken"] = id_token

        data = await self._run_sync(self._post, "signInWithIdp", payload)

        # With returnIdpCredential the backend reports some failures in a 200 body
        if data.get("errorMessage"):
            raise AuthError(map_rest_error(data["errorMessage"]), data["errorMessage"],
                            email=data.get("email"), custom_data=data)
        if data.get("needConfirmation"):
            raise AuthError(
                ACCOUNT_EXISTS_WITH_DIFFERENT_CREDENTIAL,
                "An account already exists with the same email address but different sign-in credentials.",
                email=data.get("email"),
                custom_data=data,
            )
        return data

    async def fetch_sign_in_methods(self, email: str) -> List[str]:
        data = await self._run_sync(self._post, "createAuthUri", {
            "identifier": email,
            "continueUri": self.request_uri,
        })
        return list(data.get("signinMethods") or [])

    def create_client(self) -> "AuthClient":
        """New per-connection auth state"""
        return AuthClient(self)


# ============================================================================
# Per-connection auth state
# ============================================================================

AuthStateListener = Callable[[Optional[UserSession]], None]


class AuthClient:
    """
    Sign-in state of one client connection.

    Listeners are called synchronously on the event loop, in registration
    order, every time the current user changes.
    """

    def __init__(self, identity: IdentityService):
        self.identity = identity
        self.current_user: Optional[UserSession] = None
        self._listeners: List[AuthStateListener] = []

    def on_auth_state_changed(self, callback: AuthStateListener) -> Callable[[], None]:
        """Register a listener; it is called immediately with the current user"""
        self._listeners.append(callback)
        callback(self.current_user)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _set_user(self, user: Optional[UserSession]):
        self.current_user = user
        for callback in list(self._listeners):
            callback(user)

    async def create_user_with_email_and_password(self, email: str, password: str) -> UserSession:
        data = await self.identity.sign_up(email, password)
        user = _session_from_response(data, PROVIDER_PASSWORD)
        self._set_user(user)
        return user

    async def sign_in_with_email_and_password(self, email: str, password: str) -> UserSession:
        data = await self.identity.sign_in_with_password(email, password)
        user = _session_from_response(data, PROVIDER_PASSWORD)
        self._set_user(user)
        return user

    async def sign_in_with_credential(self, credential: ProviderCredential) -> UserSession:
        """Complete a social sign-in with the credential the provider popup produced"""
        data = await self.identity.sign_in_with_idp(credential)
        user = _session_from_response(data, credential.provider_id)
        self._set_user(user)
        return user

    async def sign_out(self):
        self._set_user(None)

    async def fetch_sign_in_methods_for_email(self, email: str) -> List[str]:
        return await self.identity.fetch_sign_in_methods(email)

    async def link_with_credential(self, user: UserSession, credential: ProviderCredential) -> UserSession:
        """
        Attach another credential to an already signed-in account.

        The uid does not change, so auth-state listeners are not notified;
        only the stored tokens are refreshed.
        """
        if not user.id_token:
            raise AuthError("invalid-user-token", "Current user has no id token")

        data = await self.identity.sign_in_with_idp(credential, id_token=user.id_token)

        linked = user.model_copy(update={
            "id_token": data.get("idToken") or user.id_token,
            "refresh_token": data.get("refreshToken") or user.refresh_token,
        })
        if self.current_user is not None and self.current_user.uid == linked.uid:
            self.current_user = linked
        logger.info(f"🔗 Linked {credential.provider_id} to {user.email}")
        return linked
