"""
Linking Coordinator

Two states, Idle and LinkingPending (held in the client's view state):

    Idle --social sign-in collides--> LinkingPending
    LinkingPending --sign in with existing method + link--> Idle
    LinkingPending --sign-in or link fails--> LinkingPending (retry)
    LinkingPending --cancel / new top-level attempt--> Idle
"""

import logging
from typing import List, Optional

from src.services.auth_errors import (
    AUTH_ERROR_MESSAGES,
    PROVIDER_FACEBOOK,
    PROVIDER_GOOGLE,
    PROVIDER_PASSWORD,
    friendly_auth_message,
    provider_display_name,
)
from src.services.identity import (
    ACCOUNT_EXISTS_WITH_DIFFERENT_CREDENTIAL,
    SOCIAL_PROVIDERS,
    AuthClient,
    AuthError,
    ProviderCredential,
    credential_from_error,
)
from src.session.state import (
    ErrorCleared,
    ErrorRaised,
    LinkingCancelled,
    LinkingCompleted,
    LinkingRequest,
    LinkingStarted,
)
from src.session.store import StateStore

logger = logging.getLogger(__name__)

GOOGLE_MAIL_DOMAINS = ("gmail.com", "googlemail.com")

NO_PENDING_CREDENTIAL_MESSAGE = "Could not retrieve pending credential for linking. Please try again."
METHODS_LOOKUP_FAILED_MESSAGE = "Failed to determine existing sign-in methods. Please try again."
NO_LINKING_MESSAGE = "No account linking process is active."
PASSWORD_REQUIRED_MESSAGE = "Please enter your password to sign in for linking."
NO_ACTIVE_USER_MESSAGE = "Failed to sign in for linking. No active user after sign-in attempt."
LINKING_FAILED_MESSAGE = "Linking failed. Please try again."


def conflict_message(email: str) -> str:
    return (
        f"An account with this email ({email}) already exists. "
        "Please sign in with one of your existing methods to link accounts."
    )


def wrong_account_message(email: str) -> str:
    return f"Please sign in with the account for {email} to link accounts."


def infer_sign_in_methods(email: str, failed_provider_id: str) -> List[str]:
    """
    Fallback policy for an empty sign-in method lookup.

    With email enumeration protection enabled the backend reports no methods
    even for an address that just collided. This guesses a plausible set from
    the email domain; it is a heuristic, not a statement of what the account
    actually has. The provider that just failed is never offered.
    """
    domain = email.rsplit("@", 1)[-1].lower()
    if domain in GOOGLE_MAIL_DOMAINS:
        methods = [PROVIDER_GOOGLE, PROVIDER_PASSWORD]
    else:
        methods = [PROVIDER_PASSWORD, PROVIDER_FACEBOOK]
    return [m for m in methods if m != failed_provider_id]


class LinkingCoordinator:
    def __init__(self, auth: AuthClient, store: StateStore, app_logger=None):
        self.auth = auth
        self.store = store
        self.app_logger = app_logger

    async def handle_social_failure(self, provider_id: str, error: AuthError) -> bool:
        """
        Start linking if `error` is a provider collision.

        Returns:
            True if the error was a collision and has been handled here
        """
        if error.code != ACCOUNT_EXISTS_WITH_DIFFERENT_CREDENTIAL:
            return False

        email = error.email or error.custom_data.get("email")
        logger.warning(f"⚠️ Account exists conflict for {email}, starting linking flow")

        pending = credential_from_error(provider_id, error)
        if pending is None or not email:
            self.store.dispatch(ErrorRaised(NO_PENDING_CREDENTIAL_MESSAGE))
            return True

        try:
            methods = await self.auth.fetch_sign_in_methods_for_email(email)
        except AuthError as e:
            logger.error(f"❌ Sign-in method lookup failed for {email}: {e}")
            self.store.dispatch(ErrorRaised(METHODS_LOOKUP_FAILED_MESSAGE))
            return True

        if not methods:
            methods = infer_sign_in_methods(email, provider_id)
            logger.warning(f"⚠️ No sign-in methods reported for {email}, inferred {methods}")

        request = LinkingRequest(email=email, pending_credential=pending, existing_methods=tuple(methods))
        if self.app_logger:
            self.app_logger.linking_started(email, list(methods))
        self.store.dispatch(LinkingStarted(request, conflict_message(email), session=self.auth.current_user))
        return True

    async def sign_in_for_linking(self, method: str, password: Optional[str] = None,
                                  credential: Optional[ProviderCredential] = None,
                                  popup_error: Optional[str] = None) -> bool:
        """
        Sign in with an existing method for the conflicting email, then link
        the held credential onto that account.

        Args:
            method: One of the request's existing sign-in methods
            password: Required for the password method
            credential: Provider popup result, required for social methods
            popup_error: Error code reported by the browser when the popup failed

        Returns:
            True if the accounts were linked
        """
        request = self.store.state.linking
        if request is None:
            self.store.dispatch(ErrorRaised(NO_LINKING_MESSAGE))
            return False
        self.store.dispatch(ErrorCleared())

        if popup_error:
            self.store.dispatch(ErrorRaised(friendly_auth_message(popup_error, method)))
            return False

        try:
            if method == PROVIDER_PASSWORD:
                if not password:
                    self.store.dispatch(ErrorRaised(PASSWORD_REQUIRED_MESSAGE))
                    return False
                await self.auth.sign_in_with_email_and_password(request.email, password)
            elif method in SOCIAL_PROVIDERS:
                if credential is None or credential.provider_id != method:
                    self.store.dispatch(ErrorRaised(
                        f"Please complete the {provider_display_name(method)} sign-in to link accounts."
                    ))
                    return False
                await self.auth.sign_in_with_credential(credential)
            else:
                self.store.dispatch(ErrorRaised(f"Unsupported linking method: {method}"))
                return False

            # Signing in replaced the view with Authenticated; the request is still held here
            user = self.auth.current_user
            if user is None:
                self._keep_pending(request, NO_ACTIVE_USER_MESSAGE)
                return False
            if (user.email or "").lower() != request.email.lower():
                logger.warning(f"⚠️ Linking sign-in for {request.email} returned {user.email}, not linking")
                await self.auth.sign_out()
                self._keep_pending(request, wrong_account_message(request.email))
                return False

            await self.auth.link_with_credential(user, request.pending_credential)
        except AuthError as e:
            logger.error(f"❌ Error during linking sign-in: {e.code} {e.message}")
            self._keep_pending(request, self._failure_message(e, method))
            return False

        if self.app_logger:
            self.app_logger.auth_event("accounts linked", request.email, request.pending_credential.provider_id)
        self.store.dispatch(LinkingCompleted())
        return True

    def cancel(self):
        self.store.dispatch(LinkingCancelled())

    def _keep_pending(self, request: LinkingRequest, message: str):
        self.store.dispatch(LinkingStarted(request, message, session=self.auth.current_user))

    @staticmethod
    def _failure_message(error: AuthError, method: str) -> str:
        if error.code in AUTH_ERROR_MESSAGES:
            return friendly_auth_message(error.code, method)
        return LINKING_FAILED_MESSAGE
