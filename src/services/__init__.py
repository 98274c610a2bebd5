"""Services package for LinguaVerse"""

from .firebase import (
    FirebaseService,
    DocumentStoreError,
    Subscription,
    SERVER_TIMESTAMP,
    friendly_storage_message,
)
from .identity import (
    IdentityService,
    AuthClient,
    AuthError,
    ProviderCredential,
    credential_from_error,
)
from .auth_errors import (
    friendly_auth_message,
    provider_display_name,
    PROVIDER_PASSWORD,
    PROVIDER_GOOGLE,
    PROVIDER_FACEBOOK,
)
from .events import EventEmitter, SessionEvent, session_events

__all__ = [
    # Firestore
    "FirebaseService",
    "DocumentStoreError",
    "Subscription",
    "SERVER_TIMESTAMP",
    "friendly_storage_message",
    # Identity
    "IdentityService",
    "AuthClient",
    "AuthError",
    "ProviderCredential",
    "credential_from_error",
    # Auth messages
    "friendly_auth_message",
    "provider_display_name",
    "PROVIDER_PASSWORD",
    "PROVIDER_GOOGLE",
    "PROVIDER_FACEBOOK",
    # Events
    "EventEmitter",
    "SessionEvent",
    "session_events",
]
