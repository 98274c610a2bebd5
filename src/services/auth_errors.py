"""
Friendly messages for Firebase Authentication error codes.

Codes are the `auth/` codes with the namespace stripped. Unknown codes fall
back to a generic message; callers never show raw provider errors.
"""

from typing import Optional


PROVIDER_PASSWORD = "password"
PROVIDER_GOOGLE = "google.com"
PROVIDER_FACEBOOK = "facebook.com"

PROVIDER_DISPLAY_NAMES = {
    PROVIDER_PASSWORD: "Email/Password",
    PROVIDER_GOOGLE: "Google",
    PROVIDER_FACEBOOK: "Facebook",
}

GENERIC_AUTH_MESSAGE = "An unexpected error occurred. Please try again."

_INVALID_CREDENTIALS = "Invalid email or password."

AUTH_ERROR_MESSAGES = {
    "invalid-email": "The email address is not valid.",
    "user-disabled": "This account has been disabled.",
    "user-not-found": _INVALID_CREDENTIALS,
    "wrong-password": _INVALID_CREDENTIALS,
    "invalid-credential": _INVALID_CREDENTIALS,
    "email-already-in-use": "An account with this email already exists.",
    "weak-password": "Password should be at least 6 characters.",
    "network-request-failed": "Network error. Please check your connection and try again.",
    "too-many-requests": "Too many attempts. Please try again later.",
    "operation-not-allowed": "This sign-in method is not enabled. Please contact support.",
    "popup-closed-by-user": "Sign-in was canceled by the user.",
    "cancelled-popup-request": "Sign-in cancelled. Perhaps a popup was already open or blocked.",
    "credential-already-in-use": "This account is already linked to another user.",
    "provider-already-linked": "The selected provider ({provider}) is already linked to your account.",
}


def provider_display_name(provider_id: Optional[str]) -> str:
    """Human readable provider name; unknown ids are shown as-is"""
    if provider_id is None:
        return "this provider"
    return PROVIDER_DISPLAY_NAMES.get(provider_id, provider_id)


def friendly_auth_message(code: Optional[str], provider_id: Optional[str] = None) -> str:
    """
    Map an auth error code to the message shown to the learner.

    Args:
        code: Error code, with or without the `auth/` prefix
        provider_id: Provider involved, used by provider-specific messages

    Returns:
        The fixed message for the code, or GENERIC_AUTH_MESSAGE
    """
    if not code:
        return GENERIC_AUTH_MESSAGE
    if code.startswith("auth/"):
        code = code[len("auth/"):]

    template = AUTH_ERROR_MESSAGES.get(code)
    if template is None:
        return GENERIC_AUTH_MESSAGE
    return template.format(provider=provider_display_name(provider_id))
