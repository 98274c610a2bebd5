"""
Centralized Validation Limits

All input limits in one place for consistency.
Import these in both API routes and Pydantic models.
"""

# =============================================================================
# USER INPUT LIMITS
# =============================================================================

# Message submission endpoint
MESSAGE_MAX_LENGTH = 5000

# Profile display name
DISPLAY_NAME_MAX_LENGTH = 100

# ISO 639-1 code, optionally with a region ("en", "pt-BR")
LANGUAGE_CODE_PATTERN = r"^[a-z]{2}(-[A-Z]{2})?$"

# Firebase Authentication rejects shorter passwords with WEAK_PASSWORD
PASSWORD_MIN_LENGTH = 6
