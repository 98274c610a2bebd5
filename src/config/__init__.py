"""Configuration package for LinguaVerse"""

from .settings import Settings, get_settings
from .limits import (
    MESSAGE_MAX_LENGTH,
    DISPLAY_NAME_MAX_LENGTH,
    LANGUAGE_CODE_PATTERN,
    PASSWORD_MIN_LENGTH,
)

__all__ = [
    "Settings",
    "get_settings",
    "MESSAGE_MAX_LENGTH",
    "DISPLAY_NAME_MAX_LENGTH",
    "LANGUAGE_CODE_PATTERN",
    "PASSWORD_MIN_LENGTH",
]
