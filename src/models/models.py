"""
Pydantic data models for LinguaVerse

Persisted Firestore documents use camelCase field names; the models expose
snake_case attributes and keep the camelCase names as aliases, so
`model_validate(snapshot_dict)` and `model_dump(by_alias=True)` round-trip the
stored shape.

| Document                       | Shape                                                        |
|--------------------------------|--------------------------------------------------------------|
| users/{uid}                    | email, displayName, photoURL, nativeLanguage, currentStreak, |
|                                | totalXP, lastLogin                                           |
| stories/{id}                   | title, level, category, estimatedReadingTimeMinutes          |
| stories/{id}/pages/{id}        | pageNumber, imageUrl, audioUrl, textEnglish,                 |
|                                | vocabularyTokens: [{word, token}]                            |
| messages/{id}                  | text, authorId, timestamp                                    |
"""

from pydantic import BaseModel, Field, field_serializer, field_validator
from typing import List, Optional, Any
from datetime import datetime

from src.config.limits import (
    MESSAGE_MAX_LENGTH,
    DISPLAY_NAME_MAX_LENGTH,
    LANGUAGE_CODE_PATTERN,
)


# Firestore collection names
COLLECTION_USERS = "users"
COLLECTION_STORIES = "stories"
COLLECTION_PAGES = "pages"
COLLECTION_MESSAGES = "messages"


def profile_path(uid: str) -> str:
    return f"{COLLECTION_USERS}/{uid}"


def pages_path(story_id: str) -> str:
    return f"{COLLECTION_STORIES}/{story_id}/{COLLECTION_PAGES}"


# ============================================================================
# Session
# ============================================================================

class UserSession(BaseModel):
    """
    The currently authenticated identity.

    Created and destroyed by Firebase Authentication; the application only
    observes it. Tokens are kept so that follow-up identity calls (linking)
    can act on behalf of the user and are never serialized to clients.
    """
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    provider_id: Optional[str] = None
    id_token: Optional[str] = Field(default=None, exclude=True, repr=False)
    refresh_token: Optional[str] = Field(default=None, exclude=True, repr=False)


# ============================================================================
# Profile
# ============================================================================

class Profile(BaseModel):
    """Learner profile document, keyed by session uid"""
    model_config = {"populate_by_name": True}

    email: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    native_language: Optional[str] = Field(default=None, alias="nativeLanguage")
    current_streak: int = Field(default=0, alias="currentStreak")
    total_xp: int = Field(default=0, alias="totalXP")
    last_login: Optional[datetime] = Field(default=None, alias="lastLogin")

    @field_serializer('last_login')
    def serialize_last_login(self, value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value else None


class ProfileUpdate(BaseModel):
    """Partial profile update issued by the save action"""
    model_config = {"populate_by_name": True}

    display_name: str = Field(..., max_length=DISPLAY_NAME_MAX_LENGTH, alias="displayName")
    native_language: str = Field(..., pattern=LANGUAGE_CODE_PATTERN, alias="nativeLanguage")


# ============================================================================
# Stories and Pages
# ============================================================================

class Story(BaseModel):
    """Story summary (read-only)"""
    model_config = {"populate_by_name": True}

    id: str
    title: str = ""
    level: Optional[str] = None
    category: Optional[str] = None
    estimated_reading_time_minutes: Optional[float] = Field(
        default=None, alias="estimatedReadingTimeMinutes"
    )


class VocabularyToken(BaseModel):
    """A marked word in page text with its translation lookup id"""
    word: str
    token: str


class Page(BaseModel):
    """One page of a story, ordered by page_number (read-only)"""
    model_config = {"populate_by_name": True}

    id: str
    page_number: int = Field(..., alias="pageNumber")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    audio_url: Optional[str] = Field(default=None, alias="audioUrl")
    text_english: str = Field(default="", alias="textEnglish")
    vocabulary_tokens: List[VocabularyToken] = Field(
        default_factory=list, alias="vocabularyTokens"
    )

    @field_validator('vocabulary_tokens', mode='before')
    @classmethod
    def drop_missing_tokens(cls, value: Any) -> Any:
        """Firestore returns null for an absent array field"""
        return value or []

    def find_token(self, token: str) -> Optional[VocabularyToken]:
        for vocab in self.vocabulary_tokens:
            if vocab.token == token:
                return vocab
        return None


# ============================================================================
# Messages
# ============================================================================

class MessageCreate(BaseModel):
    """
    Request body for the message submission endpoint.

    Both fields are optional at the schema level so that the route can answer
    a missing field with its own 400 payload instead of a 422.
    """
    model_config = {"populate_by_name": True}

    message: Optional[str] = Field(default=None, max_length=MESSAGE_MAX_LENGTH)
    user_id: Optional[str] = Field(default=None, alias="userId")
