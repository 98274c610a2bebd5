"""
Models package - Pydantic data models for LinguaVerse

Re-exports all models for cleaner imports:
    from src.models import Profile, Story, Page
"""

from src.models.models import (
    COLLECTION_USERS,
    COLLECTION_STORIES,
    COLLECTION_PAGES,
    COLLECTION_MESSAGES,
    profile_path,
    pages_path,
    UserSession,
    Profile,
    ProfileUpdate,
    Story,
    Page,
    VocabularyToken,
    MessageCreate,
)
