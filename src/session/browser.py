"""
Story/Page Browser

Keeps the story list in sync with the `stories` collection and, for the
selected story, its pages ordered by pageNumber. Each listener lives exactly
as long as the state that justified it: the story listener as long as the
session, the page listener as long as the selection.
"""

import logging
from typing import List, Optional

from pydantic import ValidationError

from src.models import COLLECTION_STORIES, Page, Story, pages_path
from src.services.firebase import DocumentStoreError, Subscription
from src.session.state import (
    ErrorRaised,
    PageMoved,
    PagesReceived,
    StoriesReceived,
    StoryDeselected,
    StorySelected,
    VocabularyClicked,
    VocabularyClosed,
)
from src.session.store import StateStore

logger = logging.getLogger(__name__)

STORIES_LOAD_FAILED_MESSAGE = "Could not load stories. Please refresh and try again."
PAGES_LOAD_FAILED_MESSAGE = "Could not load this story's pages. Please try again."


def _parse_all(model, documents: List[dict]) -> list:
    parsed = []
    for data in documents:
        try:
            parsed.append(model.model_validate(data))
        except ValidationError as e:
            logger.warning(f"⚠️ Skipping malformed {model.__name__} {data.get('id')}: {e.error_count()} errors")
    return parsed


class StoryBrowser:
    def __init__(self, documents, store: StateStore):
        self.documents = documents
        self.store = store
        self._stories_subscription: Optional[Subscription] = None
        self._pages_subscription: Optional[Subscription] = None

    # Story list

    def attach_stories(self):
        self._detach_stories()
        self._stories_subscription = self.documents.subscribe_collection(
            COLLECTION_STORIES, self._on_stories, self._on_stories_error
        )

    def detach_all(self):
        self._detach_pages()
        self._detach_stories()

    def _detach_stories(self):
        if self._stories_subscription is not None:
            self._stories_subscription.unsubscribe()
            self._stories_subscription = None

    def _on_stories(self, documents: List[dict]):
        self.store.dispatch(StoriesReceived(tuple(_parse_all(Story, documents))))

    def _on_stories_error(self, error: DocumentStoreError):
        logger.error(f"❌ Story listener failed: {error}")
        self.store.dispatch(ErrorRaised(STORIES_LOAD_FAILED_MESSAGE))

    # Selection

    def select_story(self, story_id: str) -> bool:
        if self.store.state.session is None:
            return False
        self._detach_pages()
        self.store.dispatch(StorySelected(story_id))

        def on_pages(documents: List[dict]):
            self.store.dispatch(PagesReceived(story_id, tuple(_parse_all(Page, documents))))

        def on_error(error: DocumentStoreError):
            logger.error(f"❌ Page listener failed for {story_id}: {error}")
            self.store.dispatch(ErrorRaised(PAGES_LOAD_FAILED_MESSAGE))

        self._pages_subscription = self.documents.subscribe_collection(
            pages_path(story_id), on_pages, on_error, order_by="pageNumber"
        )
        return True

    def deselect_story(self):
        self._detach_pages()
        self.store.dispatch(StoryDeselected())

    def _detach_pages(self):
        if self._pages_subscription is not None:
            self._pages_subscription.unsubscribe()
            self._pages_subscription = None

    # Reading

    def next_page(self):
        self.store.dispatch(PageMoved(1))

    def previous_page(self):
        self.store.dispatch(PageMoved(-1))

    def click_vocabulary(self, token: str):
        self.store.dispatch(VocabularyClicked(token))

    def close_vocabulary(self):
        self.store.dispatch(VocabularyClosed())
