"""State container: holds the current AppState and applies actions through reduce()."""

import logging
from typing import Callable, List

from src.session.state import Action, AppState, reduce

logger = logging.getLogger(__name__)

StateListener = Callable[[AppState], None]


class StateStore:
    """
    Single owner of a client's AppState.

    dispatch() runs synchronously on the event loop; subscribers see every
    state that differs from the previous one, in order.
    """

    def __init__(self, initial: AppState = None):
        self.state = initial or AppState()
        self._subscribers: List[StateListener] = []

    def subscribe(self, callback: StateListener) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def dispatch(self, action: Action) -> AppState:
        new_state = reduce(self.state, action)
        if new_state == self.state:
            return self.state
        self.state = new_state
        logger.debug(f"{type(action).__name__} → view={new_state.view.name}")
        for callback in list(self._subscribers):
            callback(new_state)
        return new_state
