"""
Event System for Real-Time Session Updates

Manages event emission and per-connection queues that the WebSocket route
drains to push view-state snapshots to the browser.
"""

from typing import Dict, Any
from asyncio import Queue
from datetime import datetime


# ==================== Event Type Constants ====================
EVENT_STATE_CHANGED = "state"
EVENT_ERROR = "error"


class SessionEvent:
    """Represents a session event"""
    def __init__(self, event_type: str, client_id: str, data: Dict[str, Any]):
        self.event_type = event_type
        self.client_id = client_id
        self.data = data
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.event_type,
            "client_id": self.client_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat()
        }


class EventEmitter:
    """
    Event emitter for client session events.

    Emission is synchronous so it can be called from reducer dispatch, which
    runs inside listener callbacks on the event loop:
    - state: a new view-state snapshot for the client
    - error: a failure that did not change the view state (bad action payload)
    """

    def __init__(self):
        self._client_queues: Dict[str, Queue] = {}  # client_id -> event queue

    def emit(self, event_type: str, client_id: str, data: Dict[str, Any]):
        """Queue the event for the client's WebSocket, if it is connected"""
        event = SessionEvent(event_type, client_id, data)
        if client_id in self._client_queues:
            self._client_queues[client_id].put_nowait(event)

    def create_client_queue(self, client_id: str) -> Queue:
        """Create event queue for a specific client (for WebSocket connection)"""
        queue = Queue()
        self._client_queues[client_id] = queue
        return queue

    def remove_client_queue(self, client_id: str):
        """Remove client queue when WebSocket disconnects"""
        if client_id in self._client_queues:
            del self._client_queues[client_id]


# Shared emitter for the running application
session_events = EventEmitter()
