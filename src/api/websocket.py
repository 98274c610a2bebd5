"""
WebSocket Route for Client Sessions

One connection = one ClientSession. The browser sends actions as JSON
({"action": "sign_in", "email": ..., "password": ...}); the server pushes a
full view-state snapshot after every change ({"type": "state", "data": {...}}).

Actions are handled one at a time in arrival order. Listener snapshots keep
flowing while an action awaits the network.
"""

from fastapi import WebSocket, WebSocketDisconnect, APIRouter
from typing import Any, Awaitable, Callable, Dict, Optional
import asyncio
import json
import logging
import uuid

from src.services.events import EVENT_ERROR, EVENT_STATE_CHANGED
from src.services.identity import ProviderCredential
from src.session import ClientSession

logger = logging.getLogger(__name__)

router = APIRouter()


class ActionError(ValueError):
    """Malformed action payload"""


def _require(message: Dict[str, Any], key: str) -> str:
    value = message.get(key)
    if not isinstance(value, str) or not value:
        raise ActionError(f"'{key}' is required")
    return value


def _credential(message: Dict[str, Any], provider_id: str) -> Optional[ProviderCredential]:
    id_token = message.get("idToken")
    access_token = message.get("accessToken")
    if not id_token and not access_token:
        return None
    return ProviderCredential(provider_id=provider_id, id_token=id_token, access_token=access_token)


async def _social_sign_in(session: ClientSession, message: Dict[str, Any]):
    provider = _require(message, "provider")
    await session.social_sign_in(provider, _credential(message, provider), popup_error=message.get("popupError"))


async def _link(session: ClientSession, message: Dict[str, Any]):
    method = _require(message, "method")
    await session.link_with_method(
        method,
        password=message.get("password"),
        credential=_credential(message, method),
        popup_error=message.get("popupError"),
    )


async def _sync(func):
    func()


ActionHandler = Callable[[ClientSession, Dict[str, Any]], Awaitable[Any]]

ACTIONS: Dict[str, ActionHandler] = {
    "sign_up": lambda s, m: s.sign_up(m.get("email", ""), m.get("password", "")),
    "sign_in": lambda s, m: s.sign_in(m.get("email", ""), m.get("password", "")),
    "sign_out": lambda s, m: s.sign_out(),
    "social_sign_in": _social_sign_in,
    "link": _link,
    "cancel_linking": lambda s, m: _sync(s.cancel_linking),
    "edit_profile": lambda s, m: _sync(lambda: s.edit_profile(m.get("displayName"), m.get("nativeLanguage"))),
    "save_profile": lambda s, m: s.save_profile(m.get("displayName"), m.get("nativeLanguage")),
    "select_story": lambda s, m: _sync(lambda: s.select_story(_require(m, "storyId"))),
    "deselect_story": lambda s, m: _sync(s.deselect_story),
    "next_page": lambda s, m: _sync(s.next_page),
    "previous_page": lambda s, m: _sync(s.previous_page),
    "click_vocabulary": lambda s, m: _sync(lambda: s.click_vocabulary(_require(m, "token"))),
    "close_vocabulary": lambda s, m: _sync(s.close_vocabulary),
}


async def handle_action(session: ClientSession, raw: str):
    """
    Parse and run one action.

    Raises:
        ActionError: If the payload is not a known, well-formed action
    """
    try:
        message = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ActionError("Message is not valid JSON") from e
    if not isinstance(message, dict):
        raise ActionError("Message must be a JSON object")

    action = message.get("action")
    handler = ACTIONS.get(action)
    if handler is None:
        raise ActionError(f"Unknown action: {action}")
    await handler(session, message)


async def send_events(websocket: WebSocket, event_queue: asyncio.Queue):
    """Forward queued session events to the browser"""
    while True:
        event = await event_queue.get()
        await websocket.send_json(event.to_dict())


async def stop_sender(sender: asyncio.Task):
    """Cancel the event sender and collect its result, including a failed send"""
    sender.cancel()
    try:
        await sender
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.debug(f"Event sender ended with {type(e).__name__}: {e}")


@router.websocket("/ws/session")
async def websocket_session_endpoint(websocket: WebSocket):
    app_state = websocket.app.state
    settings = app_state.settings
    emitter = app_state.events
    app_logger = getattr(app_state, "app_logger", None)

    await websocket.accept()
    client_id = uuid.uuid4().hex
    if app_logger:
        app_logger.session_connected(client_id)

    session = ClientSession(
        client_id,
        app_state.identity_service.create_client(),
        app_state.firebase_service,
        emitter=emitter,
        guard_local_edits=settings.profile_guard_local_edits,
        default_language=settings.default_native_language,
        app_logger=app_logger,
    )
    queue = emitter.create_client_queue(client_id)
    sender = asyncio.create_task(send_events(websocket, queue))

    try:
        session.start()
        emitter.emit(EVENT_STATE_CHANGED, client_id, session.snapshot())

        while True:
            raw = await websocket.receive_text()
            try:
                await handle_action(session, raw)
            except ActionError as e:
                emitter.emit(EVENT_ERROR, client_id, {"message": str(e)})
            except Exception as e:
                session.report_unexpected(e)
    except WebSocketDisconnect:
        pass
    finally:
        session.close()
        emitter.remove_client_queue(client_id)
        await stop_sender(sender)
        if app_logger:
            app_logger.session_disconnected(client_id)
