from __future__ import annotations

import logging
import threading

from wiserpin.client.errors import WiserPinError


logger = logging.getLogger(__name__)


class MessageType:
    PING = "PING"
    PONG = "PONG"
    TRIGGER_SYNC = "TRIGGER_SYNC"
    GET_SYNC_STATUS = "GET_SYNC_STATUS"
    GET_SYNC_SETTINGS = "GET_SYNC_SETTINGS"
    UPDATE_SYNC_SETTINGS = "UPDATE_SYNC_SETTINGS"
    ENABLE_SYNC = "ENABLE_SYNC"
    DISABLE_SYNC = "DISABLE_SYNC"
    SYNC_STATUS_CHANGED = "SYNC_STATUS_CHANGED"


class MessageBus:
    """Request/response handlers plus a fire-and-forget broadcast channel.

    Listeners only see broadcasts published while they are subscribed; there
    is no replay, so a late subscriber should ask for ``GET_SYNC_STATUS``.
    """

    def __init__(self):
        self._handlers = {}
        self._listeners = []
        self._lock = threading.Lock()
        self.register(MessageType.PING, lambda message: {"type": MessageType.PONG})

    def register(self, message_type: str, handler) -> None:
        self._handlers[message_type] = handler

    def send(self, message: dict) -> dict:
        message_type = (message or {}).get("type")
        handler = self._handlers.get(message_type)
        if handler is None:
            logger.warning("Unknown message type: %s", message_type)
            return {"error": "Unknown message type"}
        try:
            return handler(message)
        except WiserPinError as exc:
            return {"error": str(exc)}
        except Exception as exc:
            logger.exception("Handler for %s failed", message_type)
            return {"error": str(exc) or exc.__class__.__name__}

    def subscribe(self, listener):
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def broadcast(self, message: dict) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(message)
            except Exception as exc:
                logger.debug("Listener failed for %s: %s", message.get("type"), exc)
