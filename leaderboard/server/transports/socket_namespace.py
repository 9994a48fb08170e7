"""
SocketIO namespace for the bidirectional live-update transport.

Each connected socket becomes a SocketObserver on the BroadcastHub. Inbound
frames arrive on the ``message`` event as ``{"type": ..., ...}`` objects;
outbound frames are emitted under their ``type`` as the event name, with the
full frame (type included) as payload.

Keep-alive is Socket.IO's own ping/pong (see ``ping_interval`` in the config);
clients may additionally send ``{"type": "heartbeat"}`` and get it echoed.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import flask_socketio
from flask import request
from flask_socketio import Namespace, emit

from leaderboard.server.broadcast_hub import Observer
from leaderboard.server.errors import TransportError, ValidationError

if TYPE_CHECKING:
    from leaderboard.server.leaderboard_service import LeaderboardService

logger = logging.getLogger(__name__)


class SocketObserver(Observer):
    """Delivers frames to one socket by emitting to its private room."""

    def __init__(self, socketio: flask_socketio.SocketIO, sid: str, namespace: str):
        super().__init__(sid)
        self.socketio = socketio
        self.sid = sid
        self.namespace = namespace

    def deliver(self, message: dict) -> None:
        try:
            self.socketio.emit(
                message["type"], message, to=self.sid, namespace=self.namespace
            )
        except Exception as e:
            raise TransportError(self.observer_id, f"emit failed: {e}") from e


class LeaderboardNamespace(Namespace):
    """
    Handles tester and viewer sockets.

    Every connection is an observer: it receives ``initialState`` on connect
    and ``stateUpdate`` after each mutation, whoever caused it.
    """

    def __init__(self, namespace, service: LeaderboardService):
        """
        Initialize the namespace.

        Args:
            namespace: The namespace path (usually '/')
            service: LeaderboardService that owns the registry and hub
        """
        super().__init__(namespace)
        self.service = service
        self._observers: dict[str, SocketObserver] = {}
        logger.info(f"LeaderboardNamespace initialized on {namespace}")

    def on_connect(self, auth=None):
        sid = request.sid
        observer = SocketObserver(self.socketio, sid, self.namespace)
        self._observers[sid] = observer
        self.service.hub.register(observer)

    def on_disconnect(self, reason=None):
        sid = request.sid
        observer = self._observers.pop(sid, None)
        if observer is not None:
            self.service.hub.unregister(observer)
        logger.debug(f"Socket {sid} disconnected ({reason})")

    def on_message(self, data):
        """
        Apply one inbound tagged event.

        Replies (heartbeat echo, getState snapshot) go to the sender only.
        The return value is the Socket.IO acknowledgement, delivered when the
        client asked for one.
        """
        try:
            reply = self.service.handle_message(data)
        except ValidationError as e:
            return {"success": False, "error": str(e)}
        except Exception as e:
            logger.exception(f"Error handling message from {request.sid}: {e}")
            return {"success": False, "error": "Internal error"}

        if reply is not None:
            emit(reply["type"], reply)
        return {"success": True}
