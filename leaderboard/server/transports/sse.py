"""
REST + server-sent events transport.

Endpoints:
    GET  /api/events         - text/event-stream of snapshot frames
    POST /api/events         - Any inbound tagged event ({"type": ...})
    POST /api/start-test     - startTest without the type tag
    POST /api/complete-test  - completeTest without the type tag

Each open stream is a StreamObserver on the BroadcastHub backed by a bounded
queue. A stream whose client stops reading fills its queue, fails delivery, is
dropped by the hub and ends.
"""
from __future__ import annotations

import json
import logging
import queue
import uuid
from typing import Iterator

from flask import Blueprint, Response, current_app, jsonify

from leaderboard.configurations.configuration_constants import InboundTypes
from leaderboard.server.api import (get_service, json_body,
                                    validation_failed)
from leaderboard.server.broadcast_hub import BroadcastHub, Observer
from leaderboard.server.errors import TransportError, ValidationError

logger = logging.getLogger(__name__)

sse_bp = Blueprint("sse", __name__, url_prefix="/api")

KEEPALIVE_FRAME = ": keep-alive\n\n"
MAX_PENDING_FRAMES = 100


def format_sse(message: dict) -> str:
    return f"data: {json.dumps(message)}\n\n"


class StreamObserver(Observer):
    """Buffers frames for one event-stream response."""

    def __init__(self, max_pending: int = MAX_PENDING_FRAMES):
        super().__init__(f"sse-{uuid.uuid4().hex[:12]}")
        self._queue: queue.Queue[dict] = queue.Queue(maxsize=max_pending)
        self.closed = False

    def deliver(self, message: dict) -> None:
        if self.closed:
            raise TransportError(self.observer_id, "stream closed")
        try:
            self._queue.put_nowait(message)
        except queue.Full:
            # An overflowed stream ends; the hub unregisters it
            self.closed = True
            raise TransportError(
                self.observer_id, "client is not reading its stream"
            ) from None

    def next_message(self, timeout: float) -> dict | None:
        """Next pending frame, or None if nothing arrived within ``timeout``."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        self.closed = True


def event_stream(
    hub: BroadcastHub, observer: StreamObserver, keepalive_interval_s: float
) -> Iterator[str]:
    """Yield SSE frames for ``observer`` until the client goes away.

    Registration happens on first iteration so the initial state is the first
    frame. When the server closes the generator (client disconnect) the
    observer is unregistered.
    """
    try:
        if not hub.register(observer):
            return
        while not observer.closed:
            message = observer.next_message(timeout=keepalive_interval_s)
            if message is None:
                yield KEEPALIVE_FRAME
            else:
                yield format_sse(message)
    finally:
        observer.close()
        hub.unregister(observer)


@sse_bp.route("/events", methods=["GET"])
def events_stream():
    service = get_service()
    observer = StreamObserver()
    stream = event_stream(
        service.hub, observer, current_app.config["LEADERBOARD_KEEPALIVE_S"]
    )
    return Response(
        stream,
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


def _handle(event_type: str | None = None):
    try:
        reply = get_service().handle_message(json_body(), event_type=event_type)
    except ValidationError as e:
        return validation_failed(e)

    if reply is not None:
        return jsonify(reply)
    return jsonify({"success": True})


@sse_bp.route("/events", methods=["POST"])
def post_event():
    return _handle()


@sse_bp.route("/start-test", methods=["POST"])
def start_test():
    return _handle(InboundTypes.StartTest)


@sse_bp.route("/complete-test", methods=["POST"])
def complete_test():
    return _handle(InboundTypes.CompleteTest)
