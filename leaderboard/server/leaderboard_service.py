"""Glue between transports and the registry/hub pair.

Both transports hand inbound payloads to ``LeaderboardService.handle_message``:
the payload is parsed into a tagged event, mutations are applied to the
registry (which persists them) and the fresh snapshot is broadcast. Queries and
heartbeats produce a reply meant only for the requester.
"""
from __future__ import annotations

import logging
from typing import Any

from leaderboard.server import events
from leaderboard.server.broadcast_hub import BroadcastHub
from leaderboard.server.errors import ValidationError
from leaderboard.server.session_registry import SessionRegistry, utc_timestamp

logger = logging.getLogger(__name__)


class LeaderboardService:
    def __init__(self, registry: SessionRegistry, hub: BroadcastHub):
        self.registry = registry
        self.hub = hub

    def handle_message(self, data: Any, event_type: str | None = None) -> dict | None:
        """Parse and apply one inbound payload.

        Args:
            data: Decoded JSON payload.
            event_type: Overrides ``data["type"]`` (used by typed REST routes).

        Returns:
            A reply frame for the requester, or None.

        Raises:
            ValidationError: the payload was rejected; nothing changed and
                nothing was broadcast.
        """
        try:
            event = events.parse_event(data, event_type=event_type)
        except ValidationError as e:
            logger.warning(f"Rejected inbound event: {e}")
            raise

        if isinstance(event, events.Heartbeat):
            # Echoed verbatim, extra fields included
            return {**data, "type": events.Heartbeat.type}
        return self.handle_event(event)

    def handle_event(self, event: events.InboundEvent) -> dict | None:
        if isinstance(event, events.StartTest):
            self.registry.start_session(event.tester_name, event.task_id, event.task_name)
            self.hub.broadcast(self.registry.get_snapshot())
            return None

        if isinstance(event, events.CompleteTest):
            self.registry.complete_session(
                event.tester_name,
                event.task_id,
                event.task_name,
                event.time,
                event.steps,
                event.errors,
                rating=event.rating,
            )
            self.hub.broadcast(self.registry.get_snapshot())
            return None

        if isinstance(event, events.Reset):
            self.reset()
            return None

        if isinstance(event, events.GetState):
            return events.state_update_message(self.registry.get_snapshot())

        if isinstance(event, events.Heartbeat):
            return events.heartbeat_message()

        raise ValidationError(f"Unhandled event: {event!r}")

    def reset(self) -> None:
        self.registry.reset()
        self.hub.broadcast(self.registry.get_snapshot())

    def get_state(self) -> dict:
        return self.registry.get_snapshot()

    def health(self) -> dict:
        return {
            "status": "ok",
            "timestamp": utc_timestamp(),
            "activeSessions": self.registry.active_count,
            "completedResults": self.registry.completed_count,
            "connectedObservers": self.hub.observer_count,
        }
