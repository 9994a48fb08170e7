"""Tagged inbound events and outbound frames.

Every message on the live-update channel is a JSON object with a ``type``
discriminator. ``parse_event`` turns an inbound object into one of the
dataclasses below (coercing numeric fields on the way) and rejects unknown
tags. Outbound frames are plain dicts built by the ``*_message`` helpers.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Union

from leaderboard.configurations.configuration_constants import (InboundTypes,
                                                                OutboundTypes)
from leaderboard.server.errors import ValidationError
from leaderboard.server import validation


@dataclasses.dataclass(frozen=True)
class StartTest:
    tester_name: str
    task_id: int
    task_name: str

    type = InboundTypes.StartTest


@dataclasses.dataclass(frozen=True)
class CompleteTest:
    tester_name: str
    task_id: int
    task_name: str
    time: float
    steps: int
    errors: int
    rating: int | None = None

    type = InboundTypes.CompleteTest


@dataclasses.dataclass(frozen=True)
class GetState:
    type = InboundTypes.GetState


@dataclasses.dataclass(frozen=True)
class Reset:
    type = InboundTypes.Reset


@dataclasses.dataclass(frozen=True)
class Heartbeat:
    type = InboundTypes.Heartbeat


InboundEvent = Union[StartTest, CompleteTest, GetState, Reset, Heartbeat]


def _require(data: dict, *fields: str) -> None:
    missing = [f for f in fields if data.get(f) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def _parse_start_test(data: dict) -> StartTest:
    _require(data, "testerName", "taskId", "taskName")
    return StartTest(
        tester_name=validation.require_text(data["testerName"], "testerName"),
        task_id=validation.parse_int(data["taskId"], "taskId"),
        task_name=validation.require_text(data["taskName"], "taskName"),
    )


def _parse_complete_test(data: dict) -> CompleteTest:
    _require(data, "testerName", "taskId", "taskName", "time", "steps", "errors")
    return CompleteTest(
        tester_name=validation.require_text(data["testerName"], "testerName"),
        task_id=validation.parse_int(data["taskId"], "taskId"),
        task_name=validation.require_text(data["taskName"], "taskName"),
        time=validation.parse_non_negative_float(data["time"], "time"),
        steps=validation.parse_non_negative_int(data["steps"], "steps"),
        errors=validation.parse_non_negative_int(data["errors"], "errors"),
        rating=validation.parse_rating(data.get("rating")),
    )


_PARSERS = {
    InboundTypes.StartTest: _parse_start_test,
    InboundTypes.CompleteTest: _parse_complete_test,
    InboundTypes.GetState: lambda data: GetState(),
    InboundTypes.Reset: lambda data: Reset(),
    InboundTypes.Heartbeat: lambda data: Heartbeat(),
}


def parse_event(data: Any, event_type: str | None = None) -> InboundEvent:
    """Validate an inbound JSON object and return its typed event.

    Args:
        data: Decoded JSON payload.
        event_type: Tag to use instead of ``data["type"]``; REST routes that
            already imply the event kind pass it here.

    Raises:
        ValidationError: if the payload is not an object, the tag is missing
            or unknown, or a field fails coercion.
    """
    if not isinstance(data, dict):
        raise ValidationError("Event payload must be a JSON object")

    event_type = event_type or data.get("type")
    if not event_type:
        raise ValidationError("Event is missing its 'type'")

    parser = _PARSERS.get(event_type)
    if parser is None:
        raise ValidationError(f"Unknown event type: {event_type!r}")

    return parser(data)


def _state_message(message_type: str, snapshot: dict) -> dict:
    return {
        "type": message_type,
        "activeSessions": snapshot["activeSessions"],
        "completedResults": snapshot["completedResults"],
    }


def initial_state_message(snapshot: dict) -> dict:
    return _state_message(OutboundTypes.InitialState, snapshot)


def state_update_message(snapshot: dict) -> dict:
    return _state_message(OutboundTypes.StateUpdate, snapshot)


def heartbeat_message() -> dict:
    return {"type": OutboundTypes.Heartbeat}
