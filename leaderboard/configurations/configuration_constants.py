from __future__ import annotations

import dataclasses


@dataclasses.dataclass(frozen=True)
class TransportModes:
    SocketIO = "socketio"
    ServerSentEvents = "sse"


@dataclasses.dataclass(frozen=True)
class InboundTypes:
    StartTest = "startTest"
    CompleteTest = "completeTest"
    GetState = "getState"
    Reset = "reset"
    Heartbeat = "heartbeat"


@dataclasses.dataclass(frozen=True)
class OutboundTypes:
    InitialState = "initialState"
    StateUpdate = "stateUpdate"
    Heartbeat = "heartbeat"


@dataclasses.dataclass(frozen=True)
class Limits:
    # Completed results kept on the board (lowest times win)
    MaxCompletedResults = 100
    MinRating = 1
    MaxRating = 5


@dataclasses.dataclass(frozen=True)
class StorageDefaults:
    DataDir = "data"
    ActiveFilename = "active-testers.json"
    CompletedFilename = "completed-tests.json"


VALID_TRANSPORT_MODES = (TransportModes.SocketIO, TransportModes.ServerSentEvents)
