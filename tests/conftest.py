"""
Shared pytest fixtures for leaderboard tests.

Provides:
- fixed_clock: deterministic, strictly increasing timestamps
- store / registry / hub / service: the core objects wired over a tmp data dir
- make_app: builds (app, socketio) for either transport over a tmp data dir

In-memory observers live in tests/fixtures/observers.py.
"""

from __future__ import annotations

import itertools

import pytest

from leaderboard.configurations.leaderboard_config import LeaderboardConfig
from leaderboard.server.app import create_app
from leaderboard.server.broadcast_hub import BroadcastHub
from leaderboard.server.leaderboard_service import LeaderboardService
from leaderboard.server.persistence import JsonSnapshotStore
from leaderboard.server.session_registry import SessionRegistry

# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fixed_clock():
    counter = itertools.count()

    def clock() -> str:
        n = next(counter)
        return f"2024-05-01T09:{n // 60:02d}:{n % 60:02d}.000Z"

    return clock


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def store(data_dir):
    return JsonSnapshotStore(str(data_dir))


@pytest.fixture
def registry(store, fixed_clock):
    reg = SessionRegistry(store=store, clock=fixed_clock)
    reg.load()
    return reg


@pytest.fixture
def hub(registry):
    return BroadcastHub(snapshot_provider=registry.get_snapshot)


@pytest.fixture
def service(registry, hub):
    return LeaderboardService(registry, hub)


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_app(data_dir):
    def _make(mode: str = "socketio", **transport_kwargs):
        config = (
            LeaderboardConfig()
            .storage(data_dir=str(data_dir))
            .transport(mode=mode, **transport_kwargs)
            .logging(log_file=None)
        )
        app, socketio = create_app(config)
        app.config["TESTING"] = True
        return app, socketio

    return _make
