"""Unit tests for SessionRegistry.

Covers: single active session per tester, best-time-wins completions, the
capped and sorted completed board, reset, validation no-ops, sanitizing and
restoring from persisted state.
"""

from __future__ import annotations

import json

import pytest

from leaderboard.server.errors import ValidationError
from leaderboard.server.persistence import JsonSnapshotStore
from leaderboard.server.session_registry import SessionRegistry


def _complete(registry, tester="Bob", task_id=2, task_name="X", time=45.0, steps=10, errors=1, **kwargs):
    registry.complete_session(tester, task_id, task_name, time, steps, errors, **kwargs)


def _results_for(registry, tester, task_id):
    return [
        r for r in registry.get_snapshot()["completedResults"]
        if r["testerName"] == tester and r["taskId"] == task_id
    ]


# ---------------------------------------------------------------------------
# startSession
# ---------------------------------------------------------------------------


class TestStartSession:
    """A tester has at most one active session."""

    def test_start_adds_active_session(self, registry):
        registry.start_session("Alice", 2, "Prescribe Medication")
        active = registry.get_snapshot()["activeSessions"]
        assert active == [
            {
                "testerName": "Alice",
                "taskId": 2,
                "taskName": "Prescribe Medication",
                "startTime": "2024-05-01T09:00:00.000Z",
            }
        ]

    def test_new_task_replaces_previous_for_same_tester(self, registry):
        """The task 2 session is dropped, not completed."""
        registry.start_session("Alice", 2, "Prescribe Medication")
        registry.start_session("Alice", 5, "Register Patient")

        snapshot = registry.get_snapshot()
        assert [(s["testerName"], s["taskId"]) for s in snapshot["activeSessions"]] == [("Alice", 5)]
        assert snapshot["completedResults"] == []

    def test_only_most_recent_call_survives(self, registry):
        for task_id in range(1, 8):
            registry.start_session("Alice", task_id, f"Task {task_id}")
        active = registry.get_snapshot()["activeSessions"]
        assert len(active) == 1
        assert active[0]["taskId"] == 7

    def test_different_testers_coexist_in_insertion_order(self, registry):
        registry.start_session("Alice", 1, "A")
        registry.start_session("Bob", 1, "A")
        registry.start_session("Carol", 3, "C")
        names = [s["testerName"] for s in registry.get_snapshot()["activeSessions"]]
        assert names == ["Alice", "Bob", "Carol"]

    def test_restarting_moves_tester_to_end(self, registry):
        registry.start_session("Alice", 1, "A")
        registry.start_session("Bob", 1, "A")
        registry.start_session("Alice", 2, "B")
        names = [s["testerName"] for s in registry.get_snapshot()["activeSessions"]]
        assert names == ["Bob", "Alice"]

    def test_task_id_string_is_parsed(self, registry):
        registry.start_session("Alice", " 12 ", "Task")
        assert registry.get_snapshot()["activeSessions"][0]["taskId"] == 12

    def test_task_id_zero_is_accepted(self, registry):
        registry.start_session("Alice", 0, "Intro")
        assert registry.get_snapshot()["activeSessions"][0]["taskId"] == 0

    def test_text_is_sanitized(self, registry):
        registry.start_session("<b>Eve</b>", 1, "Tom & Jerry's \"task\"")
        session = registry.get_snapshot()["activeSessions"][0]
        assert session["testerName"] == "&lt;b&gt;Eve&lt;/b&gt;"
        assert "<" not in session["taskName"]
        assert "&amp;" in session["taskName"]
        assert "&#34;" in session["taskName"]
        assert "&#39;" in session["taskName"]

    @pytest.mark.parametrize(
        "tester, task_id, task_name",
        [
            ("", 1, "Task"),
            ("   ", 1, "Task"),
            (None, 1, "Task"),
            (42, 1, "Task"),
            ("Alice", "abc", "Task"),
            ("Alice", 1.5, "Task"),
            ("Alice", True, "Task"),
            ("Alice", None, "Task"),
            ("Alice", 1, ""),
        ],
    )
    def test_invalid_input_is_rejected_without_change(self, registry, tester, task_id, task_name):
        registry.start_session("Alice", 1, "Existing")
        before = registry.get_snapshot()

        with pytest.raises(ValidationError):
            registry.start_session(tester, task_id, task_name)

        assert registry.get_snapshot() == before


# ---------------------------------------------------------------------------
# completeSession
# ---------------------------------------------------------------------------


class TestCompleteSession:
    """Best time per (tester, task) is kept on a sorted, capped board."""

    def test_completion_is_recorded(self, registry):
        _complete(registry, time=45.0, steps=10, errors=1)
        assert registry.get_snapshot()["completedResults"] == [
            {
                "testerName": "Bob",
                "taskId": 2,
                "taskName": "X",
                "time": 45.0,
                "steps": 10,
                "errors": 1,
                "completedAt": "2024-05-01T09:00:00.000Z",
            }
        ]

    def test_worse_time_is_rejected(self, registry):
        _complete(registry, time=45.0, steps=10, errors=1)
        _complete(registry, time=50.0, steps=10, errors=0)

        results = _results_for(registry, "Bob", 2)
        assert len(results) == 1
        assert results[0]["time"] == 45.0
        assert results[0]["errors"] == 1

    def test_better_time_replaces(self, registry):
        _complete(registry, time=45.0)
        _complete(registry, time=30.0, steps=7, errors=0)

        results = _results_for(registry, "Bob", 2)
        assert len(results) == 1
        assert results[0]["time"] == 30.0
        assert results[0]["steps"] == 7

    def test_equal_time_keeps_first(self, registry):
        _complete(registry, time=45.0, errors=3)
        _complete(registry, time=45.0, errors=0)
        results = _results_for(registry, "Bob", 2)
        assert results[0]["errors"] == 3
        assert results[0]["completedAt"] == "2024-05-01T09:00:00.000Z"

    def test_stored_time_never_increases(self, registry):
        times = [60.0, 72.5, 41.0, 41.0, 90.0, 12.25, 30.0]
        seen = []
        for t in times:
            _complete(registry, time=t)
            seen.append(_results_for(registry, "Bob", 2)[0]["time"])
        assert seen == sorted(seen, reverse=True)
        assert seen[-1] == 12.25

    def test_same_tester_different_tasks_are_separate(self, registry):
        _complete(registry, task_id=1, time=20.0)
        _complete(registry, task_id=2, time=10.0)
        results = registry.get_snapshot()["completedResults"]
        assert [(r["taskId"], r["time"]) for r in results] == [(2, 10.0), (1, 20.0)]

    def test_completion_ends_matching_active_session(self, registry):
        registry.start_session("Bob", 2, "X")
        registry.start_session("Alice", 2, "X")
        _complete(registry, tester="Bob", task_id=2)

        names = [s["testerName"] for s in registry.get_snapshot()["activeSessions"]]
        assert names == ["Alice"]

    def test_completion_for_other_task_leaves_active_session(self, registry):
        registry.start_session("Bob", 3, "Y")
        _complete(registry, tester="Bob", task_id=2)
        active = registry.get_snapshot()["activeSessions"]
        assert [(s["testerName"], s["taskId"]) for s in active] == [("Bob", 3)]

    def test_completion_without_active_session(self, registry):
        _complete(registry, tester="Nobody", task_id=9)
        assert registry.get_snapshot()["activeSessions"] == []
        assert registry.completed_count == 1

    def test_results_sorted_by_time(self, registry):
        for i, t in enumerate([30.0, 10.0, 20.0, 5.0]):
            _complete(registry, tester=f"T{i}", time=t)
        times = [r["time"] for r in registry.get_snapshot()["completedResults"]]
        assert times == [5.0, 10.0, 20.0, 30.0]

    def test_board_keeps_100_lowest_times(self, registry):
        """101 completions with increasing times: the slowest falls off."""
        for i in range(101):
            _complete(registry, tester=f"Tester {i}", task_id=1, time=float(i + 1))

        results = registry.get_snapshot()["completedResults"]
        assert len(results) == 100
        assert [r["time"] for r in results] == [float(i + 1) for i in range(100)]
        assert "Tester 100" not in {r["testerName"] for r in results}

    def test_fast_late_entry_evicts_slowest(self, registry):
        for i in range(100):
            _complete(registry, tester=f"Tester {i}", time=float(10 + i))
        _complete(registry, tester="Speedy", time=1.0)

        results = registry.get_snapshot()["completedResults"]
        assert len(results) == 100
        assert results[0]["testerName"] == "Speedy"
        assert results[-1]["time"] == 108.0

    def test_custom_board_size(self, store, fixed_clock):
        registry = SessionRegistry(store=store, max_completed=3, clock=fixed_clock)
        for i in range(5):
            _complete(registry, tester=f"T{i}", time=float(5 - i))
        assert [r["time"] for r in registry.get_snapshot()["completedResults"]] == [1.0, 2.0, 3.0]

    def test_numeric_strings_are_parsed(self, registry):
        _complete(registry, time="12.5", steps="4", errors="0")
        result = registry.get_snapshot()["completedResults"][0]
        assert result["time"] == 12.5
        assert result["steps"] == 4
        assert result["errors"] == 0

    def test_rating_is_optional_and_stored(self, registry):
        _complete(registry, tester="Rated", rating=4)
        _complete(registry, tester="Unrated")
        by_name = {r["testerName"]: r for r in registry.get_snapshot()["completedResults"]}
        assert by_name["Rated"]["rating"] == 4
        assert "rating" not in by_name["Unrated"]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"time": -1.0},
            {"time": "fast"},
            {"time": float("nan")},
            {"time": float("inf")},
            {"time": None},
            {"steps": -1},
            {"steps": 2.5},
            {"errors": -3},
            {"errors": "many"},
            {"tester": ""},
            {"task_name": "  "},
            {"task_id": "two"},
            {"rating": 0},
            {"rating": 6},
        ],
    )
    def test_invalid_input_is_rejected_without_change(self, registry, overrides):
        registry.start_session("Bob", 2, "X")
        _complete(registry, tester="Alice", time=20.0)
        before = registry.get_snapshot()

        with pytest.raises(ValidationError):
            _complete(registry, **overrides)

        assert registry.get_snapshot() == before


# ---------------------------------------------------------------------------
# reset / snapshot
# ---------------------------------------------------------------------------


class TestResetAndSnapshot:

    def test_reset_clears_everything(self, registry):
        registry.start_session("Alice", 1, "A")
        _complete(registry)
        registry.reset()
        assert registry.get_snapshot() == {"activeSessions": [], "completedResults": []}

    def test_reset_on_empty_registry(self, registry):
        registry.reset()
        assert registry.get_snapshot() == {"activeSessions": [], "completedResults": []}

    def test_reset_is_persisted(self, registry, store):
        registry.start_session("Alice", 1, "A")
        registry.reset()
        assert store.load() == ([], [])

    def test_snapshot_is_a_copy(self, registry):
        registry.start_session("Alice", 1, "A")
        snapshot = registry.get_snapshot()
        snapshot["activeSessions"].clear()
        snapshot["completedResults"].append({"bogus": True})
        assert registry.active_count == 1
        assert registry.completed_count == 0

    def test_in_memory_registry_without_store(self, fixed_clock):
        registry = SessionRegistry(clock=fixed_clock)
        registry.start_session("Alice", 1, "A")
        assert registry.persist() is True
        assert registry.active_count == 1


# ---------------------------------------------------------------------------
# Persistence round trip
# ---------------------------------------------------------------------------


class TestRestore:

    def test_restart_reproduces_snapshot(self, registry, data_dir, fixed_clock):
        registry.start_session("Alice", 2, "Prescribe Medication")
        registry.start_session("Carol", 1, "Login")
        _complete(registry, tester="Bob", time=45.0)
        _complete(registry, tester="Dan", time=12.5, rating=5)
        before = registry.get_snapshot()

        restarted = SessionRegistry(store=JsonSnapshotStore(str(data_dir)), clock=fixed_clock)
        restarted.load()

        assert restarted.get_snapshot() == before

    def test_every_mutation_is_written(self, registry, store):
        registry.start_session("Alice", 1, "A")
        active, completed = store.load()
        assert [a["testerName"] for a in active] == ["Alice"]
        assert completed == []

        _complete(registry, tester="Alice", task_id=1)
        active, completed = store.load()
        assert active == []
        assert [c["testerName"] for c in completed] == ["Alice"]

    def test_restore_enforces_invariants(self, fixed_clock):
        registry = SessionRegistry(max_completed=2, clock=fixed_clock)
        registry.restore(
            [
                {"testerName": "A", "taskId": 1, "taskName": "t", "startTime": "s1"},
                {"testerName": "A", "taskId": 2, "taskName": "t", "startTime": "s2"},
            ],
            [
                {"testerName": "B", "taskId": 1, "taskName": "t", "time": 30, "steps": 1, "errors": 0, "completedAt": "c"},
                {"testerName": "B", "taskId": 1, "taskName": "t", "time": 20, "steps": 1, "errors": 0, "completedAt": "c"},
                {"testerName": "C", "taskId": 1, "taskName": "t", "time": 50, "steps": 1, "errors": 0, "completedAt": "c"},
                {"testerName": "D", "taskId": 1, "taskName": "t", "time": 5, "steps": 1, "errors": 0, "completedAt": "c"},
            ],
        )
        snapshot = registry.get_snapshot()
        assert [s["taskId"] for s in snapshot["activeSessions"]] == [2]
        assert [(r["testerName"], r["time"]) for r in snapshot["completedResults"]] == [("D", 5.0), ("B", 20.0)]

    def test_restore_skips_unreadable_entries(self, data_dir, fixed_clock):
        data_dir.mkdir(parents=True)
        (data_dir / "active-testers.json").write_text(json.dumps([
            {"testerName": "Ok", "taskId": 1, "taskName": "t", "startTime": "s"},
            {"taskId": 1},
            "not an object",
        ]))
        (data_dir / "completed-tests.json").write_text(json.dumps([
            {"testerName": "Ok", "taskId": 1, "taskName": "t", "time": "bad", "steps": 1, "errors": 0},
        ]))

        registry = SessionRegistry(store=JsonSnapshotStore(str(data_dir)), clock=fixed_clock)
        registry.load()

        assert [s["testerName"] for s in registry.get_snapshot()["activeSessions"]] == ["Ok"]
        assert registry.completed_count == 0
