"""Authoritative in-memory state for active and completed test sessions.

ActiveSession: a tester currently working on one task (at most one per tester).
CompletedResult: the best recorded outcome of a tester on a task (at most one
per tester/task pair, best time wins, board capped to the fastest N).

All mutations go through SessionRegistry, which validates its inputs first
(a rejected call changes nothing), applies the change, and then writes the new
state through its JsonSnapshotStore before returning.
"""

from __future__ import annotations

import dataclasses
import datetime
import logging
from typing import TYPE_CHECKING, Any, Callable

from leaderboard.configurations.configuration_constants import Limits
from leaderboard.server import validation

if TYPE_CHECKING:
    from leaderboard.server.persistence import JsonSnapshotStore

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with milliseconds, e.g. 2024-05-01T09:30:00.123Z"""
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclasses.dataclass
class ActiveSession:
    tester_name: str
    task_id: int
    task_name: str
    start_time: str

    def to_dict(self) -> dict:
        return {
            "testerName": self.tester_name,
            "taskId": self.task_id,
            "taskName": self.task_name,
            "startTime": self.start_time,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ActiveSession:
        return cls(
            tester_name=str(data["testerName"]),
            task_id=validation.parse_int(data["taskId"], "taskId"),
            task_name=str(data["taskName"]),
            start_time=str(data.get("startTime", "")),
        )


@dataclasses.dataclass
class CompletedResult:
    tester_name: str
    task_id: int
    task_name: str
    time: float
    steps: int
    errors: int
    completed_at: str
    rating: int | None = None

    @property
    def key(self) -> tuple[str, int]:
        return self.tester_name, self.task_id

    def to_dict(self) -> dict:
        data = {
            "testerName": self.tester_name,
            "taskId": self.task_id,
            "taskName": self.task_name,
            "time": self.time,
            "steps": self.steps,
            "errors": self.errors,
            "completedAt": self.completed_at,
        }
        if self.rating is not None:
            data["rating"] = self.rating
        return data

    @classmethod
    def from_dict(cls, data: dict) -> CompletedResult:
        return cls(
            tester_name=str(data["testerName"]),
            task_id=validation.parse_int(data["taskId"], "taskId"),
            task_name=str(data["taskName"]),
            time=validation.parse_non_negative_float(data["time"], "time"),
            steps=validation.parse_non_negative_int(data["steps"], "steps"),
            errors=validation.parse_non_negative_int(data["errors"], "errors"),
            completed_at=str(data.get("completedAt", "")),
            rating=validation.parse_rating(data.get("rating")),
        )


class SessionRegistry:
    """Owns the active-session list and the completed-results board.

    Invariants held after every call:
    - at most one ActiveSession per tester name;
    - at most one CompletedResult per (tester name, task id);
    - completed results sorted ascending by time, at most ``max_completed``.
    """

    def __init__(
        self,
        store: JsonSnapshotStore | None = None,
        max_completed: int = Limits.MaxCompletedResults,
        clock: Callable[[], str] = utc_timestamp,
    ):
        """
        Args:
            store: Where state is loaded from and written to. ``None`` keeps
                the registry purely in memory.
            max_completed: Size of the completed-results board.
            clock: Returns the timestamp stamped on new sessions/results.
        """
        self.store = store
        self.max_completed = max_completed
        self._clock = clock

        self._active: list[ActiveSession] = []
        self._completed: list[CompletedResult] = []

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def completed_count(self) -> int:
        return len(self._completed)

    def load(self) -> None:
        """Replace in-memory state with what the store holds."""
        if self.store is None:
            return

        raw_active, raw_completed = self.store.load()
        self.restore(raw_active, raw_completed)

    def restore(self, raw_active: list[dict], raw_completed: list[dict]) -> None:
        """Rebuild state from raw dicts, skipping unreadable entries.

        Entries are re-checked against the invariants since the documents may
        have been edited by hand.
        """
        active: list[ActiveSession] = []
        for entry in raw_active:
            session = self._restore_entry(ActiveSession, entry)
            if session is None:
                continue
            active = [s for s in active if s.tester_name != session.tester_name]
            active.append(session)

        best: dict[tuple[str, int], CompletedResult] = {}
        for entry in raw_completed:
            result = self._restore_entry(CompletedResult, entry)
            if result is None:
                continue
            existing = best.get(result.key)
            if existing is None or result.time < existing.time:
                best[result.key] = result

        self._active = active
        self._completed = sorted(best.values(), key=lambda r: r.time)[: self.max_completed]

    @staticmethod
    def _restore_entry(cls, entry: dict) -> Any:
        try:
            return cls.from_dict(entry)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping unreadable {cls.__name__} entry {entry!r}: {e}")
            return None

    def start_session(self, tester_name: Any, task_id: Any, task_name: Any) -> None:
        """Mark ``tester_name`` as working on ``task_id``.

        Any earlier active session of the same tester is dropped without being
        recorded as completed.

        Raises:
            ValidationError: if a name is empty or ``task_id`` is not an integer.
        """
        tester_name = validation.sanitize(validation.require_text(tester_name, "testerName"))
        task_id = validation.parse_int(task_id, "taskId")
        task_name = validation.sanitize(validation.require_text(task_name, "taskName"))

        session = ActiveSession(
            tester_name=tester_name,
            task_id=task_id,
            task_name=task_name,
            start_time=self._clock(),
        )

        self._active = [s for s in self._active if s.tester_name != tester_name]
        self._active.append(session)

        logger.info(f"Started test: {tester_name} - task {task_id} ({task_name})")
        self.persist()

    def complete_session(
        self,
        tester_name: Any,
        task_id: Any,
        task_name: Any,
        time: Any,
        steps: Any,
        errors: Any,
        rating: Any = None,
    ) -> None:
        """Record a finished task and end the matching active session.

        A tester's existing result for the same task is replaced only when the
        new time is strictly lower. A completion without a matching active
        session is still recorded.

        Raises:
            ValidationError: if any field is missing, malformed or negative.
        """
        tester_name = validation.sanitize(validation.require_text(tester_name, "testerName"))
        task_id = validation.parse_int(task_id, "taskId")
        task_name = validation.sanitize(validation.require_text(task_name, "taskName"))
        time = validation.parse_non_negative_float(time, "time")
        steps = validation.parse_non_negative_int(steps, "steps")
        errors = validation.parse_non_negative_int(errors, "errors")
        rating = validation.parse_rating(rating)

        result = CompletedResult(
            tester_name=tester_name,
            task_id=task_id,
            task_name=task_name,
            time=time,
            steps=steps,
            errors=errors,
            completed_at=self._clock(),
            rating=rating,
        )

        self._active = [
            s for s in self._active
            if not (s.tester_name == tester_name and s.task_id == task_id)
        ]

        existing_index = next(
            (i for i, r in enumerate(self._completed) if r.key == result.key), None
        )
        if existing_index is None:
            self._completed.append(result)
            logger.info(f"Completed test: {tester_name} - task {task_id} in {time}s")
        elif time < self._completed[existing_index].time:
            previous = self._completed[existing_index].time
            self._completed[existing_index] = result
            logger.info(
                f"Better time for {tester_name} - task {task_id}: {previous}s -> {time}s"
            )
        else:
            logger.info(
                f"Kept existing time for {tester_name} - task {task_id} "
                f"({self._completed[existing_index].time}s <= {time}s)"
            )

        # list.sort is stable, so equal times keep their insertion order
        self._completed.sort(key=lambda r: r.time)
        del self._completed[self.max_completed:]

        self.persist()

    def reset(self) -> None:
        """Clear both collections."""
        self._active = []
        self._completed = []
        logger.info("Leaderboard reset")
        self.persist()

    def get_snapshot(self) -> dict:
        """Read-only copy of the current state."""
        return {
            "activeSessions": [s.to_dict() for s in self._active],
            "completedResults": [r.to_dict() for r in self._completed],
        }

    def persist(self) -> bool:
        if self.store is None:
            return True
        snapshot = self.get_snapshot()
        return self.store.save(snapshot["activeSessions"], snapshot["completedResults"])
