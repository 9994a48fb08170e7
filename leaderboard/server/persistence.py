"""Local JSON persistence for the leaderboard registry.

Active sessions and completed results live in two independent documents, each
a plain JSON array. Loading never raises: a missing document is created empty,
an empty or corrupt one is read as an empty list. Saving rewrites each whole
document and only logs on failure, so an unwritable disk degrades durability
but never takes the server down.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile

from leaderboard.server.errors import PersistenceError

logger = logging.getLogger(__name__)


class JsonSnapshotStore:
    """Reads and writes the two snapshot documents under ``data_dir``."""

    def __init__(
        self,
        data_dir: str,
        active_filename: str = "active-testers.json",
        completed_filename: str = "completed-tests.json",
    ):
        """
        Create the store and make sure its directory exists.

        Args:
            data_dir: Directory holding both documents.
            active_filename: File name of the active sessions array.
            completed_filename: File name of the completed results array.

        Raises:
            PersistenceError: if the directory cannot be created. This is the
                one storage failure that aborts startup.
        """
        self.data_dir = os.fspath(data_dir)
        self.active_path = os.path.join(self.data_dir, active_filename)
        self.completed_path = os.path.join(self.data_dir, completed_filename)

        try:
            os.makedirs(self.data_dir, exist_ok=True)
        except OSError as e:
            raise PersistenceError(
                f"Could not create data directory {self.data_dir}: {e}"
            ) from e

    def load(self) -> tuple[list[dict], list[dict]]:
        """Return ``(active_sessions, completed_results)`` as raw dicts."""
        active = self._load_document(self.active_path)
        completed = self._load_document(self.completed_path)
        logger.info(
            f"Loaded {len(active)} active sessions and "
            f"{len(completed)} completed results from {self.data_dir}"
        )
        return active, completed

    def save(self, active_sessions: list[dict], completed_results: list[dict]) -> bool:
        """Rewrite both documents. Returns False if either write failed."""
        ok = self._write_document(self.active_path, active_sessions)
        ok = self._write_document(self.completed_path, completed_results) and ok
        return ok

    def _load_document(self, path: str) -> list[dict]:
        if not os.path.exists(path):
            logger.info(f"Creating empty document at {path}")
            self._write_document(path, [])
            return []

        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Could not read {path}, starting empty: {e}")
            return []

        if not content.strip():
            logger.info(f"{path} is empty, starting with an empty list")
            return []

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"Could not parse {path}, starting empty: {e}")
            return []

        if not isinstance(data, list):
            logger.error(
                f"Expected a JSON array in {path}, got {type(data).__name__}; starting empty"
            )
            return []

        return [entry for entry in data if isinstance(entry, dict)]

    def _write_document(self, path: str, entries: list[dict]) -> bool:
        # Whole-document rewrite: temp file in the same directory, then swap.
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=self.data_dir, prefix=".", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(entries, f, indent=2)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving {path}: {e}")
            return False
        return True
