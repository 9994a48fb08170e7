"""Error taxonomy for the leaderboard core.

- ValidationError: malformed or out-of-range inbound event fields.
- PersistenceError: the local JSON store cannot be created, read or written.
- TransportError: delivery to a single observer failed.
"""

from __future__ import annotations


class LeaderboardError(Exception):
    """Base class for all leaderboard errors."""


class ValidationError(LeaderboardError, ValueError):
    pass


class PersistenceError(LeaderboardError, OSError):
    pass


class TransportError(LeaderboardError):
    """Raised by an observer whose connection can no longer accept frames."""

    def __init__(self, observer_id: str, message: str):
        super().__init__(f"[{observer_id}] {message}")
        self.observer_id = observer_id
