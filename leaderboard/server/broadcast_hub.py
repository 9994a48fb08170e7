"""
Fan-out of registry snapshots to every connected observer.

Transports wrap each connection in an Observer and register it here. The hub
delivers one ``initialState`` frame on registration and a ``stateUpdate``
frame to everyone on each broadcast. A failing observer is dropped and the
rest still receive the frame.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable

from leaderboard.server import events

logger = logging.getLogger(__name__)


class Observer:
    """A connected party that receives snapshot frames.

    Subclasses implement ``deliver`` for their transport and raise
    (typically ``TransportError``) when the connection is gone.
    """

    def __init__(self, observer_id: str):
        self.observer_id = observer_id

    def deliver(self, message: dict) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.observer_id!r})"


class BroadcastHub:
    """Tracks observers and pushes registry snapshots to them."""

    def __init__(self, snapshot_provider: Callable[[], dict]):
        """
        Args:
            snapshot_provider: Returns the current registry snapshot
                (normally ``SessionRegistry.get_snapshot``).
        """
        self.snapshot_provider = snapshot_provider

        # observer_id -> Observer. Connection lifecycle events arrive
        # independently of request handling, hence the lock.
        self._observers: dict[str, Observer] = {}
        self._lock = threading.Lock()

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def is_registered(self, observer: Observer) -> bool:
        return self._observers.get(observer.observer_id) is observer

    def current_state(self) -> dict:
        """Point-in-time snapshot, for explicit state queries."""
        return self.snapshot_provider()

    def register(self, observer: Observer) -> bool:
        """Add ``observer`` and send it the current state.

        Returns False if the initial delivery failed, in which case the
        observer is not kept.
        """
        with self._lock:
            self._observers[observer.observer_id] = observer
            count = len(self._observers)
        logger.info(f"Observer {observer.observer_id} connected. Total observers: {count}")

        try:
            observer.deliver(events.initial_state_message(self.current_state()))
        except Exception as e:
            logger.warning(f"Initial state delivery to {observer.observer_id} failed: {e}")
            self.unregister(observer)
            return False
        return True

    def unregister(self, observer: Observer) -> None:
        with self._lock:
            removed = self._observers.get(observer.observer_id) is observer
            if removed:
                del self._observers[observer.observer_id]
            count = len(self._observers)
        if removed:
            logger.info(
                f"Observer {observer.observer_id} disconnected. Total observers: {count}"
            )

    def broadcast(self, snapshot: dict | None = None) -> int:
        """Send a ``stateUpdate`` to every observer.

        Args:
            snapshot: State to send; defaults to a fresh snapshot.

        Returns:
            Number of observers the frame was delivered to.
        """
        if snapshot is None:
            snapshot = self.current_state()
        message = events.state_update_message(snapshot)

        with self._lock:
            observers = list(self._observers.values())

        delivered = 0
        for observer in observers:
            try:
                observer.deliver(message)
                delivered += 1
            except Exception as e:
                logger.warning(
                    f"Dropping observer {observer.observer_id} after failed delivery: {e}"
                )
                self.unregister(observer)

        logger.debug(f"Broadcast state update to {delivered}/{len(observers)} observers")
        return delivered
