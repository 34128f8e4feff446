"""Tracks the auth provider session for a single workspace."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

from .backend import Backend, Session

logger = logging.getLogger("gpr.session_store")


@dataclass(frozen=True)
class SessionEvent:
    """A session change reported by the auth provider."""

    event: str
    session: Optional[Session]


class SessionStore:
    """Hold the current session and queue change notifications.

    Notifications can arrive on the provider's refresh thread, so they are
    buffered under a lock until the owning workspace drains them.
    """

    def __init__(self, backend: Backend) -> None:
        self._backend = backend
        self._lock = threading.Lock()
        self._pending: Deque[SessionEvent] = deque()
        self._session: Optional[Session] = None
        self._dispose: Optional[Callable[[], None]] = None
        self._started = False
        self._closed = False

    @property
    def session(self) -> Optional[Session]:
        with self._lock:
            return self._session

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> Optional[Session]:
        """Read the current session once and subscribe to further changes."""

        if self._started:
            raise RuntimeError("Session store has already been started")
        self._started = True
        initial = self._backend.current_session()
        with self._lock:
            self._session = initial
        self._dispose = self._backend.subscribe(self._on_change)
        return initial

    def _on_change(self, event: str, session: Optional[Session]) -> None:
        with self._lock:
            if self._closed:
                return
            self._session = session
            self._pending.append(SessionEvent(event=event, session=session))
        logger.debug("Session event %s received", event)

    def drain(self) -> List[SessionEvent]:
        with self._lock:
            events = list(self._pending)
            self._pending.clear()
        return events

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._pending.clear()
            dispose = self._dispose
            self._dispose = None
        if dispose is not None:
            dispose()


__all__ = ["SessionEvent", "SessionStore"]
