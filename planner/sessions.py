"""In-memory registry mapping browser cookies to workspaces."""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from .workspace import Workspace

logger = logging.getLogger("gpr.sessions")


@dataclass
class _WorkspaceRecord:
    workspace: Workspace
    ttl: timedelta
    expires_at: datetime


class WorkspaceRegistry:
    """Create, resolve, and tear down per-browser workspaces.

    Workspaces start on the short ``anonymous_ttl`` so unauthenticated traffic
    is reaped quickly; :meth:`promote` moves a signed-in browser to ``ttl``.
    """

    def __init__(
        self,
        factory: Callable[[], Workspace],
        *,
        ttl: timedelta = timedelta(hours=8),
        anonymous_ttl: Optional[timedelta] = None,
    ) -> None:
        self._factory = factory
        self._ttl = ttl
        self._anonymous_ttl = min(ttl, timedelta(minutes=15)) if anonymous_ttl is None else anonymous_ttl
        self._records: Dict[str, _WorkspaceRecord] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def anonymous_ttl(self) -> timedelta:
        return self._anonymous_ttl

    @property
    def cookie_max_age(self) -> int:
        return int(self._ttl.total_seconds())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def create(self) -> Tuple[str, Workspace]:
        token = secrets.token_urlsafe(32)
        workspace = self._factory()
        record = _WorkspaceRecord(
            workspace=workspace,
            ttl=self._anonymous_ttl,
            expires_at=self._now() + self._anonymous_ttl,
        )
        with self._lock:
            self._records[token] = record
        logger.debug("Opened workspace for a new browser session")
        return token, workspace

    def promote(self, token: str) -> None:
        """Keep a signed-in browser's workspace for the full TTL."""

        with self._lock:
            record = self._records.get(token)
            if record is None or record.ttl == self._ttl:
                return
            record.ttl = self._ttl
            record.expires_at = self._now() + self._ttl

    def resolve(self, token: str) -> Optional[Workspace]:
        now = self._now()
        expired: Optional[Workspace] = None
        with self._lock:
            record = self._records.get(token)
            if record is None:
                return None
            if record.expires_at <= now:
                self._records.pop(token, None)
                expired = record.workspace
            else:
                record.expires_at = now + record.ttl
                return record.workspace
        self._close(expired)
        return None

    def destroy(self, token: str) -> None:
        with self._lock:
            record = self._records.pop(token, None)
        if record is not None:
            self._close(record.workspace)

    def purge_expired(self) -> int:
        now = self._now()
        with self._lock:
            stale = [token for token, record in self._records.items() if record.expires_at <= now]
            removed: List[Workspace] = [self._records.pop(token).workspace for token in stale]
        for workspace in removed:
            self._close(workspace)
        if removed:
            logger.info("Closed %d expired workspace(s)", len(removed))
        return len(removed)

    def close_all(self) -> None:
        with self._lock:
            workspaces = [record.workspace for record in self._records.values()]
            self._records.clear()
        for workspace in workspaces:
            self._close(workspace)

    @staticmethod
    def _close(workspace: Optional[Workspace]) -> None:
        if workspace is None:
            return
        try:
            workspace.close()
        except Exception:
            logger.exception("Failed to close workspace")

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)


__all__ = ["WorkspaceRegistry"]
