"""Per-browser application controller.

A :class:`Workspace` owns everything one signed-in browser sees: the auth
session, the resolved profile, the resource and project collections, the sync
badge and the selected tab. State is held in an immutable
:class:`WorkspaceState`; every command replaces it and returns the new value.

Backend calls block, so they run in worker threads via :mod:`anyio`. State is
only ever replaced on the event loop between suspension points.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from functools import partial
from typing import Dict, Iterable, List, Optional, Tuple

import anyio

from .backend import AuthenticationError, Backend, BackendError, NotFoundError, Session
from .models import (
    DEFAULT_AVATAR,
    Project,
    ProjectStatus,
    Resource,
    Role,
    SyncStatus,
    User,
    is_hex_color,
    normalise_skills,
)
from .samples import sample_projects, sample_resources
from .session_store import SessionStore

logger = logging.getLogger("gpr.workspace")

PASSWORD_MIN_LENGTH = 6
REGISTRATION_CONFIRMATION = "Account created! Check your email to confirm."



class Phase(str, Enum):
    """Position in the session lifecycle."""

    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class AuthMode(str, Enum):
    LOGIN = "login"
    REGISTER = "register"


class Tab(str, Enum):
    DASHBOARD = "dashboard"
    PROJECTS = "projects"
    RESOURCES = "resources"
    CALENDAR = "calendar"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class Notice:
    """A message shown to the user on the next render."""

    text: str
    kind: str = "error"


@dataclass(frozen=True)
class WorkspaceState:
    phase: Phase = Phase.LOADING
    loading: bool = True
    session: Optional[Session] = None
    user: Optional[User] = None
    resources: Tuple[Resource, ...] = ()
    projects: Tuple[Project, ...] = ()
    sync_status: SyncStatus = SyncStatus.SYNCED
    active_tab: Tab = Tab.DASHBOARD
    auth_mode: AuthMode = AuthMode.LOGIN
    auth_message: Optional[Notice] = None
    notices: Tuple[Notice, ...] = ()

    @property
    def is_authenticated(self) -> bool:
        return (
            self.phase is Phase.AUTHENTICATED
            and self.session is not None
            and self.user is not None
        )

    @property
    def offers_sample_data(self) -> bool:
        return not self.resources and not self.projects

    @property
    def projects_in_progress(self) -> int:
        return sum(1 for project in self.projects if project.status is ProjectStatus.IN_PROGRESS)


def _parse_iso_date(value: str, label: str) -> date:
    text = (value or "").strip()
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"{label} must be a date in YYYY-MM-DD format") from exc


class Workspace:
    """Single owner of one browser's application state."""

    def __init__(self, backend: Backend, *, session_store: Optional[SessionStore] = None) -> None:
        self._backend = backend
        self._store = session_store if session_store is not None else SessionStore(backend)
        self._state = WorkspaceState()
        self._generation = 0

    @property
    def state(self) -> WorkspaceState:
        return self._state

    @property
    def backend(self) -> Backend:
        return self._backend

    def _set(self, **changes) -> WorkspaceState:
        self._state = replace(self._state, **changes)
        return self._state

    # --- Session lifecycle -----------------------------------------------------

    async def start(self) -> WorkspaceState:
        """Restore any existing session and subscribe to session changes."""

        try:
            session = await anyio.to_thread.run_sync(self._store.start)
        except BackendError as exc:
            logger.error("Error restoring session: %s", exc.message)
            session = None
        if session is None:
            return self._set(phase=Phase.UNAUTHENTICATED, loading=False)
        await self._load_profile(session)
        return self._state

    async def sync(self) -> WorkspaceState:
        """Apply session changes reported since the last command."""

        events = self._store.drain()
        if not events:
            return self._state
        # Each event carries the full session, so only the most recent matters.
        latest = events[-1]
        logger.debug("Applying session event %s", latest.event)
        if latest.session is None:
            self._clear_user()
            return self._state
        await self._load_profile(latest.session)
        return self._state

    def close(self) -> None:
        self._generation += 1
        self._store.close()

    def _clear_user(self) -> None:
        self._generation += 1
        self._set(
            phase=Phase.UNAUTHENTICATED,
            loading=False,
            session=None,
            user=None,
            resources=(),
            projects=(),
            sync_status=SyncStatus.SYNCED,
            active_tab=Tab.DASHBOARD,
        )

    # --- Profile loader --------------------------------------------------------

    async def _load_profile(self, session: Session) -> None:
        self._set(session=session, loading=True)
        try:
            user = await self._resolve_profile(session)
            if user is None:
                self._set(user=None, phase=Phase.UNAUTHENTICATED)
                return
            self._set(user=user, phase=Phase.AUTHENTICATED, auth_message=None)
            await self._reload()
        finally:
            self._set(loading=False)

    async def _resolve_profile(self, session: Session) -> Optional[User]:
        try:
            row = await anyio.to_thread.run_sync(
                partial(self._backend.select_one, "profiles", filters={"id": session.user_id})
            )
        except NotFoundError:
            record = {
                "id": session.user_id,
                "email": session.email,
                "name": session.display_name,
                "role": Role.USER.value,
                "avatar": DEFAULT_AVATAR,
            }
            try:
                row = await anyio.to_thread.run_sync(
                    partial(self._backend.insert_one, "profiles", record)
                )
            except BackendError as exc:
                logger.error("Error creating profile for %s: %s", session.user_id, exc.message)
                return None
            logger.info("Created profile for user %s", session.user_id)
        except BackendError as exc:
            logger.error("Error loading profile for %s: %s", session.user_id, exc.message)
            return None
        return User.from_record(row)

    # --- Data loader -----------------------------------------------------------

    async def reload_data(self) -> WorkspaceState:
        await self._reload()
        return self._state

    async def _reload(self) -> None:
        self._generation += 1
        generation = self._generation
        self._set(sync_status=SyncStatus.SYNCING)

        results: Dict[str, Optional[List[dict]]] = {}
        errors: Dict[str, BackendError] = {}

        async def fetch(table: str) -> None:
            try:
                results[table] = await anyio.to_thread.run_sync(
                    partial(self._backend.select, table, order_by="created_at", descending=True)
                )
            except BackendError as exc:
                errors[table] = exc

        async with anyio.create_task_group() as task_group:
            task_group.start_soon(fetch, "resources")
            task_group.start_soon(fetch, "projects")

        if generation != self._generation:
            logger.info("Discarding data load superseded by a newer request")
            return

        changes: Dict[str, object] = {"sync_status": SyncStatus.SYNCED}
        for table, exc in errors.items():
            logger.error("Error loading %s: %s", table, exc.message)
        if errors:
            changes["sync_status"] = SyncStatus.ERROR

        # A failed table keeps its previous rows; the other one is still applied.
        resource_rows = results.get("resources")
        if resource_rows is not None:
            changes["resources"] = tuple(Resource.from_record(row) for row in resource_rows)
        project_rows = results.get("projects")
        if project_rows is not None:
            changes["projects"] = tuple(Project.from_record(row) for row in project_rows)
        self._set(**changes)

    # --- Auth form -------------------------------------------------------------

    def set_auth_mode(self, mode: str | AuthMode) -> WorkspaceState:
        return self._set(auth_mode=AuthMode(mode))

    async def submit_auth(
        self,
        *,
        email: str,
        password: str,
        name: str = "",
        mode: str | AuthMode | None = None,
    ) -> WorkspaceState:
        """Submit the login or registration form once."""

        auth_mode = AuthMode(mode) if mode is not None else self._state.auth_mode
        self._set(auth_mode=auth_mode, auth_message=None, phase=Phase.AUTHENTICATING)

        try:
            if auth_mode is AuthMode.LOGIN:
                await anyio.to_thread.run_sync(self._backend.sign_in, email, password)
            else:
                await anyio.to_thread.run_sync(
                    partial(self._backend.sign_up, email, password, name=name)
                )
        except AuthenticationError as exc:
            logger.warning("%s failed for %s: %s", auth_mode.value.capitalize(), email, exc.message)
            return self._set(
                phase=Phase.UNAUTHENTICATED,
                auth_message=Notice(exc.message, "error"),
            )

        if auth_mode is AuthMode.REGISTER:
            await self._discard_registration_session()
            return self._set(
                phase=Phase.UNAUTHENTICATED,
                auth_message=Notice(REGISTRATION_CONFIRMATION, "success"),
            )

        self._store.drain()
        session = self._store.session
        if session is None:
            try:
                session = await anyio.to_thread.run_sync(self._backend.current_session)
            except BackendError as exc:
                logger.error("Error reading session after sign-in: %s", exc.message)
                session = None
        if session is None:
            return self._set(phase=Phase.UNAUTHENTICATED)
        await self._load_profile(session)
        if self._state.user is None:
            self._set(phase=Phase.UNAUTHENTICATED)
        return self._state

    async def _discard_registration_session(self) -> None:
        # Projects without email confirmation hand out a session on sign-up.
        self._store.drain()
        if self._store.session is None:
            return
        try:
            await anyio.to_thread.run_sync(self._backend.sign_out)
        except BackendError as exc:
            logger.error("Error discarding session after registration: %s", exc.message)
        self._store.drain()

    async def logout(self) -> WorkspaceState:
        try:
            await anyio.to_thread.run_sync(self._backend.sign_out)
        except BackendError as exc:
            logger.error("Error signing out: %s", exc.message)
        self._store.drain()
        self._clear_user()
        return self._set(auth_message=None)

    # --- Seeder ----------------------------------------------------------------

    async def seed_sample_data(self) -> WorkspaceState:
        """Insert the demonstration records for the current user."""

        user = self._state.user
        if user is None:
            return self._state

        self._set(sync_status=SyncStatus.SYNCING)
        try:
            await self._insert_batch("resources", sample_resources(user.id))
            await self._insert_batch("projects", sample_projects(user.id))
        except Exception:
            logger.exception("Error creating sample data")
            return self._set(sync_status=SyncStatus.ERROR)

        await self._reload()
        return self._state

    async def _insert_batch(self, table: str, records: List[dict]) -> int:
        try:
            inserted = await anyio.to_thread.run_sync(
                partial(self._backend.insert_many, table, records)
            )
        except BackendError as exc:
            logger.error("Error inserting sample %s: %s", table, exc.message)
            return 0
        return len(inserted)

    # --- Manual entry ----------------------------------------------------------

    def _require_user(self) -> User:
        user = self._state.user
        if user is None:
            raise PermissionError("Sign in to add records")
        return user

    async def _insert_and_reload(self, table: str, record: dict) -> WorkspaceState:
        self._set(sync_status=SyncStatus.SYNCING)
        try:
            await anyio.to_thread.run_sync(partial(self._backend.insert_one, table, record))
        except BackendError as exc:
            logger.error("Error creating %s record: %s", table, exc.message)
            self._set(sync_status=SyncStatus.ERROR)
            raise
        await self._reload()
        return self._state

    async def create_resource(
        self,
        *,
        name: str,
        role: str = "",
        skills: Iterable[str] | str = (),
    ) -> WorkspaceState:
        user = self._require_user()
        cleaned_name = (name or "").strip()
        if not cleaned_name:
            raise ValueError("Resource name must not be empty")
        record = {
            "name": cleaned_name,
            "role": (role or "").strip(),
            "skills": list(normalise_skills(skills)),
            "created_by": user.id,
        }
        return await self._insert_and_reload("resources", record)

    async def create_project(
        self,
        *,
        code: str,
        name: str,
        start_date: str,
        end_date: str,
        description: str = "",
        color: str = "#3BBAA0",
        status: str | ProjectStatus = ProjectStatus.NOT_STARTED,
    ) -> WorkspaceState:
        user = self._require_user()
        cleaned_code = (code or "").strip()
        cleaned_name = (name or "").strip()
        if not cleaned_code:
            raise ValueError("Project code must not be empty")
        if not cleaned_name:
            raise ValueError("Project name must not be empty")
        start = _parse_iso_date(start_date, "Start date")
        end = _parse_iso_date(end_date, "End date")
        if end < start:
            raise ValueError("End date must not be before the start date")
        cleaned_color = (color or "").strip()
        if not is_hex_color(cleaned_color):
            raise ValueError("Colour must be a hex value such as #3BBAA0")
        record = {
            "code": cleaned_code,
            "name": cleaned_name,
            "description": (description or "").strip(),
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "color": cleaned_color.upper(),
            "status": ProjectStatus.parse(status).value,
            "created_by": user.id,
        }
        return await self._insert_and_reload("projects", record)

    # --- View router -----------------------------------------------------------

    def set_active_tab(self, tab: str | Tab) -> WorkspaceState:
        return self._set(active_tab=Tab(tab))

    def notify(self, text: str, *, kind: str = "info") -> WorkspaceState:
        return self._set(notices=self._state.notices + (Notice(text, kind),))

    def consume_notices(self) -> Tuple[Notice, ...]:
        notices = self._state.notices
        if notices:
            self._set(notices=())
        return notices


__all__ = [
    "Notice",
    "AuthMode",
    "PASSWORD_MIN_LENGTH",
    "Phase",
    "REGISTRATION_CONFIRMATION",
    "Tab",
    "Workspace",
    "WorkspaceState",
]
