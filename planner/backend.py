"""Gateway to the hosted authentication provider and relational data store."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

logger = logging.getLogger("gpr.backend")

NOT_FOUND_CODE = "PGRST116"


class BackendError(Exception):
    """Raised when the hosted backend reports a failure."""

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class NotFoundError(BackendError):
    """Raised when a single-row query matched no rows."""


class AuthenticationError(BackendError):
    """Raised when the auth provider rejects a sign-in or sign-up request."""


@dataclass(frozen=True)
class Session:
    """Authenticated identity issued by the auth provider."""

    access_token: str
    user_id: str
    email: str = ""
    user_metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        name = self.user_metadata.get("name")
        if isinstance(name, str) and name.strip():
            return name.strip()
        return self.email or "User"


def _extract_error_message(exc: BaseException, default: str) -> str:
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message.strip():
        return message.strip()
    text = str(exc).strip()
    return text or default


def _extract_error_code(exc: BaseException) -> Optional[str]:
    code = getattr(exc, "code", None)
    if code is None:
        return None
    return str(code)


def _to_session(raw: Any) -> Optional[Session]:
    if raw is None:
        return None
    user = getattr(raw, "user", None)
    if user is None:
        return None
    user_id = str(getattr(user, "id", "") or "")
    if not user_id:
        return None
    metadata = getattr(user, "user_metadata", None)
    return Session(
        access_token=str(getattr(raw, "access_token", "") or ""),
        user_id=user_id,
        email=str(getattr(user, "email", "") or ""),
        user_metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
    )


class Backend:
    """Thin wrapper around a Supabase client.

    The client is duck-typed so tests can supply a stub. It must expose
    ``auth`` (``get_session``, ``on_auth_state_change``,
    ``sign_in_with_password``, ``sign_up``, ``sign_out``) and ``table(name)``
    returning a PostgREST query builder.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        return self._client

    # --- Auth ------------------------------------------------------------------

    def current_session(self) -> Optional[Session]:
        try:
            raw = self._client.auth.get_session()
        except Exception as exc:
            raise BackendError(
                _extract_error_message(exc, "Failed to read the current session"),
                code=_extract_error_code(exc),
            ) from exc
        return _to_session(raw)

    def subscribe(self, callback: Callable[[str, Optional[Session]], None]) -> Callable[[], None]:
        """Register for session-change events and return a disposer."""

        def _relay(event: Any, raw_session: Any) -> None:
            callback(str(event), _to_session(raw_session))

        subscription = self._client.auth.on_auth_state_change(_relay)
        lock = threading.Lock()
        disposed = False

        def dispose() -> None:
            nonlocal disposed
            with lock:
                if disposed:
                    return
                disposed = True
            subscription.unsubscribe()

        return dispose

    def sign_in(self, email: str, password: str) -> None:
        try:
            self._client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            raise AuthenticationError(
                _extract_error_message(exc, "Sign-in failed"),
                code=_extract_error_code(exc),
            ) from exc

    def sign_up(self, email: str, password: str, *, name: str) -> None:
        try:
            self._client.auth.sign_up(
                {
                    "email": email,
                    "password": password,
                    "options": {"data": {"name": name}},
                }
            )
        except Exception as exc:
            raise AuthenticationError(
                _extract_error_message(exc, "Registration failed"),
                code=_extract_error_code(exc),
            ) from exc

    def sign_out(self) -> None:
        try:
            self._client.auth.sign_out()
        except Exception as exc:
            raise BackendError(
                _extract_error_message(exc, "Sign-out failed"),
                code=_extract_error_code(exc),
            ) from exc

    # --- Data store ------------------------------------------------------------

    def _execute(self, query: Any, *, action: str, table: str) -> Any:
        try:
            response = query.execute()
        except Exception as exc:
            code = _extract_error_code(exc)
            message = _extract_error_message(exc, f"Failed to {action} {table}")
            if code == NOT_FOUND_CODE:
                raise NotFoundError(message, code=code) from exc
            raise BackendError(message, code=code) from exc
        return getattr(response, "data", None)

    def select(
        self,
        table: str,
        *,
        filters: Optional[Mapping[str, object]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> Optional[List[Dict[str, Any]]]:
        query = self._client.table(table).select("*")
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        if order_by:
            query = query.order(order_by, desc=descending)
        data = self._execute(query, action="load", table=table)
        if data is None:
            return None
        return [dict(row) for row in data]

    def select_one(self, table: str, *, filters: Mapping[str, object]) -> Dict[str, Any]:
        query = self._client.table(table).select("*")
        for column, value in filters.items():
            query = query.eq(column, value)
        data = self._execute(query.single(), action="load", table=table)
        if not data:
            raise NotFoundError(f"No {table} row matched", code=NOT_FOUND_CODE)
        return dict(data)

    def insert_one(self, table: str, record: Mapping[str, object]) -> Dict[str, Any]:
        data = self._execute(
            self._client.table(table).insert(dict(record)),
            action="insert into",
            table=table,
        )
        if isinstance(data, list):
            if not data:
                raise BackendError(f"Insert into {table} returned no rows")
            return dict(data[0])
        if isinstance(data, Mapping):
            return dict(data)
        raise BackendError(f"Insert into {table} returned an unexpected payload")

    def insert_many(self, table: str, records: Sequence[Mapping[str, object]]) -> List[Dict[str, Any]]:
        data = self._execute(
            self._client.table(table).insert([dict(record) for record in records]),
            action="insert into",
            table=table,
        )
        return [dict(row) for row in data or []]


def create_backend(settings) -> Backend:
    """Build a :class:`Backend` talking to the configured Supabase project."""

    from supabase import ClientOptions, create_client

    options = ClientOptions(postgrest_client_timeout=settings.backend_timeout)
    client = create_client(settings.supabase_url, settings.supabase_anon_key, options=options)
    logger.debug("Created Supabase client for %s", settings.supabase_url)
    return Backend(client)


__all__ = [
    "AuthenticationError",
    "Backend",
    "BackendError",
    "NOT_FOUND_CODE",
    "NotFoundError",
    "Session",
    "create_backend",
]
