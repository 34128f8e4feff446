"""Domain records loaded from the hosted data store."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

DEFAULT_AVATAR = "👤"
DEFAULT_PROJECT_COLOR = "#4A5568"

_HEX_COLOR = re.compile(r"#[0-9A-Fa-f]{6}")


class Role(str, Enum):
    """Access level attached to a user profile."""

    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


class ProjectStatus(str, Enum):
    """Lifecycle status of a project."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @classmethod
    def parse(cls, value: object) -> "ProjectStatus":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        text = _LEGACY_STATUSES.get(text, text)
        try:
            return cls(text)
        except ValueError as exc:
            raise ValueError(f"Unknown project status '{value}'") from exc


_STATUS_LABELS = {
    ProjectStatus.NOT_STARTED: "Not started",
    ProjectStatus.IN_PROGRESS: "In progress",
    ProjectStatus.COMPLETED: "Completed",
}

# Rows written by the first release of the application.
_LEGACY_STATUSES = {
    "da-avviare": ProjectStatus.NOT_STARTED.value,
    "in-corso": ProjectStatus.IN_PROGRESS.value,
    "concluso": ProjectStatus.COMPLETED.value,
}


class SyncStatus(str, Enum):
    """Outcome of the most recent bulk data fetch."""

    SYNCED = "synced"
    SYNCING = "syncing"
    ERROR = "error"


def _text(row: Mapping[str, Any], key: str, default: str = "") -> str:
    value = row.get(key)
    if value is None:
        return default
    return str(value)


def _parse_date(value: object) -> Optional[date]:
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def is_hex_color(value: object) -> bool:
    return isinstance(value, str) and _HEX_COLOR.fullmatch(value) is not None


def _project_color(value: object) -> str:
    # Stored rows are user-written and end up in inline styles.
    text = str(value or "").strip()
    if not is_hex_color(text):
        return DEFAULT_PROJECT_COLOR
    return text.upper()


def normalise_skills(skills: object) -> Tuple[str, ...]:
    """Return skill tags without blanks or duplicates, preserving order."""

    if skills is None:
        return ()
    if isinstance(skills, str):
        candidates = skills.split(",")
    else:
        candidates = [str(item) for item in skills]  # type: ignore[union-attr]
    seen: list[str] = []
    for candidate in candidates:
        cleaned = candidate.strip()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return tuple(seen)


@dataclass(frozen=True)
class User:
    """Application profile keyed by the auth provider's user identifier."""

    id: str
    email: str
    name: str
    role: Role = Role.USER
    avatar: str = DEFAULT_AVATAR

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "User":
        try:
            role = Role(_text(row, "role", Role.USER.value))
        except ValueError:
            role = Role.USER
        return cls(
            id=_text(row, "id"),
            email=_text(row, "email"),
            name=_text(row, "name") or _text(row, "email") or "User",
            role=role,
            avatar=_text(row, "avatar") or DEFAULT_AVATAR,
        )


@dataclass(frozen=True)
class Resource:
    """A person who can be assigned to projects."""

    id: str
    name: str
    role: str
    skills: Tuple[str, ...]
    created_by: str
    created_at: str
    updated_at: str

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "Resource":
        return cls(
            id=_text(row, "id"),
            name=_text(row, "name"),
            role=_text(row, "role"),
            skills=normalise_skills(row.get("skills")),
            created_by=_text(row, "created_by"),
            created_at=_text(row, "created_at"),
            updated_at=_text(row, "updated_at"),
        )


@dataclass(frozen=True)
class Project:
    """A planned piece of work with a date span and display colour."""

    id: str
    code: str
    name: str
    description: str
    start_date: Optional[date]
    end_date: Optional[date]
    color: str
    status: ProjectStatus
    created_by: str
    created_at: str
    updated_at: str

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "Project":
        try:
            status = ProjectStatus.parse(row.get("status"))
        except ValueError:
            status = ProjectStatus.NOT_STARTED
        return cls(
            id=_text(row, "id"),
            code=_text(row, "code"),
            name=_text(row, "name"),
            description=_text(row, "description"),
            start_date=_parse_date(row.get("start_date")),
            end_date=_parse_date(row.get("end_date")),
            color=_project_color(row.get("color")),
            status=status,
            created_by=_text(row, "created_by"),
            created_at=_text(row, "created_at"),
            updated_at=_text(row, "updated_at"),
        )

    @property
    def duration_days(self) -> Optional[int]:
        if self.start_date is None or self.end_date is None:
            return None
        return (self.end_date - self.start_date).days + 1


__all__ = [
    "DEFAULT_AVATAR",
    "DEFAULT_PROJECT_COLOR",
    "Project",
    "ProjectStatus",
    "Resource",
    "Role",
    "SyncStatus",
    "User",
    "is_hex_color",
    "normalise_skills",
]
