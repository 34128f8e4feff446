from __future__ import annotations

from datetime import date

import pytest

from planner.models import (
    DEFAULT_AVATAR,
    DEFAULT_PROJECT_COLOR,
    Project,
    ProjectStatus,
    Resource,
    Role,
    User,
    normalise_skills,
)
from planner.samples import SAMPLE_PROJECTS, sample_projects, sample_resources


def test_project_status_accepts_legacy_values():
    assert ProjectStatus.parse("da-avviare") is ProjectStatus.NOT_STARTED
    assert ProjectStatus.parse(" In-Corso ") is ProjectStatus.IN_PROGRESS
    assert ProjectStatus.parse("concluso") is ProjectStatus.COMPLETED
    assert ProjectStatus.parse(ProjectStatus.COMPLETED) is ProjectStatus.COMPLETED


def test_project_status_rejects_unknown_values():
    with pytest.raises(ValueError):
        ProjectStatus.parse("archived")


def test_normalise_skills_splits_and_deduplicates():
    assert normalise_skills("BIM, Revit,, BIM ") == ("BIM", "Revit")
    assert normalise_skills(["HVAC", " HVAC", "Energy"]) == ("HVAC", "Energy")
    assert normalise_skills(None) == ()


def test_user_from_record_fills_defaults():
    user = User.from_record({"id": "u-1", "email": "ada@example.com", "role": "owner"})

    assert user.name == "ada@example.com"
    assert user.role is Role.USER
    assert user.avatar == DEFAULT_AVATAR


def test_project_from_record_parses_dates_and_status():
    project = Project.from_record(
        {
            "id": "p-1",
            "code": "PRJ-1",
            "name": "Library",
            "start_date": "2025-01-15",
            "end_date": "2025-01-31T00:00:00+00:00",
            "status": "in-corso",
            "color": None,
        }
    )

    assert project.start_date == date(2025, 1, 15)
    assert project.end_date == date(2025, 1, 31)
    assert project.duration_days == 17
    assert project.status is ProjectStatus.IN_PROGRESS
    assert project.status.label == "In progress"
    assert project.color == "#4A5568"


def test_project_with_unknown_status_falls_back_to_not_started():
    project = Project.from_record({"id": "p-2", "status": "paused", "start_date": "bad"})

    assert project.status is ProjectStatus.NOT_STARTED
    assert project.start_date is None
    assert project.duration_days is None


def test_resource_from_record_tolerates_missing_fields():
    resource = Resource.from_record({"id": "r-1", "name": "Mario"})

    assert resource.role == ""
    assert resource.skills == ()


def test_sample_records_are_owned_by_caller():
    resources = sample_resources("owner-1")
    projects = sample_projects("owner-1")

    assert [record["name"] for record in resources] == [
        "Mario Rossi",
        "Anna Bianchi",
        "Luca Verdi",
    ]
    assert [record["code"] for record in projects] == ["PRJ-2025-001", "PRJ-2025-002"]
    assert {record["created_by"] for record in resources + projects} == {"owner-1"}


def test_sample_projects_do_not_share_state():
    first = sample_projects("a")
    first[0]["name"] = "Changed"

    assert sample_projects("b")[0]["name"] == SAMPLE_PROJECTS[0]["name"]


@pytest.mark.parametrize(
    "stored",
    ["red; background-image: url(https://evil.example)", "#12345", "#1234567", "javascript:x"],
)
def test_project_colour_from_store_must_be_hex(stored):
    project = Project.from_record({"id": "p-3", "color": stored})

    assert project.color == DEFAULT_PROJECT_COLOR


def test_project_colour_from_store_is_normalised():
    project = Project.from_record({"id": "p-4", "color": " #3bbaa0 "})

    assert project.color == "#3BBAA0"
