"""Demonstration records offered to first-time users."""

from __future__ import annotations

from typing import Dict, List

from .models import ProjectStatus

SAMPLE_RESOURCES = (
    {
        "name": "Mario Rossi",
        "role": "Senior Architect",
        "skills": ["AutoCAD", "Revit", "Design"],
    },
    {
        "name": "Anna Bianchi",
        "role": "Climate Engineer",
        "skills": ["HVAC", "Energy Efficiency", "Sustainability"],
    },
    {
        "name": "Luca Verdi",
        "role": "Project Manager",
        "skills": ["Project Management", "Coordination", "Budgeting"],
    },
)

SAMPLE_PROJECTS = (
    {
        "code": "PRJ-2025-001",
        "name": "Green Shopping Centre",
        "description": "Sustainable development with LEED certification",
        "start_date": "2025-01-15",
        "end_date": "2025-04-30",
        "color": "#3BBAA0",
        "status": ProjectStatus.IN_PROGRESS.value,
    },
    {
        "code": "PRJ-2025-002",
        "name": "Eco-Friendly Residences",
        "description": "Zero-impact residential complex",
        "start_date": "2025-02-01",
        "end_date": "2025-05-15",
        "color": "#4A5568",
        "status": ProjectStatus.NOT_STARTED.value,
    },
)


def sample_resources(created_by: str) -> List[Dict[str, object]]:
    return [
        {**record, "skills": list(record["skills"]), "created_by": created_by}
        for record in SAMPLE_RESOURCES
    ]


def sample_projects(created_by: str) -> List[Dict[str, object]]:
    return [{**record, "created_by": created_by} for record in SAMPLE_PROJECTS]


__all__ = ["SAMPLE_PROJECTS", "SAMPLE_RESOURCES", "sample_projects", "sample_resources"]
