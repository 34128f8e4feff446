"""Project, resource and calendar planner backed by a hosted Supabase project."""

from __future__ import annotations

from typing import Any

from .config import ConfigurationError, Settings, load_settings


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the planner web application."""

    from .application import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "ConfigurationError",
    "Settings",
    "create_app",
    "load_settings",
]
