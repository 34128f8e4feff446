"""Configuration management for the planner service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

_REQUIRED_KEYS = ("supabase_url", "supabase_anon_key")

_ENV_KEYS = {
    "supabase_url": "SUPABASE_URL",
    "supabase_anon_key": "SUPABASE_ANON_KEY",
    "session_secure": "GPR_SESSION_SECURE",
    "session_ttl_hours": "GPR_SESSION_TTL_HOURS",
    "backend_timeout": "GPR_BACKEND_TIMEOUT",
}


class ConfigurationError(RuntimeError):
    """Raised when required settings are missing or malformed."""


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings."""

    supabase_url: str
    supabase_anon_key: str
    session_secure: bool = False
    session_ttl_hours: float = 8.0
    backend_timeout: float = 30.0

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "Settings":
        """Create :class:`Settings` from raw values, validating required fields."""
        missing = [key for key in _REQUIRED_KEYS if not str(data.get(key) or "").strip()]
        if missing:
            names = ", ".join(_ENV_KEYS[key] for key in missing)
            raise ConfigurationError(f"Missing required configuration: {names}")

        url = str(data["supabase_url"]).strip().rstrip("/")
        if not url.startswith(("http://", "https://")):
            raise ConfigurationError("SUPABASE_URL must be an http(s) URL")

        return Settings(
            supabase_url=url,
            supabase_anon_key=str(data["supabase_anon_key"]).strip(),
            session_secure=_env_flag(data.get("session_secure"), False),
            session_ttl_hours=_positive_float(data.get("session_ttl_hours"), 8.0, "GPR_SESSION_TTL_HOURS"),
            backend_timeout=_positive_float(data.get("backend_timeout"), 30.0, "GPR_BACKEND_TIMEOUT"),
        )


def _env_flag(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _positive_float(value: object, default: float, name: str) -> float:
    if value is None or str(value).strip() == "":
        return default
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a number") from exc
    if parsed <= 0:
        raise ConfigurationError(f"{name} must be greater than zero")
    return parsed


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "planner.yaml").resolve(strict=False)


def _load_file(config_path: Path) -> Dict[str, object]:
    if not config_path.exists():
        return {}
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")
    section = raw.get("planner", raw)
    if not isinstance(section, dict):
        raise ConfigurationError("The 'planner' section must be a mapping")
    return {str(key).lower(): value for key, value in section.items()}


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    *,
    config_path: Optional[Path] = None,
) -> Settings:
    """Load settings from the YAML file, overridden by environment variables."""
    env = os.environ if environ is None else environ
    path = config_path if config_path is not None else resolve_config_path(env.get("GPR_CONFIG"))

    values = _load_file(path)
    for key, env_name in _ENV_KEYS.items():
        raw = env.get(env_name)
        if raw is not None and raw.strip() != "":
            values[key] = raw
    return Settings.from_dict(values)


__all__ = ["ConfigurationError", "Settings", "load_settings", "resolve_config_path"]
