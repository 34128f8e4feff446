"""Command-line interface for the GPR planner service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Sequence


def _running_in_virtualenv() -> bool:
    """Return ``True`` when the current interpreter is executing inside a venv."""

    base_prefix = getattr(sys, "base_prefix", sys.prefix)
    return sys.prefix != base_prefix


def _bootstrap_virtualenv() -> None:
    """Re-exec the script using the bundled virtualenv interpreter when available."""

    if _running_in_virtualenv():
        return

    root = Path(__file__).resolve().parent
    venv_dir = root / ".venv"
    if not venv_dir.is_dir():
        return

    candidates = (
        venv_dir / "bin" / "python",
        venv_dir / "bin" / "python3",
        venv_dir / "Scripts" / "python.exe",
        venv_dir / "Scripts" / "python",
    )

    script = str(Path(__file__).resolve())
    for candidate in candidates:
        if candidate.exists():
            os.execv(str(candidate), [str(candidate), script, *sys.argv[1:]])


if __name__ == "__main__":
    _bootstrap_virtualenv()

import httpx

from planner.config import ConfigurationError, Settings, load_settings

logger = logging.getLogger("gpr.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="GPR planner utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the planner web service")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the web service")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the web service (default: 8000)",
    )

    check_parser = subparsers.add_parser(
        "check", help="Validate configuration and probe the Supabase auth endpoint"
    )
    check_parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Seconds to wait for the health probe (default: 10)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "check"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _serve(*, settings: Settings, host: str, port: int) -> None:
    from planner.application import create_app
    import uvicorn

    logger.info("Starting planner on http://%s:%s", host, port)
    app = create_app(settings=settings)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _check(settings: Settings, *, timeout: float = 10.0) -> int:
    endpoint = settings.supabase_url + "/auth/v1/health"
    headers = {"apikey": settings.supabase_anon_key}

    try:
        response = httpx.get(endpoint, headers=headers, timeout=timeout)
    except httpx.HTTPError as exc:
        print(f"Failed to contact Supabase at {settings.supabase_url}: {exc}")
        return 1

    if response.status_code != 200:
        print(f"Supabase responded with {response.status_code}: {response.text.strip()}")
        return 1

    print(f"Configuration OK. Supabase auth is reachable at {settings.supabase_url}.")
    return 0


def main(argv: Sequence[str] | None = None, environ: Mapping[str, str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "check":
        try:
            settings = load_settings(environ)
        except ConfigurationError as exc:
            print(f"Configuration error: {exc}")
            return 1
        return _check(settings, timeout=args.timeout)

    # A missing endpoint or key is fatal at startup.
    settings = load_settings(environ)
    _serve(settings=settings, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
