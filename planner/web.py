"""Web interface for the planner."""

from __future__ import annotations

import logging
from datetime import datetime
from itertools import groupby
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs

from fastapi import APIRouter, FastAPI, HTTPException, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from .backend import BackendError
from .models import Project, ProjectStatus, SyncStatus
from .sessions import WorkspaceRegistry
from .workspace import PASSWORD_MIN_LENGTH, AuthMode, Phase, Tab, Workspace, WorkspaceState

logger = logging.getLogger("gpr.web")

SESSION_COOKIE_NAME = "gpr_session"

_SYNC_LABELS = {
    SyncStatus.SYNCED: "Synced",
    SyncStatus.SYNCING: "Loading...",
    SyncStatus.ERROR: "Error",
}


class UserView(BaseModel):
    id: str
    name: str
    email: str
    role: str
    avatar: str


class StatusResponse(BaseModel):
    phase: str
    loading: bool
    sync_status: str
    active_tab: str
    resource_count: int
    project_count: int
    user: Optional[UserView] = None


def _template_environment() -> Jinja2Templates:
    base_dir = Path(__file__).resolve().parent
    templates = Jinja2Templates(directory=str(base_dir / "templates"))
    templates.env.globals["sync_labels"] = _SYNC_LABELS
    return templates


def _format_date(value) -> str:
    if value is None:
        return "—"
    return value.strftime("%d %b %Y")


def _calendar_months(projects: Tuple[Project, ...]) -> List[Tuple[str, List[Project]]]:
    """Group dated projects by the month they start in, earliest first."""

    dated = sorted(
        (project for project in projects if project.start_date is not None),
        key=lambda project: (project.start_date, project.code),
    )
    months = []
    for key, group in groupby(dated, key=lambda project: project.start_date.strftime("%B %Y")):
        months.append((key, list(group)))
    return months


def _status_payload(state: WorkspaceState) -> StatusResponse:
    user = state.user if state.is_authenticated else None
    return StatusResponse(
        phase=state.phase.value,
        loading=state.loading,
        sync_status=state.sync_status.value,
        active_tab=state.active_tab.value,
        resource_count=len(state.resources),
        project_count=len(state.projects),
        user=(
            UserView(
                id=user.id,
                name=user.name,
                email=user.email,
                role=user.role.value,
                avatar=user.avatar,
            )
            if user is not None
            else None
        ),
    )


def register_ui_routes(
    app: FastAPI,
    registry: WorkspaceRegistry,
    *,
    secure_cookies: bool,
) -> None:
    """Expose the HTML interface on the provided FastAPI app."""

    templates = _template_environment()
    templates.env.filters["format_date"] = _format_date
    static_dir = Path(__file__).resolve().parent / "static"
    if static_dir.exists():
        app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    router = APIRouter(include_in_schema=False)

    async def _parse_form(request: Request) -> Dict[str, str]:
        body_bytes = await request.body()
        content_type = request.headers.get("content-type", "")
        charset = "utf-8"
        if "charset=" in content_type:
            charset = content_type.split("charset=", 1)[1].split(";", 1)[0].strip() or "utf-8"
        try:
            decoded = body_bytes.decode(charset)
        except (LookupError, UnicodeDecodeError):
            decoded = body_bytes.decode("utf-8", errors="ignore")
        data = parse_qs(decoded, keep_blank_values=True)
        return {key: values[0] for key, values in data.items() if values}

    async def _load_workspace(request: Request) -> Tuple[Workspace, str]:
        token = request.cookies.get(SESSION_COOKIE_NAME)
        workspace = registry.resolve(token) if token else None
        if workspace is None:
            registry.purge_expired()
            token, workspace = registry.create()
            await workspace.start()
        else:
            await workspace.sync()
        if workspace.state.is_authenticated:
            registry.promote(token)
        return workspace, token

    def _issue_session_cookie(response, token: str) -> None:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            token,
            max_age=registry.cookie_max_age,
            secure=secure_cookies,
            httponly=True,
            samesite="lax",
            path="/",
        )

    def _redirect(request: Request, name: str, token: str) -> RedirectResponse:
        response = RedirectResponse(request.url_for(name), status_code=status.HTTP_303_SEE_OTHER)
        _issue_session_cookie(response, token)
        return response

    def _render(
        request: Request,
        template: str,
        token: str,
        context: Dict[str, object],
        *,
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        context.setdefault("now", datetime.now)
        response = templates.TemplateResponse(request, template, context, status_code=status_code)
        _issue_session_cookie(response, token)
        return response

    def _render_login(
        request: Request,
        workspace: Workspace,
        token: str,
        *,
        email: str = "",
        name: str = "",
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        state = workspace.state
        return _render(
            request,
            "login.html",
            token,
            {
                "state": state,
                "email": email,
                "name": name,
                "password_min_length": PASSWORD_MIN_LENGTH,
                "register": state.auth_mode is AuthMode.REGISTER,
                "notices": workspace.consume_notices(),
            },
            status_code=status_code,
        )

    @router.get("/", response_class=HTMLResponse, name="ui_home")
    async def homepage(request: Request):
        workspace, token = await _load_workspace(request)
        state = workspace.state
        if state.loading or state.phase is Phase.LOADING:
            return _render(request, "loading.html", token, {"state": state})
        if not state.is_authenticated:
            return _redirect(request, "ui_login", token)

        notices = workspace.consume_notices()
        return _render(
            request,
            "main.html",
            token,
            {
                "state": workspace.state,
                "user": state.user,
                "notices": notices,
                "tabs": list(Tab),
                "statuses": list(ProjectStatus),
                "calendar_months": _calendar_months(state.projects),
            },
        )

    @router.get("/login", response_class=HTMLResponse, name="ui_login")
    async def login_form(request: Request, mode: Optional[str] = None):
        workspace, token = await _load_workspace(request)
        if workspace.state.is_authenticated:
            return _redirect(request, "ui_home", token)
        if mode in {item.value for item in AuthMode}:
            workspace.set_auth_mode(mode)
        return _render_login(request, workspace, token)

    @router.post("/login", name="ui_login_submit")
    async def login_submit(request: Request):
        workspace, token = await _load_workspace(request)
        form = await _parse_form(request)
        email = form.get("email", "").strip()
        password = form.get("password", "")
        name = form.get("name", "").strip()
        mode = form.get("mode") or workspace.state.auth_mode.value
        try:
            workspace.set_auth_mode(mode)
        except ValueError:
            workspace.notify("Unknown sign-in mode.", kind="error")
            return _render_login(
                request, workspace, token, email=email, name=name,
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        if not email or not password:
            workspace.notify("Please provide both email and password.", kind="error")
            return _render_login(
                request, workspace, token, email=email, name=name,
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        state = await workspace.submit_auth(email=email, password=password, name=name)
        if state.is_authenticated:
            logger.info("User %s signed in", state.user.id)
            registry.promote(token)
            return _redirect(request, "ui_home", token)

        failed = state.auth_message is not None and state.auth_message.kind == "error"
        return _render_login(
            request, workspace, token, email=email,
            name=name if failed else "",
            status_code=status.HTTP_400_BAD_REQUEST if failed else status.HTTP_200_OK,
        )

    @router.get("/logout", name="ui_logout")
    async def logout(request: Request):
        workspace, token = await _load_workspace(request)
        await workspace.logout()
        return _redirect(request, "ui_login", token)

    @router.get("/tabs/{tab}", name="ui_tab")
    async def select_tab(request: Request, tab: str):
        workspace, token = await _load_workspace(request)
        if not workspace.state.is_authenticated:
            return _redirect(request, "ui_login", token)
        try:
            workspace.set_active_tab(tab)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown tab") from exc
        return _redirect(request, "ui_home", token)

    @router.post("/sync", name="ui_sync")
    async def sync_data(request: Request):
        workspace, token = await _load_workspace(request)
        if not workspace.state.is_authenticated:
            return _redirect(request, "ui_login", token)
        await workspace.reload_data()
        return _redirect(request, "ui_home", token)

    @router.post("/sample-data", name="ui_sample_data")
    async def create_sample_data(request: Request):
        workspace, token = await _load_workspace(request)
        if not workspace.state.is_authenticated:
            return _redirect(request, "ui_login", token)
        await workspace.seed_sample_data()
        return _redirect(request, "ui_home", token)

    @router.post("/resources", name="ui_create_resource")
    async def create_resource(request: Request):
        workspace, token = await _load_workspace(request)
        if not workspace.state.is_authenticated:
            return _redirect(request, "ui_login", token)
        form = await _parse_form(request)
        workspace.set_active_tab(Tab.RESOURCES)
        try:
            await workspace.create_resource(
                name=form.get("name", ""),
                role=form.get("role", ""),
                skills=form.get("skills", ""),
            )
        except ValueError as exc:
            workspace.notify(str(exc), kind="error")
        except BackendError as exc:
            workspace.notify(f"Could not save the resource: {exc.message}", kind="error")
        else:
            workspace.notify("Resource added.", kind="success")
        return _redirect(request, "ui_home", token)

    @router.post("/projects", name="ui_create_project")
    async def create_project(request: Request):
        workspace, token = await _load_workspace(request)
        if not workspace.state.is_authenticated:
            return _redirect(request, "ui_login", token)
        form = await _parse_form(request)
        workspace.set_active_tab(Tab.PROJECTS)
        try:
            await workspace.create_project(
                code=form.get("code", ""),
                name=form.get("name", ""),
                description=form.get("description", ""),
                start_date=form.get("start_date", ""),
                end_date=form.get("end_date", ""),
                color=form.get("color", "#3BBAA0"),
                status=form.get("status", ProjectStatus.NOT_STARTED.value),
            )
        except ValueError as exc:
            workspace.notify(str(exc), kind="error")
        except BackendError as exc:
            workspace.notify(f"Could not save the project: {exc.message}", kind="error")
        else:
            workspace.notify("Project added.", kind="success")
        return _redirect(request, "ui_home", token)

    @router.get("/api/status", name="ui_status")
    async def workspace_status(request: Request):
        token = request.cookies.get(SESSION_COOKIE_NAME)
        workspace = registry.resolve(token) if token else None
        if workspace is None:
            # Anonymous polling opens no workspace.
            anonymous = WorkspaceState(phase=Phase.UNAUTHENTICATED, loading=False)
            return JSONResponse(content=_status_payload(anonymous).model_dump())
        await workspace.sync()
        payload = _status_payload(workspace.state)
        response = JSONResponse(content=payload.model_dump())
        _issue_session_cookie(response, token)
        return response

    @router.get("/healthz", name="healthz")
    async def healthz():
        return {"status": "ok", "workspaces": len(registry)}

    app.include_router(router)


__all__ = ["SESSION_COOKIE_NAME", "StatusResponse", "register_ui_routes"]
