"""
Session API endpoints.

Provides:
    GET  /api/session         - Sign-in state and theme
    POST /api/session/login   - Sign in with any non-empty credentials
    POST /api/session/logout  - Sign out and discard cached telemetry
    PUT  /api/session/theme   - Store the theme preference
"""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from safetrack.session import Theme

router = APIRouter()


class LoginRequest(BaseModel):
    email: str
    password: str


class ThemeRequest(BaseModel):
    theme: Theme


class SessionResponse(BaseModel):
    authenticated: bool
    theme: Theme


def _session_response() -> SessionResponse:
    from services.dashboard.api.deps import get_components

    session = get_components().session
    return SessionResponse(
        authenticated=session.is_authenticated(),
        theme=session.get_theme(),
    )


@router.get("/session", response_model=SessionResponse, summary="Session state")
async def get_session() -> SessionResponse:
    return _session_response()


@router.post("/session/login", response_model=SessionResponse, summary="Sign in")
async def login(request: LoginRequest) -> SessionResponse:
    from services.dashboard.api.deps import get_components

    components = get_components()
    if not components.session.login(request.email, request.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Please enter valid credentials",
        )
    if components.config.dashboard.run_monitor and components.config.monitor.auto_refresh:
        await components.monitor.start()
    return _session_response()


@router.post("/session/logout", response_model=SessionResponse, summary="Sign out")
async def logout() -> SessionResponse:
    from services.dashboard.api.deps import get_components

    components = get_components()
    await components.monitor.stop()
    components.monitor.clear()
    components.session.logout()
    return _session_response()


@router.put("/session/theme", response_model=SessionResponse, summary="Set theme")
async def set_theme(request: ThemeRequest) -> SessionResponse:
    from services.dashboard.api.deps import get_components

    get_components().session.set_theme(request.theme)
    return _session_response()
