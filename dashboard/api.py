"""HTTP API for the weather dashboard."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from pydantic import BaseModel

from .auth import AuthError
from .config import settings
from .controller import SIGN_UP_NOTICE, DashboardController
from .session_manager import DashboardSessions, build_dashboard_sessions
from .view import DashboardView, render_dashboard
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="dashboard/api")

_sessions: Optional[DashboardSessions] = None


def get_dashboard_sessions() -> DashboardSessions:
    """Return the process-wide controller registry, building it on first use."""
    global _sessions
    if _sessions is None:
        _sessions = build_dashboard_sessions(settings)
    return _sessions


def start_session_sweeper() -> None:
    """Start evicting expired sessions in the background (needs a running loop)."""
    sessions = get_dashboard_sessions()
    sessions.start_sweeper(sessions.settings.session_sweep_interval_seconds)


async def close_dashboard_sessions() -> None:
    """Close all controllers if the registry was ever built."""
    if _sessions is not None:
        await _sessions.close_all()


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing access token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Malformed Authorization header")
    return token.strip()


async def require_dashboard(
    authorization: str | None = Header(default=None),
    sessions: DashboardSessions = Depends(get_dashboard_sessions),
) -> DashboardController:
    """Resolve the bearer token to its signed-in controller."""
    controller = await sessions.get(_bearer_token(authorization))
    if controller is None:
        logger.debug("Rejected unknown or expired access token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired access token")
    return controller


router = APIRouter()


class Credentials(BaseModel):
    """Email/password pair for sign-up and sign-in."""
    email: str
    password: str


class SignUpResponse(BaseModel):
    user_id: str
    message: str


class SignInResponse(BaseModel):
    """Access token plus the dashboard as it looks right after sign-in."""
    access_token: str
    dashboard: DashboardView


class SearchRequest(BaseModel):
    city: str


class SaveCityRequest(BaseModel):
    name: str


def _render(controller: DashboardController) -> DashboardView:
    return render_dashboard(
        controller.state,
        controller.daily_forecast,
        icon_base_url=settings.openweather_icon_url,
    )


@router.post("/auth/signup", response_model=SignUpResponse, status_code=status.HTTP_201_CREATED)
async def sign_up(creds: Credentials, sessions: DashboardSessions = Depends(get_dashboard_sessions)):
    """Register an account. The caller signs in separately."""
    try:
        user_id = await sessions.sign_up(creds.email, creds.password)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return SignUpResponse(user_id=user_id, message=SIGN_UP_NOTICE)


@router.post("/auth/signin", response_model=SignInResponse)
async def sign_in(creds: Credentials, sessions: DashboardSessions = Depends(get_dashboard_sessions)):
    """Sign in and start a dashboard for this browser."""
    try:
        controller = await sessions.sign_in(creds.email, creds.password)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    return SignInResponse(access_token=controller.state.session.access_token, dashboard=_render(controller))


@router.post("/auth/signout", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    authorization: str | None = Header(default=None),
    sessions: DashboardSessions = Depends(get_dashboard_sessions),
):
    """Revoke the token and stop its dashboard."""
    await sessions.sign_out(_bearer_token(authorization))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/dashboard", response_model=DashboardView)
async def get_dashboard(controller: DashboardController = Depends(require_dashboard)):
    """Return the rendered dashboard (refreshed in the background every interval)."""
    return _render(controller)


@router.post("/dashboard/search", response_model=DashboardView)
async def search(req: SearchRequest, controller: DashboardController = Depends(require_dashboard)):
    """Make the searched city the active city. Provider failures show up in ``error``."""
    if not req.city.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="City name must not be empty")
    await controller.set_active_city(req.city)
    return _render(controller)


@router.post("/dashboard/unit/toggle", response_model=DashboardView)
async def toggle_unit(controller: DashboardController = Depends(require_dashboard)):
    """Switch between Celsius and Fahrenheit display."""
    controller.toggle_unit()
    return _render(controller)


@router.post("/saved-cities", response_model=DashboardView)
async def save_city(req: SaveCityRequest, controller: DashboardController = Depends(require_dashboard)):
    """Save a city with the current weather snapshot (ignored before the first successful search)."""
    await controller.save_city(req.name)
    return _render(controller)


@router.delete("/saved-cities/{name}", response_model=DashboardView)
async def remove_city(name: str, controller: DashboardController = Depends(require_dashboard)):
    """Remove a saved city."""
    await controller.remove_city(name)
    return _render(controller)
