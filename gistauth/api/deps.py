"""Request-scoped dependencies and rendering helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..core import Settings, get_session
from ..models import User
from ..services import clear_session, pop_flashes, session_user_id
from ..services.users import get_user_by_id
from .errors import http_error

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[1] / "templates"))


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def current_user(
    request: Request, session: Session = Depends(get_session)
) -> Optional[User]:
    """The logged-in user, or None for anonymous requests."""

    user_id = session_user_id(request)
    if user_id is None:
        return None
    try:
        user = get_user_by_id(session, user_id)
    except SQLAlchemyError as exc:
        raise http_error(500, "Cannot get user", exc) from exc
    if user is None:
        clear_session(request)
    return user


def real_ip(request: Request) -> str:
    """Client address, trusting the usual reverse proxy headers."""

    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real = request.headers.get("x-real-ip", "")
    if real:
        return real.strip()
    return request.client.host if request.client else ""


def render(request: Request, template: str, context: Dict[str, Any]):
    merged = {"flashes": pop_flashes(request), **context}
    return templates.TemplateResponse(request, template, merged)


def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=302)


__all__ = ["current_user", "get_settings", "real_ip", "redirect", "render", "templates"]
