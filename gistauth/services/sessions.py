"""Helpers around the signed session cookie.

The cookie itself is issued by Starlette's ``SessionMiddleware`` with the
longest lifetime we hand out; each login stores its own ``expires_at`` so a
regular session lapses earlier than a form login.
"""

from __future__ import annotations

from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from ..core.config import Settings
from ..core.time import epoch_seconds

USER_KEY = "user"
EXPIRES_KEY = "expires_at"


def start_session(request: Request, user_id: int, max_age: int) -> None:
    """Bind ``user_id`` to the session for ``max_age`` seconds."""

    request.session[USER_KEY] = user_id
    request.session[EXPIRES_KEY] = epoch_seconds() + max_age


def session_user_id(request: Request) -> Optional[int]:
    """Return the logged-in user id, dropping the session once it expired."""

    user_id = request.session.get(USER_KEY)
    if user_id is None:
        return None

    expires_at = request.session.get(EXPIRES_KEY)
    if expires_at is not None and int(expires_at) <= epoch_seconds():
        request.session.clear()
        return None

    try:
        return int(user_id)
    except (TypeError, ValueError):
        request.session.clear()
        return None


def clear_session(request: Request) -> None:
    request.session.clear()


def delete_csrf_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(settings.csrf_cookie_name, path="/")


__all__ = [
    "EXPIRES_KEY",
    "USER_KEY",
    "clear_session",
    "delete_csrf_cookie",
    "session_user_id",
    "start_session",
]
