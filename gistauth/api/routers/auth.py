"""Local account registration, form login and logout."""

from __future__ import annotations

import logging

from argon2.exceptions import HashingError, InvalidHashError, VerificationError
from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from ...core import Settings, get_session
from ...models import User
from ...services import (
    UserForm,
    add_flash,
    clear_session,
    delete_csrf_cookie,
    hash_password,
    start_session,
    validation_messages,
    verify_password,
)
from ...services.users import (
    create_user,
    get_user_by_username,
    promote_if_first,
    user_exists,
)
from ..deps import get_settings, real_ip, redirect, render
from ..errors import http_error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def _auth_form(request: Request, settings: Settings, *, title: str, is_login_page: bool):
    return render(
        request,
        "auth_form.html",
        {
            "title": title,
            "disable_form": settings.disable_login_form,
            "disable_signup": settings.disable_signup,
            "is_login_page": is_login_page,
        },
    )


@router.get("/register", response_class=HTMLResponse)
def register(request: Request, settings: Settings = Depends(get_settings)):
    return _auth_form(request, settings, title="New account", is_login_page=False)


@router.post("/register")
def process_register(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    if settings.disable_signup:
        raise http_error(403, "Signing up is disabled")
    if settings.disable_login_form:
        raise http_error(403, "Signing up via registration form is disabled")

    try:
        form = UserForm(username=username, password=password)
    except ValidationError as exc:
        for message in validation_messages(exc):
            add_flash(request, message, "error")
        return _auth_form(request, settings, title="New account", is_login_page=False)

    try:
        exists = user_exists(session, form.username)
    except SQLAlchemyError as exc:
        raise http_error(500, "Cannot check for user", exc) from exc
    if exists:
        add_flash(request, "Username already exists", "error")
        return _auth_form(request, settings, title="New account", is_login_page=False)

    try:
        hashed = hash_password(form.password)
    except HashingError as exc:
        raise http_error(500, "Cannot hash password", exc) from exc

    user = User(username=form.username, password=hashed)
    try:
        create_user(session, user)
    except IntegrityError:
        add_flash(request, "Username already exists", "error")
        return _auth_form(request, settings, title="New account", is_login_page=False)
    except SQLAlchemyError as exc:
        raise http_error(500, "Cannot create user", exc) from exc

    try:
        promote_if_first(session, user)
    except SQLAlchemyError as exc:
        raise http_error(500, "Cannot set user admin", exc) from exc

    start_session(request, user.id, settings.session_max_age)
    return redirect("/")


@router.get("/login", response_class=HTMLResponse)
def login(request: Request, settings: Settings = Depends(get_settings)):
    return _auth_form(request, settings, title="Login", is_login_page=True)


def _invalid_credentials(request: Request) -> RedirectResponse:
    logger.warning("Invalid HTTP authentication attempt from %s", real_ip(request))
    add_flash(request, "Invalid credentials", "error")
    return redirect("/login")


@router.post("/login")
def process_login(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    if settings.disable_login_form:
        raise http_error(403, "Logging in via login form is disabled")

    try:
        user = get_user_by_username(session, username)
    except SQLAlchemyError as exc:
        raise http_error(500, "Cannot get user", exc) from exc
    if user is None:
        return _invalid_credentials(request)

    try:
        valid = verify_password(user.password, password)
    except (InvalidHashError, VerificationError) as exc:
        raise http_error(500, "Cannot check for password", exc) from exc
    if not valid:
        return _invalid_credentials(request)

    start_session(request, user.id, settings.remember_max_age)
    response = redirect("/")
    delete_csrf_cookie(response, settings)
    return response


@router.api_route("/logout", methods=["GET", "POST"])
def logout(request: Request, settings: Settings = Depends(get_settings)):
    clear_session(request)
    response = redirect("/all")
    delete_csrf_cookie(response, settings)
    return response


__all__ = ["router"]
