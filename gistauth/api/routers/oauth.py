"""Sign-in, sign-up and account linking through external identity providers."""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from authlib.integrations.base_client import OAuthError
from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from ...core import Settings, get_session
from ...models import User
from ...services import add_flash, delete_csrf_cookie, linked_id, start_session
from ...services.providers import (
    OAuthProfile,
    Provider,
    ProviderConfigError,
    apply_profile,
    build_base_url,
    build_client,
    callback_url,
    fetch_profile,
)
from ...services.ssh_keys import fetch_public_keys, key_title
from ...services.users import (
    create_ssh_key,
    create_user,
    delete_provider_id,
    email_md5,
    get_user_by_provider,
    promote_if_first,
    save_user,
    sign_in_methods,
    user_exists,
)
from ..deps import current_user, get_settings, redirect
from ..errors import http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/oauth", tags=["oauth"])


def _parse_provider(name: str) -> Provider:
    try:
        return Provider(name)
    except ValueError:
        raise http_error(400, "Unsupported provider") from None


def _client(provider: Provider, settings: Settings):
    try:
        return build_client(provider, settings)
    except ProviderConfigError as exc:
        raise http_error(500, f"Cannot create {provider.display_name} provider", exc) from exc


def _unlink(request: Request, session: Session, user: User, provider: Provider):
    if sign_in_methods(user) <= 1:
        add_flash(
            request,
            f"Cannot unlink {provider.display_name}: it is the only way to sign in "
            "to this account",
            "error",
        )
        return redirect("/settings")

    try:
        delete_provider_id(session, user, provider)
    except SQLAlchemyError as exc:
        raise http_error(500, f"Cannot unlink account from {provider.display_name}", exc) from exc

    add_flash(request, f"Account unlinked from {provider.display_name}", "success")
    return redirect("/settings")


@router.get("/{provider}")
async def oauth_begin(
    provider: str,
    request: Request,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    user: Optional[User] = Depends(current_user),
):
    selected = _parse_provider(provider)

    # Hitting the endpoint of an already linked provider unlinks it.
    if user is not None and linked_id(user, selected):
        return _unlink(request, session, user, selected)

    client = _client(selected, settings)
    redirect_uri = callback_url(selected, build_base_url(request, settings))
    try:
        return await client.authorize_redirect(request, redirect_uri)
    except (OAuthError, httpx.HTTPError) as exc:
        raise http_error(500, f"Cannot reach {selected.display_name}", exc) from exc


async def _import_keys(
    request: Request, session: Session, settings: Settings, user: User, provider: Provider
) -> None:
    try:
        keys = await fetch_public_keys(provider, user.username, settings)
    except httpx.HTTPError as exc:
        logger.error("Could not get user keys: %s", exc)
        add_flash(request, "Could not get user keys", "error")
        return

    for key in keys:
        try:
            create_ssh_key(session, user, key_title(provider), key)
        except SQLAlchemyError as exc:
            logger.error("Could not create ssh key: %s", exc)
            add_flash(request, "Could not create ssh key", "error")


async def _sign_up(
    request: Request, session: Session, settings: Settings, profile: OAuthProfile
) -> Optional[User]:
    """Create the account for a first-time provider sign-in.

    Returns None when the nickname is missing or already taken by another
    account, case-insensitively.
    """

    if not profile.nickname:
        add_flash(
            request,
            f"{profile.provider.display_name} did not provide a username for this account",
            "error",
        )
        return None

    try:
        taken = user_exists(session, profile.nickname)
    except SQLAlchemyError as exc:
        raise http_error(500, "Cannot check for user", exc) from exc
    if taken:
        add_flash(request, f"Username {profile.nickname} already exists", "error")
        return None

    user = User(
        username=profile.nickname,
        email=profile.email,
        md5_hash=email_md5(profile.email),
    )
    await apply_profile(user, profile, settings)

    try:
        create_user(session, user)
    except IntegrityError:
        add_flash(request, f"Username {profile.nickname} already exists", "error")
        return None
    except SQLAlchemyError as exc:
        raise http_error(500, "Cannot create user", exc) from exc

    try:
        promote_if_first(session, user)
    except SQLAlchemyError as exc:
        raise http_error(500, "Cannot set user admin", exc) from exc

    if profile.provider.has_public_keys:
        await _import_keys(request, session, settings, user, profile.provider)
    return user


@router.get("/{provider}/callback")
async def oauth_callback(
    provider: str,
    request: Request,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    user: Optional[User] = Depends(current_user),
):
    selected = _parse_provider(provider)
    client = _client(selected, settings)

    try:
        profile = await fetch_profile(client, selected, request)
    except (OAuthError, httpx.HTTPError, KeyError, ValueError) as exc:
        raise http_error(400, f"Cannot complete user auth: {exc}", exc) from exc

    if user is not None:
        try:
            owner = get_user_by_provider(session, profile.user_id, selected)
        except SQLAlchemyError as exc:
            raise http_error(500, "Cannot get user", exc) from exc
        if owner is not None and owner.id != user.id:
            add_flash(
                request,
                f"This {selected.display_name} account is already linked to another user",
                "error",
            )
            return redirect("/settings")

        await apply_profile(user, profile, settings)
        try:
            save_user(session, user)
        except SQLAlchemyError as exc:
            raise http_error(500, f"Cannot update user {selected.display_name} id", exc) from exc

        add_flash(request, f"Account linked to {selected.display_name}", "success")
        return redirect("/settings")

    try:
        account = get_user_by_provider(session, profile.user_id, selected)
    except SQLAlchemyError as exc:
        raise http_error(500, "Cannot get user", exc) from exc

    if account is None:
        if settings.disable_signup:
            raise http_error(403, "Signing up is disabled")
        account = await _sign_up(request, session, settings, profile)
        if account is None:
            return redirect("/login")

    start_session(request, account.id, settings.session_max_age)
    response = redirect("/")
    delete_csrf_cookie(response, settings)
    return response


__all__ = ["router"]
