"""Identity providers: enumeration, OAuth clients and profile normalisation.

OAuth clients are built per request from immutable settings, so two requests
for different providers never reconfigure a shared registry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict

import httpx
from authlib.integrations.starlette_client import OAuth
from starlette.requests import Request

from ..core.config import Settings
from . import outbound

if TYPE_CHECKING:
    from ..models import User

logger = logging.getLogger(__name__)

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_API_URL = "https://api.github.com/"


class Provider(str, Enum):
    GITHUB = "github"
    GITLAB = "gitlab"
    GITEA = "gitea"
    OIDC = "openid-connect"

    @property
    def user_field(self) -> str:
        """Name of the ``User`` column holding this provider's remote id."""

        if self is Provider.GITHUB:
            return "github_id"
        if self is Provider.GITLAB:
            return "gitlab_id"
        if self is Provider.GITEA:
            return "gitea_id"
        return "oidc_id"

    @property
    def display_name(self) -> str:
        if self is Provider.GITHUB:
            return "GitHub"
        if self is Provider.GITLAB:
            return "GitLab"
        if self is Provider.GITEA:
            return "Gitea"
        return "OpenID Connect"

    @property
    def has_public_keys(self) -> bool:
        return self is not Provider.OIDC


class ProviderConfigError(RuntimeError):
    """Raised when a provider cannot be configured from settings."""


@dataclass(frozen=True)
class OAuthProfile:
    """Provider-independent view of the signed-in remote account."""

    provider: Provider
    user_id: str
    nickname: str
    email: str = ""
    avatar_url: str = ""


def linked_id(user: "User", provider: Provider) -> str:
    return getattr(user, provider.user_field) or ""


def url_join(base: str, *parts: str) -> str:
    """Join path segments onto ``base`` with exactly one slash between them."""

    segments = [base.rstrip("/")]
    segments.extend(part.strip("/") for part in parts if part.strip("/"))
    return "/".join(segments)


def build_base_url(request: Request, settings: Settings) -> str:
    """Externally reachable root of this application."""

    if settings.external_url:
        return settings.external_url

    scheme = "http"
    if (
        request.url.scheme == "https"
        or request.headers.get("x-forwarded-proto", "").lower() == "https"
    ):
        scheme = "https"
    host = request.headers.get("host") or request.url.netloc
    return f"{scheme}://{host}"


def callback_url(provider: Provider, base_url: str) -> str:
    return url_join(base_url, "oauth", provider.value, "callback")


def build_client(provider: Provider, settings: Settings):
    """Return a fresh Authlib client for ``provider``."""

    oauth = OAuth()

    if provider is Provider.GITHUB:
        return oauth.register(
            name=provider.value,
            client_id=settings.github_client_key,
            client_secret=settings.github_secret,
            authorize_url=GITHUB_AUTHORIZE_URL,
            access_token_url=GITHUB_TOKEN_URL,
            api_base_url=GITHUB_API_URL,
            client_kwargs={"scope": "user:email"},
        )

    if provider is Provider.GITLAB:
        return oauth.register(
            name=provider.value,
            client_id=settings.gitlab_client_key,
            client_secret=settings.gitlab_secret,
            authorize_url=url_join(settings.gitlab_url, "oauth/authorize"),
            access_token_url=url_join(settings.gitlab_url, "oauth/token"),
            api_base_url=url_join(settings.gitlab_url, "api/v4") + "/",
            client_kwargs={"scope": "read_user"},
        )

    if provider is Provider.GITEA:
        return oauth.register(
            name=provider.value,
            client_id=settings.gitea_client_key,
            client_secret=settings.gitea_secret,
            authorize_url=url_join(settings.gitea_url, "login/oauth/authorize"),
            access_token_url=url_join(settings.gitea_url, "login/oauth/access_token"),
            api_base_url=url_join(settings.gitea_url, "api/v1") + "/",
        )

    if not settings.oidc_discovery_url:
        raise ProviderConfigError("OIDC_DISCOVERY_URL is not configured")
    return oauth.register(
        name=provider.value,
        client_id=settings.oidc_client_key,
        client_secret=settings.oidc_secret,
        server_metadata_url=settings.oidc_discovery_url,
        client_kwargs={"scope": "openid email profile"},
    )


async def _github_primary_email(client, token: Dict[str, Any]) -> str:
    response = await client.get("user/emails", token=token)
    if response.status_code != 200:
        return ""
    for entry in response.json():
        if entry.get("primary") and entry.get("verified"):
            return entry.get("email") or ""
    return ""


async def fetch_profile(client, provider: Provider, request: Request) -> OAuthProfile:
    """Complete the code exchange and read the remote account profile.

    Raises ``authlib`` ``OAuthError`` or ``httpx.HTTPError`` on failure.
    """

    token = await client.authorize_access_token(request)

    if provider is Provider.OIDC:
        info = token.get("userinfo") or await client.userinfo(token=token)
        return OAuthProfile(
            provider=provider,
            user_id=str(info["sub"]),
            nickname=info.get("preferred_username") or info.get("nickname") or "",
            email=info.get("email") or "",
            avatar_url=info.get("picture") or "",
        )

    response = await client.get("user", token=token)
    response.raise_for_status()
    data = response.json()

    email = data.get("email") or ""
    if not email and provider is Provider.GITHUB:
        email = await _github_primary_email(client, token)

    return OAuthProfile(
        provider=provider,
        user_id=str(data["id"]),
        nickname=data.get("login") or data.get("username") or "",
        email=email,
        avatar_url=data.get("avatar_url") or "",
    )


async def _gitea_avatar_url(identifier: str, settings: Settings) -> str:
    url = url_join(settings.gitea_url, "api/v1/users", identifier)
    try:
        async with outbound.async_client(settings) as client:
            response = await client.get(url)
            response.raise_for_status()
            payload = response.json()
    except httpx.HTTPError as exc:
        logger.error("Cannot get user from Gitea: %s", exc)
        return ""
    except ValueError as exc:
        logger.error("Cannot decode Gitea response body: %s", exc)
        return ""

    avatar = payload.get("avatar_url") if isinstance(payload, dict) else None
    if not avatar:
        logger.error("Field 'avatar_url' not found in Gitea JSON response")
        return ""
    return str(avatar)


async def resolve_avatar_url(profile: OAuthProfile, settings: Settings) -> str:
    """Avatar URL to store for ``profile``; empty string when unknown."""

    if profile.provider is Provider.GITHUB:
        return f"https://avatars.githubusercontent.com/u/{profile.user_id}?v=4"
    if profile.provider is Provider.GITLAB:
        return (
            url_join(
                settings.gitlab_url,
                "uploads/-/system/user/avatar",
                profile.user_id,
                "avatar.png",
            )
            + "?width=400"
        )
    if profile.provider is Provider.GITEA:
        return await _gitea_avatar_url(profile.user_id, settings)
    return profile.avatar_url


async def apply_profile(user: "User", profile: OAuthProfile, settings: Settings) -> None:
    """Store the remote id and avatar of ``profile`` on ``user`` (unsaved)."""

    user.avatar_url = await resolve_avatar_url(profile, settings)
    setattr(user, profile.provider.user_field, profile.user_id)


__all__ = [
    "OAuthProfile",
    "Provider",
    "ProviderConfigError",
    "apply_profile",
    "build_base_url",
    "build_client",
    "callback_url",
    "fetch_profile",
    "linked_id",
    "resolve_avatar_url",
    "url_join",
]
