"""Application settings and environment helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_DB_URL = f"sqlite:///{_PROJECT_ROOT / 'data' / 'app.db'}"

ONE_YEAR = 60 * 60 * 24 * 365
THIRTY_DAYS = 60 * 60 * 24 * 30


def _require_env(name: str) -> str:
    """Return a required environment variable or raise an error."""

    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number") from exc


@dataclass(frozen=True)
class Settings:
    """Immutable runtime configuration, read once at application start."""

    secret_key: str
    database_url: str = _DEFAULT_DB_URL
    db_reset: bool = False

    # Base URL used to build OAuth callback URLs when set.
    external_url: str = ""

    disable_signup: bool = False
    disable_login_form: bool = False

    github_client_key: str = ""
    github_secret: str = ""

    gitlab_client_key: str = ""
    gitlab_secret: str = ""
    gitlab_url: str = "https://gitlab.com/"

    gitea_client_key: str = ""
    gitea_secret: str = ""
    gitea_url: str = "https://gitea.com/"

    oidc_client_key: str = ""
    oidc_secret: str = ""
    oidc_discovery_url: str = ""

    session_max_age: int = THIRTY_DAYS
    remember_max_age: int = ONE_YEAR
    cookie_secure: bool = False
    cookie_samesite: str = "lax"
    cookie_domain: Optional[str] = None
    csrf_cookie_name: str = "_csrf"

    http_timeout: float = 10.0
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build settings from the process environment (and a ``.env`` file)."""

    load_dotenv(override=False)

    return Settings(
        secret_key=_require_env("SECRET_KEY"),
        database_url=os.getenv("DATABASE_URL") or _DEFAULT_DB_URL,
        db_reset=_env_bool("DB_RESET", False),
        external_url=os.getenv("EXTERNAL_URL", ""),
        disable_signup=_env_bool("DISABLE_SIGNUP", False),
        disable_login_form=_env_bool("DISABLE_LOGIN_FORM", False),
        github_client_key=os.getenv("GITHUB_CLIENT_KEY", ""),
        github_secret=os.getenv("GITHUB_SECRET", ""),
        gitlab_client_key=os.getenv("GITLAB_CLIENT_KEY", ""),
        gitlab_secret=os.getenv("GITLAB_SECRET", ""),
        gitlab_url=os.getenv("GITLAB_URL") or "https://gitlab.com/",
        gitea_client_key=os.getenv("GITEA_CLIENT_KEY", ""),
        gitea_secret=os.getenv("GITEA_SECRET", ""),
        gitea_url=os.getenv("GITEA_URL") or "https://gitea.com/",
        oidc_client_key=os.getenv("OIDC_CLIENT_KEY", ""),
        oidc_secret=os.getenv("OIDC_SECRET", ""),
        oidc_discovery_url=os.getenv("OIDC_DISCOVERY_URL", ""),
        session_max_age=_env_int("SESSION_MAX_AGE", THIRTY_DAYS),
        cookie_secure=_env_bool("COOKIE_SECURE", False),
        cookie_samesite=os.getenv("COOKIE_SAMESITE", "lax"),
        cookie_domain=os.getenv("COOKIE_DOMAIN") or None,
        csrf_cookie_name=os.getenv("CSRF_COOKIE_NAME", "_csrf"),
        http_timeout=_env_float("HTTP_TIMEOUT", 10.0),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


__all__ = ["ONE_YEAR", "Settings", "THIRTY_DAYS", "load_settings"]
