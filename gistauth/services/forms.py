"""Validation of the local registration form."""

from __future__ import annotations

import re
from typing import List

from pydantic import BaseModel, ValidationError, field_validator

USERNAME_MAX_LENGTH = 24
_USERNAME_RE = re.compile(r"^[A-Za-z0-9-]+$")

# Top-level routes a username must not shadow.
RESERVED_USERNAMES = frozenset(
    {
        "admin",
        "admin-panel",
        "all",
        "api",
        "assets",
        "health",
        "login",
        "logout",
        "me",
        "oauth",
        "register",
        "search",
        "settings",
        "static",
    }
)


class UserForm(BaseModel):
    username: str
    password: str

    @field_validator("username")
    @classmethod
    def _check_username(cls, value: str) -> str:
        if not value:
            raise ValueError("Username is required")
        if len(value) > USERNAME_MAX_LENGTH:
            raise ValueError(
                f"Username must be {USERNAME_MAX_LENGTH} characters or less"
            )
        if not _USERNAME_RE.match(value):
            raise ValueError("Username can only contain letters, digits and dashes")
        if value.lower() in RESERVED_USERNAMES:
            raise ValueError("Username is reserved")
        return value

    @field_validator("password")
    @classmethod
    def _check_password(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        return value


def validation_messages(exc: ValidationError) -> List[str]:
    """Human readable messages for each failed field."""

    messages: List[str] = []
    for error in exc.errors():
        ctx_error = (error.get("ctx") or {}).get("error")
        messages.append(str(ctx_error) if ctx_error else error["msg"])
    return messages


__all__ = [
    "RESERVED_USERNAMES",
    "USERNAME_MAX_LENGTH",
    "UserForm",
    "validation_messages",
]
