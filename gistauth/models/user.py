"""Database model for gist owners."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field as ORMField, SQLModel

from ..core.time import utcnow


class User(SQLModel, table=True):
    """Account authenticated by password, by one or more providers, or both."""

    __tablename__ = "user"

    id: Optional[int] = ORMField(default=None, primary_key=True)
    username: str = ORMField(index=True, unique=True)
    email: str = ""
    password: str = ""
    md5_hash: str = ""
    avatar_url: str = ""
    github_id: str = ORMField(default="", index=True)
    gitlab_id: str = ORMField(default="", index=True)
    gitea_id: str = ORMField(default="", index=True)
    oidc_id: str = ORMField(default="", index=True)
    is_admin: bool = False
    created_at: datetime = ORMField(default_factory=utcnow)


__all__ = ["User"]
