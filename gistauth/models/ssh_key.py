"""Database model for public SSH keys attached to an account."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field as ORMField, SQLModel

from ..core.time import utcnow


class SSHKey(SQLModel, table=True):
    __tablename__ = "ssh_key"

    id: Optional[int] = ORMField(default=None, primary_key=True)
    title: str
    content: str
    user_id: int = ORMField(foreign_key="user.id", index=True)
    created_at: datetime = ORMField(default_factory=utcnow)


__all__ = ["SSHKey"]
